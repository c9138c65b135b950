"""Session, message and issue records plus two RecordStore implementations.

``InMemoryRecordStore`` backs tests and one-off CLI sessions.
``JsonRecordStore`` keeps one JSON document per session under
``settings.SESSIONS_DIR`` and rewrites it atomically on every change.

Both are thread-safe and last-write-wins per record id; nothing is
transactional across sessions, messages and issues.
"""

from __future__ import annotations

import copy
import datetime
import logging
import secrets
import threading
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytz

from parallax.config import settings
from parallax.services.analysis_parser import Analysis
from parallax.services.errors import IssueNotFound, MessageNotFound, SessionNotFound
from parallax.services.interfaces import RecordStore
from parallax.utils.atomic import read_session_document, write_session_document

logger = logging.getLogger(__name__)

SESSION_MODES = ("remote", "in_person")
SESSION_STATUSES = ("waiting", "active", "completed")
ISSUE_STATUSES = ("unaddressed", "well_addressed", "poorly_addressed", "deferred")

# No 0/O or 1/I.
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6

__all__ = [
    "Issue",
    "InMemoryRecordStore",
    "JsonRecordStore",
    "Message",
    "RecordStore",
    "Session",
    "generate_room_code",
    "is_valid_room_code",
    "utc_now_iso",
]


def utc_now_iso() -> str:
    return datetime.datetime.now(pytz.UTC).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def is_valid_room_code(code: str) -> bool:
    code = (code or "").upper()
    return len(code) == ROOM_CODE_LENGTH and all(ch in ROOM_CODE_ALPHABET for ch in code)


def _known_fields(cls, d: Dict[str, Any]) -> Dict[str, Any]:
    # Accept only known fields to avoid TypeError on schema evolution
    known = {f.name for f in cls.__dataclass_fields__.values()}
    return {k: v for k, v in d.items() if k in known}


@dataclass
class Session:
    context_mode: str
    mode: str = "remote"
    id: str = field(default_factory=new_id)
    room_code: str = field(default_factory=generate_room_code)
    status: str = "waiting"
    person_a_name: Optional[str] = None
    person_b_name: Optional[str] = None
    # Conductor state
    phase: Optional[str] = None
    transition_in_flight: bool = False
    person_b_present: bool = False
    person_a_context: str = ""
    person_b_context: str = ""
    goals: List[str] = field(default_factory=list)
    context_summary: str = ""
    current_speaker: str = "person_a"
    timer_duration_ms: int = settings.TURN_TIMER_DEFAULT_MS
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    ended_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Session":
        return cls(**_known_fields(cls, d))


@dataclass
class Message:
    session_id: str
    sender: str  # person_a | person_b | mediator
    content: str
    id: str = field(default_factory=new_id)
    analysis: Optional[Dict[str, Any]] = None
    emotional_temperature: Optional[float] = None
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def is_human(self) -> bool:
        return self.sender in ("person_a", "person_b")

    def get_analysis(self, mode: str) -> Optional[Analysis]:
        if not self.analysis:
            return None
        return Analysis.from_dict(self.analysis, mode)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Message":
        return cls(**_known_fields(cls, d))


@dataclass
class Issue:
    session_id: str
    label: str
    description: str
    raised_by: str
    id: str = field(default_factory=new_id)
    status: str = "unaddressed"
    source_message_id: Optional[str] = None
    addressed_by_message_id: Optional[str] = None
    grading_rationale: Optional[str] = None
    position: int = 0
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Issue":
        return cls(**_known_fields(cls, d))


def _apply_changes(record: Any, changes: Dict[str, Any]) -> None:
    known = record.__dataclass_fields__
    unknown = [k for k in changes if k not in known or k == "id"]
    if unknown:
        raise ValueError(f"Cannot update {type(record).__name__} fields: {unknown}")
    for key, value in changes.items():
        setattr(record, key, value)


class InMemoryRecordStore:
    """Thread-safe in-process store. Returned records are copies."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sessions: Dict[str, Session] = {}
        self._messages: Dict[str, List[Message]] = {}
        self._issues: Dict[str, List[Issue]] = {}

    # Subclasses persist here.
    def _persist(self, session_id: str) -> None:
        return None

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, session: Session) -> Session:
        with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session already exists: {session.id}")
            taken = {s.room_code for s in self._sessions.values()}
            while session.room_code in taken:
                session.room_code = generate_room_code()
            self._sessions[session.id] = copy.deepcopy(session)
            self._messages.setdefault(session.id, [])
            self._issues.setdefault(session.id, [])
            self._persist(session.id)
            logger.info("[STORE] Created session %s (room %s, %s)", session.id, session.room_code, session.context_mode)
            return copy.deepcopy(session)

    def _session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def get_session(self, session_id: str) -> Session:
        with self._lock:
            return copy.deepcopy(self._session(session_id))

    def find_session_by_code(self, room_code: str) -> Optional[Session]:
        code = (room_code or "").upper()
        with self._lock:
            for session in self._sessions.values():
                if session.room_code == code:
                    return copy.deepcopy(session)
        return None

    def update_session(self, session_id: str, **changes: Any) -> Session:
        with self._lock:
            session = self._session(session_id)
            _apply_changes(session, changes)
            session.updated_at = utc_now_iso()
            self._persist(session_id)
            return copy.deepcopy(session)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def insert_message(self, message: Message) -> Message:
        with self._lock:
            self._session(message.session_id)
            self._messages[message.session_id].append(copy.deepcopy(message))
            self._persist(message.session_id)
            return copy.deepcopy(message)

    def _message(self, session_id: str, message_id: str) -> Message:
        self._session(session_id)
        for message in self._messages[session_id]:
            if message.id == message_id:
                return message
        raise MessageNotFound(message_id)

    def get_message(self, session_id: str, message_id: str) -> Message:
        with self._lock:
            return copy.deepcopy(self._message(session_id, message_id))

    def list_messages(self, session_id: str) -> List[Message]:
        with self._lock:
            self._session(session_id)
            return copy.deepcopy(self._messages[session_id])

    def update_message(self, session_id: str, message_id: str, **changes: Any) -> Message:
        with self._lock:
            message = self._message(session_id, message_id)
            _apply_changes(message, changes)
            self._persist(session_id)
            return copy.deepcopy(message)

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def insert_issue(self, issue: Issue) -> Issue:
        with self._lock:
            self._session(issue.session_id)
            self._issues[issue.session_id].append(copy.deepcopy(issue))
            self._persist(issue.session_id)
            return copy.deepcopy(issue)

    def list_issues(self, session_id: str) -> List[Issue]:
        with self._lock:
            self._session(session_id)
            return sorted(copy.deepcopy(self._issues[session_id]), key=lambda i: i.position)

    def update_issue(self, session_id: str, issue_id: str, **changes: Any) -> Issue:
        with self._lock:
            self._session(session_id)
            for issue in self._issues[session_id]:
                if issue.id == issue_id:
                    _apply_changes(issue, changes)
                    self._persist(session_id)
                    return copy.deepcopy(issue)
            raise IssueNotFound(issue_id)


class JsonRecordStore(InMemoryRecordStore):
    """One ``<session_id>.json`` document per session, loaded eagerly at startup."""

    def __init__(self, directory: Path | None = None) -> None:
        super().__init__()
        self.directory = Path(directory or settings.SESSIONS_DIR)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._load()

    def _path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def _load(self) -> None:
        for path in sorted(self.directory.glob("*.json")):
            try:
                doc = read_session_document(path)
                session = Session.from_dict(doc["session"])
            except Exception as exc:
                logger.warning("[STORE] Skipping unreadable session file %s: %s", path.name, exc)
                continue
            self._sessions[session.id] = session
            self._messages[session.id] = [Message.from_dict(m) for m in doc["messages"]]
            self._issues[session.id] = [Issue.from_dict(i) for i in doc["issues"]]
        logger.info("[STORE] Loaded %d session(s) from %s", len(self._sessions), self.directory)

    def _persist(self, session_id: str) -> None:
        write_session_document(
            self._path(session_id),
            self._sessions[session_id].to_dict(),
            [m.to_dict() for m in self._messages[session_id]],
            [i.to_dict() for i in self._issues[session_id]],
        )
