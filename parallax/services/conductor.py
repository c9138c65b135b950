"""
Conductor: the onboarding state machine and turn-taking for a mediated session.

Structured (remote) sessions walk
    greeting -> gather_a -> waiting_for_b -> gather_b -> synthesize -> active
one trigger at a time. In-person sessions stay in ``onboarding`` and let the
model return a single decision per exchange until it synthesizes goals.

Phase changes are guarded by ``Session.transition_in_flight``: it is set
(together with the new phase) under a per-session lock before the model is
called, cleared on commit, and on a hard failure the phase is rolled back.
The flag lives on the session record so it survives reconnects.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from parallax.config import prompts_conductor, settings
from parallax.services.analysis_parser import (
    as_text,
    extract_json_object,
    is_truthy,
    strip_code_fences,
)
from parallax.services.errors import PhaseTransitionError, UnknownTriggerError
from parallax.services.interfaces import CompletionBackend, RecordStore
from parallax.services.interventions import InterventionScheduler, InterventionTrigger
from parallax.services.issues import IssuePoller, IssueTracker
from parallax.services.prompt_composer import (
    build_name_map,
    format_history,
    mode_label,
    other_participant,
    to_conversation_history,
)
from parallax.services.record_store import Message, Session, utc_now_iso
from parallax.services.turn_timer import TurnTimerRegistry
from parallax.utils.scheduling import Scheduler

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("parallax.audit")

TRIGGERS = (
    "person_a_ready",
    "person_b_joined",
    "message_sent",
    "check_intervention",
    "in_person_message",
)

STRUCTURED_PHASES = ("greeting", "gather_a", "waiting_for_b", "gather_b", "synthesize", "active")
ADAPTIVE_PHASE = "onboarding"
ADAPTIVE_ACTIONS = ("continue", "synthesize")
PARTICIPANTS = ("person_a", "person_b")

# Onboarding only moves forward; "onboarding" sits level with "synthesize".
PHASE_RANK: Dict[Optional[str], int] = {
    None: -1,
    "greeting": 0,
    "gather_a": 1,
    "waiting_for_b": 2,
    "gather_b": 3,
    "synthesize": 4,
    ADAPTIVE_PHASE: 4,
    "active": 5,
}

WAITING_CHAT_HISTORY = 10
_NULL_NAMES = ("null", "none", "unknown", "n/a")


@dataclass
class ConductorResult:
    phase: Optional[str] = None
    message: Optional[str] = None
    directed_to: Optional[str] = None
    goals: List[str] = field(default_factory=list)
    context_summary: Optional[str] = None
    names: Dict[str, Optional[str]] = field(default_factory=dict)
    intervened: bool = False
    intervention_type: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AdaptiveDecision:
    action: str
    message: str
    directed_to: Optional[str] = None
    names: Dict[str, Optional[str]] = field(default_factory=dict)
    goals: List[str] = field(default_factory=list)
    context_summary: str = ""


# ---------------------------------------------------------------------------
# Model reply parsing
# ---------------------------------------------------------------------------

def _load_object(raw: str) -> Optional[Dict[str, Any]]:
    candidate = extract_json_object(strip_code_fences(raw or ""))
    if candidate is None:
        return None
    parsed = json.loads(candidate)
    return parsed if isinstance(parsed, dict) else None


def clean_name(value: Any) -> Optional[str]:
    """A usable display name, or None for blanks and the model's null spellings."""
    if not is_truthy(value) or not isinstance(value, str):
        return None
    name = value.strip().strip('"').strip()
    if not name or name.lower() in _NULL_NAMES:
        return None
    return name


def clean_goals(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [as_text(g).strip() for g in value if is_truthy(g) and as_text(g).strip()]


def parse_adaptive_decision(raw: str) -> Optional[AdaptiveDecision]:
    """Tolerant parse of the in-person decision. ``synthesize`` without goals comes back as ``continue``."""
    try:
        parsed = _load_object(raw)
        if parsed is None or not is_truthy(parsed.get("message")):
            return None

        goals = clean_goals(parsed.get("goals"))
        action = parsed.get("action")
        if action not in ADAPTIVE_ACTIONS:
            action = "continue"
        if action == "synthesize" and not goals:
            logger.info("[CONDUCTOR] Synthesize decision without goals; treating as continue")
            action = "continue"

        directed_to = parsed.get("directed_to", parsed.get("directedTo"))
        names = parsed.get("names") if isinstance(parsed.get("names"), dict) else {}
        summary = parsed.get("contextSummary")
        return AdaptiveDecision(
            action=action,
            message=as_text(parsed["message"]).strip(),
            directed_to=directed_to if directed_to in PARTICIPANTS else None,
            names={"a": clean_name(names.get("a")), "b": clean_name(names.get("b"))},
            goals=goals if action == "synthesize" else [],
            context_summary=as_text(summary).strip() if is_truthy(summary) else "",
        )
    except Exception as exc:
        logger.warning("[CONDUCTOR] Unparseable adaptive decision (%s): %.120r", type(exc).__name__, raw)
        return None


def parse_synthesis(raw: str) -> Optional[Dict[str, Any]]:
    """``{message, goals, context_summary, name}`` or None when the reply is unusable or has no goals."""
    try:
        parsed = _load_object(raw)
        if parsed is None or not is_truthy(parsed.get("message")):
            return None
        goals = clean_goals(parsed.get("goals"))
        if not goals:
            return None
        summary = parsed.get("contextSummary")
        return {
            "message": as_text(parsed["message"]).strip(),
            "goals": goals,
            "context_summary": as_text(summary).strip() if is_truthy(summary) else "",
            "name": clean_name(parsed.get("name")),
        }
    except Exception as exc:
        logger.warning("[CONDUCTOR] Unparseable synthesis (%s): %.120r", type(exc).__name__, raw)
        return None


def parse_acknowledgment(raw: str) -> Dict[str, Optional[str]]:
    """Person A's context acknowledgment. Plain prose is accepted as the message."""
    text = (raw or "").strip()
    try:
        parsed = _load_object(text)
    except ValueError:
        parsed = None
    if parsed is None:
        return {"message": strip_code_fences(text) or None, "name": None}
    message = as_text(parsed.get("message")).strip() if is_truthy(parsed.get("message")) else None
    return {"message": message, "name": clean_name(parsed.get("name"))}


# ---------------------------------------------------------------------------
# Conductor
# ---------------------------------------------------------------------------

class Conductor:
    def __init__(
        self,
        store: RecordStore,
        backend: CompletionBackend,
        *,
        intervention_trigger: Optional[InterventionTrigger] = None,
        intervention_scheduler: Optional[InterventionScheduler] = None,
        timers: Optional[TurnTimerRegistry] = None,
        issue_tracker: Optional[IssueTracker] = None,
        poll_scheduler: Optional[Scheduler] = None,
    ) -> None:
        """
        Args:
            intervention_scheduler: Debounced checks after each active-phase message
            issue_tracker: When set, each session gets an IssuePoller once it goes active
            poll_scheduler: Scheduler for the issue pollers (default: daemon threads)
        """
        self.store = store
        self.backend = backend
        self.timers = timers or TurnTimerRegistry()
        self.intervention_trigger = intervention_trigger or InterventionTrigger(
            store, backend, on_turn_change=self._turn_changed
        )
        self.intervention_scheduler = intervention_scheduler
        self.issue_tracker = issue_tracker
        self._poll_scheduler = poll_scheduler

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._pollers: Dict[str, IssuePoller] = {}
        self._handlers: Dict[str, Callable[[str, Optional[str]], ConductorResult]] = {
            "person_a_ready": self._person_a_ready,
            "person_b_joined": self._person_b_joined,
            "message_sent": self._message_sent,
            "check_intervention": self._check_intervention,
            "in_person_message": self._in_person_message,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle(self, trigger: str, session_id: str, message_id: Optional[str] = None) -> ConductorResult:
        handler = self._handlers.get(trigger)
        if handler is None:
            raise UnknownTriggerError(f"Unknown conductor trigger: {trigger!r}")
        if trigger == "message_sent" and not message_id:
            raise ValueError("message_sent requires a message_id")
        # Raises SessionNotFound before anything else happens.
        self.store.get_session(session_id)
        logger.debug("[CONDUCTOR] %s for %s (message=%s)", trigger, session_id, message_id)
        return handler(session_id, message_id)

    def expire_turn(self, session_id: str) -> ConductorResult:
        """The turn timer ran out: hand the floor to the other participant."""
        session = self.store.get_session(session_id)
        if session.phase != "active" or session.status == "completed":
            return ConductorResult(phase=session.phase, skipped=True)

        name_map = build_name_map(session.person_a_name, session.person_b_name)
        previous = session.current_speaker
        nxt = other_participant(previous)
        text = prompts_conductor.TURN_EXPIRED_MESSAGE.format(
            previous_name=name_map[previous], next_name=name_map[nxt]
        )
        self.store.insert_message(Message(session_id=session_id, sender="mediator", content=text))
        self.store.update_session(session_id, current_speaker=nxt)
        self._turn_changed(session_id, nxt)
        logger.info("[CONDUCTOR] Turn expired in %s; floor passes to %s", session_id, nxt)
        return ConductorResult(phase="active", message=text, directed_to=nxt)

    def end_session(self, session_id: str) -> ConductorResult:
        session = self.store.update_session(
            session_id, status="completed", ended_at=utc_now_iso(), transition_in_flight=False
        )
        self._stop_session_tasks(session_id)
        logger.info("[CONDUCTOR] Session %s ended in phase %s", session_id, session.phase)
        return ConductorResult(phase=session.phase)

    def _stop_session_tasks(self, session_id: str) -> None:
        self.timers.stop(session_id)
        if self.intervention_scheduler is not None:
            self.intervention_scheduler.cancel(session_id)
        with self._locks_guard:
            poller = self._pollers.pop(session_id, None)
        if poller is not None:
            poller.stop()

    def issue_poller(self, session_id: str) -> Optional[IssuePoller]:
        with self._locks_guard:
            return self._pollers.get(session_id)

    # ------------------------------------------------------------------
    # Transition guard
    # ------------------------------------------------------------------

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    def _begin(
        self,
        session_id: str,
        trigger: str,
        expected: tuple,
        target: str,
        **changes: Any,
    ) -> Optional[Session]:
        """Claim the transition. Returns the pre-transition session, or None if another caller owns it."""
        with self._lock_for(session_id):
            session = self.store.get_session(session_id)
            if session.status == "completed":
                logger.info("[CONDUCTOR] %s: session %s has ended; ignoring", trigger, session_id)
                return None
            if session.transition_in_flight:
                logger.info("[CONDUCTOR] %s: transition already in flight for %s", trigger, session_id)
                return None
            if session.phase not in expected:
                logger.info(
                    "[CONDUCTOR] %s: %s is in phase %s, not %s; ignoring",
                    trigger, session_id, session.phase, "/".join(str(p) for p in expected),
                )
                return None
            if PHASE_RANK[target] < PHASE_RANK[session.phase]:
                raise PhaseTransitionError(f"Cannot move {session_id} from {session.phase} back to {target}")
            self.store.update_session(session_id, phase=target, transition_in_flight=True, **changes)
            return session

    def _commit(
        self, session_id: str, trigger: str, from_phase: Optional[str], to_phase: str, **changes: Any
    ) -> Optional[Session]:
        """Finish the transition. Returns None (and changes nothing) if the session ended meanwhile."""
        with self._lock_for(session_id):
            if self.store.get_session(session_id).status == "completed":
                session = None
            else:
                session = self.store.update_session(
                    session_id, phase=to_phase, transition_in_flight=False, **changes
                )
        if session is None:
            audit_logger.warning(
                "ABANDON session=%s from=%s to=%s trigger=%s reason=session ended",
                session_id, from_phase, to_phase, trigger,
            )
            logger.info("[CONDUCTOR] %s ended during %s -> %s; dropping the transition", session_id, from_phase, to_phase)
            return None
        audit_logger.info(
            "COMMIT session=%s from=%s to=%s trigger=%s", session_id, from_phase, to_phase, trigger
        )
        logger.info("[CONDUCTOR] %s: %s -> %s", session_id, from_phase, to_phase)
        return session

    def _rollback(
        self,
        session_id: str,
        trigger: str,
        from_phase: Optional[str],
        attempted: str,
        reason: str,
        **changes: Any,
    ) -> Session:
        with self._lock_for(session_id):
            session = self.store.get_session(session_id)
            # An ended session keeps its final state; end_session already cleared the flag.
            if session.status != "completed":
                session = self.store.update_session(
                    session_id, phase=from_phase, transition_in_flight=False, **changes
                )
        audit_logger.warning(
            "ROLLBACK session=%s from=%s to=%s trigger=%s reason=%s",
            session_id, from_phase, attempted, trigger, reason,
        )
        logger.warning("[CONDUCTOR] %s: %s -> %s rolled back (%s)", session_id, from_phase, attempted, reason)
        return session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        text = self.backend.complete(system_prompt, user_prompt, max_tokens)
        if not text or not text.strip():
            raise ValueError("empty reply")
        return text.strip()

    def _say(self, session_id: str, text: str) -> Message:
        return self.store.insert_message(Message(session_id=session_id, sender="mediator", content=text))

    def _turn_changed(self, session_id: str, speaker: str) -> None:
        timer = self.timers.get(session_id)
        if timer is not None:
            timer.reset()
        logger.debug("[CONDUCTOR] %s: turn -> %s", session_id, speaker)

    def _start_turn_timer(self, session: Session) -> None:
        session_id = session.id
        timer = self.timers.get_or_create(
            session_id, session.timer_duration_ms, lambda: self.expire_turn(session_id)
        )
        timer.start(session.timer_duration_ms)

    def _start_issue_poller(self, session_id: str) -> None:
        if self.issue_tracker is None:
            return
        with self._locks_guard:
            if session_id in self._pollers:
                return
            poller = IssuePoller(self.issue_tracker, session_id, scheduler=self._poll_scheduler)
            self._pollers[session_id] = poller
        poller.start()

    def _abandoned(self, session_id: str) -> ConductorResult:
        return ConductorResult(phase=self.store.get_session(session_id).phase, skipped=True, error="Session has ended")

    def _activate(
        self,
        session_id: str,
        trigger: str,
        from_phase: Optional[str],
        goals: List[str],
        context_summary: str,
        speaker: str,
        **changes: Any,
    ) -> Optional[Session]:
        current = self.store.get_session(session_id)
        if current.goals:
            # Goals are fixed by the first synthesis.
            logger.warning("[CONDUCTOR] %s already has goals; keeping them", session_id)
        else:
            changes["goals"] = list(goals)
            changes["context_summary"] = context_summary
        session = self._commit(
            session_id,
            trigger,
            from_phase,
            "active",
            status="active",
            current_speaker=speaker,
            **changes,
        )
        if session is None:
            return None
        self._start_turn_timer(session)
        self._start_issue_poller(session_id)
        if self.store.get_session(session_id).status == "completed":
            # end_session landed between the commit and the timer start.
            self._stop_session_tasks(session_id)
            return None
        return session

    # ------------------------------------------------------------------
    # Structured flow
    # ------------------------------------------------------------------

    def _person_a_ready(self, session_id: str, message_id: Optional[str]) -> ConductorResult:
        trigger = "person_a_ready"
        if self.store.get_session(session_id).mode == "in_person":
            return ConductorResult(skipped=True, error="person_a_ready applies to remote sessions")
        before = self._begin(session_id, trigger, (None,), "greeting")
        if before is None:
            return ConductorResult(phase=self.store.get_session(session_id).phase, skipped=True)

        user_prompt = prompts_conductor.GREETING_A_USER.format(mode_label=mode_label(before.context_mode))
        try:
            text = self._complete(prompts_conductor.PERSONA, user_prompt, settings.CONDUCTOR_MAX_TOKENS)
        except Exception as exc:
            self._rollback(session_id, trigger, before.phase, "greeting", str(exc))
            return ConductorResult(phase=before.phase, error=f"Greeting failed: {exc}")

        if self._commit(session_id, trigger, before.phase, "gather_a") is None:
            return self._abandoned(session_id)
        self._say(session_id, text)
        return ConductorResult(phase="gather_a", message=text, directed_to="person_a")

    def _person_b_joined(self, session_id: str, message_id: Optional[str]) -> ConductorResult:
        trigger = "person_b_joined"
        with self._lock_for(session_id):
            session = self.store.get_session(session_id)
            if session.status == "completed":
                return ConductorResult(phase=session.phase, skipped=True)
            # Recorded first: if A's acknowledgment is still in flight, its commit chains B's greeting.
            if not session.person_b_present:
                self.store.update_session(session_id, person_b_present=True)
            if session.phase in (None, "greeting", "gather_a"):
                logger.info("[CONDUCTOR] Person B arrived early in %s (phase %s)", session_id, session.phase)
                return ConductorResult(phase=session.phase)
        return self._greet_b(session_id, trigger)

    def _greet_b(self, session_id: str, trigger: str) -> ConductorResult:
        before = self._begin(session_id, trigger, ("waiting_for_b",), "gather_b", person_b_present=True)
        if before is None:
            return ConductorResult(phase=self.store.get_session(session_id).phase, skipped=True)

        name_map = build_name_map(before.person_a_name, before.person_b_name)
        user_prompt = prompts_conductor.GREETING_B_USER.format(
            mode_label=mode_label(before.context_mode),
            person_a_name=name_map["person_a"],
        )
        try:
            text = self._complete(prompts_conductor.PERSONA, user_prompt, settings.CONDUCTOR_MAX_TOKENS)
        except Exception as exc:
            self._rollback(session_id, trigger, before.phase, "gather_b", str(exc))
            return ConductorResult(phase=before.phase, error=f"Greeting for person B failed: {exc}")

        if self._commit(session_id, trigger, before.phase, "gather_b") is None:
            return self._abandoned(session_id)
        self._say(session_id, text)
        return ConductorResult(phase="gather_b", message=text, directed_to="person_b")

    def _message_sent(self, session_id: str, message_id: Optional[str]) -> ConductorResult:
        session = self.store.get_session(session_id)
        message = self.store.get_message(session_id, message_id)
        if not message.is_human:
            return ConductorResult(phase=session.phase)

        if session.phase == "gather_a" and message.sender == "person_a":
            return self._gather_a(session_id, message)
        if session.phase == "waiting_for_b" and message.sender == "person_a":
            return self._waiting_chat(session, message)
        if session.phase == "gather_b" and message.sender == "person_b":
            return self._gather_b(session_id, message)
        if session.phase == "active":
            return self._active_message(session, message)
        return ConductorResult(phase=session.phase)

    def _gather_a(self, session_id: str, message: Message) -> ConductorResult:
        trigger = "message_sent"
        before = self._begin(
            session_id, trigger, ("gather_a",), "waiting_for_b", person_a_context=message.content
        )
        if before is None:
            return ConductorResult(phase=self.store.get_session(session_id).phase, skipped=True)

        user_prompt = prompts_conductor.PROCESS_A_USER.format(
            person_a_context=message.content, room_code=before.room_code
        )
        error = None
        reply: Dict[str, Optional[str]] = {"message": None, "name": None}
        try:
            raw = self._complete(
                prompts_conductor.PROCESS_A_SYSTEM.format(), user_prompt, settings.CONDUCTOR_MAX_TOKENS
            )
            reply = parse_acknowledgment(raw)
        except Exception as exc:
            # A's context is already saved; the session can still move on without the acknowledgment.
            logger.warning("[CONDUCTOR] Acknowledgment for person A failed in %s: %s", session_id, exc)
            error = f"Acknowledgment failed: {exc}"

        changes: Dict[str, Any] = {}
        if reply["name"] and not before.person_a_name:
            changes["person_a_name"] = reply["name"]
        session = self._commit(session_id, trigger, before.phase, "waiting_for_b", **changes)
        if session is None:
            return self._abandoned(session_id)
        if reply["message"]:
            self._say(session_id, reply["message"])

        result = ConductorResult(
            phase="waiting_for_b",
            message=reply["message"],
            directed_to="person_a",
            names={"a": session.person_a_name, "b": session.person_b_name},
            error=error,
        )
        if session.person_b_present:
            logger.info("[CONDUCTOR] Person B already waiting in %s; greeting them now", session_id)
            return self._greet_b(session_id, "person_b_joined")
        return result

    def _waiting_chat(self, session: Session, message: Message) -> ConductorResult:
        name_map = build_name_map(session.person_a_name, session.person_b_name)
        earlier = [m for m in self.store.list_messages(session.id) if m.id != message.id]
        user_prompt = prompts_conductor.WAITING_CHAT_USER.format(
            person_a_name=name_map["person_a"],
            person_a_context=session.person_a_context,
            history=format_history(to_conversation_history(earlier[-WAITING_CHAT_HISTORY:], name_map)),
            content=message.content,
        )
        try:
            text = self._complete(prompts_conductor.PERSONA, user_prompt, settings.CONDUCTOR_MAX_TOKENS)
        except Exception as exc:
            logger.warning("[CONDUCTOR] Waiting-room reply failed in %s: %s", session.id, exc)
            return ConductorResult(phase=session.phase, error=f"Reply failed: {exc}")
        self._say(session.id, text)
        return ConductorResult(phase=session.phase, message=text, directed_to="person_a")

    def _gather_b(self, session_id: str, message: Message) -> ConductorResult:
        trigger = "message_sent"
        with self._lock_for(session_id):
            session = self.store.get_session(session_id)
            # B may need several messages before synthesis succeeds; keep all of them.
            context = f"{session.person_b_context}\n{message.content}" if session.person_b_context else message.content
            self.store.update_session(session_id, person_b_context=context)

        before = self._begin(session_id, trigger, ("gather_b",), "synthesize")
        if before is None:
            return ConductorResult(phase=self.store.get_session(session_id).phase, skipped=True)

        name_map = build_name_map(before.person_a_name, before.person_b_name)
        user_prompt = prompts_conductor.SYNTHESIS_USER.format(
            mode_label=mode_label(before.context_mode),
            person_a_name=name_map["person_a"],
            person_a_context=before.person_a_context,
            person_b_name=name_map["person_b"],
            person_b_context=before.person_b_context,
        )
        try:
            raw = self._complete(
                prompts_conductor.SYNTHESIS_SYSTEM.format(), user_prompt, settings.CONDUCTOR_MAX_TOKENS
            )
        except Exception as exc:
            self._rollback(session_id, trigger, before.phase, "synthesize", str(exc))
            return ConductorResult(phase=before.phase, error=f"Synthesis failed: {exc}")

        synthesis = parse_synthesis(raw)
        if synthesis is None:
            self._rollback(session_id, trigger, before.phase, "synthesize", "no usable goals")
            return ConductorResult(phase=before.phase, error="Synthesis returned no usable goals")

        changes: Dict[str, Any] = {}
        if synthesis["name"] and not before.person_b_name:
            changes["person_b_name"] = synthesis["name"]
        session = self._activate(
            session_id,
            trigger,
            "synthesize",
            synthesis["goals"],
            synthesis["context_summary"],
            "person_a",
            **changes,
        )
        if session is None:
            return self._abandoned(session_id)
        self._say(session_id, synthesis["message"])
        return ConductorResult(
            phase="active",
            message=synthesis["message"],
            directed_to="person_a",
            goals=list(session.goals),
            context_summary=session.context_summary,
            names={"a": session.person_a_name, "b": session.person_b_name},
        )

    def _active_message(self, session: Session, message: Message) -> ConductorResult:
        directed_to = session.current_speaker
        if message.sender == session.current_speaker:
            directed_to = other_participant(message.sender)
            self.store.update_session(session.id, current_speaker=directed_to)
            self._turn_changed(session.id, directed_to)
        if self.intervention_scheduler is not None:
            self.intervention_scheduler.notify_message(session.id)
        return ConductorResult(phase="active", directed_to=directed_to)

    # ------------------------------------------------------------------
    # Interventions
    # ------------------------------------------------------------------

    def _check_intervention(self, session_id: str, message_id: Optional[str]) -> ConductorResult:
        session = self.store.get_session(session_id)
        if session.phase != "active":
            return ConductorResult(phase=session.phase)
        outcome = self.intervention_trigger.check(session_id)
        return ConductorResult(
            phase="active",
            message=outcome.message,
            directed_to=outcome.directed_to,
            intervened=outcome.intervened,
            intervention_type=outcome.type,
            skipped=outcome.skipped,
            error=outcome.error,
        )

    # ------------------------------------------------------------------
    # Adaptive (in-person) flow
    # ------------------------------------------------------------------

    def _in_person_message(self, session_id: str, message_id: Optional[str]) -> ConductorResult:
        trigger = "in_person_message"
        session = self.store.get_session(session_id)
        if session.mode != "in_person":
            return ConductorResult(phase=session.phase, skipped=True, error="in_person_message applies to in-person sessions")
        if session.phase == "active":
            return ConductorResult(phase="active", directed_to=session.current_speaker)

        before = self._begin(session_id, trigger, (None, ADAPTIVE_PHASE), ADAPTIVE_PHASE)
        if before is None:
            return ConductorResult(phase=self.store.get_session(session_id).phase, skipped=True)

        name_map = build_name_map(before.person_a_name, before.person_b_name)
        history = to_conversation_history(self.store.list_messages(session_id), name_map)
        system_prompt = prompts_conductor.ADAPTIVE_SYSTEM.format(mode_label=mode_label(before.context_mode))
        user_prompt = prompts_conductor.ADAPTIVE_USER.format(history=format_history(history))
        try:
            raw = self._complete(system_prompt, user_prompt, settings.ADAPTIVE_MAX_TOKENS)
        except Exception as exc:
            self._rollback(session_id, trigger, before.phase, ADAPTIVE_PHASE, str(exc))
            return ConductorResult(phase=before.phase, error=f"Conductor call failed: {exc}")

        decision = parse_adaptive_decision(raw)
        if decision is None:
            self._rollback(session_id, trigger, before.phase, ADAPTIVE_PHASE, "unparseable decision")
            return ConductorResult(phase=before.phase, error="Conductor reply could not be parsed")

        directed_to = decision.directed_to or other_participant(before.current_speaker)
        changes: Dict[str, Any] = {}
        if decision.names.get("a") and not before.person_a_name:
            changes["person_a_name"] = decision.names["a"]
        if decision.names.get("b") and not before.person_b_name:
            changes["person_b_name"] = decision.names["b"]

        if decision.action == "synthesize":
            session = self._activate(
                session_id,
                trigger,
                before.phase,
                decision.goals,
                decision.context_summary,
                directed_to,
                **changes,
            )
            phase = "active"
        else:
            session = self._commit(
                session_id, trigger, before.phase, ADAPTIVE_PHASE, current_speaker=directed_to, **changes
            )
            phase = ADAPTIVE_PHASE
        if session is None:
            return self._abandoned(session_id)
        self._say(session_id, decision.message)

        return ConductorResult(
            phase=phase,
            message=decision.message,
            directed_to=directed_to,
            goals=list(session.goals),
            context_summary=session.context_summary or None,
            names={"a": session.person_a_name, "b": session.person_b_name},
        )
