"""Per-message conflict analysis and end-of-session summaries."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from parallax.config import prompts_session_summary, settings
from parallax.services.analysis_parser import (
    Analysis,
    as_text,
    is_truthy,
    parse_analysis,
    strip_code_fences,
)
from parallax.services.interfaces import CompletionBackend, RecordStore
from parallax.services.lens_registry import resolve_context_mode
from parallax.services.prompt_composer import (
    SessionContext,
    build_mediation_prompt,
    build_name_map,
    build_system_prompt,
    get_max_tokens,
    goals_block,
    mode_label,
    other_participant,
    to_conversation_history,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionSummary:
    temperature_arc: str
    overall_insight: str
    key_moments: List[str] = field(default_factory=list)
    person_a_needs: str = ""
    person_b_needs: str = ""
    person_a_takeaway: str = ""
    person_b_takeaway: str = ""
    person_a_strength: str = ""
    person_b_strength: str = ""

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def parse_session_summary(raw: str) -> Optional[SessionSummary]:
    try:
        parsed = json.loads(strip_code_fences(raw))
        if not isinstance(parsed, dict):
            return None
        if not is_truthy(parsed.get("temperatureArc")) or not is_truthy(parsed.get("overallInsight")):
            return None

        def optional(key: str) -> str:
            return as_text(parsed.get(key)) if is_truthy(parsed.get(key)) else ""

        moments = parsed.get("keyMoments")
        return SessionSummary(
            temperature_arc=as_text(parsed["temperatureArc"]),
            overall_insight=as_text(parsed["overallInsight"]),
            key_moments=[as_text(m) for m in moments] if isinstance(moments, list) else [],
            person_a_needs=optional("personANeeds"),
            person_b_needs=optional("personBNeeds"),
            person_a_takeaway=optional("personATakeaway"),
            person_b_takeaway=optional("personBTakeaway"),
            person_a_strength=optional("personAStrength"),
            person_b_strength=optional("personBStrength"),
        )
    except Exception as exc:
        logger.warning("[ANALYSIS] Unparseable session summary (%s): %.120r", type(exc).__name__, raw)
        return None


class MediationService:
    """Attaches a multi-lens Analysis to each human message.

    Single attempt per call: a backend failure or unparseable reply leaves the
    message as it was and returns None. Callers may re-trigger.
    """

    def __init__(self, store: RecordStore, backend: CompletionBackend) -> None:
        self.store = store
        self.backend = backend
        self._modes: Dict[str, str] = {}
        self._lock = threading.Lock()

    def context_mode_for(self, session_id: str) -> str:
        with self._lock:
            cached = self._modes.get(session_id)
        if cached is not None:
            return cached

        session = self.store.get_session(session_id)
        mode = resolve_context_mode(session.context_mode or settings.DEFAULT_CONTEXT_MODE)
        with self._lock:
            self._modes[session_id] = mode
        return mode

    def forget(self, session_id: str) -> None:
        with self._lock:
            self._modes.pop(session_id, None)

    def build_prompts(self, session_id: str, message_id: str) -> tuple[str, str, int]:
        """(system prompt, user prompt, max tokens) for analyzing one message."""
        session = self.store.get_session(session_id)
        target = self.store.get_message(session_id, message_id)
        mode = self.context_mode_for(session_id)

        session_context = None
        if session.goals:
            session_context = SessionContext(goals=tuple(session.goals), context_summary=session.context_summary)

        name_map = build_name_map(session.person_a_name, session.person_b_name)
        prior = []
        for message in self.store.list_messages(session_id):
            if message.id == target.id:
                break
            prior.append(message)

        user_prompt = build_mediation_prompt(
            to_conversation_history(prior, name_map),
            sender_name=name_map.get(target.sender, target.sender),
            content=target.content,
            other_person_name=name_map[other_participant(target.sender)],
        )
        return build_system_prompt(mode, session_context), user_prompt, get_max_tokens(mode)

    def analyze_message(self, session_id: str, message_id: str) -> Optional[Analysis]:
        target = self.store.get_message(session_id, message_id)
        if not target.is_human:
            logger.debug("[ANALYSIS] Skipping mediator message %s", message_id)
            return None

        system_prompt, user_prompt, max_tokens = self.build_prompts(session_id, message_id)
        try:
            raw = self.backend.complete(system_prompt, user_prompt, max_tokens)
        except Exception as exc:
            logger.warning("[ANALYSIS] Completion failed for %s/%s: %s", session_id, message_id, exc)
            return None

        analysis = parse_analysis(raw, self.context_mode_for(session_id))
        if analysis is None:
            logger.warning("[ANALYSIS] Analysis unavailable for %s/%s", session_id, message_id)
            return None

        self.store.update_message(
            session_id,
            message_id,
            analysis=analysis.to_dict(),
            emotional_temperature=analysis.meta.overall_severity,
        )
        logger.info(
            "[ANALYSIS] %s/%s temperature=%.2f severity=%.2f direction=%s",
            session_id,
            message_id,
            analysis.emotional_temperature,
            analysis.meta.overall_severity,
            analysis.meta.resolution_direction,
        )
        return analysis

    def summarize_session(self, session_id: str) -> Optional[SessionSummary]:
        session = self.store.get_session(session_id)
        messages = self.store.list_messages(session_id)
        if not messages:
            return None

        name_map = build_name_map(session.person_a_name, session.person_b_name)
        lines = []
        for message in messages:
            line = f"[{name_map.get(message.sender, message.sender)}]: {message.content}"
            if message.emotional_temperature is not None:
                line += f" [{message.emotional_temperature:.2f}]"
            lines.append(line)

        user_prompt = prompts_session_summary.USER_TEMPLATE.format(
            mode_label=mode_label(self.context_mode_for(session_id)),
            person_a_name=name_map["person_a"],
            person_b_name=name_map["person_b"],
            goals_block=goals_block(session.goals),
            history="\n".join(lines),
        )
        try:
            raw = self.backend.complete(
                prompts_session_summary.SYSTEM_PROMPT, user_prompt, settings.SUMMARY_MAX_TOKENS
            )
        except Exception as exc:
            logger.warning("[ANALYSIS] Session summary failed for %s: %s", session_id, exc)
            return None
        return parse_session_summary(raw)
