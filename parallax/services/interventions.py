"""Mediator interventions during the open conversation.

``check_for_intervention`` is a pure classifier over the message history;
``InterventionTrigger`` runs it against the record store and asks the model
for the actual words; ``InterventionScheduler`` debounces checks so a burst
of messages produces one check shortly after the last of them.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from parallax.config import prompts_conductor, settings
from parallax.services.analysis_parser import Analysis, as_number
from parallax.services.interfaces import CompletionBackend, RecordStore
from parallax.services.prompt_composer import (
    build_name_map,
    format_history,
    goals_block,
    mode_label,
    other_participant,
    to_conversation_history,
)
from parallax.services.record_store import Issue, Message
from parallax.utils.scheduling import Handle, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

INTERVENTION_TYPES = ("escalation", "dominance", "breakthrough", "resolution")
RESOLVED_ISSUE_STATUSES = ("well_addressed", "deferred")

ESCALATION_TEMPERATURE = 0.85
ESCALATION_JUMP = 0.15
BREAKTHROUGH_TEMPERATURE = 0.3
BREAKTHROUGH_PRIOR_HIGH = 0.6
RESOLUTION_MIN_HUMAN_MESSAGES = 8
RESOLUTION_TEMPERATURE = 0.35
RESOLUTION_RECENT_CEILING = 0.4
RECENT_MESSAGES_FOR_PROMPT = 6


@dataclass(frozen=True)
class InterventionCheck:
    should_intervene: bool
    type: Optional[str] = None


NO_INTERVENTION = InterventionCheck(False, None)


def _message_temperature(message: Message) -> Optional[float]:
    if not message.analysis:
        return None
    return as_number(message.analysis.get("emotionalTemperature"))


def prior_temperatures(messages: Sequence[Message], count: int) -> List[float]:
    """Temperatures of the ``count`` analyzed messages before the most recent analyzed one, newest first."""
    temps: List[float] = []
    skipped_latest = False
    for message in reversed(messages):
        temperature = _message_temperature(message)
        if temperature is None:
            continue
        if not skipped_latest:
            skipped_latest = True
            continue
        temps.append(temperature)
        if len(temps) >= count:
            break
    return temps


def check_for_intervention(
    messages: Sequence[Message],
    latest_analysis: Analysis,
    issues: Iterable[Issue] = (),
) -> InterventionCheck:
    """Classify the conversation. ``latest_analysis`` belongs to the most recent analyzed message."""
    # Cooldown: give people room after the mediator has spoken.
    last_mediator = max((i for i, m in enumerate(messages) if m.sender == "mediator"), default=-1)
    if last_mediator >= 0:
        human_since = sum(1 for m in messages[last_mediator + 1 :] if m.sender != "mediator")
        if human_since < settings.INTERVENTION_COOLDOWN_MESSAGES:
            return NO_INTERVENTION

    current = latest_analysis.emotional_temperature
    direction = latest_analysis.meta.resolution_direction

    if current >= ESCALATION_TEMPERATURE:
        recent = prior_temperatures(messages, 3)
        if recent and current - sum(recent) / len(recent) > ESCALATION_JUMP:
            return InterventionCheck(True, "escalation")

    human = [m for m in messages if m.sender != "mediator"]
    if len(human) >= 3:
        last_three = human[-3:]
        if all(m.sender == last_three[0].sender for m in last_three):
            return InterventionCheck(True, "dominance")

    if current < BREAKTHROUGH_TEMPERATURE and direction == "de-escalating":
        if any(t > BREAKTHROUGH_PRIOR_HIGH for t in prior_temperatures(messages, 3)):
            return InterventionCheck(True, "breakthrough")

    if len(human) >= RESOLUTION_MIN_HUMAN_MESSAGES and current < RESOLUTION_TEMPERATURE:
        recent = prior_temperatures(messages, 4)
        all_low = len(recent) >= 3 and all(t < RESOLUTION_RECENT_CEILING for t in recent)
        settled = direction in ("de-escalating", "stable")
        issues_closed = all(issue.status in RESOLVED_ISSUE_STATUSES for issue in issues)
        if all_low and settled and issues_closed:
            return InterventionCheck(True, "resolution")

    return NO_INTERVENTION


@dataclass
class InterventionOutcome:
    intervened: bool = False
    type: Optional[str] = None
    message: Optional[str] = None
    directed_to: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


class InterventionTrigger:
    """Runs one intervention check per session at a time."""

    def __init__(
        self,
        store: RecordStore,
        backend: CompletionBackend,
        *,
        on_turn_change: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.on_turn_change = on_turn_change
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    def check(self, session_id: str) -> InterventionOutcome:
        with self._lock:
            if session_id in self._in_flight:
                logger.info("[INTERVENTION] Check already running for %s; skipping", session_id)
                return InterventionOutcome(skipped=True)
            self._in_flight.add(session_id)
        try:
            return self._check(session_id)
        finally:
            with self._lock:
                self._in_flight.discard(session_id)

    def _check(self, session_id: str) -> InterventionOutcome:
        session = self.store.get_session(session_id)
        if session.phase != "active" or session.status == "completed":
            return InterventionOutcome()

        messages = self.store.list_messages(session_id)
        latest = next(
            (m for m in reversed(messages) if m.analysis and "meta" in m.analysis),
            None,
        )
        if latest is None:
            return InterventionOutcome()
        analysis = latest.get_analysis(session.context_mode)
        if analysis is None:
            return InterventionOutcome()

        issues = self.store.list_issues(session_id)
        verdict = check_for_intervention(messages, analysis, issues)
        if not verdict.should_intervene:
            return InterventionOutcome()

        name_map = build_name_map(session.person_a_name, session.person_b_name)
        next_speaker = other_participant(latest.sender)
        history = to_conversation_history(messages[-RECENT_MESSAGES_FOR_PROMPT:], name_map)
        instruction = prompts_conductor.INTERVENTION_INSTRUCTIONS[verdict.type].format(
            next_speaker=name_map[next_speaker]
        )
        user_prompt = prompts_conductor.INTERVENTION_USER.format(
            mode_label=mode_label(session.context_mode),
            person_a_name=name_map["person_a"],
            person_b_name=name_map["person_b"],
            goals_block=goals_block(session.goals),
            history=format_history(history),
            instruction=instruction,
        )

        try:
            text = self.backend.complete(
                prompts_conductor.PERSONA, user_prompt, settings.INTERVENTION_MAX_TOKENS
            ).strip()
        except Exception as exc:
            logger.warning("[INTERVENTION] %s call failed for %s: %s", verdict.type, session_id, exc)
            return InterventionOutcome(type=verdict.type, error=f"Intervention call failed: {exc}")
        if not text:
            return InterventionOutcome(type=verdict.type, error="Empty intervention")

        self.store.insert_message(Message(session_id=session_id, sender="mediator", content=text))
        logger.info("[INTERVENTION] %s intervention in %s", verdict.type, session_id)

        directed_to = None
        if verdict.type == "escalation":
            directed_to = next_speaker
            self.store.update_session(session_id, current_speaker=next_speaker)
            if self.on_turn_change is not None:
                self.on_turn_change(session_id, next_speaker)

        return InterventionOutcome(intervened=True, type=verdict.type, message=text, directed_to=directed_to)


class InterventionScheduler:
    """Debounced delayed checks: at most one pending check per session."""

    def __init__(
        self,
        run_check: Callable[[str], object],
        *,
        delay_seconds: float = settings.INTERVENTION_CHECK_DELAY_SECONDS,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._run_check = run_check
        self.delay_seconds = delay_seconds
        self._scheduler = scheduler or ThreadingScheduler()
        self._pending: Dict[str, Handle] = {}
        self._lock = threading.Lock()

    def pending(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._pending

    def notify_message(self, session_id: str) -> None:
        """A human message arrived: (re)start the countdown to the next check."""
        with self._lock:
            previous = self._pending.pop(session_id, None)
            if previous is not None:
                previous.cancel()
            handle = None

            def fire() -> None:
                with self._lock:
                    if self._pending.get(session_id) is not handle:
                        return
                    del self._pending[session_id]
                try:
                    self._run_check(session_id)
                except Exception as exc:
                    logger.warning("[INTERVENTION] Scheduled check for %s failed: %s", session_id, exc)

            handle = self._scheduler.call_later(self.delay_seconds, fire)
            self._pending[session_id] = handle

    def cancel(self, session_id: str) -> None:
        with self._lock:
            handle = self._pending.pop(session_id, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> None:
        with self._lock:
            handles = list(self._pending.values())
            self._pending.clear()
        for handle in handles:
            handle.cancel()
