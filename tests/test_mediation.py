"""Tests for per-message analysis and the session summary."""

from __future__ import annotations

import json

import pytest

from parallax.config import prompts_intelligence, prompts_session_summary
from parallax.services.mediation import MediationService, parse_session_summary
from parallax.services.prompt_composer import build_system_prompt, get_max_tokens


@pytest.fixture
def service(store, backend) -> MediationService:
    return MediationService(store, backend)


SUMMARY = {
    "temperatureArc": "Started hot, ended calm.",
    "keyMoments": ["Alex apologized"],
    "personANeeds": "Recognition",
    "personBNeeds": "Rest",
    "overallInsight": "Both wanted to feel like a team.",
}


# ---------------------------------------------------------------------------
# analyze_message
# ---------------------------------------------------------------------------

class TestAnalyzeMessage:
    """One completion, one parse, one stored analysis."""

    def test_legacy_reply_end_to_end(self, store, backend, service, make_session, say, legacy) -> None:
        session = make_session(context_mode="intimate")
        message = say(session.id, "person_a", "You never listen to me!")
        backend.queue("```json\n" + json.dumps(legacy(emotionalTemperature=1.4)) + "\n```")

        analysis = service.analyze_message(session.id, message.id)

        assert analysis.emotional_temperature == 1.0
        assert analysis.meta.overall_severity == 1.0
        assert analysis.meta.context_mode == "intimate"
        assert analysis.lenses["nvc"]["emotionalTemperature"] == 1.0

        stored = store.get_message(session.id, message.id)
        assert stored.emotional_temperature == 1.0
        assert stored.analysis["subtext"] == "I feel alone in this relationship."
        assert stored.analysis["meta"]["resolutionDirection"] == "stable"

        system_prompt, user_prompt, max_tokens = backend.calls[0]
        assert system_prompt == build_system_prompt("intimate")
        assert max_tokens == get_max_tokens("intimate")
        assert prompts_intelligence.FIRST_MESSAGE_PLACEHOLDER in user_prompt
        assert "[Person A]: You never listen to me!" in user_prompt
        assert "The other person in this conversation is Person B." in user_prompt

    def test_envelope_severity_stored(self, store, backend, service, make_session, say, legacy) -> None:
        session = make_session(context_mode="family")
        message = say(session.id, "person_b", "Fine.")
        backend.queue(legacy(
            emotionalTemperature=0.3,
            lenses={"gottman": {"horsemen": [], "confidence": 0.4}},
            meta={"overallSeverity": 0.7, "resolutionDirection": "escalating"},
        ))
        service.analyze_message(session.id, message.id)
        stored = store.get_message(session.id, message.id)
        assert stored.emotional_temperature == 0.7
        assert stored.analysis["emotionalTemperature"] == 0.3

    def test_history_and_names(self, backend, service, make_session, say, legacy) -> None:
        session = make_session(person_a_name="Alex", person_b_name="Sam")
        say(session.id, "person_a", "Can we talk?")
        say(session.id, "mediator", "Of course.")
        message = say(session.id, "person_b", "Sure.")
        backend.queue(legacy())
        service.analyze_message(session.id, message.id)
        _, user_prompt, _ = backend.calls[0]
        assert "[Alex]: Can we talk?" in user_prompt
        assert "[Sam]: Sure." in user_prompt
        assert user_prompt.endswith("The other person in this conversation is Alex.")

    def test_goals_reach_the_system_prompt(self, backend, service, make_session, say, legacy) -> None:
        session = make_session(goals=["Split chores"], context_summary="Both are tired.")
        message = say(session.id, "person_a", "hi")
        backend.queue(legacy())
        service.analyze_message(session.id, message.id)
        system_prompt, _, _ = backend.calls[0]
        assert "1. Split chores" in system_prompt
        assert "Both are tired." in system_prompt

    def test_mediator_message_skipped(self, backend, service, make_session, say) -> None:
        session = make_session()
        message = say(session.id, "mediator", "Welcome")
        assert service.analyze_message(session.id, message.id) is None
        assert backend.calls == []

    @pytest.mark.parametrize("reply", [ConnectionError("offline"), "Sorry, I can't help.", '{"feeling": "x"}'])
    def test_failure_leaves_message_untouched(self, store, backend, service, make_session, say, reply) -> None:
        session = make_session()
        message = say(session.id, "person_a", "hi")
        backend.queue(reply)
        assert service.analyze_message(session.id, message.id) is None
        stored = store.get_message(session.id, message.id)
        assert stored.analysis is None
        assert stored.emotional_temperature is None

    def test_context_mode_cached(self, store, service, make_session) -> None:
        session = make_session(context_mode="Professional-Peer")
        assert service.context_mode_for(session.id) == "professional_peer"
        store.update_session(session.id, context_mode="family")
        assert service.context_mode_for(session.id) == "professional_peer"
        service.forget(session.id)
        assert service.context_mode_for(session.id) == "family"


# ---------------------------------------------------------------------------
# Session summary
# ---------------------------------------------------------------------------

class TestSessionSummary:
    """Whole-conversation review after the session."""

    def test_parse(self) -> None:
        summary = parse_session_summary(json.dumps(SUMMARY))
        assert summary.temperature_arc == "Started hot, ended calm."
        assert summary.key_moments == ["Alex apologized"]
        assert summary.person_a_takeaway == ""

    @pytest.mark.parametrize("raw", ["nope", "[]", json.dumps({"temperatureArc": "x"})])
    def test_parse_rejects(self, raw: str) -> None:
        assert parse_session_summary(raw) is None

    def test_summarize(self, backend, service, make_session, say) -> None:
        session = make_session(person_a_name="Alex", goals=["Split chores"])
        say(session.id, "person_a", "You never help!", emotional_temperature=0.8)
        say(session.id, "person_b", "I'm sorry.")
        backend.queue(SUMMARY)

        summary = service.summarize_session(session.id)

        assert summary.overall_insight == "Both wanted to feel like a team."
        system_prompt, user_prompt, _ = backend.calls[0]
        assert system_prompt == prompts_session_summary.SYSTEM_PROMPT
        assert "[Alex]: You never help! [0.80]" in user_prompt
        assert "[Person B]: I'm sorry." in user_prompt
        assert "1. Split chores" in user_prompt

    def test_empty_session(self, backend, service, make_session) -> None:
        assert service.summarize_session(make_session().id) is None
        assert backend.calls == []

    def test_backend_failure(self, backend, service, make_session, say) -> None:
        session = make_session()
        say(session.id, "person_a", "hi")
        backend.queue(RuntimeError("down"))
        assert service.summarize_session(session.id) is None
