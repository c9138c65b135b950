"""Tests for analysis prompt assembly."""

from __future__ import annotations

import pytest

from parallax.config import prompts_intelligence, settings
from parallax.services.lens_registry import CONTEXT_MODES, LENSES, get_active_lenses
from parallax.services.prompt_composer import (
    ConversationEntry,
    SessionContext,
    build_mediation_prompt,
    build_name_map,
    build_system_prompt,
    format_history,
    get_max_tokens,
    goals_block,
    mode_label,
    other_participant,
    to_conversation_history,
)
from parallax.services.record_store import Message


# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------

class TestBuildSystemPrompt:
    """Preamble, lens fragments in order, optional session blocks, then the response shape."""

    def test_starts_with_preamble(self) -> None:
        prompt = build_system_prompt("intimate")
        assert prompt.startswith(prompts_intelligence.PREAMBLE)
        assert "CONTEXT MODE: intimate" in prompt

    @pytest.mark.parametrize("mode", CONTEXT_MODES)
    def test_fragments_appear_in_lens_order(self, mode: str) -> None:
        prompt = build_system_prompt(mode)
        positions = [prompt.index(LENSES[lens_id].prompt_fragment) for lens_id in get_active_lenses(mode)]
        assert positions == sorted(positions)

    def test_inactive_lenses_left_out(self) -> None:
        prompt = build_system_prompt("transactional")
        assert LENSES["gottman"].prompt_fragment not in prompt
        assert LENSES["gottman"].response_schema_fragment not in prompt

    def test_nvc_schema_not_nested(self) -> None:
        prompt = build_system_prompt("intimate")
        assert LENSES["nvc"].response_schema_fragment not in prompt
        assert LENSES["gottman"].response_schema_fragment in prompt

    def test_response_shape_names_mode_and_lenses(self) -> None:
        prompt = build_system_prompt("family")
        assert '"contextMode": "family"' in prompt
        assert '"activeLenses": ["nvc", "gottman", "narrative"' in prompt

    def test_no_session_blocks_by_default(self) -> None:
        prompt = build_system_prompt("intimate")
        assert prompts_intelligence.SESSION_GOALS_HEADER not in prompt
        assert prompts_intelligence.SESSION_CONTEXT_HEADER not in prompt

    def test_goals_block(self) -> None:
        context = SessionContext(goals=("Split chores fairly", "Plan one date night"))
        prompt = build_system_prompt("intimate", context)
        assert prompts_intelligence.SESSION_GOALS_HEADER in prompt
        assert "1. Split chores fairly\n2. Plan one date night" in prompt
        assert prompts_intelligence.SESSION_GOALS_FOOTER in prompt
        assert prompts_intelligence.SESSION_CONTEXT_HEADER not in prompt

    def test_summary_block_comes_after_goals(self) -> None:
        context = SessionContext(goals=("Listen",), context_summary="Both feel overworked.")
        prompt = build_system_prompt("intimate", context)
        assert prompt.index(prompts_intelligence.SESSION_GOALS_HEADER) < prompt.index(
            prompts_intelligence.SESSION_CONTEXT_HEADER
        )
        assert "Both feel overworked." in prompt
        # Session blocks sit before the response instructions.
        assert prompt.index("Both feel overworked.") < prompt.index(prompts_intelligence.RESPONSE_INTRO)

    def test_blank_goals_ignored(self) -> None:
        prompt = build_system_prompt("intimate", SessionContext(goals=("  ",)))
        assert prompts_intelligence.SESSION_GOALS_HEADER not in prompt

    def test_pure(self) -> None:
        context = SessionContext(goals=("Listen",))
        assert build_system_prompt("family", context) == build_system_prompt("family", context)


# ---------------------------------------------------------------------------
# Token budget
# ---------------------------------------------------------------------------

class TestMaxTokens:
    """Modes with many lenses get the larger budget."""

    def test_large_modes_get_more(self) -> None:
        assert len(get_active_lenses("family")) >= settings.LARGE_LENS_THRESHOLD
        assert len(get_active_lenses("transactional")) < settings.LARGE_LENS_THRESHOLD
        assert get_max_tokens("family") > get_max_tokens("transactional")

    def test_large_note_only_for_large_modes(self) -> None:
        note = prompts_intelligence.LARGE_LENS_NOTE.format(count=7)
        assert note in build_system_prompt("family")
        assert "active lenses, keep each lens" not in build_system_prompt("transactional")


# ---------------------------------------------------------------------------
# User prompt helpers
# ---------------------------------------------------------------------------

class TestConversationRendering:
    """History and the per-message user prompt."""

    def test_name_map_defaults(self) -> None:
        names = build_name_map(None, "Sam")
        assert names == {"person_a": "Person A", "person_b": "Sam", "mediator": settings.MEDIATOR_NAME}

    def test_other_participant(self) -> None:
        assert other_participant("person_a") == "person_b"
        assert other_participant("person_b") == "person_a"

    def test_history_uses_display_names(self) -> None:
        messages = [
            Message(session_id="s", sender="person_a", content="Hi"),
            Message(session_id="s", sender="mediator", content="Welcome"),
        ]
        history = to_conversation_history(messages, build_name_map("Alex", "Sam"))
        assert history == [
            ConversationEntry("Alex", "Hi"),
            ConversationEntry(settings.MEDIATOR_NAME, "Welcome"),
        ]
        assert format_history(history) == f"[Alex]: Hi\n[{settings.MEDIATOR_NAME}]: Welcome"

    def test_empty_history_placeholder(self) -> None:
        assert format_history([]) == prompts_intelligence.FIRST_MESSAGE_PLACEHOLDER

    def test_mediation_prompt(self) -> None:
        prompt = build_mediation_prompt([], "Alex", "You never listen to me!", "Sam")
        assert prompts_intelligence.FIRST_MESSAGE_PLACEHOLDER in prompt
        assert "[Alex]: You never listen to me!" in prompt
        assert prompt.endswith("The other person in this conversation is Sam.")

    def test_mode_label_and_goals_block(self) -> None:
        assert mode_label("professional_peer") == "professional peer"
        assert goals_block([]) == ""
        assert goals_block(["A", "B"]) == "\nSession goals:\n1. A\n2. B\n"
