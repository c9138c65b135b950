"""Assembles analysis prompts from the lens catalog.

Everything here is a pure function of its inputs: the context mode, optional
session state, and (for user prompts) the conversation records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from parallax.config import prompts_intelligence, settings
from parallax.services.lens_registry import LENSES, get_active_lenses

SENDERS = ("person_a", "person_b", "mediator")


@dataclass(frozen=True)
class SessionContext:
    goals: Tuple[str, ...] = ()
    context_summary: str = ""


@dataclass(frozen=True)
class ConversationEntry:
    sender: str  # display name
    content: str


def build_system_prompt(mode: str, session_context: Optional[SessionContext] = None) -> str:
    """Full analysis instructions for ``mode``.

    Layout: preamble, context mode header, each active lens fragment in
    order, optional goals / synthesis blocks, then the JSON shape to return.
    NVC's schema is the root of the object, so only the other active lenses
    are nested under ``lenses``.
    """
    active = get_active_lenses(mode)

    lens_instructions = "\n\n".join(LENSES[lens_id].prompt_fragment for lens_id in active)
    lens_schemas = ",\n    ".join(
        LENSES[lens_id].response_schema_fragment for lens_id in active if lens_id != "nvc"
    )

    session_block = ""
    if session_context is not None:
        goals = [str(g) for g in session_context.goals if str(g).strip()]
        if goals:
            numbered = "\n".join(f"{i}. {goal}" for i, goal in enumerate(goals, start=1))
            session_block += (
                f"\n\n{prompts_intelligence.SESSION_GOALS_HEADER}\n{numbered}"
                f"\n\n{prompts_intelligence.SESSION_GOALS_FOOTER}"
            )
        if session_context.context_summary:
            session_block += (
                f"\n\n{prompts_intelligence.SESSION_CONTEXT_HEADER}\n{session_context.context_summary}"
            )

    response_shape = prompts_intelligence.RESPONSE_TEMPLATE.format(
        lens_schemas=lens_schemas,
        context_mode=mode,
        active_lenses=json.dumps(active),
    )

    notes = prompts_intelligence.RESPONSE_NOTES
    if len(active) >= settings.LARGE_LENS_THRESHOLD:
        notes += "\n" + prompts_intelligence.LARGE_LENS_NOTE.format(count=len(active))

    return (
        f"{prompts_intelligence.PREAMBLE}\n\n"
        f"CONTEXT MODE: {mode}\n"
        f"{prompts_intelligence.LENS_INTRO}\n\n"
        f"{lens_instructions}{session_block}\n\n"
        "---\n\n"
        f"{prompts_intelligence.RESPONSE_INTRO}\n"
        f"{response_shape}\n\n"
        f"{notes}"
    )


def get_max_tokens(mode: str) -> int:
    if len(get_active_lenses(mode)) >= settings.LARGE_LENS_THRESHOLD:
        return settings.ANALYSIS_MAX_TOKENS_LARGE
    return settings.ANALYSIS_MAX_TOKENS


# ---------------------------------------------------------------------------
# Conversation rendering (user prompts)
# ---------------------------------------------------------------------------

def build_name_map(person_a_name: Optional[str], person_b_name: Optional[str]) -> Dict[str, str]:
    return {
        "person_a": person_a_name or "Person A",
        "person_b": person_b_name or "Person B",
        "mediator": settings.MEDIATOR_NAME,
    }


def other_participant(sender: str) -> str:
    return "person_b" if sender == "person_a" else "person_a"


def to_conversation_history(messages: Iterable, name_map: Dict[str, str]) -> List[ConversationEntry]:
    """Map message records (anything with ``sender`` and ``content``) to display-name entries."""
    return [
        ConversationEntry(sender=name_map.get(m.sender, m.sender), content=m.content)
        for m in messages
    ]


def format_history(history: Sequence[ConversationEntry]) -> str:
    if not history:
        return prompts_intelligence.FIRST_MESSAGE_PLACEHOLDER
    return "\n".join(f"[{entry.sender}]: {entry.content}" for entry in history)


def build_mediation_prompt(
    history: Sequence[ConversationEntry],
    sender_name: str,
    content: str,
    other_person_name: str,
) -> str:
    return (
        f"CONVERSATION SO FAR:\n{format_history(history)}\n\n"
        f"ANALYZE THIS MESSAGE:\n[{sender_name}]: {content}\n\n"
        f"The other person in this conversation is {other_person_name}."
    )


def mode_label(context_mode: str) -> str:
    return context_mode.replace("_", " ")


def goals_block(goals: Sequence[str]) -> str:
    """Numbered goals for mediator prompts; empty until synthesis has happened."""
    if not goals:
        return ""
    numbered = "\n".join(f"{i}. {goal}" for i, goal in enumerate(goals, start=1))
    return f"\nSession goals:\n{numbered}\n"
