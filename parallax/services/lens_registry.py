"""Lens catalog and relationship-context resolution.

Every lens is defined once in ``config/prompts_lens_<id>.py`` and registered
here. ``CONTEXT_MODE_LENSES`` decides which of them run for a conversation:
NVC always runs first, the rest follow in a fixed order per context mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType
from typing import Dict, List, Tuple

from parallax.config import (
    prompts_lens_attachment,
    prompts_lens_cbt,
    prompts_lens_drama_triangle,
    prompts_lens_gottman,
    prompts_lens_ibr,
    prompts_lens_jehns,
    prompts_lens_narrative,
    prompts_lens_nvc,
    prompts_lens_org_justice,
    prompts_lens_power,
    prompts_lens_psych_safety,
    prompts_lens_restorative,
    prompts_lens_scarf,
    prompts_lens_tki,
)

LENS_CATEGORIES = ("communication", "relational", "cognitive", "systemic", "resolution")
LENS_TIERS = ("core", "secondary")

CONTEXT_MODES = (
    "intimate",
    "family",
    "professional_peer",
    "professional_hierarchical",
    "transactional",
    "civil_structural",
)


@dataclass(frozen=True)
class Lens:
    id: str
    name: str
    short_name: str
    category: str
    tier: str
    description: str
    prompt_fragment: str
    response_schema_fragment: str

    @classmethod
    def from_module(cls, module: ModuleType) -> "Lens":
        return cls(
            id=module.LENS_ID,
            name=module.NAME,
            short_name=module.SHORT_NAME,
            category=module.CATEGORY,
            tier=module.TIER,
            description=module.DESCRIPTION,
            prompt_fragment=module.PROMPT_SECTION,
            response_schema_fragment=module.RESPONSE_SCHEMA,
        )


@dataclass(frozen=True)
class ContextModeInfo:
    name: str
    description: str
    example: str
    group: str  # personal | professional | formal


_LENS_MODULES: Tuple[ModuleType, ...] = (
    prompts_lens_nvc,
    prompts_lens_gottman,
    prompts_lens_cbt,
    prompts_lens_tki,
    prompts_lens_drama_triangle,
    prompts_lens_narrative,
    prompts_lens_attachment,
    prompts_lens_restorative,
    prompts_lens_scarf,
    prompts_lens_org_justice,
    prompts_lens_psych_safety,
    prompts_lens_jehns,
    prompts_lens_power,
    prompts_lens_ibr,
)


def _build_registry(modules: Tuple[ModuleType, ...]) -> Dict[str, Lens]:
    registry: Dict[str, Lens] = {}
    for module in modules:
        lens = Lens.from_module(module)
        if lens.id in registry:
            raise ValueError(f"Duplicate lens id: {lens.id}")
        if lens.category not in LENS_CATEGORIES:
            raise ValueError(f"Lens {lens.id} has unknown category: {lens.category}")
        if lens.tier not in LENS_TIERS:
            raise ValueError(f"Lens {lens.id} has unknown tier: {lens.tier}")
        registry[lens.id] = lens
    return registry


LENSES: Dict[str, Lens] = _build_registry(_LENS_MODULES)
LENS_IDS: Tuple[str, ...] = tuple(LENSES)

# Relationship-focused modes lean on Gottman / Attachment / Drama Triangle,
# workplace modes on SCARF / TKI / Jehn's, formal modes on IBR / Power / Justice.
CONTEXT_MODE_LENSES: Dict[str, Tuple[str, ...]] = {
    "intimate": ("nvc", "gottman", "cbt", "dramaTriangle", "attachment", "narrative"),
    "family": ("nvc", "gottman", "narrative", "dramaTriangle", "attachment", "power", "restorative"),
    "professional_peer": ("nvc", "cbt", "tki", "scarf", "jehns", "psychSafety"),
    "professional_hierarchical": ("nvc", "cbt", "tki", "scarf", "orgJustice", "psychSafety", "power"),
    "transactional": ("nvc", "cbt", "tki", "ibr", "scarf"),
    "civil_structural": ("nvc", "narrative", "power", "orgJustice", "restorative", "ibr"),
}

CONTEXT_MODE_INFO: Dict[str, ContextModeInfo] = {
    "intimate": ContextModeInfo(
        name="Intimate Partners",
        description="Romantic relationships, close partnerships",
        example='"We need to talk about the dishes" (but it\'s never about the dishes)',
        group="personal",
    ),
    "family": ContextModeInfo(
        name="Family",
        description="Parents, siblings, extended family dynamics",
        example='"Mom always sides with you" or "You sound just like Dad"',
        group="personal",
    ),
    "professional_peer": ContextModeInfo(
        name="Professional Peers",
        description="Coworkers, team members, collaborators",
        example='"You keep taking credit for my work in meetings"',
        group="professional",
    ),
    "professional_hierarchical": ContextModeInfo(
        name="Professional Hierarchy",
        description="Boss and employee, mentor and mentee, authority dynamics",
        example='"I was passed over for the promotion again"',
        group="professional",
    ),
    "transactional": ContextModeInfo(
        name="Transactional",
        description="Customer and vendor, neighbors, one-time disputes",
        example='"You promised delivery by Friday and it\'s still not here"',
        group="formal",
    ),
    "civil_structural": ContextModeInfo(
        name="Civil / Structural",
        description="Community disputes, institutional conflicts, systemic issues",
        example='"The HOA policy affects our family differently than yours"',
        group="formal",
    ),
}


def _check_mode_table() -> None:
    for mode, lens_ids in CONTEXT_MODE_LENSES.items():
        if not lens_ids or lens_ids[0] != "nvc":
            raise ValueError(f"Context mode {mode} must start with nvc")
        if len(set(lens_ids)) != len(lens_ids):
            raise ValueError(f"Context mode {mode} lists a lens twice")
        unknown = [lens_id for lens_id in lens_ids if lens_id not in LENSES]
        if unknown:
            raise ValueError(f"Context mode {mode} references unknown lenses: {unknown}")
    if set(CONTEXT_MODE_LENSES) != set(CONTEXT_MODES) or set(CONTEXT_MODE_INFO) != set(CONTEXT_MODES):
        raise ValueError("Context mode tables are out of sync")


_check_mode_table()


def get_active_lenses(mode: str) -> List[str]:
    """Ordered lens ids for a context mode. ``mode`` must already be validated."""
    return list(CONTEXT_MODE_LENSES[mode])


def get_lenses(mode: str) -> List[Lens]:
    return [LENSES[lens_id] for lens_id in CONTEXT_MODE_LENSES[mode]]


def resolve_context_mode(value: object) -> str:
    """Validate a caller-supplied context mode at the boundary.

    Accepts surrounding whitespace, any letter case and ``-`` in place of ``_``.

    Raises:
        ValueError: If the value does not name a known context mode.
    """
    if not isinstance(value, str):
        raise ValueError(f"Context mode must be a string, got {type(value).__name__}")
    normalized = value.strip().lower().replace("-", "_")
    if normalized not in CONTEXT_MODE_LENSES:
        raise ValueError(
            f"Unknown context mode: {value!r} (expected one of: {', '.join(CONTEXT_MODES)})"
        )
    return normalized
