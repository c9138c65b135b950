"""Typed views over per-lens analysis results.

The parser keeps ``Analysis.lenses`` opaque (whatever the model returned).
Renderers that need to branch on a lens's shape decode it here into one of
fourteen frozen dataclasses. ``LENS_RESULT_TYPES`` is checked against the
lens registry at import time, so adding a lens without a result type fails
immediately instead of at render time.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type, Union

from parallax.services.lens_registry import LENS_IDS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def _clamp01(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value):
        return default
    return max(0.0, min(1.0, float(value)))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    if not text or text.lower() == "null":
        return None
    return text


def _text_list(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(_text(v) for v in value if _text(v))


def _choice(value: Any, allowed: Tuple[str, ...], default: Optional[str] = None) -> Optional[str]:
    text = _text(value).lower()
    for option in allowed:
        if text == option.lower():
            return option
    return default


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _evidence_items(value: Any, key: str, allowed: Optional[Tuple[str, ...]] = None) -> Tuple["Evidence", ...]:
    if not isinstance(value, list):
        return ()
    items = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        kind = _choice(raw.get(key), allowed) if allowed else _optional_text(raw.get(key))
        if not kind:
            continue
        items.append(Evidence(kind=kind, evidence=_text(raw.get("evidence"))))
    return tuple(items)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Evidence:
    kind: str
    evidence: str = ""


@dataclass(frozen=True)
class NvcResult:
    observation: str = ""
    feeling: str = ""
    need: str = ""
    request: str = ""
    subtext: str = ""
    blind_spots: Tuple[str, ...] = ()
    unmet_needs: Tuple[str, ...] = ()
    nvc_translation: str = ""
    emotional_temperature: float = 0.5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NvcResult":
        return cls(
            observation=_text(d.get("observation")),
            feeling=_text(d.get("feeling")),
            need=_text(d.get("need")),
            request=_text(d.get("request")),
            subtext=_text(d.get("subtext")),
            blind_spots=_text_list(d.get("blindSpots")),
            unmet_needs=_text_list(d.get("unmetNeeds")),
            nvc_translation=_text(d.get("nvcTranslation")),
            emotional_temperature=_clamp01(d.get("emotionalTemperature"), 0.5),
        )


@dataclass(frozen=True)
class GottmanResult:
    HORSEMEN = ("criticism", "contempt", "defensiveness", "stonewalling")

    horsemen: Tuple[Evidence, ...] = ()
    repair_attempts: Tuple[str, ...] = ()
    positive_to_negative_ratio: str = ""
    startup_type: str = "neutral"
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GottmanResult":
        return cls(
            horsemen=_evidence_items(d.get("horsemen"), "type", cls.HORSEMEN),
            repair_attempts=_text_list(d.get("repairAttempts")),
            positive_to_negative_ratio=_text(d.get("positiveToNegativeRatio")),
            startup_type=_choice(d.get("startupType"), ("harsh", "soft", "neutral"), "neutral"),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class CbtResult:
    distortions: Tuple[Evidence, ...] = ()
    core_belief_hint: str = ""
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CbtResult":
        return cls(
            distortions=_evidence_items(d.get("distortions"), "type"),
            core_belief_hint=_text(d.get("coreBeliefHint")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class TkiResult:
    MODES = ("competing", "collaborating", "compromising", "avoiding", "accommodating")

    mode: Optional[str] = None
    assertiveness: float = 0.0
    cooperativeness: float = 0.0
    mode_shift: Optional[str] = None
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TkiResult":
        return cls(
            mode=_choice(d.get("mode"), cls.MODES),
            assertiveness=_clamp01(d.get("assertiveness")),
            cooperativeness=_clamp01(d.get("cooperativeness")),
            mode_shift=_optional_text(d.get("modeShift")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class DramaTriangleResult:
    role: Optional[str] = None
    role_shifts: Tuple[str, ...] = ()
    rescuer_trap: bool = False
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DramaTriangleResult":
        return cls(
            role=_choice(d.get("role"), ("persecutor", "victim", "rescuer")),
            role_shifts=_text_list(d.get("roleShifts")),
            rescuer_trap=_flag(d.get("rescuerTrap")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class NarrativeResult:
    totalizing_narratives: Tuple[str, ...] = ()
    identity_claims: Tuple[str, ...] = ()
    reauthoring_suggestion: str = ""
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NarrativeResult":
        return cls(
            totalizing_narratives=_text_list(d.get("totalizingNarratives")),
            identity_claims=_text_list(d.get("identityClaims")),
            reauthoring_suggestion=_text(d.get("reauthoringSuggestion")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class AttachmentResult:
    style: Optional[str] = None
    pursue_withdraw_dynamic: bool = False
    activation_signal: str = ""
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AttachmentResult":
        return cls(
            style=_choice(d.get("style"), ("secure", "anxious", "avoidant", "disorganized")),
            pursue_withdraw_dynamic=_flag(d.get("pursueWithdrawDynamic")),
            activation_signal=_text(d.get("activationSignal")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class RestorativeResult:
    harm_identified: str = ""
    needs_of_harmed: Tuple[str, ...] = ()
    needs_of_harmer: Tuple[str, ...] = ()
    repair_pathway: str = ""
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RestorativeResult":
        return cls(
            harm_identified=_text(d.get("harmIdentified")),
            needs_of_harmed=_text_list(d.get("needsOfHarmed")),
            needs_of_harmer=_text_list(d.get("needsOfHarmer")),
            repair_pathway=_text(d.get("repairPathway")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class ScarfThreat:
    domain: str
    severity: float = 0.0


@dataclass(frozen=True)
class ScarfResult:
    DOMAINS = ("status", "certainty", "autonomy", "relatedness", "fairness")

    threats: Tuple[ScarfThreat, ...] = ()
    primary_threat: str = ""
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScarfResult":
        threats = []
        raw_threats = d.get("threats")
        for raw in raw_threats if isinstance(raw_threats, list) else []:
            if not isinstance(raw, dict):
                continue
            domain = _choice(raw.get("domain"), cls.DOMAINS)
            if domain:
                threats.append(ScarfThreat(domain=domain, severity=_clamp01(raw.get("severity"))))
        return cls(
            threats=tuple(threats),
            primary_threat=_text(d.get("primaryThreat")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class OrgJusticeResult:
    justice_type: Optional[str] = None
    perceived_violation: str = ""
    fairness_frame: str = ""
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OrgJusticeResult":
        return cls(
            justice_type=_choice(d.get("justiceType"), ("distributive", "procedural", "interactional")),
            perceived_violation=_text(d.get("perceivedViolation")),
            fairness_frame=_text(d.get("fairnessFrame")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class PsychSafetyResult:
    safety_level: Optional[str] = None
    risk_signals: Tuple[str, ...] = ()
    silenced_topics: Tuple[str, ...] = ()
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PsychSafetyResult":
        return cls(
            safety_level=_choice(d.get("safetyLevel"), ("high", "moderate", "low")),
            risk_signals=_text_list(d.get("riskSignals")),
            silenced_topics=_text_list(d.get("silencedTopics")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class JehnsResult:
    conflict_type: Optional[str] = None
    escalation_risk: Optional[str] = None
    task_to_relationship_spillover: bool = False
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "JehnsResult":
        return cls(
            conflict_type=_choice(d.get("conflictType"), ("task", "relationship", "process")),
            escalation_risk=_choice(d.get("escalationRisk"), ("low", "moderate", "high")),
            task_to_relationship_spillover=_flag(d.get("taskToRelationshipSpillover")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class PowerResult:
    power_dynamic: Optional[str] = None
    power_moves: Tuple[str, ...] = ()
    silencing_patterns: Tuple[str, ...] = ()
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PowerResult":
        return cls(
            power_dynamic=_choice(d.get("powerDynamic"), ("symmetric", "asymmetric")),
            power_moves=_text_list(d.get("powerMoves")),
            silencing_patterns=_text_list(d.get("silencingPatterns")),
            confidence=_clamp01(d.get("confidence")),
        )


@dataclass(frozen=True)
class IbrResult:
    interests: Tuple[str, ...] = ()
    positions: Tuple[str, ...] = ()
    interest_behind_position: str = ""
    common_ground: Optional[str] = None
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "IbrResult":
        return cls(
            interests=_text_list(d.get("interests")),
            positions=_text_list(d.get("positions")),
            interest_behind_position=_text(d.get("interestBehindPosition")),
            common_ground=_optional_text(d.get("commonGround")),
            confidence=_clamp01(d.get("confidence")),
        )


LensResult = Union[
    NvcResult,
    GottmanResult,
    CbtResult,
    TkiResult,
    DramaTriangleResult,
    NarrativeResult,
    AttachmentResult,
    RestorativeResult,
    ScarfResult,
    OrgJusticeResult,
    PsychSafetyResult,
    JehnsResult,
    PowerResult,
    IbrResult,
]

LENS_RESULT_TYPES: Dict[str, Type[Any]] = {
    "nvc": NvcResult,
    "gottman": GottmanResult,
    "cbt": CbtResult,
    "tki": TkiResult,
    "dramaTriangle": DramaTriangleResult,
    "narrative": NarrativeResult,
    "attachment": AttachmentResult,
    "restorative": RestorativeResult,
    "scarf": ScarfResult,
    "orgJustice": OrgJusticeResult,
    "psychSafety": PsychSafetyResult,
    "jehns": JehnsResult,
    "power": PowerResult,
    "ibr": IbrResult,
}

if set(LENS_RESULT_TYPES) != set(LENS_IDS):
    _missing = sorted(set(LENS_IDS) - set(LENS_RESULT_TYPES))
    _extra = sorted(set(LENS_RESULT_TYPES) - set(LENS_IDS))
    raise ImportError(f"Lens result types out of sync with registry (missing={_missing}, extra={_extra})")


def decode_lens_result(lens_id: str, payload: Any) -> Optional[LensResult]:
    """Decode one entry of ``Analysis.lenses``. Returns None for unknown ids or non-object payloads."""
    result_type = LENS_RESULT_TYPES.get(lens_id)
    if result_type is None or not isinstance(payload, dict):
        return None
    try:
        return result_type.from_dict(payload)
    except Exception as exc:
        logger.debug("[ANALYSIS] Could not decode %s lens result: %s", lens_id, exc)
        return None
