"""Tolerant parsing of model output into Analysis records.

``parse_analysis`` never raises. Malformed output yields ``None`` ("analysis
unavailable"); everything short of that is normalized instead of rejected:
numbers are clamped, unknown enum values fall back to defaults, and legacy
NVC-only payloads are wrapped in the multi-lens envelope.

Required-field checks follow JSON truthiness (``[]`` and ``{}`` count as
present; ``""``, ``0``, ``false`` and ``null`` do not) so that a payload is
accepted or rejected the same way regardless of which client produced it.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from parallax.services.lens_registry import get_active_lenses
from parallax.services.lens_results import LensResult, decode_lens_result

logger = logging.getLogger(__name__)

RESOLUTION_DIRECTIONS = ("escalating", "stable", "de-escalating")
REQUIRED_ROOT_FIELDS = ("observation", "feeling", "subtext")
DEFAULT_TEMPERATURE = 0.5

_FENCE_OPEN = re.compile(r"^```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class NvcAnalysis:
    observation: str
    feeling: str
    need: str
    request: str
    subtext: str
    blind_spots: List[str] = field(default_factory=list)
    unmet_needs: List[str] = field(default_factory=list)
    nvc_translation: str = ""
    emotional_temperature: float = DEFAULT_TEMPERATURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "observation": self.observation,
            "feeling": self.feeling,
            "need": self.need,
            "request": self.request,
            "subtext": self.subtext,
            "blindSpots": list(self.blind_spots),
            "unmetNeeds": list(self.unmet_needs),
            "nvcTranslation": self.nvc_translation,
            "emotionalTemperature": self.emotional_temperature,
        }


@dataclass
class AnalysisMeta:
    context_mode: str
    active_lenses: List[str]
    primary_insight: str
    overall_severity: float
    resolution_direction: str = "stable"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contextMode": self.context_mode,
            "activeLenses": list(self.active_lenses),
            "primaryInsight": self.primary_insight,
            "overallSeverity": self.overall_severity,
            "resolutionDirection": self.resolution_direction,
        }


@dataclass
class Analysis:
    """Root NVC fields plus the multi-lens envelope.

    ``lenses`` is kept exactly as the model returned it (a sparse map of lens
    id to JSON object); use ``lens_result`` for a typed view of one entry.
    """

    root: NvcAnalysis
    lenses: Dict[str, Any]
    meta: AnalysisMeta

    # Root fields are read often enough to deserve direct access.
    @property
    def observation(self) -> str:
        return self.root.observation

    @property
    def feeling(self) -> str:
        return self.root.feeling

    @property
    def need(self) -> str:
        return self.root.need

    @property
    def request(self) -> str:
        return self.root.request

    @property
    def subtext(self) -> str:
        return self.root.subtext

    @property
    def blind_spots(self) -> List[str]:
        return self.root.blind_spots

    @property
    def unmet_needs(self) -> List[str]:
        return self.root.unmet_needs

    @property
    def nvc_translation(self) -> str:
        return self.root.nvc_translation

    @property
    def emotional_temperature(self) -> float:
        return self.root.emotional_temperature

    def lens_result(self, lens_id: str) -> Optional[LensResult]:
        return decode_lens_result(lens_id, self.lenses.get(lens_id))

    def to_dict(self) -> Dict[str, Any]:
        payload = self.root.to_dict()
        payload["lenses"] = self.lenses
        payload["meta"] = self.meta.to_dict()
        return payload

    @classmethod
    def from_dict(cls, d: Dict[str, Any], mode: str) -> Optional["Analysis"]:
        """Rehydrate a stored analysis. Goes through the same normalization as fresh model output."""
        return _build_analysis(d, mode)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def strip_code_fences(raw: str) -> str:
    cleaned = (raw or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned


def extract_json_object(text: str) -> str | None:
    """Return the outermost ``{...}`` region of ``text`` (prose before/after is dropped)."""
    s = (text or "").strip()
    if not s:
        return None

    if s.startswith("{") and s.endswith("}"):
        return s

    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return s[start : end + 1].strip()


def is_truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not math.isnan(value)
    return True


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def as_number(value: Any) -> Optional[float]:
    """Finite-or-infinite real number, or None for anything else (bools and NaN included)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def temperature_label(temperature: float) -> str:
    if temperature <= 0.1:
        return "neutral"
    if temperature <= 0.4:
        return "cool"
    if temperature <= 0.7:
        return "warm"
    return "hot"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [as_text(v) for v in value]


def _build_root(parsed: Dict[str, Any]) -> NvcAnalysis:
    temperature = as_number(parsed.get("emotionalTemperature"))
    translation = parsed.get("nvcTranslation")
    if not is_truthy(translation):
        # Older prompt versions named it translated_message.
        translation = parsed.get("translated_message")
    return NvcAnalysis(
        observation=as_text(parsed.get("observation")),
        feeling=as_text(parsed.get("feeling")),
        need=as_text(parsed.get("need")) if is_truthy(parsed.get("need")) else "",
        request=as_text(parsed.get("request")) if is_truthy(parsed.get("request")) else "",
        subtext=as_text(parsed.get("subtext")),
        blind_spots=_text_list(parsed.get("blindSpots")),
        unmet_needs=_text_list(parsed.get("unmetNeeds")),
        nvc_translation=as_text(translation) if is_truthy(translation) else "",
        emotional_temperature=clamp01(temperature) if temperature is not None else DEFAULT_TEMPERATURE,
    )


def _build_analysis(parsed: Any, mode: str) -> Optional[Analysis]:
    if not isinstance(parsed, dict):
        return None

    if not all(is_truthy(parsed.get(name)) for name in REQUIRED_ROOT_FIELDS):
        return None

    root = _build_root(parsed)
    raw_lenses = parsed.get("lenses")
    raw_meta = parsed.get("meta")

    # Legacy NVC-only shape: wrap it in the envelope.
    if not is_truthy(raw_lenses) and not is_truthy(raw_meta):
        return Analysis(
            root=root,
            lenses={"nvc": root.to_dict()},
            meta=AnalysisMeta(
                context_mode=mode,
                active_lenses=get_active_lenses(mode),
                primary_insight=root.subtext,
                overall_severity=root.emotional_temperature,
                resolution_direction="stable",
            ),
        )

    lenses = raw_lenses if isinstance(raw_lenses, dict) else {}
    meta = raw_meta if isinstance(raw_meta, dict) else {}

    active_lenses = meta.get("activeLenses")
    severity = as_number(meta.get("overallSeverity"))
    direction = meta.get("resolutionDirection")

    return Analysis(
        root=root,
        lenses=lenses,
        meta=AnalysisMeta(
            context_mode=mode,
            active_lenses=(
                [as_text(v) for v in active_lenses]
                if isinstance(active_lenses, list)
                else get_active_lenses(mode)
            ),
            primary_insight=(
                as_text(meta.get("primaryInsight")) if is_truthy(meta.get("primaryInsight")) else root.subtext
            ),
            overall_severity=clamp01(severity) if severity is not None else root.emotional_temperature,
            resolution_direction=direction if direction in RESOLUTION_DIRECTIONS else "stable",
        ),
    )


def parse_analysis(raw: str, mode: str) -> Optional[Analysis]:
    """Turn raw model text into an Analysis, or None when it cannot be salvaged."""
    try:
        parsed = json.loads(strip_code_fences(raw))
        analysis = _build_analysis(parsed, mode)
    except Exception as exc:
        logger.warning("[ANALYSIS] Unparseable model output (%s): %.120r", type(exc).__name__, raw)
        return None

    if analysis is None:
        logger.warning("[ANALYSIS] Model output missing required fields: %.120r", raw)
    return analysis
