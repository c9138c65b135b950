"""Tests for the lens catalog, context-mode resolution and typed lens results."""

from __future__ import annotations

import pytest

from parallax.services.lens_registry import (
    CONTEXT_MODE_INFO,
    CONTEXT_MODES,
    LENS_CATEGORIES,
    LENS_IDS,
    LENS_TIERS,
    LENSES,
    get_active_lenses,
    get_lenses,
    resolve_context_mode,
)
from parallax.services.lens_results import (
    LENS_RESULT_TYPES,
    DramaTriangleResult,
    IbrResult,
    NvcResult,
    ScarfResult,
    TkiResult,
    decode_lens_result,
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestLensRegistry:
    """Every lens is registered once with valid metadata."""

    def test_fourteen_lenses(self) -> None:
        assert len(LENS_IDS) == 14
        assert len(set(LENS_IDS)) == 14

    def test_metadata_is_valid(self) -> None:
        for lens in LENSES.values():
            assert lens.category in LENS_CATEGORIES
            assert lens.tier in LENS_TIERS
            assert lens.name and lens.short_name and lens.description
            assert lens.prompt_fragment.strip()

    def test_schema_fragment_keyed_by_id(self) -> None:
        for lens_id, lens in LENSES.items():
            assert lens.response_schema_fragment.lstrip().startswith(f'"{lens_id}"')

    def test_non_nvc_schemas_carry_confidence(self) -> None:
        for lens_id, lens in LENSES.items():
            if lens_id != "nvc":
                assert '"confidence"' in lens.response_schema_fragment

    def test_lens_is_immutable(self) -> None:
        with pytest.raises(Exception):
            LENSES["nvc"].name = "changed"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Context modes
# ---------------------------------------------------------------------------

class TestContextModes:
    """Each mode maps to a fixed, ordered, duplicate-free lens list starting with nvc."""

    @pytest.mark.parametrize("mode", CONTEXT_MODES)
    def test_nvc_first_no_duplicates(self, mode: str) -> None:
        lenses = get_active_lenses(mode)
        assert lenses[0] == "nvc"
        assert 5 <= len(lenses) <= 7
        assert len(set(lenses)) == len(lenses)
        assert all(lens_id in LENSES for lens_id in lenses)

    def test_family_lens_order(self) -> None:
        assert get_active_lenses("family") == [
            "nvc", "gottman", "narrative", "dramaTriangle", "attachment", "power", "restorative",
        ]

    def test_lookup_is_deterministic_and_returns_copies(self) -> None:
        first = get_active_lenses("intimate")
        first.append("ibr")
        assert get_active_lenses("intimate") != first

    def test_get_lenses_matches_ids(self) -> None:
        assert [lens.id for lens in get_lenses("transactional")] == get_active_lenses("transactional")

    def test_every_mode_has_display_info(self) -> None:
        for mode in CONTEXT_MODES:
            info = CONTEXT_MODE_INFO[mode]
            assert info.group in ("personal", "professional", "formal")
            assert info.name and info.example

    @pytest.mark.parametrize(
        "value, expected",
        [("intimate", "intimate"), ("  Family ", "family"), ("professional-peer", "professional_peer")],
    )
    def test_resolve_normalizes(self, value: str, expected: str) -> None:
        assert resolve_context_mode(value) == expected

    @pytest.mark.parametrize("value", ["romantic", "", None, 3])
    def test_resolve_rejects_unknown(self, value) -> None:
        with pytest.raises(ValueError):
            resolve_context_mode(value)

    def test_unknown_mode_in_lookup_is_programmer_error(self) -> None:
        with pytest.raises(KeyError):
            get_active_lenses("romantic")


# ---------------------------------------------------------------------------
# Typed results
# ---------------------------------------------------------------------------

class TestLensResults:
    """Per-lens variants decode tolerantly."""

    def test_every_lens_has_a_variant(self) -> None:
        assert set(LENS_RESULT_TYPES) == set(LENS_IDS)

    @pytest.mark.parametrize("lens_id", sorted(LENS_RESULT_TYPES))
    def test_empty_payload_decodes_to_defaults(self, lens_id: str) -> None:
        result = decode_lens_result(lens_id, {})
        assert isinstance(result, LENS_RESULT_TYPES[lens_id])

    def test_unknown_id_or_non_object(self) -> None:
        assert decode_lens_result("astrology", {}) is None
        assert decode_lens_result("tki", "competing") is None
        assert decode_lens_result("tki", None) is None

    def test_enum_members_coerced(self) -> None:
        result = decode_lens_result(
            "tki", {"mode": "Collaborating", "assertiveness": 1.7, "cooperativeness": "high", "modeShift": "null"}
        )
        assert isinstance(result, TkiResult)
        assert result.mode == "collaborating"
        assert result.assertiveness == 1.0
        assert result.cooperativeness == 0.0
        assert result.mode_shift is None

    def test_unknown_enum_dropped(self) -> None:
        result = decode_lens_result("dramaTriangle", {"role": "bystander", "rescuerTrap": "yes"})
        assert isinstance(result, DramaTriangleResult)
        assert result.role is None
        assert result.rescuer_trap is True

    def test_scarf_threats_filtered(self) -> None:
        result = decode_lens_result(
            "scarf",
            {"threats": [{"domain": "Status", "severity": 0.9}, {"domain": "money"}, "bad"], "confidence": 0.6},
        )
        assert isinstance(result, ScarfResult)
        assert [t.domain for t in result.threats] == ["status"]
        assert result.threats[0].severity == pytest.approx(0.9)

    def test_nvc_temperature_defaults(self) -> None:
        result = NvcResult.from_dict({"emotionalTemperature": "warm"})
        assert result.emotional_temperature == 0.5

    def test_ibr_common_ground_optional(self) -> None:
        result = IbrResult.from_dict({"interests": ["safety", ""], "commonGround": ""})
        assert result.interests == ("safety",)
        assert result.common_ground is None
