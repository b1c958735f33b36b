"""Tests for the budget advisor core."""

from __future__ import annotations

from dataclasses import FrozenInstanceError, replace
from fractions import Fraction

import pytest

from heap_budget.advisor.budget import (
    aggregate_fleet_budget,
    compute_recommendation,
    explain,
)
from heap_budget.advisor.errors import InternalInconsistencyError, InvalidInputError
from heap_budget.model.entities import DeploymentConstraint, MemoryProfile

MANDATORY_FLAG_MARKER = "explicit heap-limit flag"


def _profile(heap: int, resident: int) -> MemoryProfile:
    return MemoryProfile(peak_heap_used_bytes=heap, peak_resident_bytes=resident)


def _constraint(replicas=1, margin=0.5, default_heap=0) -> DeploymentConstraint:
    return DeploymentConstraint(
        desired_replica_count=replicas,
        safety_margin_ratio=margin,
        platform_default_heap_bytes=default_heap,
    )


class TestArticleScenario:
    def test_heap_limit(self, article_profile, article_constraint):
        rec = compute_recommendation(article_profile, article_constraint)
        assert rec.recommended_heap_limit_bytes == 199_500_000

    def test_non_heap_overhead(self, article_profile, article_constraint):
        rec = compute_recommendation(article_profile, article_constraint)
        assert rec.non_heap_overhead_bytes == 30_000_000

    def test_container_limit(self, article_profile, article_constraint):
        rec = compute_recommendation(article_profile, article_constraint)
        assert rec.recommended_container_limit_bytes == 239_400_000

    def test_mandatory_flag_warning(self, article_profile, article_constraint):
        rec = compute_recommendation(article_profile, article_constraint)
        assert len(rec.warnings) == 1
        assert MANDATORY_FLAG_MARKER in rec.warnings[0]
        assert "--max-old-space-size=191" in rec.warnings[0]

    def test_fleet_budget(self, article_profile, article_constraint):
        assert aggregate_fleet_budget(article_profile, article_constraint) == 478_800_000


class TestValidation:
    def test_zero_profile_fails_on_resident(self):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(0, 0), _constraint())
        assert exc.value.field == "peak_resident_bytes"

    def test_heap_above_resident_is_not_clamped(self):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(200, 100), _constraint())
        assert exc.value.field == "peak_heap_used_bytes"

    def test_zero_heap_rejected(self):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(0, 100), _constraint())
        assert exc.value.field == "peak_heap_used_bytes"

    @pytest.mark.parametrize("margin", [0, -0.1, 1.01, float("nan"), float("inf")])
    def test_margin_out_of_range(self, margin):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(100, 200), _constraint(margin=margin))
        assert exc.value.field == "safety_margin_ratio"

    def test_margin_of_one_is_allowed(self):
        rec = compute_recommendation(_profile(100, 200), _constraint(margin=1))
        assert rec.recommended_heap_limit_bytes == 200
        assert rec.recommended_container_limit_bytes == 400

    def test_zero_replicas(self):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(100, 200), _constraint(replicas=0))
        assert exc.value.field == "desired_replica_count"

    def test_non_integer_bytes(self):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(100, 200.5), _constraint())
        assert exc.value.field == "peak_resident_bytes"

    def test_bool_replicas(self):
        with pytest.raises(InvalidInputError):
            compute_recommendation(_profile(100, 200), _constraint(replicas=True))

    def test_negative_default_heap(self):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(100, 200), _constraint(default_heap=-1))
        assert exc.value.field == "platform_default_heap_bytes"

    def test_error_message_names_field(self):
        with pytest.raises(InvalidInputError) as exc:
            compute_recommendation(_profile(100, 200), _constraint(replicas=0))
        assert str(exc.value).startswith("desired_replica_count: ")

    def test_failure_is_deterministic(self):
        for _ in range(3):
            with pytest.raises(InvalidInputError):
                compute_recommendation(_profile(0, 0), _constraint())


class TestInternalConsistency:
    def test_zero_non_heap_overhead(self):
        # heap == resident: после запаса лимиты совпадают
        with pytest.raises(InternalInconsistencyError) as exc:
            compute_recommendation(_profile(100, 100), _constraint())
        assert exc.value.field == "recommended_container_limit_bytes"


class TestProperties:
    PROFILES = [
        (1, 2),
        (150_000_000, 180_000_000),
        (999_999_937, 1_000_000_007),
        (12_345, 67_890),
        (3 * 1024**3, 4 * 1024**3),
    ]
    MARGINS = [0.01, 0.1, 0.25, 0.33, 0.5, 0.75, 1]

    @pytest.mark.parametrize("heap,resident", PROFILES)
    @pytest.mark.parametrize("margin", MARGINS)
    def test_container_above_heap_above_zero(self, heap, resident, margin):
        rec = compute_recommendation(_profile(heap, resident), _constraint(margin=margin))
        assert rec.recommended_container_limit_bytes > rec.recommended_heap_limit_bytes > 0

    @pytest.mark.parametrize("heap,resident", PROFILES)
    def test_monotonic_in_margin(self, heap, resident):
        previous = None
        for margin in self.MARGINS:
            rec = compute_recommendation(_profile(heap, resident), _constraint(margin=margin))
            current = (rec.recommended_heap_limit_bytes, rec.recommended_container_limit_bytes)
            if previous is not None:
                assert current[0] >= previous[0]
                assert current[1] >= previous[1]
            previous = current

    @pytest.mark.parametrize("replicas", [1, 2, 3, 7, 50, 1000])
    def test_fleet_scaling(self, article_profile, replicas):
        constraint = _constraint(replicas=replicas, margin=0.33)
        rec = compute_recommendation(article_profile, constraint)
        assert aggregate_fleet_budget(article_profile, constraint) == (
            rec.recommended_container_limit_bytes * replicas
        )

    def test_margin_is_exact_decimal(self):
        # 0.1 как double чуть больше 1/10, ceil не должен добавить байт
        rec = compute_recommendation(_profile(1000, 2000), _constraint(margin=0.1))
        assert rec.recommended_heap_limit_bytes == 1100
        assert rec.recommended_container_limit_bytes == 2200

    def test_fraction_margin(self):
        rec = compute_recommendation(_profile(300, 600), _constraint(margin=Fraction(1, 3)))
        assert rec.recommended_heap_limit_bytes == 400
        assert rec.recommended_container_limit_bytes == 800

    def test_rounds_up(self):
        rec = compute_recommendation(_profile(3, 5), _constraint(margin=0.5))
        # ceil(4.5) = 5, ceil(3.0) = 3
        assert rec.recommended_heap_limit_bytes == 5
        assert rec.recommended_container_limit_bytes == 8


class TestWarnings:
    def test_warning_exactly_once_when_default_above_container(self):
        rec = compute_recommendation(
            _profile(100, 200), _constraint(default_heap=10_000)
        )
        assert sum(MANDATORY_FLAG_MARKER in w for w in rec.warnings) == 1

    def test_no_warning_when_default_equals_container(self):
        rec = compute_recommendation(_profile(100, 200), _constraint(default_heap=300))
        assert rec.recommended_container_limit_bytes == 300
        assert rec.warnings == ()

    def test_no_warnings_without_risk(self):
        rec = compute_recommendation(_profile(100, 200), _constraint(default_heap=200))
        assert not rec.has_warnings

    def test_default_heap_too_small(self):
        rec = compute_recommendation(_profile(1000, 1200), _constraint(default_heap=1200))
        assert len(rec.warnings) == 1
        assert "above the platform default heap ceiling" in rec.warnings[0]

    def test_unknown_default_gives_no_warnings(self):
        rec = compute_recommendation(_profile(1000, 1200), _constraint(default_heap=0))
        assert rec.warnings == ()


class TestRecommendationValue:
    def test_is_immutable(self, article_profile, article_constraint):
        rec = compute_recommendation(article_profile, article_constraint)
        with pytest.raises(FrozenInstanceError):
            rec.recommended_heap_limit_bytes = 1

    def test_independent_calls(self, article_profile, article_constraint):
        first = compute_recommendation(article_profile, article_constraint)
        second = compute_recommendation(
            article_profile, replace(article_constraint, platform_default_heap_bytes=0)
        )
        assert first.warnings
        assert second.warnings == ()
        assert first == compute_recommendation(article_profile, article_constraint)

    def test_rationale_covers_each_figure(self, article_profile, article_constraint):
        rec = compute_recommendation(article_profile, article_constraint)
        assert len(rec.rationale) == 3
        assert "199500000" in rec.rationale[0]
        assert "30000000" in rec.rationale[1]
        assert "239400000" in rec.rationale[2]

    def test_explain(self, article_profile, article_constraint):
        text = explain(compute_recommendation(article_profile, article_constraint))
        assert "heap limit:      199500000 bytes" in text
        assert "container limit: 239400000 bytes" in text
        assert "warnings:" in text
