# ruff: noqa: S101
"""Tests for platform scoring and status classification."""

from __future__ import annotations

from app.analyzer.scoring_engine import (
    classify_status,
    clamp_score,
    compute_score,
    overall_score,
)
from app.models.audit_models import Discrepancy, Impact, PlatformStatus, Severity


def _d(severity: Severity, field: str = "address") -> Discrepancy:
    return Discrepancy(
        field=field,
        current_value="x",
        expected_value="y",
        severity=severity,
        impact=Impact.LOCAL_PACK,
        platform="P",
    )


def test_no_discrepancies_is_perfect_and_consistent() -> None:
    assert compute_score([]) == 100
    assert classify_status([]) == PlatformStatus.CONSISTENT


def test_weights_per_severity() -> None:
    assert compute_score([_d(Severity.CRITICAL)]) == 75
    assert compute_score([_d(Severity.MAJOR)]) == 85
    assert compute_score([_d(Severity.MINOR)]) == 95
    assert compute_score([_d(Severity.CRITICAL), _d(Severity.MAJOR)]) == 60


def test_score_is_non_increasing_and_floored_at_zero() -> None:
    discrepancies = []
    previous = compute_score(discrepancies)
    for _ in range(6):
        discrepancies.append(_d(Severity.CRITICAL))
        score = compute_score(discrepancies)
        assert score <= previous
        assert score >= 0
        previous = score
    assert previous == 0


def test_any_discrepancy_is_inconsistent() -> None:
    assert classify_status([_d(Severity.MINOR)]) == PlatformStatus.INCONSISTENT
    assert classify_status([_d(Severity.CRITICAL)]) == PlatformStatus.INCONSISTENT


def test_overall_score_is_rounded_mean() -> None:
    assert overall_score([100, 75]) == 88
    assert overall_score([100, 85]) == 93
    assert overall_score([100, 100, 0]) == 67
    assert overall_score([]) == 0


def test_clamp_score_bounds_out_of_range_values() -> None:
    assert clamp_score(140) == 100
    assert clamp_score(-3) == 0
    assert clamp_score(42.4) == 42
