"""Unit tests for confidence aggregation and verdict thresholds."""
from __future__ import annotations

import pytest

from core.exceptions import ConfigError
from core.models import ValidationResult, Verdict
from pipeline.aggregator import ConfidenceAggregator


@pytest.fixture
def aggregator() -> ConfidenceAggregator:
    return ConfidenceAggregator(low_water_mark=0.5)


def test_accepted_when_meeting_requirement(aggregator: ConfidenceAggregator) -> None:
    final, verdict = aggregator.aggregate(0.85, ValidationResult.build(adjustment=0.1), 0.9)
    assert final == pytest.approx(0.95)
    assert verdict is Verdict.ACCEPTED


def test_needs_review_between_marks(aggregator: ConfidenceAggregator) -> None:
    final, verdict = aggregator.aggregate(0.85, ValidationResult.build(["x"], adjustment=-0.3), 0.9)
    assert final == pytest.approx(0.55)
    assert verdict is Verdict.NEEDS_REVIEW


def test_rejected_below_low_water_mark(aggregator: ConfidenceAggregator) -> None:
    _, verdict = aggregator.aggregate(0.6, ValidationResult.build(["x", "y"], adjustment=-0.7), 0.8)
    assert verdict is Verdict.REJECTED


def test_final_confidence_is_clamped(aggregator: ConfidenceAggregator) -> None:
    high, _ = aggregator.aggregate(0.98, ValidationResult.build(adjustment=0.3), 0.9)
    low, _ = aggregator.aggregate(0.1, ValidationResult.build(adjustment=-0.5), 0.9)
    odd, _ = aggregator.aggregate(1.7, ValidationResult.ok(), 0.9)
    assert high == 1.0
    assert low == 0.0
    assert odd == 1.0


def test_boundary_is_inclusive(aggregator: ConfidenceAggregator) -> None:
    assert aggregator.verdict(0.9, 0.9) is Verdict.ACCEPTED
    assert aggregator.verdict(0.5, 0.9) is Verdict.NEEDS_REVIEW


def test_invalid_low_water_mark() -> None:
    with pytest.raises(ConfigError):
        ConfidenceAggregator(low_water_mark=1.5)
