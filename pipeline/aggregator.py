"""Confidence aggregation: provider confidence + validation adjustment -> final confidence and verdict."""

from __future__ import annotations

from core.exceptions import ConfigError
from core.models import ValidationResult, Verdict, clamp

DEFAULT_LOW_WATER_MARK = 0.5


class ConfidenceAggregator:
    """ACCEPTED at or above the bucket requirement, NEEDS_REVIEW at or above the low-water mark, else REJECTED."""

    def __init__(self, low_water_mark: float = DEFAULT_LOW_WATER_MARK) -> None:
        if not 0.0 <= low_water_mark <= 1.0:
            raise ConfigError(f"low_water_mark must be within [0, 1], got {low_water_mark}")
        self._low_water_mark = low_water_mark

    @property
    def low_water_mark(self) -> float:
        return self._low_water_mark

    def final_confidence(self, provider_confidence: float, validation: ValidationResult) -> float:
        return round(clamp(clamp(provider_confidence) + validation.confidence_adjustment), 4)

    def verdict(self, final_confidence: float, required_quality: float) -> Verdict:
        if final_confidence >= required_quality:
            return Verdict.ACCEPTED
        if final_confidence >= self._low_water_mark:
            return Verdict.NEEDS_REVIEW
        return Verdict.REJECTED

    def aggregate(
        self,
        provider_confidence: float,
        validation: ValidationResult,
        required_quality: float,
    ) -> tuple[float, Verdict]:
        final = self.final_confidence(provider_confidence, validation)
        return final, self.verdict(final, required_quality)
