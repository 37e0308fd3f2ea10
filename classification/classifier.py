"""
Heuristic document-type classifier: filename + text content -> DocumentClassification.
Pure and deterministic; absence of signal lowers confidence, it never raises.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from classification.rules import (
    DOCUMENT_TYPE_RULES,
    FALLBACK_TYPE,
    FILENAME_RULES,
    DocumentTypeRule,
    FilenameRule,
)
from core.models import UNCLASSIFIED_INDICATOR, DocumentClassification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierConfig:
    """Classification thresholds. Empirical constants, kept configurable."""

    min_confidence: float = 0.3
    nfe_split_threshold: float = 0.4
    fallback_confidence: float = 0.1


class DocumentClassifier:
    """Scores a document against every rule table and returns the best match."""

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        rules: tuple[DocumentTypeRule, ...] = DOCUMENT_TYPE_RULES,
        filename_rules: tuple[FilenameRule, ...] = FILENAME_RULES,
    ) -> None:
        self._config = config or ClassifierConfig()
        self._rules = rules
        self._filename_rules = filename_rules

    def _score_rule(self, rule: DocumentTypeRule, content: str) -> DocumentClassification:
        indicators: list[str] = []
        score = 0.0
        for pattern in rule.patterns:
            if pattern.regex.search(content):
                indicators.append(pattern.indicator)
                score += pattern.weight
        score = min(round(score, 4), 1.0)
        doc_type = rule.type
        if rule.split_type and score <= self._config.nfe_split_threshold:
            doc_type = rule.split_type
        return DocumentClassification(type=doc_type, confidence=score, indicators=indicators)

    def _score_filename(self, file_name: str) -> DocumentClassification | None:
        lower = file_name.lower()
        for rule in self._filename_rules:
            if any(k in lower for k in rule.keywords):
                return DocumentClassification(
                    type=rule.type, confidence=rule.confidence, indicators=[rule.indicator]
                )
        return None

    def scores(self, content: str | None, file_name: str | None) -> list[DocumentClassification]:
        """Every candidate in evaluation order: content rules first, then the filename hit if any."""
        content = content or ""
        candidates = [self._score_rule(rule, content) for rule in self._rules]
        by_name = self._score_filename(file_name or "")
        if by_name is not None:
            candidates.append(by_name)
        return candidates

    def classify(self, content: str | None, file_name: str | None) -> DocumentClassification:
        """
        Highest-confidence candidate; ties keep the first evaluated.
        At or below min_confidence -> fallback type "Outro".
        """
        candidates = self.scores(content, file_name)
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.confidence > best.confidence:
                best = candidate

        if best.confidence <= self._config.min_confidence:
            logger.debug("No type above %.2f for %s; using %s", self._config.min_confidence, file_name, FALLBACK_TYPE)
            return DocumentClassification(
                type=FALLBACK_TYPE,
                confidence=self._config.fallback_confidence,
                indicators=[UNCLASSIFIED_INDICATOR],
            )
        return DocumentClassification(
            type=best.type, confidence=best.confidence, indicators=list(best.indicators)
        )


def classify_document(content: str | None, file_name: str | None) -> DocumentClassification:
    """Convenience wrapper with default thresholds."""
    return DocumentClassifier().classify(content, file_name)
