"""Classification: heuristic document-type detection from filename and text."""

from classification.classifier import ClassifierConfig, DocumentClassifier, classify_document
from classification.rules import DOCUMENT_TYPE_RULES, FALLBACK_TYPE, FILENAME_RULES

__all__ = [
    "ClassifierConfig",
    "DocumentClassifier",
    "classify_document",
    "DOCUMENT_TYPE_RULES",
    "FALLBACK_TYPE",
    "FILENAME_RULES",
]
