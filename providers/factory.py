"""Factory for creating extraction providers from settings. Catalog names map to adapters here."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.interfaces import IExtractionProvider
from providers.base import DEFAULT_TIMEOUT_SEC
from providers.catalog import GOOGLE_DOCUMENT_AI, GOOGLE_VISION, OPENAI_VISION, TESSERACT, ProviderCatalog
from providers.google_vision import MAX_SYNC_PDF_PAGES, GoogleVisionProvider
from providers.openai_vision import OpenAIVisionProvider
from providers.tesseract_provider import TesseractProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSettings:
    """Credentials and endpoint settings for the concrete adapters."""

    openai_api_key: str = ""
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_base_url: str | None = None
    tesseract_lang: str = "por"
    timeout_sec: int = DEFAULT_TIMEOUT_SEC


def create_provider(name: str, settings: ProviderSettings | None = None) -> IExtractionProvider:
    """Create an adapter for a catalog provider name."""
    s = settings or ProviderSettings()
    key = (name or "").strip().lower()
    if key == OPENAI_VISION:
        return OpenAIVisionProvider(
            base_url=s.openai_base_url,
            api_key=s.openai_api_key,
            model=s.openai_model,
            timeout_sec=s.timeout_sec,
        )
    if key == GOOGLE_VISION:
        return GoogleVisionProvider(api_key=s.google_api_key, base_url=s.google_base_url, timeout_sec=s.timeout_sec)
    if key == GOOGLE_DOCUMENT_AI:
        return GoogleVisionProvider(
            api_key=s.google_api_key,
            base_url=s.google_base_url,
            timeout_sec=s.timeout_sec,
            name=GOOGLE_DOCUMENT_AI,
            max_pdf_pages=MAX_SYNC_PDF_PAGES,
        )
    if key == TESSERACT:
        return TesseractProvider(lang=s.tesseract_lang, timeout_sec=s.timeout_sec)
    raise ValueError(
        f"Unknown extraction provider: {name}. Use {OPENAI_VISION}, {GOOGLE_DOCUMENT_AI}, {GOOGLE_VISION} or {TESSERACT}."
    )


def build_providers(catalog: ProviderCatalog, settings: ProviderSettings | None = None) -> dict[str, IExtractionProvider]:
    """Adapters for every enabled catalog entry. Entries without an adapter are logged and left out."""
    providers: dict[str, IExtractionProvider] = {}
    for config in catalog.enabled():
        try:
            providers[config.name] = create_provider(config.name, settings)
        except ValueError as e:
            logger.warning("No adapter for catalog provider %s: %s", config.name, e)
    return providers
