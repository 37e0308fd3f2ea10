"""Extraction providers: catalog, rate limiting, abstract base and concrete adapters."""

from providers.base import BaseExtractionProvider
from providers.catalog import ProviderCatalog, default_catalog, load_catalog
from providers.rate_limit import RateLimitTracker
from providers.openai_vision import OpenAIVisionProvider
from providers.google_vision import GoogleVisionProvider
from providers.tesseract_provider import TesseractProvider
from providers.factory import ProviderSettings, build_providers, create_provider

__all__ = [
    "BaseExtractionProvider",
    "ProviderCatalog",
    "default_catalog",
    "load_catalog",
    "RateLimitTracker",
    "OpenAIVisionProvider",
    "GoogleVisionProvider",
    "TesseractProvider",
    "ProviderSettings",
    "build_providers",
    "create_provider",
]
