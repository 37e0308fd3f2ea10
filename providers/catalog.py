"""
Static registry of extraction providers: capability, cost, quality and rate-limit metadata.
Read-only after construction; safe for concurrent reads.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from core.exceptions import ConfigError
from core.models import ProviderConfig, RateLimit

logger = logging.getLogger(__name__)

MB = 1024 * 1024

OPENAI_VISION = "openai_vision"
GOOGLE_DOCUMENT_AI = "google_document_ai"
GOOGLE_VISION = "google_vision"
TESSERACT = "tesseract"

_IMAGE_FORMATS = frozenset({"png", "jpg", "jpeg", "gif", "bmp", "webp", "tif", "tiff"})

DEFAULT_PROVIDERS: tuple[ProviderConfig, ...] = (
    ProviderConfig(
        name=OPENAI_VISION,
        priority=1,
        cost_per_request=0.01,
        max_file_size=20 * MB,
        supported_formats=frozenset({"pdf", "png", "jpg", "jpeg", "webp", "gif"}),
        rate_limit=RateLimit(per_minute=60, per_day=10_000),
        quality_score=9.0,
    ),
    ProviderConfig(
        name=GOOGLE_DOCUMENT_AI,
        priority=2,
        cost_per_request=0.03,
        max_file_size=40 * MB,
        supported_formats=_IMAGE_FORMATS | {"pdf"},
        rate_limit=RateLimit(per_minute=120, per_day=20_000),
        quality_score=9.5,
    ),
    ProviderConfig(
        name=GOOGLE_VISION,
        priority=3,
        cost_per_request=0.0015,
        max_file_size=20 * MB,
        supported_formats=_IMAGE_FORMATS | {"pdf"},
        rate_limit=RateLimit(per_minute=1800, per_day=100_000),
        quality_score=8.0,
    ),
    ProviderConfig(
        name=TESSERACT,
        priority=4,
        cost_per_request=0.0,
        max_file_size=50 * MB,
        supported_formats=frozenset({"pdf", "png", "jpg", "jpeg", "tif", "tiff", "bmp"}),
        rate_limit=RateLimit(per_minute=600, per_day=1_000_000),
        quality_score=6.0,
    ),
)


class ProviderCatalog:
    """Immutable name -> ProviderConfig table with selection helpers."""

    def __init__(self, providers: Iterable[ProviderConfig]) -> None:
        table: dict[str, ProviderConfig] = {}
        for p in providers:
            if p.name in table:
                raise ConfigError(f"Duplicate provider in catalog: {p.name}")
            table[p.name] = p
        if not table:
            raise ConfigError("Provider catalog is empty")
        self._providers: Mapping[str, ProviderConfig] = MappingProxyType(table)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __iter__(self):
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    def get(self, name: str) -> ProviderConfig | None:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers)

    def enabled(self) -> list[ProviderConfig]:
        return [p for p in self._providers.values() if p.enabled]

    def supported_formats(self) -> frozenset[str]:
        """Union of formats across enabled providers."""
        out: set[str] = set()
        for p in self.enabled():
            out |= p.supported_formats
        return frozenset(out)

    def eligible(
        self,
        file_size: int,
        required_quality: float,
        fmt: str | None = None,
    ) -> list[ProviderConfig]:
        """Enabled providers satisfying size, quality and format; sorted (priority asc, quality desc)."""
        out = [
            p
            for p in self._providers.values()
            if p.enabled and p.accepts(file_size, fmt) and p.meets_quality(required_quality)
        ]
        return sorted(out, key=lambda p: (p.priority, -p.quality_score))

    def cheapest(self, enabled_only: bool = True) -> ProviderConfig:
        """Lowest cost provider (ties by priority). Last-resort default."""
        pool = self.enabled() if enabled_only else list(self._providers.values())
        if not pool:
            pool = list(self._providers.values())
        return min(pool, key=lambda p: (p.cost_per_request, p.priority))

    def with_overrides(self, overrides: Mapping[str, Mapping[str, Any]]) -> ProviderCatalog:
        """New catalog with per-provider field overrides (unknown providers are added)."""
        table = dict(self._providers)
        for name, values in (overrides or {}).items():
            base = table.get(name) or ProviderConfig(name=name)
            table[name] = _apply_override(base, values)
        return ProviderCatalog(table.values())


def _apply_override(base: ProviderConfig, values: Mapping[str, Any]) -> ProviderConfig:
    changes: dict[str, Any] = {}
    for key in ("enabled", "priority", "cost_per_request", "max_file_size", "quality_score"):
        if key in values and values[key] is not None:
            changes[key] = values[key]
    if "enabled" in changes:
        changes["enabled"] = bool(changes["enabled"])
    if "priority" in changes:
        changes["priority"] = int(changes["priority"])
    if "max_file_size" in changes:
        changes["max_file_size"] = int(changes["max_file_size"])
    for key in ("cost_per_request", "quality_score"):
        if key in changes:
            changes[key] = float(changes[key])
    if values.get("supported_formats"):
        changes["supported_formats"] = frozenset(str(f).lower().lstrip(".") for f in values["supported_formats"])
    rl = values.get("rate_limit")
    if isinstance(rl, Mapping):
        changes["rate_limit"] = RateLimit(
            per_minute=int(rl.get("per_minute", base.rate_limit.per_minute)),
            per_day=int(rl.get("per_day", base.rate_limit.per_day)),
        )
    return replace(base, **changes)


def default_catalog() -> ProviderCatalog:
    return ProviderCatalog(DEFAULT_PROVIDERS)


def load_catalog(
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
    disabled: Iterable[str] = (),
) -> ProviderCatalog:
    """Default catalog + config overrides + disabled list. Loaded once at startup."""
    catalog = default_catalog()
    merged: dict[str, dict[str, Any]] = {k: dict(v) for k, v in (overrides or {}).items()}
    for name in disabled:
        name = name.strip()
        if not name:
            continue
        if name not in catalog and name not in merged:
            logger.warning("Ignoring unknown disabled provider: %s", name)
            continue
        merged.setdefault(name, {})["enabled"] = False
    if merged:
        catalog = catalog.with_overrides(merged)
    logger.info(
        "Provider catalog loaded: %s",
        ", ".join(f"{p.name}({'on' if p.enabled else 'off'})" for p in catalog),
    )
    return catalog
