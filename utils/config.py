"""
Configuration loader: .env + YAML + env overrides.
Thresholds, weights, budget ceilings and credentials all come from here; nothing is read
from the environment elsewhere.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from classification.classifier import ClassifierConfig
from core.exceptions import ConfigError
from providers.catalog import ProviderCatalog, load_catalog
from providers.factory import ProviderSettings
from strategy.budget import BudgetLimits
from strategy.selector import DEFAULT_FALLBACK_CHAIN
from validation.validators import ValidationWeights

DEFAULT_CONFIG_PATH = "config.yaml"


def _coerce_float(s: Any, key: str) -> float:
    try:
        return float(s)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number, got {s!r}") from e


def _coerce_int(s: Any, key: str) -> int:
    try:
        return int(s)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be an integer, got {s!r}") from e


def _coerce_list(s: Any) -> tuple[str, ...]:
    """Comma-separated string or YAML list -> tuple of stripped names."""
    if s is None or s == "":
        return ()
    items = s.split(",") if isinstance(s, str) else list(s)
    return tuple(str(i).strip() for i in items if str(i).strip())


@dataclass(frozen=True)
class BudgetConfig:
    """Spend ceilings."""

    max_cost_per_document: float = 0.10
    daily_budget_limit: float = 50.0
    monthly_budget_limit: float = 1000.0

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ConfigError(f"{f.name} must be >= 0, got {getattr(self, f.name)}")

    def to_limits(self) -> BudgetLimits:
        return BudgetLimits(
            max_cost_per_document=self.max_cost_per_document,
            daily_budget_limit=self.daily_budget_limit,
            monthly_budget_limit=self.monthly_budget_limit,
        )


@dataclass(frozen=True)
class OrchestratorConfig:
    """Per-call behaviour of the orchestrator and its fallback chain."""

    provider_timeout_sec: int = 60
    retries_per_provider: int = 1
    retry_delay_sec: float = 1.0
    low_water_mark: float = 0.5
    redirect_min_quality: float = 0.6
    fallback_chain: tuple[str, ...] = DEFAULT_FALLBACK_CHAIN
    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.provider_timeout_sec <= 0:
            raise ConfigError(f"provider_timeout_sec must be > 0, got {self.provider_timeout_sec}")
        if self.retries_per_provider < 0:
            raise ConfigError(f"retries_per_provider must be >= 0, got {self.retries_per_provider}")
        if self.retry_delay_sec < 0:
            raise ConfigError(f"retry_delay_sec must be >= 0, got {self.retry_delay_sec}")
        for key in ("low_water_mark", "redirect_min_quality"):
            value = getattr(self, key)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{key} must be within [0, 1], got {value}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration. Built from YAML + env."""

    log_level: str = "INFO"
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    validation: ValidationWeights = field(default_factory=ValidationWeights)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    providers: ProviderSettings = field(default_factory=ProviderSettings)
    catalog_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    disabled_providers: tuple[str, ...] = ()

    def build_catalog(self) -> ProviderCatalog:
        """Default catalog with this config's overrides and disabled list applied."""
        try:
            return load_catalog(self.catalog_overrides, self.disabled_providers)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid provider catalog override: {e}") from e


def _section(data: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Config section '{key}' must be a mapping")
    return dict(value)


def _float_fields(cls: type, values: Mapping[str, Any], section: str) -> dict[str, float]:
    """Known float fields of a dataclass from a YAML section; unknown keys are rejected."""
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {', '.join(sorted(unknown))}")
    return {k: _coerce_float(v, f"{section}.{k}") for k, v in values.items()}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at top level")
    return data


def _orchestrator_from_dict(data: Mapping[str, Any]) -> OrchestratorConfig:
    default = OrchestratorConfig()
    return OrchestratorConfig(
        provider_timeout_sec=_coerce_int(data.get("provider_timeout_sec", default.provider_timeout_sec), "provider_timeout_sec"),
        retries_per_provider=_coerce_int(data.get("retries_per_provider", default.retries_per_provider), "retries_per_provider"),
        retry_delay_sec=_coerce_float(data.get("retry_delay_sec", default.retry_delay_sec), "retry_delay_sec"),
        low_water_mark=_coerce_float(data.get("low_water_mark", default.low_water_mark), "low_water_mark"),
        redirect_min_quality=_coerce_float(
            data.get("redirect_min_quality", default.redirect_min_quality), "redirect_min_quality"
        ),
        fallback_chain=_coerce_list(data.get("fallback_chain")) or default.fallback_chain,
        max_workers=_coerce_int(data.get("max_workers", default.max_workers), "max_workers"),
    )


def _providers_from_dict(data: Mapping[str, Any], timeout_sec: int) -> ProviderSettings:
    default = ProviderSettings(timeout_sec=timeout_sec)
    return ProviderSettings(
        openai_api_key=str(data.get("openai_api_key", default.openai_api_key) or ""),
        openai_base_url=data.get("openai_base_url") or default.openai_base_url,
        openai_model=str(data.get("openai_model", default.openai_model)),
        google_api_key=str(data.get("google_api_key", default.google_api_key) or ""),
        google_base_url=data.get("google_base_url") or default.google_base_url,
        tesseract_lang=str(data.get("tesseract_lang", default.tesseract_lang)),
        timeout_sec=_coerce_int(data.get("timeout_sec", default.timeout_sec), "provider_settings.timeout_sec"),
    )


def _config_from_dict(data: Mapping[str, Any]) -> AppConfig:
    """Build AppConfig from the nested YAML dict. Env overrides applied in load_config."""
    catalog = _section(data, "catalog")
    orchestrator = _orchestrator_from_dict(_section(data, "orchestrator"))
    return AppConfig(
        log_level=str(data.get("log_level", "INFO")),
        classifier=ClassifierConfig(**_float_fields(ClassifierConfig, _section(data, "classifier"), "classifier")),
        validation=ValidationWeights(**_float_fields(ValidationWeights, _section(data, "validation"), "validation")),
        budget=BudgetConfig(**_float_fields(BudgetConfig, _section(data, "budget"), "budget")),
        orchestrator=orchestrator,
        providers=_providers_from_dict(_section(data, "provider_settings"), orchestrator.provider_timeout_sec),
        catalog_overrides={str(k): dict(v or {}) for k, v in catalog.items()},
        disabled_providers=_coerce_list(data.get("disabled_providers")),
    )


def _env(key: str) -> str | None:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip()


def _apply_env(cfg: AppConfig) -> AppConfig:
    """Env vars win over YAML (single source for deployment)."""
    budget: dict[str, Any] = {}
    for key, env in (
        ("max_cost_per_document", "MAX_COST_PER_DOCUMENT"),
        ("daily_budget_limit", "DAILY_BUDGET_LIMIT"),
        ("monthly_budget_limit", "MONTHLY_BUDGET_LIMIT"),
    ):
        if (raw := _env(env)) is not None:
            budget[key] = _coerce_float(raw, env)

    orchestrator: dict[str, Any] = {}
    if (raw := _env("PROVIDER_TIMEOUT_SEC")) is not None:
        orchestrator["provider_timeout_sec"] = _coerce_int(raw, "PROVIDER_TIMEOUT_SEC")
    if (raw := _env("PROVIDER_RETRIES")) is not None:
        orchestrator["retries_per_provider"] = _coerce_int(raw, "PROVIDER_RETRIES")
    if (raw := _env("LOW_WATER_MARK")) is not None:
        orchestrator["low_water_mark"] = _coerce_float(raw, "LOW_WATER_MARK")
    if (raw := _env("MAX_WORKERS")) is not None:
        orchestrator["max_workers"] = _coerce_int(raw, "MAX_WORKERS")
    if (raw := _env("FALLBACK_CHAIN")) is not None:
        orchestrator["fallback_chain"] = _coerce_list(raw)

    providers: dict[str, Any] = {}
    for key, env in (
        ("openai_api_key", "OPENAI_API_KEY"),
        ("openai_model", "OPENAI_MODEL"),
        ("google_api_key", "GOOGLE_API_KEY"),
        ("tesseract_lang", "TESSERACT_LANG"),
    ):
        if (raw := _env(env)) is not None:
            providers[key] = raw
    if "provider_timeout_sec" in orchestrator:
        providers["timeout_sec"] = orchestrator["provider_timeout_sec"]

    overrides: dict[str, Any] = {}
    if (raw := _env("LOG_LEVEL")) is not None:
        overrides["log_level"] = raw.upper()
    if budget:
        overrides["budget"] = replace(cfg.budget, **budget)
    if orchestrator:
        overrides["orchestrator"] = replace(cfg.orchestrator, **orchestrator)
    if providers:
        overrides["providers"] = replace(cfg.providers, **providers)
    if (raw := _env("DISABLED_PROVIDERS")) is not None:
        overrides["disabled_providers"] = _coerce_list(raw)
    if not overrides:
        return cfg
    return replace(cfg, **overrides)


def load_config(config_path: str | Path | None = None, *, dotenv_path: str | Path | None = None) -> AppConfig:
    """
    Load .env (without overriding already-set variables), then the YAML file, then env overrides.
    Missing YAML file -> defaults. Invalid values raise ConfigError.
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)
    path = Path(config_path) if config_path else Path(DEFAULT_CONFIG_PATH)
    cfg = _config_from_dict(_load_yaml(path))
    return _apply_env(cfg)
