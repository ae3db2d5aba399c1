"""Type-safe configuration management leveraging Pydantic Settings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

import jsonschema
import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _read_document(path: Path, kind: str) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix == ".json":
            return json.load(handle)
        return yaml.safe_load(handle) or {}


class ProjectConfig(BaseModel):
    """Project metadata and bookkeeping."""

    name: str = "leadscore"
    version: str = "0.1.0"
    description: str = ""


class DataConfig(BaseModel):
    """Where lead profiles are loaded from when no provider is injected."""

    leads_path: str | None = None
    id_column: str = "id"


class ModelEntryConfig(BaseModel):
    """Single model gateway entry."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    type: Literal["sklearn_artifact", "mlflow"] = "sklearn_artifact"
    path: str | None = None
    uri: str | None = None
    version: str | None = None
    default: bool = False

    @model_validator(mode="after")
    def _ensure_location(self) -> ModelEntryConfig:
        if self.type == "sklearn_artifact" and not self.path:
            raise ValueError(f"Model '{self.model_id}' needs a 'path' for sklearn_artifact gateways")
        if self.type == "mlflow" and not self.uri:
            raise ValueError(f"Model '{self.model_id}' needs a 'uri' for mlflow gateways")
        return self


class CacheConfig(BaseModel):
    """Score cache sizing and expiry."""

    ttl_ms: int = Field(default=300_000, gt=0)
    max_entries: int = Field(default=10_000, ge=1)
    sweep_interval_s: float = Field(default=300.0, gt=0)
    shards: int = Field(default=16, ge=1, le=256)


class RateLimitConfig(BaseModel):
    """Admission control in front of the model gateways."""

    max_calls: int = Field(default=100, ge=1)
    window_ms: int = Field(default=60_000, gt=0)
    queue_low_priority: bool = True
    queue_timeout_s: float = Field(default=30.0, ge=0)


class RetryConfig(BaseModel):
    """Bounded retry for transient gateway failures."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_ms: int = Field(default=50, ge=0)


class BatchConfig(BaseModel):
    """Batch orchestration limits."""

    max_batch_size: int = Field(default=500, ge=1)
    max_workers: int = Field(default=8, ge=1)
    timeout_s: float = Field(default=30.0, gt=0)
    max_queued: int = Field(default=100, ge=1)


class HealthConfig(BaseModel):
    """Thresholds that demote the health status."""

    min_samples: int = Field(default=10, ge=1)
    degraded_error_rate: float = Field(default=0.2, ge=0, le=1)
    unhealthy_error_rate: float = Field(default=0.5, ge=0, le=1)
    degraded_queue_length: int = Field(default=10, ge=1)
    unhealthy_queue_length: int = Field(default=50, ge=1)

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> HealthConfig:
        if self.unhealthy_error_rate < self.degraded_error_rate:
            raise ValueError("unhealthy_error_rate must be >= degraded_error_rate")
        if self.unhealthy_queue_length < self.degraded_queue_length:
            raise ValueError("unhealthy_queue_length must be >= degraded_queue_length")
        return self


class StatisticsConfig(BaseModel):
    """Aggregation window for the rolling counters."""

    window_s: float = Field(default=3600.0, gt=0)


class ServingConfig(BaseModel):
    """HTTP service configuration."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    enable_metrics: bool = True


class Settings(BaseSettings):
    """Application wide settings.

    Values load from YAML first and can be overridden using env vars prefixed
    with ``LEADSCORE_``. Nested values can be overridden using ``__`` as delimiter.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEADSCORE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    _config_path: Path | None = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    models: list[ModelEntryConfig] = Field(default_factory=list)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    serving: ServingConfig = Field(default_factory=ServingConfig)

    @field_validator("models")
    @classmethod
    def _unique_model_ids(cls, value: list[ModelEntryConfig]) -> list[ModelEntryConfig]:
        seen: set[str] = set()
        for entry in value:
            if entry.model_id in seen:
                raise ValueError(f"Duplicate model_id '{entry.model_id}'")
            seen.add(entry.model_id)
        if sum(1 for entry in value if entry.default) > 1:
            raise ValueError("At most one model can be marked as default")
        return value

    @classmethod
    def from_yaml(cls, path: str | Path, *, schema_path: str | Path | None = None) -> Settings:
        """Load settings from YAML, validating the raw mapping against ``schema_path`` first."""

        config_path = Path(path)
        payload = _read_document(config_path, "Config")
        if not isinstance(payload, dict):
            raise ValueError("Configuration file must contain a mapping at the root")

        if schema_path is not None:
            jsonschema.validate(instance=payload, schema=_read_document(Path(schema_path), "Schema"))

        settings = cls(**payload)
        settings._config_path = config_path  # pyright: ignore[attr-defined]
        return settings

    def resolve_path(self, raw: str, relative_to: Path | None = None) -> Path:
        """Resolve a path relative to the config file or provided base."""

        candidate = Path(raw)
        if candidate.is_absolute():
            return candidate

        base = relative_to
        if base is None:
            base = getattr(self, "_config_path", None)
            if base is not None:
                base = base.parent
            else:
                base = Path.cwd()
        return (base / candidate).resolve()


def load_settings(config_path: str | Path, schema_path: str | Path | None = None) -> Settings:
    return Settings.from_yaml(config_path, schema_path=schema_path)


__all__ = [
    "Settings",
    "load_settings",
    "ProjectConfig",
    "DataConfig",
    "ModelEntryConfig",
    "CacheConfig",
    "RateLimitConfig",
    "RetryConfig",
    "BatchConfig",
    "HealthConfig",
    "StatisticsConfig",
    "ServingConfig",
]
