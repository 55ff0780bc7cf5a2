from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_CONNECTION_STRING = "http://localhost:9200/munin"
DEFAULT_INDEX_ROOT = "munin"
DEFAULT_DATASET = "fr"
DEFAULT_BATCH_SIZE = 1000


def default_thread_count() -> int:
    """Worker pool size used when none is configured.

    One worker per logical CPU reported by ``os.cpu_count()``, falling back
    to a single worker when the host does not report it.
    """
    return os.cpu_count() or 1


class IndexSettings(BaseModel):
    nb_shards: int = Field(default=5, ge=1)
    nb_replicas: int = Field(default=1, ge=0)


class RuntimeConfig(BaseModel):
    workers: int = Field(default_factory=default_thread_count, ge=1)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()


class ImportConfig(BaseModel):
    input: Path
    connection_string: str = DEFAULT_CONNECTION_STRING
    dataset: str = DEFAULT_DATASET
    legacy_identity_mode: bool = False

    index: IndexSettings = Field(default_factory=IndexSettings)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @field_validator("dataset")
    @classmethod
    def non_empty_dataset(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("dataset name must not be empty")
        return value


def parse_connection_string(value: str) -> tuple[str, str]:
    """Split ``http://host:port/<root>`` into the backend url and index root."""
    parts = urlsplit(value)
    if not parts.scheme or not parts.netloc:
        raise ConfigError(f"invalid connection string: {value!r}")
    root = parts.path.strip("/") or DEFAULT_INDEX_ROOT
    if "/" in root:
        raise ConfigError(f"connection string path must be a single index name: {value!r}")
    host = urlunsplit((parts.scheme, parts.netloc, "", "", ""))
    return host, root


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict):
            current = merged.get(key)
            merged[key] = _merge(current if isinstance(current, dict) else {}, value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str | Path] = None, overrides: Optional[dict[str, Any]] = None) -> ImportConfig:
    data: dict[str, Any] = {}
    if path is not None:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except OSError as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping")
    data = _merge(data, overrides or {})
    try:
        return ImportConfig(**data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
