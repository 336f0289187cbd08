"""Configuration management for the user directory."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_TABLE_NAME = "user-table"
DEFAULT_REGION = "us-west-2"


def _positive_int(data: Mapping[str, object], field: str, default: int) -> int:
    raw = data.get(field, default)
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for '{field}': {raw!r}") from exc
    if value < 1:
        raise ValueError(f"'{field}' must be at least 1, got {value}")
    return value


def _positive_float(data: Mapping[str, object], field: str, default: float) -> float:
    raw = data.get(field, default)
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for '{field}': {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"'{field}' must be greater than zero, got {value}")
    return value


@dataclass(frozen=True)
class StoreConfig:
    """Settings for the DynamoDB table that backs the directory."""

    table_name: str = DEFAULT_TABLE_NAME
    region: str = DEFAULT_REGION
    endpoint_url: Optional[str] = None
    read_capacity: int = 5
    write_capacity: int = 5
    connect_timeout: float = 5.0
    read_timeout: float = 10.0

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "StoreConfig":
        """Create a :class:`StoreConfig` from raw dictionary data."""
        table_name = str(data.get("table_name") or DEFAULT_TABLE_NAME).strip()
        if not table_name:
            raise ValueError("'table_name' must not be empty")

        endpoint = str(data.get("endpoint_url") or "").strip()
        return StoreConfig(
            table_name=table_name,
            region=str(data.get("region") or DEFAULT_REGION).strip(),
            endpoint_url=endpoint or None,
            read_capacity=_positive_int(data, "read_capacity", 5),
            write_capacity=_positive_int(data, "write_capacity", 5),
            connect_timeout=_positive_float(data, "connect_timeout", 5.0),
            read_timeout=_positive_float(data, "read_timeout", 10.0),
        )

    def with_env_overrides(self, environ: Mapping[str, str]) -> "StoreConfig":
        overrides: Dict[str, object] = {}
        table = environ.get("USERSTORE_TABLE", "").strip()
        if table:
            overrides["table_name"] = table
        region = environ.get("USERSTORE_REGION", "").strip()
        if region:
            overrides["region"] = region
        endpoint = environ.get("USERSTORE_ENDPOINT_URL", "").strip()
        if endpoint:
            overrides["endpoint_url"] = endpoint
        if not overrides:
            return self
        return replace(self, **overrides)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "userstore.yaml").resolve(strict=False)
    return candidate


def load_store_config(config_path: Path) -> StoreConfig:
    """Load store settings from a YAML file.

    A missing file yields the defaults. The settings live under a top-level
    ``dynamodb`` mapping.
    """
    if not config_path.exists():
        return StoreConfig()

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    section = raw.get("dynamodb") or {}
    if not isinstance(section, dict):
        raise ValueError("The 'dynamodb' configuration section must be a mapping")
    return StoreConfig.from_dict(section)


def load_config(environ: Optional[Mapping[str, str]] = None) -> StoreConfig:
    """Resolve the effective configuration from the YAML file and environment."""
    env = os.environ if environ is None else environ
    config_path = resolve_config_path(env.get("USERSTORE_CONFIG"))
    return load_store_config(config_path).with_env_overrides(env)


__all__ = [
    "DEFAULT_REGION",
    "DEFAULT_TABLE_NAME",
    "StoreConfig",
    "load_config",
    "load_store_config",
    "resolve_config_path",
]
