"""Runtime configuration schema and loader."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Mapping

from omegaconf import OmegaConf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pydrush._constants import CONFIG_ENV_VAR, DEFAULT_REMOTE_SCRIPT, DEFAULT_SSH_OPTIONS
from pydrush.overrides import parse_inline_overrides

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class SshConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    binary: str = "ssh"
    options: str = DEFAULT_SSH_OPTIONS


class BackendConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    remote_script: str = DEFAULT_REMOTE_SCRIPT
    concurrency: int = Field(default=1, ge=1)
    timeout_s: float | None = Field(default=None, gt=0)


class RuntimeConfig(BaseModel):
    """Schema for the pydrush configuration file.

    Unknown top-level keys are kept (available through ``model_extra``) so
    commands can read their own settings; the ``ssh`` and ``backend`` sections
    are strict.
    """

    model_config = ConfigDict(extra="allow")

    ssh: SshConfig = Field(default_factory=SshConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    propagate_options: bool = False
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        return level


class ConfigFormatError(ValueError):
    """Raised when a configuration file cannot be interpreted as a mapping."""


def resolve_config_path(path: Path | str | None = None) -> Path | None:
    if path is None:
        env_value = os.environ.get(CONFIG_ENV_VAR)
        if not env_value:
            return None
        path = env_value
    return Path(path).expanduser().resolve()


def load_runtime_config(path: Path | str | None = None, overrides: Iterable[str] = ()) -> RuntimeConfig:
    """Load the config file (if any) and apply inline ``-D`` overrides on top."""
    resolved = resolve_config_path(path)
    base = OmegaConf.create(dict(_load_mapping(resolved)) if resolved is not None else {})
    inline = OmegaConf.create(parse_inline_overrides(overrides))
    merged = OmegaConf.to_container(OmegaConf.merge(base, inline), resolve=True)
    try:
        return RuntimeConfig(**merged)
    except ValidationError as exc:
        source = resolved if resolved is not None else "inline overrides"
        raise ValueError(f"Invalid configuration ({source}): {exc}") from exc


def _load_mapping(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    if path.suffix not in {".yaml", ".yml", ".json"}:
        raise ConfigFormatError(f"Unsupported config format: {path} (expected .yaml/.yml/.json)")
    try:
        data = OmegaConf.to_container(OmegaConf.load(path), resolve=True)
    except Exception as exc:  # pragma: no cover - OmegaConf error types vary
        raise ConfigFormatError(f"Failed to load config: {path}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigFormatError(f"Config must be a mapping at top level: {path}")
    return data


__all__ = [
    "BackendConfig",
    "ConfigFormatError",
    "RuntimeConfig",
    "SshConfig",
    "load_runtime_config",
    "resolve_config_path",
]
