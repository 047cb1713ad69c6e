from __future__ import annotations

import os
import socket
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ratelimit import parse_rate

DEFAULT_LOCK_DIR = Path("/run/lock/borg-wrapper")


class ConfigurationError(Exception):
    """Raised when the wrapper configuration is invalid."""


class SecretRef(BaseModel):
    """Passphrase given inline, through an environment variable or in a file."""

    model_config = ConfigDict(extra="forbid")

    value: Optional[str] = Field(default=None, description="Inline secret (discouraged).")
    env: Optional[str] = Field(default=None, description="Environment variable name.")
    file: Optional[Path] = Field(default=None, description="Path to a file containing the secret.")

    def resolve(self) -> Optional[str]:
        if self.value:
            return self.value
        if self.env:
            value = os.getenv(self.env)
            if value:
                return value
        if self.file:
            file_path = Path(self.file).expanduser()
            if file_path.exists():
                return file_path.read_text(encoding="utf-8").strip()
        return None


class RetentionConfig(BaseModel):
    """Archives to keep per granularity; zero keeps none at that tier."""

    model_config = ConfigDict(extra="forbid")

    hourly: int = Field(default=0, ge=0)
    daily: int = Field(default=0, ge=0)
    weekly: int = Field(default=0, ge=0)
    monthly: int = Field(default=0, ge=0)
    yearly: int = Field(default=0, ge=0)


class StepArguments(BaseModel):
    """Per-step overrides. A list, even an empty one, replaces the built-in defaults."""

    model_config = ConfigDict(extra="forbid")

    init: Optional[List[str]] = None
    create: Optional[List[str]] = None
    prune: Optional[List[str]] = None
    check: Optional[List[str]] = None


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class WrapperConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    repository: str
    passphrase: Optional[SecretRef] = None
    engine: str = "borg"
    paths: List[str]
    excludes: List[str] = Field(default_factory=list)
    transport_command: str = "ssh"
    bwlimit: str = "0"
    host_identifier: Optional[str] = None
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    arguments: StepArguments = Field(default_factory=StepArguments)
    lock_dir: Path = DEFAULT_LOCK_DIR
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("repository")
    @classmethod
    def _require_repository(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Repository must not be empty.")
        return value

    @field_validator("paths")
    @classmethod
    def _require_paths(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one path to back up must be configured.")
        return value

    @field_validator("passphrase", mode="before")
    @classmethod
    def _inline_passphrase(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"value": value}
        return value

    @field_validator("bwlimit", mode="before")
    @classmethod
    def _validate_bwlimit(cls, value: Any) -> str:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            raise ValueError(f"Invalid bandwidth limit {value!r}")
        parse_rate(value)
        return value

    @field_validator("lock_dir")
    @classmethod
    def _expand_lock_dir(cls, value: Path) -> Path:
        return value.expanduser()

    def resolved_host(self) -> str:
        return self.host_identifier or socket.gethostname()

    def resolved_passphrase(self) -> Optional[str]:
        if self.passphrase is None:
            return None
        return self.passphrase.resolve()


def load_config(path: Path) -> WrapperConfig:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc

    try:
        return WrapperConfig.model_validate(raw)
    except Exception as exc:  # noqa: BLE001
        raise ConfigurationError(str(exc)) from exc
