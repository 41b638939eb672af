from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from croniter import CroniterBadCronError, croniter
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .retry import DEFAULT_DELAYS, ExponentialBackoff, FixedBackoff, RetryScheduler

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_WORKERS = 10
SECRET_ENV = "GHBACKUP_SECRET"


class ConfigurationError(Exception):
    """Raised when the backup configuration is invalid."""


class SecretRef(BaseModel):
    """Reference to a secret stored in an environment variable or file."""

    env: Optional[str] = Field(default=None, description="Environment variable name.")
    file: Optional[Path] = Field(default=None, description="Path to a file containing the secret.")

    def resolve(self) -> Optional[str]:
        if self.env:
            value = os.getenv(self.env)
            if value:
                return value
        if self.file:
            file_path = Path(self.file).expanduser()
            if file_path.exists():
                return file_path.read_text(encoding="utf-8").strip()
        return None


class ListingScope(str, Enum):
    ACCOUNT = "account"
    AUTHENTICATED = "authenticated"


class RetryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: str = "fixed"
    delays: List[float] = Field(default_factory=lambda: list(DEFAULT_DELAYS))
    initial: float = 5.0
    multiplier: float = 2.0
    max_delay: Optional[float] = None
    max_elapsed: float = 600.0

    @field_validator("strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        if value not in ("fixed", "exponential"):
            raise ValueError(f"Unknown retry strategy '{value}'.")
        return value

    @field_validator("delays")
    @classmethod
    def _non_negative_delays(cls, value: List[float]) -> List[float]:
        if any(delay < 0 for delay in value):
            raise ValueError("Retry delays must not be negative.")
        return value

    def build(self) -> RetryScheduler:
        if self.strategy == "exponential":
            return ExponentialBackoff(
                initial=self.initial,
                multiplier=self.multiplier,
                max_delay=self.max_delay,
                max_elapsed=self.max_elapsed,
            )
        return FixedBackoff(self.delays)


class SchedulerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    cron: str
    timezone: str = "UTC"
    run_on_startup: bool = True

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        try:
            croniter(value, datetime.now())
        except (CroniterBadCronError, ValueError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value


class RunConfig(BaseModel):
    """Frozen settings for one backup run, defaults applied at construction."""

    model_config = ConfigDict(frozen=True)

    directory: Path
    account: Optional[str] = None
    secret: Optional[str] = Field(default=None, repr=False)
    api_url: str = DEFAULT_API_URL
    workers: int = DEFAULT_WORKERS
    scope: ListingScope = ListingScope.ACCOUNT
    filter_by_owner: bool = False
    retry: RetryConfig = RetryConfig()
    scheduler: Optional[SchedulerConfig] = None

    @field_validator("directory", mode="before")
    @classmethod
    def _require_directory(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            raise ValueError("Target directory must be set.")
        return value

    @field_validator("directory")
    @classmethod
    def _expand_directory(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("api_url")
    @classmethod
    def _validate_api_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Malformed API URL '{value}'.")
        return value.rstrip("/")

    @field_validator("workers")
    @classmethod
    def _positive_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("At least one worker is required.")
        return value

    @model_validator(mode="after")
    def _require_scope_inputs(self) -> "RunConfig":
        if self.scope is ListingScope.ACCOUNT and not self.account:
            raise ValueError("An account is required to list an account's repositories.")
        if self.scope is ListingScope.AUTHENTICATED and not self.secret:
            raise ValueError("A secret is required to list the authenticated user's repositories.")
        return self

    def flat_layout(self) -> bool:
        """True when every listed repository is owned by ``account``."""
        if not self.account:
            return False
        return self.scope is ListingScope.ACCOUNT or self.filter_by_owner

    def secrets(self) -> List[str]:
        return [self.secret] if self.secret else []


def build_config(raw: Mapping[str, Any]) -> RunConfig:
    values: Dict[str, Any] = dict(raw)
    secret_ref = values.pop("secret_ref", None)
    if not values.get("secret"):
        if secret_ref:
            values["secret"] = SecretRef.model_validate(secret_ref).resolve()
        else:
            values["secret"] = os.getenv(SECRET_ENV) or None

    try:
        return RunConfig.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping.")
    return raw


def load_config(path: Path, overrides: Optional[Mapping[str, Any]] = None) -> RunConfig:
    raw = read_config_file(path)
    if overrides:
        raw.update({key: value for key, value in overrides.items() if value is not None})
    return build_config(raw)
