from __future__ import annotations

import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

ENV_CONFIG_PATH = "DVB_CONFIG"

# Environment variable -> (section, field). A section of None means top level.
# When two variables feed the same field the later entry wins.
ENV_FIELDS = {
    "DVB_BACKUP_PATHS": (None, "destinations"),
    "DVB_RETENTION_POLICY_ENABLED": ("retention", "enabled"),
    "DVB_RETENTION_POLICY_LENGTH": ("retention", "max_age"),
    "DVB_RETENTION_POLICY_MINIMUM_VOLUME_COUNT": ("retention", "min_count"),
    "DVB_DISCORD_DVBBOT_WEBHOOK_URL": (None, "webhook_url"),
    "DVB_WEBHOOK_URL": (None, "webhook_url"),
    "DVB_WORKER_INTERVAL_IN_MS": (None, "interval_ms"),
    "DVB_DOCKER_BINARY": (None, "docker_binary"),
    "DVB_ARCHIVER_IMAGE": (None, "archiver_image"),
    "LOG_LEVEL": (None, "log_level"),
}

_TIMESPAN_RE = re.compile(
    r"^(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$"
)
_DAYS_RE = re.compile(r"^\d+$")
_SUFFIXED_RE = re.compile(r"^(?P<amount>\d+)\s*(?P<unit>[smhdw])$", re.IGNORECASE)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


class ConfigurationError(Exception):
    """Raised when the volume backup configuration is missing or invalid."""


def parse_duration(value: Any) -> Any:
    """Translate TimeSpan style (``7``, ``d.h:m:s.fffffff``) and ``7d`` style values into a timedelta.

    A bare integer counts days. Anything else is returned untouched so
    pydantic can apply its own timedelta parsing (ISO 8601).
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return timedelta(days=value)
    if not isinstance(value, str):
        return value
    text = value.strip()
    if _DAYS_RE.match(text):
        return timedelta(days=int(text))
    match = _TIMESPAN_RE.match(text)
    if match:
        parts = match.groupdict()
        fraction = parts.pop("fraction") or ""
        delta = timedelta(**{key: int(val) for key, val in parts.items() if val})
        return delta + timedelta(microseconds=int(fraction.ljust(6, "0")[:6]))
    match = _SUFFIXED_RE.match(text)
    if match:
        seconds = int(match.group("amount")) * _UNIT_SECONDS[match.group("unit").lower()]
        return timedelta(seconds=seconds)
    return text


# --- Retention ---------------------------------------------------------------


class RetentionPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool
    max_age: timedelta
    min_count: int = Field(ge=0, description="Newest archives always kept per destination.")

    @field_validator("max_age", mode="before")
    @classmethod
    def _parse_max_age(cls, value: Any) -> Any:
        return parse_duration(value)

    @field_validator("max_age")
    @classmethod
    def _require_positive_age(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("Retention max age must be positive.")
        return value


# --- Service configuration ---------------------------------------------------


class BackupConfig(BaseModel):
    destinations: List[Path]
    retention: RetentionPolicy
    webhook_url: str
    interval_ms: int = Field(gt=0)
    docker_binary: str = "docker"
    archiver_image: str = "alpine"
    log_level: str = "INFO"

    @field_validator("destinations", mode="before")
    @classmethod
    def _split_destinations(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @field_validator("destinations")
    @classmethod
    def _require_destinations(cls, value: List[Path]) -> List[Path]:
        if not value:
            raise ValueError("At least one backup destination must be configured.")
        return [path.expanduser() for path in value]

    @field_validator("webhook_url")
    @classmethod
    def _validate_webhook(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Webhook URL must be http(s): '{value}'")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping.")
    return raw


def _overlay_environment(raw: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    merged = dict(raw)
    retention = dict(merged.get("retention") or {})
    for env_name, (section, field_name) in ENV_FIELDS.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        if section == "retention":
            retention[field_name] = value
        else:
            merged[field_name] = value
    if retention:
        merged["retention"] = retention
    return merged


def _describe(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "config"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> BackupConfig:
    """Build the service configuration from an optional YAML file and the environment.

    Environment variables win over the file. Missing or unparsable required
    values raise :class:`ConfigurationError`.
    """
    environ = os.environ if environ is None else environ
    raw = _read_yaml(path) if path else {}
    merged = _overlay_environment(raw, environ)

    try:
        return BackupConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(_describe(exc)) from exc
