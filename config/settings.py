"""
Configuration loader for the message queue.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///./message_queue.db"         # postgresql:// | mysql:// | sqlite://
    store_backend: str = "memory"                      # "sql" | "memory" | "file"
    store_file_dir: str = "./data"                     # directory for file backend


@dataclass
class QueueConfig:
    batch_limit: int = 50                   # entries selected per page
    retry_interval: str = "15M"             # delay applied to failed deliveries
    retry_interval_style: str = "H"         # "H" = time-of-day duration, "D" = calendar duration
    fail_after_max_attempts: bool = True    # terminal "failed" once attempts >= max_attempts
    max_pages: int = 1000                   # hard stop for a single processing run


@dataclass
class ContactsConfig:
    type: str = "memory"                    # "rest" | "memory"
    base_url: str = ""
    auth_type: str = "bearer"
    auth_credentials: dict[str, Any] = field(default_factory=dict)
    endpoints: dict[str, str] = field(default_factory=lambda: {
        "bulk_contacts": "/contacts/bulk",
        "bulk_companies": "/contacts/companies",
    })
    timeout: float = 30.0


@dataclass
class Settings:
    app_name: str = "MessageQueue"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "console"             # "console" | "json"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    contacts: ContactsConfig = field(default_factory=ContactsConfig)


_settings: Optional[Settings] = None

_ENV_REF = re.compile(r"\$\{(\w+)\}")

_SECTIONS = {
    "database": DatabaseConfig,
    "queue": QueueConfig,
    "contacts": ContactsConfig,
}


def _expand_env(obj: Any) -> Any:
    """Replace ${VAR} in every string value; unset variables are left as written."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    return obj


def _coerce(value: Any, default: Any) -> Any:
    """Cast a YAML (or env-substituted) value to the type of the field default."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, str):
        return str(value)
    if isinstance(default, dict) and isinstance(value, dict):
        return {**default, **value}
    return value


def _build(cls: type, raw: Optional[dict[str, Any]]) -> Any:
    """Instantiate a settings dataclass from a mapping; unknown keys are ignored."""
    instance = cls()
    for f in fields(cls):
        if raw and raw.get(f.name) is not None and f.name not in _SECTIONS:
            setattr(instance, f.name, _coerce(raw[f.name], getattr(instance, f.name)))
    return instance


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML; a missing file yields the defaults."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "MESSAGE_QUEUE_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    raw: dict[str, Any] = {}
    if Path(config_path).exists():
        with open(config_path) as f:
            raw = _expand_env(yaml.safe_load(f) or {})

    settings = _build(Settings, raw)
    for name, cls in _SECTIONS.items():
        setattr(settings, name, _build(cls, raw.get(name)))

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
