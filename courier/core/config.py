"""
Courier configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (COURIER_*)
3. Project config (./courier.toml)
4. User config (~/.courier/config.toml)
5. Defaults (hardcoded)

Environment variable mapping (see _ENV_MAPPING for the full list):
    COURIER_BACKEND_URL      → backend.url
    COURIER_BACKEND_ANON_KEY → backend.anon_key
    COURIER_USER_ID          → user.id
    COURIER_POLL_INTERVAL    → scheduler.poll_interval
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, Field

from courier.core.errors import ConfigError

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BackendConfig(BaseModel):
    """Managed backend (REST tables, edge functions, realtime)."""

    url: str = "http://localhost:54321"
    anon_key: str = ""
    access_token: str = ""
    timeout: float = 10.0


class UserConfig(BaseModel):
    """The signed-in user the pipeline runs for."""

    id: str = ""


class RealtimeConfig(BaseModel):
    """Realtime fallback channel."""

    enabled: bool = True
    url: str = ""  # derived from backend.url when empty
    max_reconnect_attempts: int = 5
    base_delay: float = 1.0  # seconds, doubled per attempt
    max_delay: float | None = None


class PushConfig(BaseModel):
    """Push subscription and relay settings."""

    vapid_public_key: str = ""
    relay_function: str = "send-push-notification"
    # Subscription handed out by the headless platform's push registrar
    endpoint: str = ""
    p256dh: str = ""
    auth: str = ""
    rate_limit: int = 60
    rate_window: float = 60.0


class SchedulerConfig(BaseModel):
    """Notification scheduler configuration."""

    poll_interval: float = 60.0  # seconds


class PlatformConfig(BaseModel):
    """Feature flags for the headless platform."""

    push_supported: bool = True
    realtime_supported: bool = True
    notification_permission: Literal["granted", "denied", "default"] = "default"
    grant_on_request: bool = True


class StoreConfig(BaseModel):
    """Local counter storage (rate limiter windows)."""

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "~/.courier/counters.db"


class LoggingConfig(BaseModel):
    """Log file location and console verbosity."""

    dir: str = "~/.courier/logs"
    console_level: str = "WARNING"
    log_events: bool = True


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class CourierConfig(BaseModel):
    """Root configuration for Courier."""

    backend: BackendConfig = Field(default_factory=BackendConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> CourierConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        merged: dict[str, Any] = {}

        user_config_path = user_path or Path.home() / ".courier" / "config.toml"
        if user_config_path.exists():
            _deep_merge(merged, _load_toml(user_config_path))

        project_config_path = project_path or Path.cwd() / "courier.toml"
        if project_config_path.exists():
            _deep_merge(merged, _load_toml(project_config_path))

        _deep_merge(merged, _load_from_env())

        if overrides:
            _deep_merge(merged, overrides)

        _substitute_env_vars(merged)

        try:
            return CourierConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def realtime_url(self) -> str:
        """
        Websocket URL of the realtime endpoint.

        An explicit realtime.url wins; otherwise it is derived from
        backend.url (http→ws, https→wss) with the anon key as apikey.
        """
        if self.realtime.url:
            return self.realtime.url
        parts = urlsplit(self.backend.url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        query = urlencode({"apikey": self.backend.anon_key, "vsn": "1.0.0"})
        path = parts.path.rstrip("/") + "/realtime/v1/websocket"
        return urlunsplit((scheme, parts.netloc, path, query, ""))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_ENV_MAPPING: dict[str, tuple[str, str]] = {
    "COURIER_BACKEND_URL": ("backend", "url"),
    "COURIER_BACKEND_ANON_KEY": ("backend", "anon_key"),
    "COURIER_BACKEND_ACCESS_TOKEN": ("backend", "access_token"),
    "COURIER_USER_ID": ("user", "id"),
    "COURIER_REALTIME_URL": ("realtime", "url"),
    "COURIER_REALTIME_ENABLED": ("realtime", "enabled"),
    "COURIER_VAPID_PUBLIC_KEY": ("push", "vapid_public_key"),
    "COURIER_POLL_INTERVAL": ("scheduler", "poll_interval"),
    "COURIER_NOTIFICATION_PERMISSION": ("platform", "notification_permission"),
    "COURIER_LOG_LEVEL": ("logging", "console_level"),
}

# Values that must stay strings even when they look numeric
_STRING_KEYS = {("user", "id"), ("backend", "anon_key"), ("backend", "access_token")}


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _load_from_env() -> dict[str, Any]:
    """Load configuration from COURIER_* environment variables."""
    result: dict[str, Any] = {}
    for env_var, (section, key) in _ENV_MAPPING.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        if (section, key) in _STRING_KEYS:
            result.setdefault(section, {})[key] = value
        else:
            result.setdefault(section, {})[key] = _convert_value(value)
    return result


def _convert_value(value: str) -> Any:
    """Convert string value to appropriate type."""
    if value.lower() in ("true", "yes", "1"):
        return True
    if value.lower() in ("false", "no", "0"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute(value: str) -> str:
    for var_name in _ENV_PATTERN.findall(value):
        value = value.replace(f"${{{var_name}}}", os.environ.get(var_name, ""))
    return value


def _substitute_env_vars(data: dict) -> None:
    """Recursively substitute ${ENV_VAR} patterns in string values."""
    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _substitute(value)
        elif isinstance(value, list):
            data[key] = [_substitute(v) if isinstance(v, str) else v for v in value]
