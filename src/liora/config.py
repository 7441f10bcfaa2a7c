"""Runtime settings, read once from the environment (and .env)."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_AGENT_ID = "liora-generator-coral-agent"
DEFAULT_TIMEOUT_MS = 30000

# Field name -> environment variable
ENV_VARS = {
    "fal_key": "FAL_KEY",
    "notion_api_token": "NOTION_API_TOKEN",
    "notion_best_practices_db_id": "NOTION_BEST_PRACTICES_DB_ID",
    "coral_api_url": "CORAL_API_URL",
    "coral_session_id": "CORAL_SESSION_ID",
    "coral_sse_url": "CORAL_SSE_URL",
    "coral_agent_id": "CORAL_AGENT_ID",
    "timeout_ms": "TIMEOUT_MS",
    "offline": "LIORA_OFFLINE",
}

_TRUTHY = {"1", "true", "yes", "on"}


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    # Unedited .env.example placeholders count as unset
    if not value or value.upper().startswith("TODO"):
        return None
    return value


@dataclass(frozen=True)
class Settings:
    fal_key: Optional[str] = None
    notion_api_token: Optional[str] = None
    notion_best_practices_db_id: Optional[str] = None
    coral_api_url: Optional[str] = None
    coral_session_id: Optional[str] = None
    coral_sse_url: Optional[str] = None
    coral_agent_id: str = DEFAULT_AGENT_ID
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    offline: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "Settings":
        """Build settings from environ (default: os.environ after loading .env)."""
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        values = {name: _clean(environ.get(var)) for name, var in ENV_VARS.items()}

        timeout = values.pop("timeout_ms")
        try:
            timeout_ms = int(timeout) if timeout else DEFAULT_TIMEOUT_MS
        except ValueError:
            raise ConfigurationError(invalid=[ENV_VARS["timeout_ms"]]) from None

        offline = (values.pop("offline") or "").lower() in _TRUTHY
        agent_id = values.pop("coral_agent_id") or DEFAULT_AGENT_ID

        return cls(coral_agent_id=agent_id, timeout_ms=timeout_ms, offline=offline, **values)

    def require(self, *names: str) -> None:
        """Raise ConfigurationError naming every env var behind an unset field."""
        known = {f.name for f in fields(self)}
        missing = []
        for name in names:
            if name not in known:
                raise AttributeError(f"Unknown setting: {name}")
            if not getattr(self, name):
                missing.append(ENV_VARS[name])
        if missing:
            raise ConfigurationError(missing)

    @property
    def timeout(self) -> float:
        """Timeout in seconds, as requests expects it."""
        return self.timeout_ms / 1000.0
