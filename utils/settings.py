"""Application settings and server-side credential configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterable, Mapping, Optional

from dotenv import load_dotenv

from models.figure import Figure

load_dotenv()  # Load environment variables from .env file if present

DEVELOPMENT_ENVS = {"dev", "development", "local"}

TRANSPORT_ELEVENLABS_CONVERSATION = "elevenlabs-conversation"
TRANSPORT_ELEVENLABS_AGENT_AUDIO = "elevenlabs-agent-audio"
TRANSPORT_OPENAI = "openai"
TRANSPORT_SCRIPTED = "scripted"
TRANSPORTS = {
    TRANSPORT_ELEVENLABS_CONVERSATION,
    TRANSPORT_ELEVENLABS_AGENT_AUDIO,
    TRANSPORT_OPENAI,
    TRANSPORT_SCRIPTED,
}


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_number(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name}={raw!r} is not a number") from exc


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Every field can be overridden by keyword for tests; otherwise values are
    read when the instance is created.
    """

    app_env: str = field(default_factory=lambda: _env("APP_ENV", "development"))
    elevenlabs_api_key: Optional[str] = field(default_factory=lambda: _env("ELEVENLABS_API_KEY"))
    elevenlabs_base_url: str = field(
        default_factory=lambda: _env("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io")
    )
    openai_api_key: Optional[str] = field(default_factory=lambda: _env("OPENAI_API_KEY"))
    openai_chat_model: str = field(default_factory=lambda: _env("OPENAI_CHAT_MODEL", "gpt-4o-mini"))
    openai_tts_model: str = field(default_factory=lambda: _env("OPENAI_TTS_MODEL", "gpt-4o-mini-tts"))
    voice_transport: Optional[str] = field(default_factory=lambda: _env("VOICE_TRANSPORT"))
    database_dir: Optional[str] = field(default_factory=lambda: _env("DATABASE_DIR"))
    rate_limit_requests: int = field(default_factory=lambda: int(_env_number("RATE_LIMIT_REQUESTS", 60)))
    rate_limit_window_seconds: float = field(
        default_factory=lambda: _env_number("RATE_LIMIT_WINDOW_SECONDS", 60.0)
    )
    session_close_timeout_seconds: float = field(
        default_factory=lambda: _env_number("SESSION_CLOSE_TIMEOUT_SECONDS", 3.0)
    )
    credential_ttl_seconds: float = 300.0

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in DEVELOPMENT_ENVS

    def resolved_transport(self) -> str:
        """Return the configured transport name, picking one from the keys present."""
        if self.voice_transport:
            name = self.voice_transport.lower()
            if name not in TRANSPORTS:
                raise ConfigurationError(
                    f"VOICE_TRANSPORT={self.voice_transport!r} must be one of {sorted(TRANSPORTS)}"
                )
            return name
        if self.elevenlabs_api_key:
            return TRANSPORT_ELEVENLABS_AGENT_AUDIO
        if self.openai_api_key:
            return TRANSPORT_OPENAI
        return TRANSPORT_SCRIPTED

    def requires_agent_keys(self) -> bool:
        """Agent keys are mandatory whenever ElevenLabs is reachable."""
        return bool(self.elevenlabs_api_key) or self.resolved_transport().startswith("elevenlabs")


def agent_key_env_name(figure_id: str) -> str:
    return f"AGENT_KEY_{figure_id.upper()}"


def load_agent_keys(
    figures: Iterable[Figure],
    environ: Optional[Mapping[str, str]] = None,
    *,
    required: bool = True,
) -> Dict[str, str]:
    """Read the figure id -> agent key map from ``AGENT_KEY_<ID>`` variables.

    Args:
        figures: Catalog whose every entry needs a credential.
        environ: Mapping to read from (defaults to ``os.environ``).
        required: When True, any missing key aborts startup.

    Returns:
        Mapping of figure id to agent key for the figures that have one.

    Raises:
        ConfigurationError: If ``required`` and any figure has no key.
    """
    source = os.environ if environ is None else environ
    keys: Dict[str, str] = {}
    missing = []
    for figure in figures:
        name = agent_key_env_name(figure.id)
        value = (source.get(name) or "").strip()
        if value:
            keys[figure.id] = value
        else:
            missing.append(name)
    if required and missing:
        raise ConfigurationError(
            "Missing agent credentials for figures; set " + ", ".join(missing)
        )
    return keys


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
