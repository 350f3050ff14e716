"""
Centralized configuration with environment variable overrides.

Session and guest buffer limits, locale settings, and logging are
configurable here. The session timeout is also exposed as a function so
it is re-read on every check and can change without a restart.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT_SECONDS = 1800


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def get_session_timeout_seconds() -> float:
    """Current session timeout, read from the environment on every call."""
    timeout = _safe_float(
        "LENDCHAT_SESSION_TIMEOUT_SECONDS", str(DEFAULT_SESSION_TIMEOUT_SECONDS)
    )
    if timeout <= 0:
        raise ValueError(
            f"LENDCHAT_SESSION_TIMEOUT_SECONDS must be > 0, got {timeout}"
        )
    return timeout


@dataclass(frozen=True)
class SessionConfig:
    """Session tracker capacity settings."""

    timeout_seconds: float = _safe_float(
        "LENDCHAT_SESSION_TIMEOUT_SECONDS", str(DEFAULT_SESSION_TIMEOUT_SECONDS)
    )
    max_entries: int = _safe_int("LENDCHAT_SESSION_MAX_ENTRIES", "10000")


@dataclass(frozen=True)
class GuestBufferConfig:
    """Limits for the in-memory guest conversation buffer."""

    max_conversations: int = _safe_int("LENDCHAT_GUEST_MAX_CONVERSATIONS", "5000")


@dataclass(frozen=True)
class LocaleConfig:
    """User-facing formatting settings."""

    currency_prefix: str = os.getenv("LENDCHAT_CURRENCY_PREFIX", "RD$")
    date_format: str = os.getenv("LENDCHAT_DATE_FORMAT", "%d/%m/%Y")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    session: SessionConfig = field(default_factory=SessionConfig)
    guests: GuestBufferConfig = field(default_factory=GuestBufferConfig)
    locale: LocaleConfig = field(default_factory=LocaleConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "lendchat-agents")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.session.timeout_seconds <= 0:
        raise ValueError(
            "LENDCHAT_SESSION_TIMEOUT_SECONDS must be > 0, "
            f"got {config.session.timeout_seconds}"
        )
    if config.session.max_entries < 1:
        raise ValueError(
            f"LENDCHAT_SESSION_MAX_ENTRIES must be >= 1, got {config.session.max_entries}"
        )
    if config.guests.max_conversations < 1:
        raise ValueError(
            "LENDCHAT_GUEST_MAX_CONVERSATIONS must be >= 1, "
            f"got {config.guests.max_conversations}"
        )
    if not config.locale.currency_prefix.strip():
        raise ValueError("LENDCHAT_CURRENCY_PREFIX must not be empty")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
