# agents/address_agent/config.py
import os
from dotenv import load_dotenv

load_dotenv()

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o").strip()

DEFAULT_CONCURRENCY = 8
DEFAULT_DELIVERY_TIMEOUT = 30


class ConfigurationError(RuntimeError):
    """A required environment value is missing."""


def require(name: str) -> str:
    """Read a required setting at call time so only the dependent operation fails."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(f"Missing required configuration value: {name}")
    return value


def optional(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return value


def verify_concurrency() -> int:
    return _positive_int("ADDRESS_VERIFY_CONCURRENCY", DEFAULT_CONCURRENCY)


def delivery_timeout() -> int:
    return _positive_int("DELIVERY_TIMEOUT", DEFAULT_DELIVERY_TIMEOUT)
