"""
Runtime settings for the proxy, read from environment variables.

The launcher loads a .env file (python-dotenv) before this module is used,
so values from either source end up in os.environ.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return val.strip()


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in TRUTHY


def _env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        parsed = float(val)
    except ValueError:
        logger.warning(f"⚠️ Invalid value for {name}: {val!r}, using {default}")
        return default
    if parsed <= 0:
        logger.warning(f"⚠️ {name} must be positive, got {val!r}, using {default}")
        return default
    return parsed


def _env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        parsed = int(val)
    except ValueError:
        logger.warning(f"⚠️ Invalid value for {name}: {val!r}, using {default}")
        return default
    if parsed < 0:
        logger.warning(f"⚠️ {name} must not be negative, got {val!r}, using {default}")
        return default
    return parsed


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 3027
    log_level: str = "info"
    log_to_file: bool = False
    log_file: str = os.path.join(tempfile.gettempdir(), "hlsproxy.log")
    origin_timeout: float = 15.0
    origin_max_retries: int = 0
    origin_user_agent: Optional[str] = None
    key_exchange_backend: Optional[str] = None
    key_exchange_url: Optional[str] = None
    key_exchange_timeout: float = 10.0
    proxy_path: str = "/proxy"

    def public_view(self) -> dict:
        """Settings safe to expose on debug endpoints (no URLs with credentials)."""
        return {
            "HOST": self.host,
            "PORT": self.port,
            "LOG_LEVEL": self.log_level,
            "LOG_TO_FILE": self.log_to_file,
            "ORIGIN_TIMEOUT": self.origin_timeout,
            "ORIGIN_MAX_RETRIES": self.origin_max_retries,
            "KEY_EXCHANGE_BACKEND": self.key_exchange_backend or "Not set",
            "KEY_EXCHANGE_URL": "Set" if self.key_exchange_url else "Not set",
            "KEY_EXCHANGE_TIMEOUT": self.key_exchange_timeout,
            "PROXY_PATH": self.proxy_path,
        }


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    defaults = Settings()
    return Settings(
        host=_env_str("HOST", defaults.host),
        port=_env_int("PORT", defaults.port),
        log_level=_env_str("LOG_LEVEL", defaults.log_level).lower(),
        log_to_file=_env_bool("LOG_TO_FILE", defaults.log_to_file),
        log_file=_env_str("LOG_FILE", defaults.log_file),
        origin_timeout=_env_float("ORIGIN_TIMEOUT", defaults.origin_timeout),
        origin_max_retries=_env_int("ORIGIN_MAX_RETRIES", defaults.origin_max_retries),
        origin_user_agent=_env_str("ORIGIN_USER_AGENT"),
        key_exchange_backend=_env_str("KEY_EXCHANGE_BACKEND"),
        key_exchange_url=_env_str("KEY_EXCHANGE_URL"),
        key_exchange_timeout=_env_float("KEY_EXCHANGE_TIMEOUT", defaults.key_exchange_timeout),
        proxy_path=_env_str("PROXY_PATH", defaults.proxy_path),
    )
