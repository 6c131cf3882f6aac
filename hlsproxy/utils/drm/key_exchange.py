"""
Key-exchange backends.

The DRM secret-key exchange is a third-party algorithm; the proxy only needs
something with a ``derive(secret_key, kid, session_id)`` method that returns
the ``clearKeys`` map (kid -> key string). Backends are either loaded from an
import path (KEY_EXCHANGE_BACKEND) or reached over HTTP (KEY_EXCHANGE_URL).
"""

import importlib
import inspect
import logging
from typing import Any, Mapping, Optional, Protocol

from hlsproxy.config.settings import Settings
from hlsproxy.errors import DerivationError, FetchError
from hlsproxy.utils.http_utils import OriginClient

logger = logging.getLogger(__name__)

DRM_TYPE = "private_encrypt"


class KeyExchange(Protocol):
    def derive(self, secret_key: str, kid: str, session_id: str) -> Mapping[str, str]:
        ...


def extract_clear_keys(result: Any) -> Mapping[str, str]:
    """Accept either {"clearKeys": {...}} or a bare kid -> key map."""
    if isinstance(result, Mapping):
        clear_keys = result.get("clearKeys", result)
        if isinstance(clear_keys, Mapping):
            return clear_keys
    raise ValueError(f"Unexpected key exchange response: {type(result).__name__}")


class HTTPKeyExchange:
    """Talks to a key-exchange service that accepts the session as JSON."""

    def __init__(self, url: str, timeout: float = 10, client: Optional[OriginClient] = None):
        self.url = url
        self.timeout = timeout
        self.client = client or OriginClient(timeout=timeout)

    def derive(self, secret_key: str, kid: str, session_id: str) -> Mapping[str, str]:
        payload = {
            "secretKey": secret_key,
            "kid": kid,
            "sessionId": session_id,
            "drmType": DRM_TYPE,
            "vid": "",
            "useUnionInfoDRM": False,
        }
        result = self.client.post_json(self.url, payload, timeout=self.timeout)
        try:
            return extract_clear_keys(result)
        except ValueError as e:
            raise FetchError(str(e)) from None


class UnavailableKeyExchange:
    """Stand-in used when no backend is configured or it failed to load."""

    def __init__(self, reason: str = "no key exchange backend configured"):
        self.reason = reason

    def derive(self, secret_key: str, kid: str, session_id: str) -> Mapping[str, str]:
        raise DerivationError(kid, f"Key exchange not available: {self.reason}")


def import_backend(path: str) -> KeyExchange:
    """Import ``package.module:attribute``; classes and factories are called."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ImportError(f"Expected 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    backend = getattr(module, attr)
    if inspect.isclass(backend) or (callable(backend) and not hasattr(backend, "derive")):
        backend = backend()
    if not callable(getattr(backend, "derive", None)):
        raise ImportError(f"{path} does not provide a derive() method")
    return backend


def load_key_exchange(settings: Settings) -> KeyExchange:
    if settings.key_exchange_backend:
        try:
            backend = import_backend(settings.key_exchange_backend)
            logger.info(f"✅ Key exchange backend loaded: {settings.key_exchange_backend}")
            return backend
        except Exception as e:
            logger.error(f"❌ Key exchange backend {settings.key_exchange_backend} failed to load: {e}")
            return UnavailableKeyExchange(f"backend {settings.key_exchange_backend} failed to load")

    if settings.key_exchange_url:
        logger.info("✅ Using HTTP key exchange service")
        return HTTPKeyExchange(settings.key_exchange_url, timeout=settings.key_exchange_timeout)

    logger.warning("⚠️ No key exchange configured; /derive-key will fail until one is set")
    return UnavailableKeyExchange()
