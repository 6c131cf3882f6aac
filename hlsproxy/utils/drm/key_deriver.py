"""
Derive AES-128 segment keys from a play-auth token and key id.

Derived keys are memoized in a KeyStore, so the external key exchange is
called at most once per kid for the life of the process.
"""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from threading import Lock
from typing import Dict, List, Optional

from hlsproxy.errors import DerivationError
from hlsproxy.utils.drm.key_exchange import KeyExchange, extract_clear_keys
from hlsproxy.utils.key_store import KeyStore

logger = logging.getLogger(__name__)

KEY_SIZE = 16


def new_session_id() -> str:
    return f"hlsproxy-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def encode_key(kid: str, key_str: str) -> bytes:
    """Encode the exchange's key string, enforcing the AES-128 key size in bytes."""
    key = key_str.encode("utf-8")
    if len(key) != KEY_SIZE:
        raise DerivationError(
            kid, f"Derived key for kid {kid} is {len(key)} bytes, expected {KEY_SIZE}"
        )
    return key


class KeyDeriver:
    """
    Args:
        exchange: Key exchange backend
        store: KeyStore shared with the proxy gateway
        timeout: Upper bound in seconds for one exchange call; None waits forever.
            A call that overruns is abandoned, but its worker thread keeps
            running until the backend returns, so backends should still
            enforce a timeout of their own.
    """

    def __init__(self, exchange: KeyExchange, store: KeyStore, timeout: Optional[float] = None, max_workers: int = 8):
        self.exchange = exchange
        self.store = store
        self.timeout = timeout
        # kid -> [lock, number of threads holding or waiting for it]
        self._kid_locks: Dict[str, List] = {}
        self._locks_guard = Lock()
        self._executor = None
        if timeout:
            self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="key-exchange")

    @contextmanager
    def _kid_lock(self, kid: str):
        with self._locks_guard:
            entry = self._kid_locks.setdefault(kid, [Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._kid_locks[kid]

    def _call_exchange(self, play_auth: str, kid: str, session_id: str):
        if self._executor is None:
            return self.exchange.derive(play_auth, kid, session_id)

        future = self._executor.submit(self.exchange.derive, play_auth, kid, session_id)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.error(f"⏰ Key exchange timed out after {self.timeout}s for kid {kid}")
            raise DerivationError(kid, f"Key exchange timed out after {self.timeout}s for kid {kid}") from None

    def derive_key(self, play_auth: str, kid: str) -> bytes:
        """
        Return the key for kid, calling the key exchange only on a cache miss.

        Concurrent calls for the same uncached kid wait on a per-kid lock so
        only one of them reaches the exchange.

        Raises:
            DerivationError: the exchange failed, timed out or returned no usable key for kid.
        """
        if self.store.has(kid):
            return self.store.get(kid)

        with self._kid_lock(kid):
            if self.store.has(kid):
                return self.store.get(kid)

            session_id = new_session_id()
            logger.info(f"🔑 Deriving key for kid {kid} (session {session_id})")
            try:
                result = self._call_exchange(play_auth, kid, session_id)
            except DerivationError:
                raise
            except Exception as e:
                logger.error(f"❌ Key exchange failed for kid {kid}: {e}")
                raise DerivationError(kid, f"Failed to derive key for kid {kid}: {e}") from e

            try:
                key_str = extract_clear_keys(result).get(kid)
            except ValueError:
                key_str = None
            if not key_str or not isinstance(key_str, str):
                logger.warning(f"⚠️ Key exchange returned no key for kid {kid}")
                raise DerivationError(kid)

            key = encode_key(kid, key_str)
            self.store.set(kid, key)
            logger.info(f"✅ Key cached for kid {kid}")
            return key
