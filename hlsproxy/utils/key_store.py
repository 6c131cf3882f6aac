from threading import Lock
from typing import Dict

from hlsproxy.errors import KeyNotFoundError


class KeyStore:
    """
    Thread-safe in-memory map of key id -> derived AES-128 key.

    Entries live for the lifetime of the process: there is no TTL and no
    eviction. Writing an existing kid overwrites it (last write wins).
    """

    def __init__(self):
        self._keys: Dict[str, bytes] = {}
        self._lock = Lock()

    def has(self, kid: str) -> bool:
        with self._lock:
            return kid in self._keys

    def get(self, kid: str) -> bytes:
        """Return the key for kid, raising KeyNotFoundError if absent."""
        with self._lock:
            try:
                return self._keys[kid]
            except KeyError:
                raise KeyNotFoundError(kid) from None

    def set(self, kid: str, key: bytes) -> None:
        with self._lock:
            self._keys[kid] = bytes(key)

    def __contains__(self, kid: str) -> bool:
        return self.has(kid)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
