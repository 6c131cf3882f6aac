"""
DRM utilities package.
Consolidates key exchange backends, key derivation and segment decryption.
"""

from hlsproxy.utils.drm.key_deriver import KeyDeriver
from hlsproxy.utils.drm.key_exchange import (
    HTTPKeyExchange,
    KeyExchange,
    UnavailableKeyExchange,
    load_key_exchange,
)
from hlsproxy.utils.drm.segment_decryptor import decrypt_segment, is_cleartext_segment

__all__ = [
    'KeyDeriver',
    'KeyExchange',
    'HTTPKeyExchange',
    'UnavailableKeyExchange',
    'load_key_exchange',
    'decrypt_segment',
    'is_cleartext_segment',
]
