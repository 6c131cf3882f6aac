"""
AES-128-CBC decryption of transport-stream segments.

Segments are encrypted with a fixed all-zero IV rather than the
media-sequence IV of standard HLS AES-128.
"""

from Crypto.Cipher import AES
from Crypto.Util.Padding import unpad

from hlsproxy.errors import DecryptionError

TS_SYNC_BYTE = 0x47
ZERO_IV = bytes(AES.block_size)


def is_cleartext_segment(data: bytes) -> bool:
    """True when data already starts with the MPEG-TS sync byte."""
    return len(data) > 0 and data[0] == TS_SYNC_BYTE


def decrypt_segment(data: bytes, key: bytes) -> bytes:
    if len(key) != 16:
        raise DecryptionError(f"AES-128 key must be 16 bytes, got {len(key)}")
    if not data or len(data) % AES.block_size:
        raise DecryptionError(f"Ciphertext length {len(data)} is not a positive multiple of {AES.block_size}")

    cipher = AES.new(key, AES.MODE_CBC, iv=ZERO_IV)
    try:
        return unpad(cipher.decrypt(data), AES.block_size)
    except ValueError as e:
        raise DecryptionError(f"Invalid padding: {e}") from e
