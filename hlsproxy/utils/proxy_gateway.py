"""
Fetch-and-transform pipeline behind the /proxy endpoint.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlsplit

from hlsproxy.errors import DecryptionError
from hlsproxy.utils.drm.segment_decryptor import decrypt_segment, is_cleartext_segment
from hlsproxy.utils.http_utils import DEFAULT_CONTENT_TYPE, OriginClient
from hlsproxy.utils.key_store import KeyStore
from hlsproxy.utils.playlist_rewriter import HLS_MIME_TYPE, PLAYLIST_EXTENSION, SEGMENT_EXTENSION, rewrite_playlist

logger = logging.getLogger(__name__)

TS_MIME_TYPE = "video/mp2t"


@dataclass
class ProxiedResponse:
    content_type: str
    body: bytes
    headers: Dict[str, str] = field(default_factory=lambda: {"Access-Control-Allow-Origin": "*"})


def is_playlist_response(url: str, content_type: str) -> bool:
    return "mpegurl" in content_type.lower() or urlsplit(url).path.lower().endswith(PLAYLIST_EXTENSION)


def is_segment_url(url: str) -> bool:
    return SEGMENT_EXTENSION in urlsplit(url).path.lower()


class ProxyGateway:
    def __init__(self, client: OriginClient, store: KeyStore, proxy_path: str = "/proxy"):
        self.client = client
        self.store = store
        self.proxy_path = proxy_path

    def handle(self, url: str, kid: Optional[str] = None) -> ProxiedResponse:
        """
        Fetch url from its origin and return what the client should receive.

        Raises:
            FetchError: the origin could not be reached or returned an error status.
        """
        origin = self.client.get(url)
        content_type = origin.content_type or DEFAULT_CONTENT_TYPE

        if is_playlist_response(url, content_type):
            text = origin.content.decode("utf-8", errors="replace")
            rewritten = rewrite_playlist(text, url, kid, self.proxy_path)
            logger.info(f"📝 Rewrote playlist {url} (kid={kid})")
            return ProxiedResponse(HLS_MIME_TYPE, rewritten.encode("utf-8"))

        if kid and is_segment_url(url):
            if self.store.has(kid):
                return ProxiedResponse(TS_MIME_TYPE, self._decrypt(origin.content, kid, url))
            logger.debug(f"No key cached for kid {kid}, passing {url} through")

        return ProxiedResponse(content_type, origin.content)

    def _decrypt(self, data: bytes, kid: str, url: str) -> bytes:
        if is_cleartext_segment(data):
            logger.debug(f"Segment already clear: {url}")
            return data
        try:
            return decrypt_segment(data, self.store.get(kid))
        except DecryptionError as e:
            # Keep playback going with the original bytes
            logger.warning(f"⚠️ Decryption failed for {url} (kid={kid}): {e}")
            return data
