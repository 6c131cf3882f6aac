"""
HLS playlist rewriting.

Key directives are dropped (segments are decrypted by the proxy) and every
segment or child playlist reference is pointed back at the proxy endpoint,
carrying the key id along so segments can be decrypted on the way through.
"""

import re
from enum import Enum
from typing import Optional
from urllib.parse import quote, urljoin, urlsplit

HLS_MIME_TYPE = "application/vnd.apple.mpegurl"
KEY_DIRECTIVE = "#EXT-X-KEY:"
SEGMENT_EXTENSION = ".ts"
PLAYLIST_EXTENSION = ".m3u8"

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_LINE_BREAK_RE = re.compile(r"(\r\n|\r|\n)")


class LineKind(Enum):
    KEY_DIRECTIVE = "key_directive"
    DIRECTIVE = "directive"
    SEGMENT = "segment"
    PLAYLIST = "playlist"
    OTHER = "other"


def classify_line(line: str) -> LineKind:
    stripped = line.strip()
    if not stripped:
        return LineKind.OTHER
    if stripped.startswith("#"):
        if stripped.startswith(KEY_DIRECTIVE):
            return LineKind.KEY_DIRECTIVE
        return LineKind.DIRECTIVE

    path = urlsplit(stripped).path.lower()
    if path.endswith(PLAYLIST_EXTENSION):
        return LineKind.PLAYLIST
    if path.endswith(SEGMENT_EXTENSION):
        return LineKind.SEGMENT
    return LineKind.OTHER


def base_directory(fetch_url: str) -> str:
    """fetch_url without query/fragment, cut after its last '/'."""
    parts = urlsplit(fetch_url)
    without_query = parts._replace(query="", fragment="").geturl()
    return without_query[: without_query.rfind("/") + 1]


def resolve_reference(reference: str, fetch_url: str) -> str:
    if _SCHEME_RE.match(reference):
        return reference
    if reference.startswith("/"):
        return urljoin(fetch_url, reference)
    return base_directory(fetch_url) + reference


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_proxy_url(target_url: str, kid: Optional[str] = None, proxy_path: str = "/proxy") -> str:
    proxy_url = f"{proxy_path}?url={encode_uri_component(target_url)}"
    if kid:
        proxy_url += f"&kid={encode_uri_component(kid)}"
    return proxy_url


def _iter_lines(text: str):
    """Yield (body, ending) pairs, splitting on CRLF, CR and LF only.

    Characters such as U+2028 or form feed stay inside the line they appear in.
    """
    parts = _LINE_BREAK_RE.split(text)
    for i in range(0, len(parts), 2):
        body = parts[i]
        ending = parts[i + 1] if i + 1 < len(parts) else ""
        if body or ending:
            yield body, ending


def rewrite_playlist(text: str, fetch_url: str, kid: Optional[str] = None, proxy_path: str = "/proxy") -> str:
    """
    Rewrite a manifest so that all media flows through the proxy.

    Args:
        text: Raw manifest text
        fetch_url: URL the manifest was fetched from, used to resolve relative references
        kid: Optional key id appended to every rewritten URL
        proxy_path: Path of the proxy endpoint

    Returns:
        The rewritten manifest text, line order and line endings preserved
    """
    out = []
    for body, ending in _iter_lines(text):
        kind = classify_line(body)

        if kind is LineKind.KEY_DIRECTIVE:
            continue
        if kind in (LineKind.SEGMENT, LineKind.PLAYLIST):
            target = resolve_reference(body.strip(), fetch_url)
            body = build_proxy_url(target, kid, proxy_path)
        out.append(body + ending)
    return "".join(out)
