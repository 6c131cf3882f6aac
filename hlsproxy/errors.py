"""
Exception types raised by the proxy.

Each error that can reach a client carries the HTTP status it maps to.
"""

from typing import Optional


class ProxyError(Exception):
    status_code = 500


class ParameterError(ProxyError):
    status_code = 400


class FetchError(ProxyError):
    """Origin or key-exchange request failed (network, timeout, bad status)."""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class DerivationError(ProxyError):
    status_code = 500

    def __init__(self, kid: str, message: Optional[str] = None):
        super().__init__(message or f"Failed to derive key for kid {kid}")
        self.kid = kid


class DecryptionError(ProxyError):
    pass


class KeyNotFoundError(ProxyError, KeyError):
    status_code = 404

    def __init__(self, kid: str):
        super().__init__(f"No key cached for kid {kid}")
        self.kid = kid

    def __str__(self):
        return self.args[0]
