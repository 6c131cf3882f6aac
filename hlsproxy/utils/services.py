"""
Construction of the long-lived objects shared by all requests.

One ProxyServices instance is built at startup and kept on
``app.state.services``; routers reach it through the dependency getters
below, which tests can replace with ``app.dependency_overrides``.
"""

from dataclasses import dataclass

from fastapi import Request

from hlsproxy.config.settings import Settings
from hlsproxy.utils.drm.key_deriver import KeyDeriver
from hlsproxy.utils.drm.key_exchange import load_key_exchange
from hlsproxy.utils.http_utils import OriginClient
from hlsproxy.utils.key_store import KeyStore
from hlsproxy.utils.proxy_gateway import ProxyGateway


@dataclass
class ProxyServices:
    settings: Settings
    key_store: KeyStore
    key_deriver: KeyDeriver
    gateway: ProxyGateway


def build_services(settings: Settings) -> ProxyServices:
    key_store = KeyStore()
    origin_client = OriginClient(
        timeout=settings.origin_timeout,
        max_retries=settings.origin_max_retries,
        user_agent=settings.origin_user_agent,
    )
    return ProxyServices(
        settings=settings,
        key_store=key_store,
        key_deriver=KeyDeriver(
            load_key_exchange(settings),
            key_store,
            timeout=settings.key_exchange_timeout,
        ),
        gateway=ProxyGateway(origin_client, key_store, proxy_path=settings.proxy_path),
    )


def get_services(request: Request) -> ProxyServices:
    return request.app.state.services


def get_key_store(request: Request) -> KeyStore:
    return get_services(request).key_store


def get_key_deriver(request: Request) -> KeyDeriver:
    return get_services(request).key_deriver


def get_gateway(request: Request) -> ProxyGateway:
    return get_services(request).gateway
