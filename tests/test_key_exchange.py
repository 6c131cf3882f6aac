import sys
import types

import pytest
import requests

from hlsproxy.config.settings import Settings
from hlsproxy.errors import DerivationError, FetchError
from hlsproxy.utils.drm.key_exchange import (
    HTTPKeyExchange,
    UnavailableKeyExchange,
    extract_clear_keys,
    import_backend,
    load_key_exchange,
)

EXCHANGE_URL = "https://drm.example.com/derive"


class TestExtractClearKeys:
    def test_wrapped(self):
        assert extract_clear_keys({"clearKeys": {"k": "v"}}) == {"k": "v"}

    def test_bare_map(self):
        assert extract_clear_keys({"k": "v"}) == {"k": "v"}

    def test_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            extract_clear_keys(["k", "v"])


class TestHTTPKeyExchange:
    def test_posts_session_and_returns_clear_keys(self, requests_mock):
        requests_mock.post(EXCHANGE_URL, json={"clearKeys": {"kid-1": "0123456789abcdef"}})

        result = HTTPKeyExchange(EXCHANGE_URL).derive("auth", "kid-1", "session-1")

        assert result == {"kid-1": "0123456789abcdef"}
        sent = requests_mock.last_request.json()
        assert sent["secretKey"] == "auth"
        assert sent["kid"] == "kid-1"
        assert sent["sessionId"] == "session-1"
        assert sent["drmType"] == "private_encrypt"

    def test_error_status(self, requests_mock):
        requests_mock.post(EXCHANGE_URL, status_code=500)
        with pytest.raises(FetchError):
            HTTPKeyExchange(EXCHANGE_URL).derive("auth", "kid-1", "s")

    def test_connection_error(self, requests_mock):
        requests_mock.post(EXCHANGE_URL, exc=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(FetchError):
            HTTPKeyExchange(EXCHANGE_URL).derive("auth", "kid-1", "s")

    def test_non_json_body(self, requests_mock):
        requests_mock.post(EXCHANGE_URL, text="<html>oops</html>")
        with pytest.raises(FetchError):
            HTTPKeyExchange(EXCHANGE_URL).derive("auth", "kid-1", "s")

    def test_malformed_json(self, requests_mock):
        requests_mock.post(EXCHANGE_URL, json={"clearKeys": "nope"})
        with pytest.raises(FetchError):
            HTTPKeyExchange(EXCHANGE_URL).derive("auth", "kid-1", "s")


class StaticExchange:
    def derive(self, secret_key, kid, session_id):
        return {kid: "0123456789abcdef"}


@pytest.fixture
def backend_module(monkeypatch):
    module = types.ModuleType("fake_drm_backend")
    module.StaticExchange = StaticExchange
    module.instance = StaticExchange()
    module.factory = lambda: StaticExchange()
    module.not_a_backend = object()
    monkeypatch.setitem(sys.modules, "fake_drm_backend", module)
    return module


class TestLoadKeyExchange:
    def test_import_class(self, backend_module):
        assert isinstance(import_backend("fake_drm_backend:StaticExchange"), StaticExchange)

    def test_import_instance(self, backend_module):
        assert import_backend("fake_drm_backend:instance") is backend_module.instance

    def test_import_factory(self, backend_module):
        assert isinstance(import_backend("fake_drm_backend:factory"), StaticExchange)

    def test_import_rejects_bad_path(self):
        with pytest.raises(ImportError):
            import_backend("no_colon_here")

    def test_import_rejects_object_without_derive(self, backend_module):
        with pytest.raises(ImportError):
            import_backend("fake_drm_backend:not_a_backend")

    def test_backend_takes_priority(self, backend_module):
        settings = Settings(key_exchange_backend="fake_drm_backend:StaticExchange", key_exchange_url=EXCHANGE_URL)
        assert isinstance(load_key_exchange(settings), StaticExchange)

    def test_broken_backend_degrades_to_unavailable(self):
        exchange = load_key_exchange(Settings(key_exchange_backend="does.not.exist:Thing"))
        assert isinstance(exchange, UnavailableKeyExchange)
        with pytest.raises(DerivationError):
            exchange.derive("auth", "kid-1", "s")

    def test_http_when_url_set(self):
        exchange = load_key_exchange(Settings(key_exchange_url=EXCHANGE_URL, key_exchange_timeout=3))
        assert isinstance(exchange, HTTPKeyExchange)
        assert exchange.timeout == 3

    def test_unavailable_by_default(self):
        assert isinstance(load_key_exchange(Settings()), UnavailableKeyExchange)
