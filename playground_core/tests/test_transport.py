import asyncio

import httpx
import pytest

from playground_core.domain.exceptions import (
    ApiError,
    AuthError,
    MalformedResponseError,
    RateLimitError,
    ServerError,
    TransportError,
)
from playground_core.providers.transport import HttpxTransport


class Resp:
    def __init__(self, status_code, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


def install_client(monkeypatch, response=None, error=None, calls=None):
    class Client:
        def __init__(self, *a, **kw):
            self.kwargs = kw

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def request(self, method, url, json=None, headers=None):
            if calls is not None:
                calls.append({"method": method, "url": url, "json": json, "headers": headers})
            if error is not None:
                raise error
            return response

    monkeypatch.setattr("httpx.AsyncClient", Client)


def test_send_json_returns_payload(monkeypatch):
    calls = []
    install_client(monkeypatch, response=Resp(200, {"ok": True}), calls=calls)
    data = asyncio.run(HttpxTransport(timeout=1.0).send_json("https://x/chat", {"A": "b"}, {"model": "m"}))
    assert data == {"ok": True}
    assert calls == [{"method": "POST", "url": "https://x/chat", "json": {"model": "m"}, "headers": {"A": "b"}}]


def test_get_json_uses_get(monkeypatch):
    calls = []
    install_client(monkeypatch, response=Resp(200, {"data": []}), calls=calls)
    asyncio.run(HttpxTransport().get_json("https://x/models", {}))
    assert calls[0]["method"] == "GET"
    assert calls[0]["json"] is None


@pytest.mark.parametrize(
    "status, text, error_cls",
    [
        (429, "slow down", RateLimitError),
        (401, "bad key", AuthError),
        (403, "forbidden", AuthError),
        (400, '{"error": {"details": [{"reason": "API_KEY_INVALID"}]}}', AuthError),
        (400, "bad request", ApiError),
        (404, "missing", ApiError),
        (500, "boom", ServerError),
        (503, "unavailable", ServerError),
    ],
)
def test_status_mapping(monkeypatch, status, text, error_cls):
    install_client(monkeypatch, response=Resp(status, text=text))
    with pytest.raises(error_cls) as exc:
        asyncio.run(HttpxTransport().send_json("https://x", {}, {}))
    assert exc.value.http_status == status


def test_retryable_flags_follow_status():
    assert RateLimitError(code="x", message="").retryable
    assert ServerError(code="x", message="").retryable
    assert TransportError(code="x", message="").retryable
    assert not AuthError(code="x", message="").retryable
    assert not ApiError(code="x", message="").retryable


def test_network_error_mapped(monkeypatch):
    install_client(monkeypatch, error=httpx.ConnectError("refused"))
    with pytest.raises(TransportError) as exc:
        asyncio.run(HttpxTransport().send_json("https://x", {}, {}))
    assert exc.value.code == "NETWORK_ERROR"


def test_timeout_mapped(monkeypatch):
    install_client(monkeypatch, error=httpx.ReadTimeout("too slow"))
    with pytest.raises(TransportError) as exc:
        asyncio.run(HttpxTransport().send_json("https://x", {}, {}))
    assert exc.value.code == "TIMEOUT"


def test_invalid_json_body(monkeypatch):
    install_client(monkeypatch, response=Resp(200, None, text="<html>"))
    with pytest.raises(MalformedResponseError):
        asyncio.run(HttpxTransport().send_json("https://x", {}, {}))
