from __future__ import annotations

import asyncio
from argparse import Namespace

import httpx
import pytest

from voicetutor.errors import CredentialFailure
from voicetutor.live.token import (
    EnvKeyTokenProvider,
    HttpTokenProvider,
    build_token_provider,
)

URL = "https://tutor.example/api/token"


def _provider(handler) -> HttpTokenProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTokenProvider(URL, timeout=1.0, client=client)


def _fetch(provider) -> str:
    return asyncio.run(provider.fetch())


def test_fetch_returns_token_and_disables_caching() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["cache"] = request.headers.get("cache-control", "")
        return httpx.Response(200, json={"ok": True, "token": "auth_tokens/abc"})

    assert _fetch(_provider(handler)) == "auth_tokens/abc"
    assert seen["cache"] == "no-store"


@pytest.mark.parametrize(
    ("response", "message"),
    [
        (httpx.Response(500, text="boom"), "Token server error (500)"),
        (httpx.Response(200, text="<html>"), "non-JSON"),
        (httpx.Response(200, json={"ok": False, "error": "Missing GEMINI_API_KEY"}), "Missing GEMINI_API_KEY"),
        (httpx.Response(200, json={"ok": True}), "No token returned"),
    ],
)
def test_fetch_failures_raise_credential_failure(response: httpx.Response, message: str) -> None:
    with pytest.raises(CredentialFailure) as excinfo:
        _fetch(_provider(lambda request: response))
    assert message in str(excinfo.value)


def test_fetch_timeout_raises_credential_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(CredentialFailure, match="timed out"):
        _fetch(_provider(handler))


def test_fetch_connection_error_raises_credential_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(CredentialFailure, match="unreachable"):
        _fetch(_provider(handler))


def test_env_key_provider(monkeypatch) -> None:
    monkeypatch.setenv("VT_TEST_KEY", "dev-key")
    assert _fetch(EnvKeyTokenProvider("VT_TEST_KEY")) == "dev-key"
    monkeypatch.delenv("VT_TEST_KEY")
    with pytest.raises(CredentialFailure):
        _fetch(EnvKeyTokenProvider("VT_TEST_KEY"))


def test_build_token_provider_prefers_url(monkeypatch) -> None:
    monkeypatch.delenv("VOICETUTOR_TOKEN_URL", raising=False)
    args = Namespace(token_url=URL, token_timeout_sec=3.0, api_key_env="GEMINI_API_KEY")
    provider = build_token_provider(args)
    assert isinstance(provider, HttpTokenProvider)
    assert provider.timeout == 3.0

    args.token_url = ""
    assert isinstance(build_token_provider(args), EnvKeyTokenProvider)
