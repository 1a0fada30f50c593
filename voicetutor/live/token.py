from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional, Protocol

import httpx

from voicetutor.errors import CredentialFailure

logger = logging.getLogger("voicetutor.live.token")

TOKEN_URL_ENV = "VOICETUTOR_TOKEN_URL"


class TokenProvider(Protocol):
    async def fetch(self) -> str:
        ...


class HttpTokenProvider:
    """
    Fetches a short-lived, single-use credential from the token endpoint.
    Expected body: {"ok": bool, "token"?: str, "error"?: str}
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not url:
            raise ValueError("token url must be set")
        self.url = url
        self.timeout = float(timeout)
        self._client = client

    async def fetch(self) -> str:
        headers = {"Cache-Control": "no-store"}
        try:
            if self._client is not None:
                resp = await self._client.get(self.url, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(self.url, headers=headers)
        except httpx.TimeoutException as e:
            raise CredentialFailure(f"Token server timed out after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise CredentialFailure(f"Token server unreachable: {e}") from e

        text = resp.text
        if resp.status_code >= 400:
            raise CredentialFailure(f"Token server error ({resp.status_code}): {text[:300]}")

        try:
            data: Any = json.loads(text)
        except ValueError as e:
            raise CredentialFailure(f"Token server returned non-JSON body: {text[:300]}") from e

        if not isinstance(data, dict) or not data.get("ok", False):
            err = data.get("error") if isinstance(data, dict) else None
            raise CredentialFailure(f"Token server refused: {err or text[:300]}")

        token = str(data.get("token") or "").strip()
        if not token:
            raise CredentialFailure(f"No token returned: {text[:300]}")
        logger.debug("token_received", extra={"url": self.url})
        return token


class EnvKeyTokenProvider:
    """Developer mode: use a long-lived key from the environment. Not for production."""

    def __init__(self, env_var: str = "GEMINI_API_KEY") -> None:
        self.env_var = env_var

    async def fetch(self) -> str:
        key = (os.getenv(self.env_var) or "").strip()
        if not key:
            raise CredentialFailure(
                f"No token URL configured and {self.env_var} is not set."
            )
        return key


def build_token_provider(args: Any) -> TokenProvider:
    url = str(getattr(args, "token_url", "") or os.getenv(TOKEN_URL_ENV, "")).strip()
    if url:
        return HttpTokenProvider(url, timeout=float(getattr(args, "token_timeout_sec", 10.0)))
    return EnvKeyTokenProvider(str(getattr(args, "api_key_env", "") or "GEMINI_API_KEY"))
