"""Blizzard WoW token price client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol
import asyncio
import base64
import json
import logging
import time
import urllib.error
import urllib.request


@dataclass(frozen=True)
class TokenQuote:
    last_updated_timestamp: int
    price: int

    @property
    def gold(self) -> int:
        return self.price // 10000


class TokenPriceError(RuntimeError):
    """Raised for token price request/response failures."""


class HttpTransport(Protocol):
    async def request_json(
        self,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout_seconds: float,
    ) -> Mapping[str, Any]:
        ...


class UrllibTransport:
    """Blocking urllib request run in a worker thread."""

    async def request_json(
        self,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout_seconds: float,
    ) -> Mapping[str, Any]:
        request = urllib.request.Request(url, data=body, method=method, headers=dict(headers))

        def _do_request() -> Mapping[str, Any]:
            try:
                with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
                    raw = response.read().decode("utf-8", errors="replace")
            except urllib.error.HTTPError as exc:
                raise TokenPriceError(f"Unexpected status code: {exc.code}") from exc
            except urllib.error.URLError as exc:
                raise TokenPriceError(f"Request to {url} failed.") from exc

            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise TokenPriceError("Response was not valid JSON.") from exc

            if not isinstance(parsed, Mapping):
                raise TokenPriceError("Response has invalid structure.")
            return parsed

        return await asyncio.to_thread(_do_request)


class BlizzardTokenClient:
    """Fetches the regional token price with a client-credentials access token."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        region: str = "eu",
        timeout_seconds: float = 10.0,
        transport: Optional[HttpTransport] = None,
        clock: Optional[Callable[[], float]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not client_id:
            raise ValueError("client_id is required")
        if not client_secret:
            raise ValueError("client_secret is required")

        self._client_id = client_id
        self._client_secret = client_secret
        self._region = region
        self._timeout_seconds = timeout_seconds
        self._transport = transport or UrllibTransport()
        self._clock = clock or time.monotonic
        self._logger = logger or logging.getLogger("guildrelay.tokenprice.client")
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def token_url(self) -> str:
        return f"https://{self._region}.battle.net/oauth/token"

    @property
    def price_url(self) -> str:
        return f"https://{self._region}.api.blizzard.com/data/wow/token/"

    async def fetch_quote(self) -> TokenQuote:
        access_token = await self._ensure_access_token()
        payload = await self._transport.request_json(
            method="GET",
            url=self.price_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Battlenet-Namespace": f"dynamic-{self._region}",
            },
            body=None,
            timeout_seconds=self._timeout_seconds,
        )
        return _parse_quote(payload)

    async def _ensure_access_token(self) -> str:
        if self._access_token is not None and self._clock() < self._expires_at:
            return self._access_token

        credentials = f"{self._client_id}:{self._client_secret}".encode("utf-8")
        payload = await self._transport.request_json(
            method="POST",
            url=self.token_url,
            headers={
                "Authorization": "Basic " + base64.b64encode(credentials).decode("ascii"),
                "Content-Type": "application/x-www-form-urlencoded",
            },
            body=b"grant_type=client_credentials",
            timeout_seconds=self._timeout_seconds,
        )

        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if not isinstance(access_token, str) or not access_token:
            raise TokenPriceError("Access token response is missing access_token.")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int):
            raise TokenPriceError("Access token response is missing expires_in.")

        self._access_token = access_token
        self._expires_at = self._clock() + expires_in
        self._logger.debug("token_api_authenticated expires_in=%s", expires_in)
        return access_token


def _parse_quote(payload: Mapping[str, Any]) -> TokenQuote:
    timestamp = payload.get("last_updated_timestamp")
    price = payload.get("price")
    for field, value in (("last_updated_timestamp", timestamp), ("price", price)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TokenPriceError(f"Token response field '{field}' is missing or not an integer.")
    return TokenQuote(last_updated_timestamp=timestamp, price=price)
