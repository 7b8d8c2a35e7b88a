"""Bearer token cache backed by the IBM Cloud identity service.

One ``CredentialCache`` owns one token. It is created by the service
container and injected into the transport client, so every outbound request
signs with the same cached token until it comes within
``EXPIRY_BUFFER_SECONDS`` of expiring.

Refresh is single-flight: the freshness check and the exchange run under one
``asyncio.Lock``, and a caller that waited on the lock re-checks before
exchanging, so concurrent callers that all found the cache stale share one
identity request.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from wxomcp.core.errors import AuthenticationFailed

logger = logging.getLogger(__name__)

APIKEY_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"
EXPIRY_BUFFER_SECONDS = 60.0


@dataclass(frozen=True)
class CachedToken:
    """An access token and its absolute expiry (epoch seconds)."""

    value: str
    expires_at: float

    def is_fresh(self, now: float, buffer: float = EXPIRY_BUFFER_SECONDS) -> bool:
        return self.expires_at > now + buffer


class CredentialCache:
    """Issues a valid bearer token, exchanging the API key when needed."""

    def __init__(
        self,
        api_key: str,
        token_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.token_url = token_url
        self.timeout = timeout
        self._clock = clock
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._token: CachedToken | None = None
        self._lock = asyncio.Lock()

    @property
    def cached_token(self) -> CachedToken | None:
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next acquire exchanges again."""
        self._token = None

    async def acquire_token(self) -> str:
        """Return a token valid for at least the expiry buffer.

        One exception: when IAM itself issues a token whose lifetime is within
        the buffer, that token is returned anyway (with a warning) and is
        exchanged again on the next call.
        """
        token = self._token
        if token is not None and token.is_fresh(self._clock()):
            return token.value

        async with self._lock:
            token = self._token
            if token is not None and token.is_fresh(self._clock()):
                return token.value
            token = await self._exchange()
            self._token = token
            return token.value

    async def _exchange(self) -> CachedToken:
        logger.info("Requesting new IAM token from %s", self.token_url)
        requested_at = self._clock()
        client = self._get_http_client()
        try:
            response = await client.post(
                self.token_url,
                data={"grant_type": APIKEY_GRANT_TYPE, "apikey": self.api_key},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise AuthenticationFailed(None, str(exc)) from exc

        if not response.is_success:
            raise AuthenticationFailed(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthenticationFailed(response.status_code, response.text) from exc

        if not isinstance(payload, dict):
            raise AuthenticationFailed(response.status_code, response.text)
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if (
            not isinstance(access_token, str)
            or not access_token
            or isinstance(expires_in, bool)
            or not isinstance(expires_in, int | float)
        ):
            raise AuthenticationFailed(response.status_code, response.text)

        # Returned anyway; it is cached already stale, so the next call exchanges again.
        if expires_in <= EXPIRY_BUFFER_SECONDS:
            logger.warning(
                "IAM token lifetime %ss is within the %ss refresh buffer",
                expires_in,
                EXPIRY_BUFFER_SECONDS,
            )
        logger.info("Token acquired (expires in %ss)", expires_in)
        return CachedToken(value=access_token, expires_at=requested_at + float(expires_in))

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http_client = True
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
