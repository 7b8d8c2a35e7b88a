"""Tests for the IAM token cache."""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from tests.helpers import TOKEN_PATH, TOKEN_URL, FakeOrchestrate
from wxomcp.core.auth import CachedToken, CredentialCache
from wxomcp.core.auth.credentials import APIKEY_GRANT_TYPE
from wxomcp.core.errors import AuthenticationFailed


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_cache(fake: FakeOrchestrate, clock: FakeClock) -> CredentialCache:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    return CredentialCache("secret-key", TOKEN_URL, http_client=client, clock=clock)


class TestCachedToken:
    def test_fresh_outside_buffer(self):
        assert CachedToken("t", expires_at=200.0).is_fresh(now=100.0)

    def test_stale_inside_buffer(self):
        assert not CachedToken("t", expires_at=160.0).is_fresh(now=100.0)
        assert not CachedToken("t", expires_at=150.0).is_fresh(now=100.0)


class TestAcquireToken:
    @pytest.mark.asyncio
    async def test_exchanges_api_key_as_form(self, fake):
        cache = make_cache(fake, FakeClock())

        assert await cache.acquire_token() == "tok-1"

        (request,) = fake.calls("POST", TOKEN_PATH)
        form = parse_qs(request.content.decode())
        assert form == {"grant_type": [APIKEY_GRANT_TYPE], "apikey": ["secret-key"]}
        assert request.headers["Accept"] == "application/json"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"

    @pytest.mark.asyncio
    async def test_reuses_fresh_token(self, fake):
        clock = FakeClock()
        cache = make_cache(fake, clock)

        await cache.acquire_token()
        clock.now += 3000
        await cache.acquire_token()

        assert len(fake.calls("POST", TOKEN_PATH)) == 1
        assert cache.cached_token.expires_at == 1_000.0 + 3600

    @pytest.mark.asyncio
    async def test_refreshes_once_inside_buffer(self, fake):
        fake.reset("POST", TOKEN_PATH)
        fake.add("POST", TOKEN_PATH, 200, {"access_token": "tok-1", "expires_in": 3600})
        fake.add("POST", TOKEN_PATH, 200, {"access_token": "tok-2", "expires_in": 3600})
        clock = FakeClock()
        cache = make_cache(fake, clock)

        await cache.acquire_token()
        clock.now += 3600 - 60
        assert await cache.acquire_token() == "tok-2"
        assert await cache.acquire_token() == "tok-2"

        assert len(fake.calls("POST", TOKEN_PATH)) == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_exchange(self, fake):
        cache = make_cache(fake, FakeClock())

        await cache.acquire_token()
        cache.invalidate()
        await cache.acquire_token()

        assert len(fake.calls("POST", TOKEN_PATH)) == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_exchange(self):
        hits = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal hits
            hits += 1
            await asyncio.sleep(0)
            return httpx.Response(200, json={"access_token": "shared", "expires_in": 3600})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        cache = CredentialCache("k", TOKEN_URL, http_client=client, clock=FakeClock())

        tokens = await asyncio.gather(*(cache.acquire_token() for _ in range(5)))

        assert tokens == ["shared"] * 5
        assert hits == 1

    @pytest.mark.asyncio
    async def test_short_lifetime_logs_warning(self, fake, caplog):
        fake.reset("POST", TOKEN_PATH)
        fake.add("POST", TOKEN_PATH, 200, {"access_token": "brief", "expires_in": 30})
        fake.add("POST", TOKEN_PATH, 200, {"access_token": "next", "expires_in": 3600})
        cache = make_cache(fake, FakeClock())

        with caplog.at_level("WARNING", logger="wxomcp.core.auth.credentials"):
            assert await cache.acquire_token() == "brief"

        assert "refresh buffer" in caplog.text
        assert await cache.acquire_token() == "next"
        assert len(fake.calls("POST", TOKEN_PATH)) == 2


class TestAuthenticationFailures:
    @pytest.mark.asyncio
    async def test_non_success_status(self, fake):
        fake.reset("POST", TOKEN_PATH)
        fake.add("POST", TOKEN_PATH, 400, {"errorMessage": "Provided API key could not be found"})
        cache = make_cache(fake, FakeClock())

        with pytest.raises(AuthenticationFailed) as excinfo:
            await cache.acquire_token()

        assert excinfo.value.status == 400
        assert "could not be found" in str(excinfo.value)
        assert cache.cached_token is None

    @pytest.mark.asyncio
    async def test_transport_error(self, fake):
        fake.reset("POST", TOKEN_PATH)
        fake.fail("POST", TOKEN_PATH, httpx.ConnectError("connection refused"))
        cache = make_cache(fake, FakeClock())

        with pytest.raises(AuthenticationFailed) as excinfo:
            await cache.acquire_token()

        assert excinfo.value.status is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            "<html>not json</html>",
            ["access_token"],
            {"expires_in": 3600},
            {"access_token": "", "expires_in": 3600},
            {"access_token": "tok", "expires_in": "3600"},
            {"access_token": "tok", "expires_in": True},
        ],
    )
    async def test_malformed_body(self, fake, body):
        fake.reset("POST", TOKEN_PATH)
        fake.add("POST", TOKEN_PATH, 200, body)
        cache = make_cache(fake, FakeClock())

        with pytest.raises(AuthenticationFailed):
            await cache.acquire_token()


@pytest.mark.asyncio
async def test_aclose_keeps_injected_client(fake):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    cache = CredentialCache("k", TOKEN_URL, http_client=client)

    await cache.aclose()

    assert not client.is_closed
