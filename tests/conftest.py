"""Shared test fixtures for the wxomcp test suite."""

from __future__ import annotations

import httpx
import pytest

from tests.helpers import INSTANCE_URL, TOKEN_URL, FakeOrchestrate, SleepRecorder
from wxomcp.core.services import OrchestrateServices
from wxomcp.utils.config import OrchestrateSettings


@pytest.fixture
def settings() -> OrchestrateSettings:
    return OrchestrateSettings(
        api_key="test-api-key",
        instance_url=INSTANCE_URL,
        iam_token_url=TOKEN_URL,
    )


@pytest.fixture
def fake() -> FakeOrchestrate:
    return FakeOrchestrate()


@pytest.fixture
def http_client(fake: FakeOrchestrate) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def services(
    settings: OrchestrateSettings,
    http_client: httpx.AsyncClient,
    sleeper: SleepRecorder,
) -> OrchestrateServices:
    return OrchestrateServices.from_settings(settings, http_client=http_client, sleep=sleeper)
