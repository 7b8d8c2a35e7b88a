"""Test helpers: an in-memory Orchestrate API and a sleep recorder."""

from __future__ import annotations

import json
from typing import Any

import httpx

INSTANCE_URL = "https://api.example.com/instances/abc"
TOKEN_URL = "https://iam.example.com/identity/token"
TOKEN_PATH = "/identity/token"
INSTANCE_PATH = "/instances/abc"


class FakeOrchestrate:
    """In-memory Orchestrate API behind ``httpx.MockTransport``.

    Responses are queued per ``(method, path)``. Each request consumes the
    next queued spec; the last one repeats once the queue is down to it.
    A queued exception is raised instead of answering.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []
        self.add("POST", TOKEN_PATH, 200, {"access_token": "tok-1", "expires_in": 3600})

    def add(self, method: str, path: str, status: int = 200, body: Any = None) -> FakeOrchestrate:
        self.routes.setdefault((method.upper(), self._full(path)), []).append((status, body))
        return self

    def fail(self, method: str, path: str, exc: Exception) -> FakeOrchestrate:
        self.routes.setdefault((method.upper(), self._full(path)), []).append(exc)
        return self

    def reset(self, method: str, path: str) -> None:
        self.routes.pop((method.upper(), self._full(path)), None)

    @staticmethod
    def _full(path: str) -> str:
        if path == TOKEN_PATH or path.startswith(INSTANCE_PATH):
            return path
        return f"{INSTANCE_PATH}{path}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        specs = self.routes.get((request.method, request.url.path))
        if not specs:
            return httpx.Response(404, json={"error": f"no route for {request.url.path}"})
        spec = specs.pop(0) if len(specs) > 1 else specs[0]
        if isinstance(spec, Exception):
            raise spec
        status, body = spec
        if body is None:
            return httpx.Response(status)
        if isinstance(body, dict | list):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        full = self._full(path)
        return [r for r in self.requests if r.method == method.upper() and r.url.path == full]


class SleepRecorder:
    """Stands in for ``asyncio.sleep`` and records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content)
