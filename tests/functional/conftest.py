from __future__ import annotations

"""Shared fixtures for the fault-injection functional tests.

Two ways of driving the middleware are provided:
- `fastapi.testclient.TestClient` for what a client observes over HTTP;
- `AsgiCapture`, which runs the ASGI app under `anyio.run` and records every
  message handed to the real `send`, for assertions on what was (not) sent.
"""

import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

import anyio
import pytest
from starlette.requests import Request

from resilience.logic.decision import Phase


def make_scope(path: str = "/foo", method: str = "GET", scope_type: str = "http") -> Dict[str, Any]:
    return {
        "type": scope_type,
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": b"",
        "root_path": "",
        "headers": [],
        "server": ("testserver", 80),
        "client": ("testclient", 50000),
    }


def make_request(path: str = "/foo") -> Request:
    return Request(make_scope(path))


class RecordingPolicy:
    """Policy returning fixed decisions per phase and recording each call."""

    def __init__(self, pre_dispatch: Any = 0, pre_commit: Any = 0) -> None:
        self.decisions = {Phase.PRE_DISPATCH: pre_dispatch, Phase.PRE_COMMIT: pre_commit}
        self.calls: List[Tuple[str, Phase]] = []

    def __call__(self, request: Request, phase: Phase) -> Any:
        self.calls.append((request.url.path, phase))
        return self.decisions[phase]

    def count(self, phase: Phase) -> int:
        return sum(1 for _, p in self.calls if p is phase)


class Downstream:
    """Downstream ASGI app replaying a script of ("start", status) / ("body", bytes) steps.

    The last body step is sent with more_body=False. When the script has no
    body step and `finish` is set, a closing empty body is sent.
    """

    def __init__(self, steps: Sequence[Tuple[str, Any]], finish: bool = True) -> None:
        self.steps = list(steps)
        self.finish = finish
        self.called = False

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        self.called = True
        body_steps = [i for i, (kind, _) in enumerate(self.steps) if kind == "body"]
        last_body = body_steps[-1] if body_steps else None
        for i, (kind, value) in enumerate(self.steps):
            if kind == "start":
                await send(
                    {
                        "type": "http.response.start",
                        "status": value,
                        "headers": [(b"content-type", b"text/plain")],
                    }
                )
            else:
                await send({"type": "http.response.body", "body": value, "more_body": i != last_body})
        if last_body is None and self.finish:
            await send({"type": "http.response.body", "body": b"", "more_body": False})


class AsgiCapture:
    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    async def _receive(self) -> Dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    async def _send(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    def run(self, app, scope: Optional[Dict[str, Any]] = None) -> "AsgiCapture":  # type: ignore[no-untyped-def]
        anyio.run(app, scope or make_scope(), self._receive, self._send)
        return self

    @property
    def starts(self) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m.get("type") == "http.response.start"]

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.messages if m.get("type") == "http.response.body")


@pytest.fixture
def capture() -> AsgiCapture:
    return AsgiCapture()


@pytest.fixture
def clean_resilience_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Isolate config loading from the host: no RESILIENCE_* env, empty cwd."""
    for key in list(os.environ):
        if key.startswith("RESILIENCE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
