"""Fault-injection middleware (two-phase interception).

Wraps an ASGI app so a decision policy can fail requests on purpose:

- Pre-dispatch: before the wrapped app runs. A non-zero decision answers the
  request with that status and an empty body; the wrapped app is not called.
- Pre-commit: when the wrapped app first starts its response, explicitly via
  ``http.response.start`` or implicitly via its first body message. A
  non-zero decision replaces the status; headers and body pass through.

The commit happens once per request. Later start messages are dropped.

This must be the outermost ASGI layer. Framework error middleware placed
outside it would turn InvalidDecisionError into a 500 response.
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from resilience.logic.decision import Phase, ShouldFail, validate_decision


logger = logging.getLogger(__name__)

DEFAULT_STATUS = 200


class ResponseGuard:
    """Stands in for ``send`` for a single request.

    ``status`` stays 0 until the real ``send`` has accepted a start message,
    then holds the status that was actually sent.
    """

    def __init__(self, send: Send, request: Request, should_fail: ShouldFail) -> None:
        self._send = send
        self._request = request
        self._should_fail = should_fail
        self.status = 0

    @property
    def committed(self) -> bool:
        return self.status != 0

    async def __call__(self, message: Message) -> None:
        if message.get("type") == "http.response.start":
            await self.commit(message)
            return
        if not self.committed:
            await self.commit({"type": "http.response.start", "status": DEFAULT_STATUS, "headers": []})
        await self._send(message)

    async def commit(self, message: Message) -> None:
        """Send the response start once, running the pre-commit decision first."""
        if self.committed:
            logger.debug(
                "fault_injection.commit.ignored",
                extra={"committed": self.status, "requested": message.get("status")},
            )
            return
        status = int(message.get("status") or DEFAULT_STATUS)
        decision = validate_decision(self._should_fail(self._request, Phase.PRE_COMMIT), Phase.PRE_COMMIT)
        if decision:
            logger.info(
                "fault_injection.pre_commit.forced",
                extra={"path": self._request.url.path, "requested": status, "status": decision},
            )
            status = decision
        await self._send({**message, "status": status})
        self.status = status


class FaultInjectionMiddleware:
    """ASGI middleware injecting failures chosen by ``should_fail``."""

    def __init__(self, app: ASGIApp, should_fail: ShouldFail) -> None:
        self.app = app
        self.should_fail = should_fail

    def __getattr__(self, item: str) -> Any:
        # Keep the wrapped app's API (routes, state, ...) reachable.
        if item in {"app", "should_fail"}:
            raise AttributeError(item)
        return getattr(self.app, item)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        decision = validate_decision(self.should_fail(request, Phase.PRE_DISPATCH), Phase.PRE_DISPATCH)
        if decision:
            logger.info(
                "fault_injection.pre_dispatch.forced",
                extra={"path": request.url.path, "status": decision},
            )
            await send(
                {
                    "type": "http.response.start",
                    "status": decision,
                    "headers": [(b"content-length", b"0")],
                }
            )
            await send({"type": "http.response.body", "body": b"", "more_body": False})
            return

        await self.app(scope, receive, ResponseGuard(send, request, self.should_fail))


def install_fault_injection(app: ASGIApp, should_fail: ShouldFail) -> FaultInjectionMiddleware:
    """Wrap ``app`` as the outermost layer, replacing any existing fault injection."""
    if isinstance(app, FaultInjectionMiddleware):
        app = app.app
    return FaultInjectionMiddleware(app, should_fail)


__all__ = ["FaultInjectionMiddleware", "ResponseGuard", "install_fault_injection", "DEFAULT_STATUS"]
