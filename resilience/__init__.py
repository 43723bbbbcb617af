"""Fault injection for ASGI applications.

Wrap any ASGI app in `FaultInjectionMiddleware` with a decision policy to
make a controllable share of requests fail, either before the app runs or
when it starts its response. Clients can then exercise their retry logic
against a real service. `create_app` builds the example static file server.
"""

from __future__ import annotations

from resilience.logic.decision import InvalidDecisionError, Phase, ShouldFail, validate_decision
from resilience.middleware.fault_injection import (
    FaultInjectionMiddleware,
    ResponseGuard,
    install_fault_injection,
)
from resilience.main import create_app

__all__ = [
    "FaultInjectionMiddleware",
    "ResponseGuard",
    "install_fault_injection",
    "InvalidDecisionError",
    "Phase",
    "ShouldFail",
    "validate_decision",
    "create_app",
]
