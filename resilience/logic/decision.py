"""Decision contract shared by both interception phases.

A decision policy is called with the current request and the phase being
evaluated. It returns 0 to let the request through, or an HTTP status in
[400, 599] to force that failure. Any other value is a bug in the policy and
raises InvalidDecisionError rather than being turned into a response.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable

from starlette.requests import Request


logger = logging.getLogger(__name__)

MIN_FAILURE_STATUS = 400
MAX_FAILURE_STATUS = 599


class Phase(str, enum.Enum):
    PRE_DISPATCH = "pre_dispatch"
    PRE_COMMIT = "pre_commit"

    @property
    def after_header(self) -> bool:
        return self is Phase.PRE_COMMIT


# Called once per phase per request, possibly from concurrent requests.
# Stateful policies must make themselves safe for that; nothing here locks.
ShouldFail = Callable[[Request, Phase], int]


class InvalidDecisionError(RuntimeError):
    """Raised when a policy returns something other than 0 or 400-599.

    This signals a misconfigured policy. It is never mapped to an HTTP
    status and must reach the caller of the middleware unchanged.
    """

    def __init__(self, decision: object, phase: Phase):
        super().__init__(f"unexpected status code {decision!r}")
        self.decision = decision
        self.phase = phase


def is_failure_status(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_FAILURE_STATUS <= value <= MAX_FAILURE_STATUS


def validate_decision(decision: object, phase: Phase) -> int:
    """Return the decision as an int, or raise InvalidDecisionError."""
    if isinstance(decision, int) and not isinstance(decision, bool) and decision == 0:
        return 0
    if not is_failure_status(decision):
        logger.error(
            "fault_injection.invalid_decision",
            extra={"decision": repr(decision), "phase": phase.value},
        )
        raise InvalidDecisionError(decision, phase)
    return int(decision)  # type: ignore[arg-type]


__all__ = [
    "Phase",
    "ShouldFail",
    "InvalidDecisionError",
    "is_failure_status",
    "validate_decision",
    "MIN_FAILURE_STATUS",
    "MAX_FAILURE_STATUS",
]
