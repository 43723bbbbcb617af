"""Reference decision policies for the example server.

The middleware accepts any ``ShouldFail`` callable; these cover the common
cases (always fail, fail at random, leave health checks alone).
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Iterable, Literal, Optional

from starlette.requests import Request

from resilience.logic.decision import Phase, ShouldFail, is_failure_status

if TYPE_CHECKING:  # pragma: no cover
    from resilience.config import FaultConfig


PhaseSelection = Literal["pre_dispatch", "pre_commit", "both"]


def _phase_selected(selection: str, phase: Phase) -> bool:
    return selection == "both" or selection == phase.value


def _check_status(status: int) -> int:
    if not is_failure_status(status):
        raise ValueError(f"failure status must be between 400 and 599, got {status!r}")
    return status


def never_fail(request: Request, phase: Phase) -> int:
    return 0


def constant_failure(status: int = 500, phases: PhaseSelection = "both") -> ShouldFail:
    """Fail every request with ``status`` on the selected phases.

    With ``phases="both"`` the pre-dispatch check always fires first, so the
    wrapped app is never reached.
    """
    _check_status(status)

    def should_fail(request: Request, phase: Phase) -> int:
        return status if _phase_selected(phases, phase) else 0

    return should_fail


class RandomFailure:
    """Fail with probability ``rate`` on each selected phase.

    Holds its own ``random.Random``. Under a single event loop calls are
    serialized; when sharing one instance across threads, guard it yourself.
    """

    def __init__(
        self,
        rate: float,
        status: int = 500,
        phases: PhaseSelection = "both",
        seed: Optional[int] = None,
    ) -> None:
        if not 0.0 <= rate <= 1.0:
            raise ValueError(f"failure rate must be between 0 and 1, got {rate!r}")
        self.rate = rate
        self.status = _check_status(status)
        self.phases = phases
        self._rng = random.Random(seed)

    def __call__(self, request: Request, phase: Phase) -> int:
        if not _phase_selected(self.phases, phase):
            return 0
        if self.rate and self._rng.random() < self.rate:
            return self.status
        return 0


def exempt_paths(policy: ShouldFail, paths: Iterable[str]) -> ShouldFail:
    """Never fail requests whose path is in ``paths``; defer to ``policy`` otherwise."""
    exempt = frozenset(paths)

    def should_fail(request: Request, phase: Phase) -> int:
        if request.url.path in exempt:
            return 0
        return policy(request, phase)

    return should_fail


def policy_from_config(cfg: "FaultConfig") -> ShouldFail:
    if cfg.failure_rate <= 0.0:
        policy: ShouldFail = never_fail
    elif cfg.failure_rate >= 1.0:
        policy = constant_failure(cfg.failure_status, cfg.phases)
    else:
        policy = RandomFailure(cfg.failure_rate, cfg.failure_status, cfg.phases, cfg.seed)
    if cfg.exempt_paths:
        policy = exempt_paths(policy, cfg.exempt_paths)
    return policy


__all__ = [
    "PhaseSelection",
    "never_fail",
    "constant_failure",
    "RandomFailure",
    "exempt_paths",
    "policy_from_config",
]
