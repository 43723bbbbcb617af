from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from starlette.staticfiles import StaticFiles

from resilience.config import AppConfig, load_config
from resilience.logging_setup import configure_logging
from resilience.logic.policies import policy_from_config
from resilience.middleware.fault_injection import FaultInjectionMiddleware, install_fault_injection

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None) -> FaultInjectionMiddleware:
    """Build a static file server that fails requests per the configured policy.

    The FastAPI app is returned wrapped, with fault injection as the outermost
    ASGI layer.
    """
    configure_logging()
    cfg = config or load_config()

    app = FastAPI(title="resilience")

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    app.mount("/", StaticFiles(directory=cfg.server.serve_dir, html=True), name="static")

    logger.info(
        "fault_injection.configured",
        extra={
            "failure_rate": cfg.fault.failure_rate,
            "failure_status": cfg.fault.failure_status,
            "phases": cfg.fault.phases,
            "serve_dir": cfg.server.serve_dir,
        },
    )
    return install_fault_injection(app, policy_from_config(cfg.fault))


def serve() -> None:  # pragma: no cover - blocking server entry point
    import uvicorn

    cfg = load_config()
    uvicorn.run(create_app(cfg), host=cfg.server.host, port=cfg.server.port, log_config=None)


if __name__ == "__main__":  # pragma: no cover
    serve()
