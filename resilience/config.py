"""Configuration for the example fault-injecting server.

The middleware itself takes no configuration; this only drives
``resilience.main``. Rules:
- Primary source: `resilience_config.json` at the project root.
- Overrides: text files under `config/`, then environment variables.
- Validation: Pydantic models enforce value ranges.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from resilience.logic.decision import MAX_FAILURE_STATUS, MIN_FAILURE_STATUS


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("resilience_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Unreadable override: fall through to the next source
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class FaultConfig(BaseModel):
    failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    failure_status: int = Field(default=500, ge=MIN_FAILURE_STATUS, le=MAX_FAILURE_STATUS)
    phases: str = Field(default="both")
    seed: Optional[int] = None
    exempt_paths: List[str] = Field(default_factory=lambda: ["/healthz"])

    @field_validator("phases")
    @classmethod
    def phases_must_be_allowed(cls, v: str) -> str:
        allowed = {"pre_dispatch", "pre_commit", "both"}
        if v not in allowed:
            raise ValueError(f"fault.phases must be one of {sorted(allowed)}")
        return v

    @field_validator("exempt_paths")
    @classmethod
    def paths_must_be_absolute(cls, v: List[str]) -> List[str]:
        for p in v:
            if not p.startswith("/"):
                raise ValueError(f"fault.exempt_paths entries must start with '/': {p!r}")
        return v


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=6060, gt=0, le=65535)
    serve_dir: str = "."

    @field_validator("serve_dir")
    @classmethod
    def serve_dir_must_be_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("server.serve_dir must be a non-empty string")
        return v


class AppConfig(BaseModel):
    fault: FaultConfig = Field(default_factory=FaultConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _split_paths(text: str) -> List[str]:
    return [p.strip() for p in text.split(",") if p.strip()]


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) resilience_config.json at project root
    4) Defaults
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str) -> Optional[object]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return None
            cur = cur[key]
        return cur

    def _pick(env_key: str, rel_path: str, base_path: str) -> Optional[object]:
        value = _env(env_key)
        if value is not None:
            return value
        value = _read_config_file(rel_path)
        if value is not None:
            return value
        return _base(base_path)

    fault: dict = {}
    rate = _pick("RESILIENCE_FAILURE_RATE", "fault.failure_rate", "fault.failure_rate")
    if rate is not None:
        fault["failure_rate"] = rate
    status = _pick("RESILIENCE_FAILURE_STATUS", "fault.failure_status", "fault.failure_status")
    if status is not None:
        fault["failure_status"] = status
    phases = _pick("RESILIENCE_PHASES", "fault.phases", "fault.phases")
    if phases is not None:
        fault["phases"] = str(phases).strip()
    seed = _pick("RESILIENCE_SEED", "fault.seed", "fault.seed")
    if seed is not None and str(seed).strip():
        fault["seed"] = seed
    exempt = _pick("RESILIENCE_EXEMPT_PATHS", "fault.exempt_paths", "fault.exempt_paths")
    if exempt is not None:
        fault["exempt_paths"] = _split_paths(exempt) if isinstance(exempt, str) else exempt

    server: dict = {}
    host = _pick("RESILIENCE_HOST", "server.host", "server.host")
    if host is not None:
        server["host"] = str(host).strip()
    port = _pick("RESILIENCE_PORT", "server.port", "server.port")
    if port is not None:
        server["port"] = port
    serve_dir = _pick("RESILIENCE_SERVE_DIR", "server.serve_dir", "server.serve_dir")
    if serve_dir is not None:
        server["serve_dir"] = str(serve_dir)

    try:
        return AppConfig(fault=FaultConfig(**fault), server=ServerConfig(**server))
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "FaultConfig",
    "ServerConfig",
    "load_config",
]
