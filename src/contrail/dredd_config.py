"""dredd.yml generation from the run settings."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

from contrail.config import Settings

logger = structlog.get_logger()

HOOKFILE = Path(__file__).with_name("hookfile.py")

# dredd's hooks-worker defaults; the python handler listens on the same port
HOOKS_WORKER = {
    "hooks-worker-timeout": 10000,
    "hooks-worker-connect-timeout": 3000,
    "hooks-worker-connect-retry": 1000,
    "hooks-worker-after-connect-wait": 500,
    "hooks-worker-term-timeout": 10000,
    "hooks-worker-term-retry": 1000,
    "hooks-worker-handler-host": "127.0.0.1",
    "hooks-worker-handler-port": 61321,
}


def build_dredd_config(settings: Settings, config_path: str = "./dredd.yml") -> dict[str, Any]:
    """
    dredd options for a python-hooks run against API_BASE_URL.

    DREDD_HOOKS_PATH overrides the bundled hookfile.
    """
    return {
        "reporter": settings.dredd_reporter,
        "dry-run": True if settings.dredd_dry_run else None,
        "hookfiles": settings.dredd_hooks_path or str(HOOKFILE),
        "language": "python",
        "server-wait": settings.server_wait_time,
        "init": False,
        "names": False,
        "only": [],
        "output": [],
        "header": [],
        "sorted": False,
        "user": None,
        "inline-errors": False,
        "details": True,
        "method": [],
        "color": True,
        "loglevel": settings.dredd_log_level,
        "path": [],
        **HOOKS_WORKER,
        "config": config_path,
        "blueprint": settings.openapi_schema_path,
        "endpoint": settings.api_base_url,
    }


def write_dredd_config(settings: Settings, out: str | Path = "dredd.yml") -> tuple[Path, dict[str, Any]]:
    out_path = Path(out).expanduser()
    config = build_dredd_config(settings, config_path=f"./{out_path.name}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    logger.info("dredd_config_written", path=str(out_path), endpoint=config["endpoint"])
    return out_path, config
