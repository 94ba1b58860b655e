"""
dredd hookfile: `dredd ... --language python --hookfiles <this file>`.

One orchestrator per dredd run, created in before_all from the environment
(and .env). dredd calls the hooks one transaction at a time.
"""
from __future__ import annotations

from typing import Any, Optional

import dredd_hooks as hooks
import structlog

from contrail.config import Settings
from contrail.orchestrator.hooks import TransactionOrchestrator
from contrail.telemetry.logging import setup_logging

logger = structlog.get_logger()

_orchestrator: Optional[TransactionOrchestrator] = None


def start_run(settings: Optional[Settings] = None) -> TransactionOrchestrator:
    """Fresh orchestrator and session state. Raises ContractLoadError."""
    global _orchestrator
    settings = settings or Settings()
    setup_logging(debug=settings.enable_debug_logging, fmt=settings.log_format)
    _orchestrator = TransactionOrchestrator.from_settings(settings)
    return _orchestrator


def current() -> TransactionOrchestrator:
    return _orchestrator if _orchestrator is not None else start_run()


@hooks.before_all
def before_all(transactions: list[dict[str, Any]]) -> None:
    orchestrator = start_run()
    orchestrator.before_all(transactions)


@hooks.before_each
def before_each(transaction: dict[str, Any]) -> None:
    current().before_each_wire(transaction)


@hooks.after_each
def after_each(transaction: dict[str, Any]) -> None:
    current().after_each_wire(transaction)


@hooks.after_all
def after_all(transactions: list[dict[str, Any]]) -> None:
    current().after_all(transactions)
