"""Cloud Function Entry Point.

This module provides the entry point for Google Cloud Functions.
It's a thin wrapper that loads configuration and runs one ingestion
cycle. Instances are kept warm between invocations, so the orchestrator
(and its in-memory store) is built once per process.
"""

import logging
import os
import threading
from typing import Any

import functions_framework
from flask import Request

from quakerisk.core.config import Config, validate_config
from quakerisk.orchestrator import Orchestrator
from quakerisk.shell.config_loader import load_config, load_config_from_env


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


_orchestrator: Orchestrator | None = None
_orchestrator_lock = threading.Lock()


def get_config() -> Config:
    """Load configuration from file or environment."""
    config_path = os.environ.get("CONFIG_PATH")

    if config_path:
        config = load_config(config_path)
    elif os.environ.get("SLACK_WEBHOOK_URL") or os.environ.get("LEDGER_URL"):
        config = load_config_from_env()
    else:
        config = load_config()

    validation = validate_config(config)
    for warning in validation.warnings:
        logger.warning("Config %s: %s", warning.field, warning.message)
    for error in validation.critical_errors:
        logger.error("Config %s: %s", error.field, error.message)

    return config


def get_orchestrator() -> Orchestrator:
    """Return the process-wide orchestrator, building it on first use."""
    global _orchestrator
    with _orchestrator_lock:
        if _orchestrator is None:
            _orchestrator = Orchestrator(get_config())
        return _orchestrator


@functions_framework.http
def ingestion_cycle(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point.

    Triggered by Cloud Scheduler (every polling interval) or direct HTTP
    requests.

    Args:
        request: Flask request object (not used, but required by framework)

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    logger.info("Starting ingestion cycle")

    try:
        result = get_orchestrator().process()

        response = {
            "status": "success" if result.success else "partial_failure",
            "summary": result.summary,
            "events_fetched": result.events_fetched,
            "events_new": result.events_new,
            "duplicates": result.duplicates,
            "malformed": result.malformed,
            "alerts_created": len(result.alerts_created),
            "broadcasts_sent": result.broadcasts_sent,
            "broadcasts_failed": result.broadcasts_failed,
            "events_verified": len(result.events_verified),
        }

        if result.errors:
            response["errors"] = result.errors
        if result.ledger_failures:
            response["ledger_failures"] = result.ledger_failures

        status_code = 200 if result.success else 207  # 207 = Multi-Status
        return response, status_code

    except Exception as e:
        logger.exception("Unexpected error in ingestion cycle")
        return {
            "status": "error",
            "message": str(e),
        }, 500
