"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire

from wager import __version__
from wager.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire for the engine process.

    Must be called once at startup, before any engine operation runs.

    Configures Logfire cloud tracking and instruments:
    - Pydantic model validation (bets, stats, snapshots, settings)
    - Python logging (bridged to Logfire)

    Args:
        settings: Application settings containing the Logfire token

    Returns:
        True if Logfire was configured, False if it was skipped or failed.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="wager",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_pydantic()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("✓ Logfire cloud tracking initialized")
        return True

    except Exception as e:
        # Observability is optional; the engine keeps running without it
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
