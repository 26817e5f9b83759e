"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire

from cardroom import __version__
from cardroom.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> None:
    """
    Initialize Logfire with instrumentation for the table and the market.

    Must be called ONCE at application startup, BEFORE any agent code runs.

    This function configures Logfire cloud tracking and instruments:
    - PydanticAI agents (every LLM-backed table player)
    - HTTPX clients (audit publication)
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing Logfire token

    Returns:
        None. Logs success or warning messages.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="cardroom",
            service_version=__version__,
        )

        logfire.instrument_pydantic_ai()
        logfire.instrument_httpx()

        # Bridge Python logging to Logfire
        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("✓ Logfire cloud tracking initialized")

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        # Continue running - observability is optional
