"""Logfire observability initialization."""

import logging

import logfire

from kellybot import __version__
from kellybot.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> None:
    """
    Initialize Logfire and bridge standard logging into it.

    Call once at startup, before the engine is created. Lifecycle
    operations open ``logfire.span``s; without a token those spans are
    no-ops and only the standard log handlers see messages.

    Args:
        settings: Application settings containing the Logfire token
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="kellybot",
            service_version=__version__,
        )

        # Bridge Python logging to Logfire
        logging.getLogger().addHandler(logfire.LogfireLoggingHandler())

        logger.info("✓ Logfire tracking initialized")

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
