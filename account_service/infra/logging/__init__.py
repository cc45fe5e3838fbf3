"""Logging infrastructure.

Basic usage:
    from account_service.infra.logging import set_log_context
    import logging

    logger = logging.getLogger(__name__)

    set_log_context(sweep_id="3f2c")
    logger.info("Sweep started")  # Automatically includes sweep_id
"""

from account_service.infra.logging.config import (
    complete,
    configure_logging,
    setup_logging,
    shutdown,
)
from account_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    remove_from_log_context,
    set_log_context,
)
from account_service.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "complete",
    "configure_logging",
    "get_log_context",
    "log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
