"""Correlation ID logging context for tracing one inbound message across modules.

Provides a message_id-aware logger that attaches a correlation ID to every
log record, so a single WhatsApp message can be followed through routing,
the agent turn, tool calls, and guest migration.

Usage:
    from lendchat.logging_context import get_message_logger, set_message_id

    set_message_id("wamid.HBgL...")
    logger = get_message_logger(__name__)
    logger.info("Processing message")  # record.message_id == "wamid.HBgL..."
"""

import logging
from contextvars import ContextVar

_message_id: ContextVar[str] = ContextVar("message_id", default="NO_MESSAGE_ID")


def set_message_id(message_id: str) -> None:
    """Set the correlation ID for the current async context."""
    _message_id.set(message_id)


def get_message_id() -> str:
    """Retrieve the current correlation ID."""
    return _message_id.get()


class MessageIdFilter(logging.Filter):
    """Injects message_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.message_id = _message_id.get()  # type: ignore[attr-defined]
        return True


def get_message_logger(name: str) -> logging.Logger:
    """Return a logger with the MessageIdFilter attached.

    The filter adds ``message_id`` to each record so formatters can
    include ``%(message_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, MessageIdFilter) for f in logger.filters):
        logger.addFilter(MessageIdFilter())
    return logger
