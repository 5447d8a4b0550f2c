from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Union


# Context variables for enriched logging
operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)
entity_var: ContextVar[Optional[str]] = ContextVar("entity", default=None)


class LoggingContextFilter(logging.Filter):
    """
    Logging filter that injects the current repository operation and entity name
    from contextvars into each log record so formatters can include them.

    If no values are present in the context, placeholders are used.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        op = operation_var.get()
        entity = entity_var.get()
        setattr(record, "operation", op or "-")
        setattr(record, "entity", entity or "-")
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str, None] = None) -> None:
    """
    Configure root logging with a structured format and context filter.

    When level is omitted, LOG_LEVEL from the environment settings is used.
    """
    if level is None:
        from entity_repository.db.config import get_settings

        level = get_settings().LOG_LEVEL

    handler = logging.StreamHandler(stream=sys.stdout)
    fmt = (
        "%(asctime)s | %(levelname)s | %(name)s | op=%(operation)s | entity=%(entity)s | "
        "%(message)s"
    )
    formatter = logging.Formatter(fmt=fmt)
    handler.setFormatter(formatter)
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    # Remove pre-existing default handlers configured elsewhere (e.g., basicConfig)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)


# PUBLIC_INTERFACE
@contextmanager
def operation_context(operation: str, entity: Optional[str] = None) -> Iterator[None]:
    """
    Bind the operation and entity labels for every record logged inside the block.

    Usage:
        with operation_context("all", "Item"):
            logger.debug("...")  # rendered with op=all entity=Item

    Works across await points: contextvars are task-local under asyncio.
    """
    op_token = operation_var.set(operation)
    entity_token = entity_var.set(entity)
    try:
        yield
    finally:
        entity_var.reset(entity_token)
        operation_var.reset(op_token)
