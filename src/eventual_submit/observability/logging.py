"""structlog setup for the ledger server and the submission client.

Events use dotted names (``ledger.record_created``,
``controller.retry_scheduled``) and carry the request id, so one logical
submission can be followed across retries, polls and its delayed completion.
The HTTP adapter binds the request id as context for the whole request with
``bind_request_id``.

Examples:
    Server process, JSON lines on stdout::

        configure_logging(level="INFO", json_output=True)

    Inside a request handler::

        with bind_request_id(request_id):
            await ledger.submit(request_id, email, amount)
"""

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog events to stdout at ``level``.

    Args:
        level: Minimum level name, e.g. "DEBUG" or "WARNING"
        json_output: JSON lines when True, colored console lines otherwise
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def bind_request_id(request_id: str | None) -> AbstractContextManager[Any]:
    """Bind ``request_id`` to every log event emitted inside the block.

    Lets events from helpers that do not take a request id (storage,
    scheduler) still be correlated with the submission being served.
    """
    return structlog.contextvars.bound_contextvars(request_id=request_id)
