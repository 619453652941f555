"""Observability utilities for the submission protocol.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for ledger and controller behavior
- Structured logging with the request id as correlation context
"""

from eventual_submit.observability.logging import (
    bind_request_id,
    configure_logging,
    get_logger,
)
from eventual_submit.observability.metrics import (
    record_controller_terminal,
    record_outcome,
    record_retry,
    record_submit,
)

__all__ = [
    "bind_request_id",
    "configure_logging",
    "get_logger",
    "record_submit",
    "record_outcome",
    "record_retry",
    "record_controller_terminal",
]
