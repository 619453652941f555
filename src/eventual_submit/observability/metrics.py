"""Prometheus metrics for the submission protocol.

Ledger side:

- Submits by result (new, retry, replay, invalid)
- Simulated outcomes by kind
- Delayed completions that fired
- Records currently tracked

Controller side:

- Retries scheduled
- Lifecycles that ended, by terminal phase

Examples:
    >>> record_submit("replay")
    >>> record_outcome("delayed_success")
    >>> record_controller_terminal("error")
"""

from prometheus_client import Counter, Gauge

# Labels: result (new, retry, replay, invalid)
ledger_submits_total = Counter(
    "submission_ledger_submits_total",
    "Total number of submit calls handled by the idempotency ledger",
    ["result"],
)

# Labels: outcome (immediate_success, transient_failure, delayed_success)
ledger_outcomes_total = Counter(
    "submission_ledger_outcomes_total",
    "Total number of simulated outcomes applied by the ledger",
    ["outcome"],
)

ledger_delayed_completions_total = Counter(
    "submission_ledger_delayed_completions_total",
    "Total number of records completed by a scheduled delayed completion",
)

# Records are never deleted, so this only grows within a process
ledger_records = Gauge(
    "submission_ledger_records",
    "Number of submission records held by the ledger",
)

controller_retries_total = Counter(
    "submission_controller_retries_total",
    "Total number of retries scheduled by submission controllers",
)

# Labels: phase (success, error, cancelled)
controller_terminal_total = Counter(
    "submission_controller_terminal_total",
    "Total number of submission lifecycles that left the pending phase",
    ["phase"],
)


def record_submit(result: str) -> None:
    """Record a submit handled by the ledger.

    Args:
        result: One of new, retry, replay, invalid
    """
    ledger_submits_total.labels(result=result).inc()


def record_outcome(outcome: str) -> None:
    ledger_outcomes_total.labels(outcome=outcome).inc()


def record_delayed_completion() -> None:
    ledger_delayed_completions_total.inc()


def increment_records() -> None:
    """Increment the records gauge. Called when a new record is created."""
    ledger_records.inc()


def record_retry() -> None:
    controller_retries_total.inc()


def record_controller_terminal(phase: str) -> None:
    """Record a lifecycle leaving the pending phase.

    Args:
        phase: success, error, or cancelled
    """
    controller_terminal_total.labels(phase=phase).inc()
