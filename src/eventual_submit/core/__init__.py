"""Core logic of the submission protocol.

This package contains the two cooperating state machines and their helpers:
- Controller: client-side idle/pending/success/error machine with retries
- Ledger: server-side idempotency ledger with simulated outcomes
- Simulator: outcome selection (immediate, transient, delayed)
- Scheduler: keyed, cancellable asyncio timers
- Channel: request/response transport between the two sides

The core is framework-agnostic; adapters expose it over HTTP.
"""

from eventual_submit.core.channel import LedgerChannel, SubmissionChannel
from eventual_submit.core.controller import SubmissionController
from eventual_submit.core.ledger import IdempotencyLedger
from eventual_submit.core.scheduler import TaskScheduler
from eventual_submit.core.simulator import (
    Outcome,
    OutcomeDecision,
    RandomOutcomeSimulator,
    ScriptedOutcomeSimulator,
)

__all__ = [
    "IdempotencyLedger",
    "LedgerChannel",
    "Outcome",
    "OutcomeDecision",
    "RandomOutcomeSimulator",
    "ScriptedOutcomeSimulator",
    "SubmissionChannel",
    "SubmissionController",
    "TaskScheduler",
]
