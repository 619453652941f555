"""Scenario 2: Transient Failures

The server keeps answering "temporarily unavailable":
- The controller retries with 1s, 2s and 4s backoff, reusing the request id
- After the retry budget is spent it ends in error, at least 7s after start
- No further submits are sent once in error
- A failure followed by success recovers within the budget
"""

import pytest

from eventual_submit.core.channel import LedgerChannel
from eventual_submit.core.controller import SubmissionController
from eventual_submit.core.ledger import IdempotencyLedger
from eventual_submit.core.scheduler import TaskScheduler
from eventual_submit.core.simulator import OutcomeDecision, ScriptedOutcomeSimulator
from eventual_submit.exceptions import ExhaustedRetriesError
from eventual_submit.models import Phase, RecordStatus

TRANSIENT = OutcomeDecision.transient_failure()
SUCCESS = OutcomeDecision.immediate_success()


def build(manual_clock, *decisions: OutcomeDecision) -> tuple[SubmissionController, IdempotencyLedger]:
    ledger = IdempotencyLedger(
        simulator=ScriptedOutcomeSimulator(list(decisions)),
        scheduler=TaskScheduler(sleep=manual_clock.sleep, name="ledger"),
        clock=manual_clock.now,
    )
    controller = SubmissionController(
        LedgerChannel(ledger),
        scheduler=TaskScheduler(sleep=manual_clock.sleep, name="controller"),
    )
    return controller, ledger


@pytest.mark.asyncio
async def test_retries_exhausted(manual_clock):
    controller, ledger = build(manual_clock, TRANSIENT)

    controller.start_submission("alice@example.com", "10")
    await manual_clock.advance(6.9)
    assert controller.phase is Phase.PENDING
    assert controller.state.retry_count == 3

    await manual_clock.advance(0.1)
    assert controller.phase is Phase.ERROR
    assert manual_clock.elapsed >= 7
    assert manual_clock.sleeps == [1.0, 2.0, 4.0]
    assert isinstance(controller.error, ExhaustedRetriesError)
    assert controller.state.attempts == 4

    record = await ledger.store.get(controller.state.current_request_id)
    assert record.status is RecordStatus.PENDING
    assert record.submit_count == 4
    assert await ledger.record_count() == 1

    await manual_clock.advance(30)
    assert ledger.simulator.calls == 4


@pytest.mark.asyncio
async def test_recovers_within_budget(manual_clock):
    controller, ledger = build(manual_clock, TRANSIENT, TRANSIENT, TRANSIENT, SUCCESS)

    controller.start_submission("alice@example.com", "10")
    await manual_clock.advance(7)

    assert controller.phase is Phase.SUCCESS
    assert controller.state.retry_count == 3
    record = await ledger.store.get(controller.state.current_request_id)
    assert record.status is RecordStatus.SUCCESS
    assert record.submit_count == 4


@pytest.mark.asyncio
async def test_reset_after_error_starts_fresh(manual_clock):
    controller, ledger = build(manual_clock, TRANSIENT, TRANSIENT, TRANSIENT, TRANSIENT, SUCCESS)

    controller.start_submission("alice@example.com", "10")
    await manual_clock.advance(7)
    failed_id = controller.state.current_request_id
    assert controller.phase is Phase.ERROR

    assert controller.reset()
    controller.start_submission("alice@example.com", "10")
    await manual_clock.settle()

    assert controller.phase is Phase.SUCCESS
    assert controller.state.current_request_id != failed_id
    assert await ledger.record_count() == 2
