"""Unit tests for IdempotencyLedger.

This test suite covers:
    - Record creation and the single-record-per-id invariant
    - Each simulated outcome applied to a record
    - Replay of completed records without re-simulation
    - Delayed completion independent of polling
    - Status queries and input validation
"""

import asyncio
from decimal import Decimal

import pytest

from eventual_submit.core.ledger import IdempotencyLedger
from eventual_submit.core.scheduler import TaskScheduler
from eventual_submit.core.simulator import OutcomeDecision, ScriptedOutcomeSimulator
from eventual_submit.exceptions import InvalidInputError, UnknownRequestIdError
from eventual_submit.models import (
    AcceptedResponse,
    RecordStatus,
    SuccessResponse,
    TransientFailureResponse,
)

SUCCESS = OutcomeDecision.immediate_success()
TRANSIENT = OutcomeDecision.transient_failure()


def delayed(ms: int = 6000) -> OutcomeDecision:
    return OutcomeDecision.delayed_success(ms)


@pytest.fixture
def make_ledger(manual_clock):
    """Build ledgers on virtual time with a scripted outcome sequence."""

    def _make(*decisions: OutcomeDecision) -> IdempotencyLedger:
        return IdempotencyLedger(
            simulator=ScriptedOutcomeSimulator(list(decisions)),
            scheduler=TaskScheduler(sleep=manual_clock.sleep, name="ledger"),
            clock=manual_clock.now,
        )

    return _make


# ============================================================================
# Outcomes
# ============================================================================


@pytest.mark.asyncio
async def test_immediate_success(make_ledger, manual_clock, sample_request_id, sample_email):
    ledger = make_ledger(SUCCESS)

    response = await ledger.submit(sample_request_id, sample_email, "100.50")

    assert isinstance(response, SuccessResponse)
    assert response.request_id == sample_request_id
    assert response.email == sample_email
    assert response.amount == Decimal("100.50")
    assert response.timestamp == manual_clock.now()

    record = await ledger.store.get(sample_request_id)
    assert record.status is RecordStatus.SUCCESS
    assert await ledger.record_count() == 1
    await ledger.aclose()


@pytest.mark.asyncio
async def test_transient_failure_keeps_pending_record(make_ledger, sample_request_id, sample_email):
    ledger = make_ledger(TRANSIENT)

    response = await ledger.submit(sample_request_id, sample_email, "5")

    assert isinstance(response, TransientFailureResponse)
    assert response.request_id == sample_request_id
    assert response.retry_after_seconds == 1
    record = await ledger.store.get(sample_request_id)
    assert record.status is RecordStatus.PENDING
    assert record.completed_at is None
    await ledger.aclose()


@pytest.mark.asyncio
async def test_retry_of_transient_reuses_record(make_ledger, sample_request_id, sample_email):
    ledger = make_ledger(TRANSIENT, TRANSIENT, SUCCESS)

    for _ in range(2):
        await ledger.submit(sample_request_id, sample_email, "5")
    response = await ledger.submit(sample_request_id, sample_email, "5")

    assert isinstance(response, SuccessResponse)
    record = await ledger.store.get(sample_request_id)
    assert record.submit_count == 3
    assert await ledger.record_count() == 1
    await ledger.aclose()


@pytest.mark.asyncio
async def test_delayed_success_completes_without_polling(
    make_ledger, manual_clock, sample_request_id, sample_email
):
    ledger = make_ledger(delayed(6000))

    response = await ledger.submit(sample_request_id, sample_email, "42")

    assert isinstance(response, AcceptedResponse)
    assert response.estimated_delay_ms == 6000
    assert ledger.has_scheduled_completion(sample_request_id)

    await manual_clock.advance(5.9)
    status = await ledger.get_status(sample_request_id)
    assert status.status is RecordStatus.PENDING
    assert status.timestamp is None

    await manual_clock.advance(0.1)
    status = await ledger.get_status(sample_request_id)
    assert status.status is RecordStatus.SUCCESS
    assert status.timestamp == manual_clock.now()
    assert not ledger.has_scheduled_completion(sample_request_id)
    await ledger.aclose()


@pytest.mark.asyncio
async def test_resubmit_while_delayed_keeps_schedule(
    make_ledger, manual_clock, sample_request_id, sample_email
):
    ledger = make_ledger(delayed(6000), delayed(9000))

    await ledger.submit(sample_request_id, sample_email, "42")
    await manual_clock.advance(2)
    response = await ledger.submit(sample_request_id, sample_email, "42")

    assert isinstance(response, AcceptedResponse)
    assert response.estimated_delay_ms == 4000

    await manual_clock.advance(4)
    status = await ledger.get_status(sample_request_id)
    assert status.status is RecordStatus.SUCCESS
    await ledger.aclose()


@pytest.mark.asyncio
async def test_immediate_success_cancels_delayed_completion(
    make_ledger, manual_clock, sample_request_id, sample_email
):
    ledger = make_ledger(delayed(6000), SUCCESS)

    await ledger.submit(sample_request_id, sample_email, "42")
    await manual_clock.advance(1)
    response = await ledger.submit(sample_request_id, sample_email, "42")

    assert isinstance(response, SuccessResponse)
    assert response.timestamp == manual_clock.now()
    assert not ledger.has_scheduled_completion(sample_request_id)

    await manual_clock.advance(10)
    record = await ledger.store.get(sample_request_id)
    assert record.completed_at == response.timestamp
    await ledger.aclose()


# ============================================================================
# Idempotent replay
# ============================================================================


@pytest.mark.asyncio
async def test_completed_record_is_replayed(make_ledger, manual_clock, sample_request_id, sample_email):
    ledger = make_ledger(SUCCESS, TRANSIENT)

    first = await ledger.submit(sample_request_id, sample_email, "100.50")
    await manual_clock.advance(30)
    second = await ledger.submit(sample_request_id, sample_email, "100.50")

    assert isinstance(second, SuccessResponse)
    assert second.model_dump() == first.model_dump()
    assert ledger.simulator.calls == 1
    await ledger.aclose()


@pytest.mark.asyncio
async def test_replay_after_delayed_completion(make_ledger, manual_clock, sample_request_id, sample_email):
    ledger = make_ledger(delayed(5000), TRANSIENT)

    await ledger.submit(sample_request_id, sample_email, "7")
    await manual_clock.advance(5)
    response = await ledger.submit(sample_request_id, sample_email, "7")

    assert isinstance(response, SuccessResponse)
    assert response.timestamp == manual_clock.now()
    await ledger.aclose()


@pytest.mark.asyncio
async def test_payload_mismatch_answers_from_stored_record(
    make_ledger, sample_request_id, sample_email
):
    ledger = make_ledger(SUCCESS)

    await ledger.submit(sample_request_id, sample_email, "100.50")
    response = await ledger.submit(sample_request_id, "mallory@example.com", "999")

    assert isinstance(response, SuccessResponse)
    assert response.email == sample_email
    assert response.amount == Decimal("100.50")
    await ledger.aclose()


@pytest.mark.asyncio
async def test_concurrent_submits_create_one_record(make_ledger, sample_request_id, sample_email):
    ledger = make_ledger(SUCCESS)

    responses = await asyncio.gather(
        *(ledger.submit(sample_request_id, sample_email, "10") for _ in range(5))
    )

    assert await ledger.record_count() == 1
    assert all(isinstance(r, SuccessResponse) for r in responses)
    assert len({r.timestamp for r in responses}) == 1
    assert ledger.simulator.calls == 1
    record = await ledger.store.get(sample_request_id)
    assert record.submit_count == 5
    await ledger.aclose()


@pytest.mark.asyncio
async def test_distinct_ids_get_distinct_records(make_ledger, sample_email):
    ledger = make_ledger(SUCCESS)

    await ledger.submit("id-1", sample_email, "1")
    await ledger.submit("id-2", sample_email, "1")

    assert await ledger.record_count() == 2
    await ledger.aclose()


# ============================================================================
# Status and validation
# ============================================================================


@pytest.mark.asyncio
async def test_status_unknown_id(make_ledger):
    ledger = make_ledger(SUCCESS)
    with pytest.raises(UnknownRequestIdError) as exc_info:
        await ledger.get_status("never-submitted")
    assert exc_info.value.request_id == "never-submitted"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,amount",
    [
        ("not-an-email", "10"),
        ("alice@example.com", "0"),
        ("alice@example.com", "-5"),
        ("alice@example.com", "1.234"),
        ("alice@example.com", "abc"),
        (None, "10"),
    ],
)
async def test_invalid_input_creates_no_record(make_ledger, email, amount):
    ledger = make_ledger(SUCCESS)

    with pytest.raises(InvalidInputError):
        await ledger.submit("bad-1", email, amount)

    assert await ledger.record_count() == 0
    assert ledger.simulator.calls == 0


@pytest.mark.asyncio
async def test_aclose_leaves_delayed_record_pending(make_ledger, manual_clock, sample_request_id, sample_email):
    ledger = make_ledger(delayed(6000))

    await ledger.submit(sample_request_id, sample_email, "42")
    await ledger.aclose()
    await manual_clock.advance(10)

    status = await ledger.get_status(sample_request_id)
    assert status.status is RecordStatus.PENDING
    assert not ledger.has_scheduled_completion(sample_request_id)
