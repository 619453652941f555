"""Server-side idempotency ledger.

The ledger maps request ids to submission records and answers submits and
status queries. It guarantees at most one record per request id for the
lifetime of the process:

    unseen id          -> create pending record, simulate, apply
    pending record     -> simulate again, apply to the same record
    completed record   -> replay the stored success, no simulation

Every read-modify-write for an id runs inside the store's per-key lock, and
the scheduled completion of a delayed success takes the same lock, so two
concurrent submits of one id (or a submit racing a completion) can never
produce divergent records.

Examples:
    Submitting and polling::

        from eventual_submit.core.ledger import IdempotencyLedger

        ledger = IdempotencyLedger()
        response = await ledger.submit(request_id, "alice@example.com", "100.50")

        if isinstance(response, AcceptedResponse):
            status = await ledger.get_status(request_id)
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from eventual_submit.config import SubmissionConfig
from eventual_submit.core.replay import (
    accepted_response,
    success_response,
    transient_failure_response,
)
from eventual_submit.core.scheduler import TaskScheduler
from eventual_submit.core.simulator import (
    Outcome,
    OutcomeDecision,
    OutcomeSimulator,
    RandomOutcomeSimulator,
)
from eventual_submit.exceptions import InvalidInputError, UnknownRequestIdError
from eventual_submit.models import (
    RecordStatus,
    StatusResponse,
    SubmissionRecord,
    SubmissionRequest,
    SubmissionResponse,
)
from eventual_submit.observability.logging import get_logger
from eventual_submit.observability.metrics import (
    increment_records,
    record_delayed_completion,
    record_outcome,
    record_submit,
)
from eventual_submit.storage.base import LedgerStore
from eventual_submit.storage.memory import MemoryLedgerStore

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class IdempotencyLedger:
    """In-memory idempotency ledger with simulated outcomes.

    Attributes:
        config: Outcome weights, delay window and retry hint
        store: Record storage
        simulator: Outcome source for non-replayed submits
    """

    def __init__(
        self,
        store: LedgerStore | None = None,
        simulator: OutcomeSimulator | None = None,
        config: SubmissionConfig | None = None,
        scheduler: TaskScheduler | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Record storage (a fresh MemoryLedgerStore by default)
            simulator: Outcome source (weighted random by default)
            config: Configuration (defaults if not provided)
            scheduler: Runs delayed completions (real-time by default)
            clock: Returns the current UTC time for record timestamps
        """
        self.config = config or SubmissionConfig()
        self.store = store if store is not None else MemoryLedgerStore()
        self.simulator = simulator or RandomOutcomeSimulator(self.config)
        self._scheduler = scheduler or TaskScheduler(name="ledger")
        self._clock = clock

    async def submit(self, request_id: str, email: Any, amount: Any) -> SubmissionResponse:
        """Handle a submit for ``request_id``.

        Duplicates never raise: a completed id is replayed, a pending id is
        decided again against the same record.

        Args:
            request_id: Idempotency key
            email: Submitter email
            amount: Submitted amount

        Returns:
            SuccessResponse, AcceptedResponse or TransientFailureResponse

        Raises:
            InvalidInputError: If the email or amount is malformed
        """
        try:
            request = SubmissionRequest.parse(request_id, email, amount)
        except InvalidInputError as e:
            record_submit("invalid")
            logger.info(
                "ledger.invalid_input",
                request_id=request_id,
                field=e.field,
                error=e.message,
            )
            raise

        async with self.store.lock(request_id):
            record = await self.store.get(request_id)

            if record is None:
                record = SubmissionRecord.from_request(request, created_at=self._clock())
                await self.store.insert(record)
                increment_records()
                record_submit("new")
                logger.info("ledger.record_created", request_id=request_id)
            else:
                if record.fingerprint != request.fingerprint:
                    # Stored email/amount win; the record is immutable
                    logger.warning(
                        "ledger.payload_mismatch",
                        request_id=request_id,
                        stored_fingerprint=record.fingerprint,
                        request_fingerprint=request.fingerprint,
                    )

                record = record.resubmitted()
                await self.store.replace(record)

                if record.status is RecordStatus.SUCCESS:
                    record_submit("replay")
                    logger.info(
                        "ledger.replayed",
                        request_id=request_id,
                        submit_count=record.submit_count,
                    )
                    return success_response(record)

                record_submit("retry")

            decision = self.simulator.decide(request)
            return await self._apply(record, decision)

    async def _apply(
        self, record: SubmissionRecord, decision: OutcomeDecision
    ) -> SubmissionResponse:
        """Apply a simulated outcome to a pending record.

        Must be called with the record's key lock held.
        """
        request_id = record.request_id
        record_outcome(decision.outcome.value)
        logger.info(
            "ledger.outcome",
            request_id=request_id,
            outcome=decision.outcome.value,
            delay_ms=decision.delay_ms,
            submit_count=record.submit_count,
        )

        if decision.outcome is Outcome.IMMEDIATE_SUCCESS:
            completed = record.mark_success(self._clock())
            await self.store.replace(completed)
            self._scheduler.cancel(request_id)
            return success_response(completed)

        if decision.outcome is Outcome.TRANSIENT_FAILURE:
            return transient_failure_response(record, self.config.retry_after_seconds)

        # Delayed success: keep an already scheduled completion
        now = self._clock()
        if record.expected_completion_at is not None and self._scheduler.is_scheduled(request_id):
            remaining = record.expected_completion_at - now
            return accepted_response(record, int(remaining.total_seconds() * 1000))

        delay_ms = decision.delay_ms or 0
        record = record.expecting_completion(now + timedelta(milliseconds=delay_ms))
        await self.store.replace(record)
        self._scheduler.schedule(
            request_id,
            delay_ms / 1000,
            lambda: self._complete_delayed(request_id),
        )
        return accepted_response(record, delay_ms)

    async def _complete_delayed(self, request_id: str) -> None:
        """Flip a pending record to success once its delay has elapsed.

        Runs whether or not the client ever polls again.
        """
        async with self.store.lock(request_id):
            record = await self.store.get(request_id)
            if record is None or record.status is RecordStatus.SUCCESS:
                return
            await self.store.replace(record.mark_success(self._clock()))

        record_delayed_completion()
        logger.info("ledger.delayed_completed", request_id=request_id)

    async def get_status(self, request_id: str) -> StatusResponse:
        """Return the current state of a record.

        Raises:
            UnknownRequestIdError: If the id was never submitted
        """
        record = await self.store.get(request_id)
        if record is None:
            logger.info("ledger.status_unknown", request_id=request_id)
            raise UnknownRequestIdError(request_id)
        return StatusResponse.from_record(record)

    async def record_count(self) -> int:
        return await self.store.count()

    def has_scheduled_completion(self, request_id: str) -> bool:
        return self._scheduler.is_scheduled(request_id)

    async def aclose(self) -> None:
        """Cancel every scheduled completion.

        Records that were still awaiting completion stay pending.
        """
        await self._scheduler.close()
