"""Client-side submission controller.

This module implements the client state machine of the protocol:

    idle -> pending -> success | error
    pending -> pending          (retry or poll, internal)
    success | error -> idle     (explicit reset)
    pending -> idle             (explicit cancel)

The controller is single-flight: while a submission is pending every new
start is rejected. A request id is generated once per logical submission and
reused by every retry and status poll.

Transient failures (and channel failures, which count the same) are retried
with exponential backoff, ``base_delay * 2^(n-1)`` before retry n, until the
retry budget is spent. Any unexpected error a channel raises counts as a
channel failure. An accepted response switches the controller to polling the
status endpoint until the record completes.

All waits are asyncio timers keyed by request id. Every timer callback first
checks that its captured request id is still the current one, so a timer
that fires after a reset or cancel has no effect.

Examples:
    Submitting through an in-process ledger::

        from eventual_submit.core.channel import LedgerChannel
        from eventual_submit.core.controller import SubmissionController
        from eventual_submit.core.ledger import IdempotencyLedger
        from eventual_submit.models import Phase

        controller = SubmissionController(LedgerChannel(IdempotencyLedger()))
        controller.start_submission("alice@example.com", "100.50")

        state = await controller.wait_settled()
        if state.phase is Phase.ERROR:
            print(state.last_error)
            controller.reset()
"""

import asyncio
import math

from eventual_submit.config import SubmissionConfig
from eventual_submit.core.channel import SubmissionChannel
from eventual_submit.core.scheduler import TaskScheduler
from eventual_submit.exceptions import (
    ChannelFailure,
    ExhaustedRetriesError,
    InvalidInputError,
    SubmissionError,
    TransientFailureError,
    UnknownRequestIdError,
)
from eventual_submit.models import (
    AcceptedResponse,
    ControllerState,
    Phase,
    RecordStatus,
    SubmissionRequest,
    SubmissionResponse,
    SuccessResponse,
)
from eventual_submit.observability.logging import get_logger
from eventual_submit.observability.metrics import record_controller_terminal, record_retry

logger = get_logger(__name__)

COMPLETED_MESSAGE = "Submission completed"


def _channel_failure(error: Exception) -> ChannelFailure:
    """Treat any error a channel raises as an undelivered request."""
    if isinstance(error, ChannelFailure):
        return error
    return ChannelFailure(f"Channel error: {error}", cause=error)


class SubmissionController:
    """Single-flight submission state machine with retry and polling.

    Attributes:
        channel: Transport to the ledger
        config: Retry budget, backoff base and poll interval
    """

    def __init__(
        self,
        channel: SubmissionChannel,
        config: SubmissionConfig | None = None,
        scheduler: TaskScheduler | None = None,
    ) -> None:
        """Initialize an idle controller.

        Args:
            channel: Transport to the ledger
            config: Configuration (defaults if not provided)
            scheduler: Runs retry and poll timers (real-time by default)
        """
        self.channel = channel
        self.config = config or SubmissionConfig()
        self._scheduler = scheduler or TaskScheduler(name="controller")
        self._state = ControllerState()
        self._request: SubmissionRequest | None = None
        self._error: SubmissionError | None = None
        self._settled = asyncio.Event()
        self._settled.set()

    @property
    def state(self) -> ControllerState:
        """Current immutable state snapshot."""
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def request(self) -> SubmissionRequest | None:
        return self._request

    @property
    def error(self) -> SubmissionError | None:
        """The terminal error of the last lifecycle, if it ended in error."""
        return self._error

    @property
    def status_message(self) -> str:
        return self._state.message

    def start_submission(self, email: object, amount: object) -> bool:
        """Start a new logical submission.

        Only valid while idle; otherwise nothing changes and False is
        returned.

        Args:
            email: Submitter email
            amount: Amount to submit

        Returns:
            True if the submission was started

        Raises:
            InvalidInputError: If the email or amount is malformed. The
                controller stays idle and nothing is dispatched.
        """
        if self._state.phase is not Phase.IDLE:
            logger.info(
                "controller.start_rejected",
                phase=self._state.phase.value,
                current_request_id=self._state.current_request_id,
            )
            return False

        request = SubmissionRequest.create(email, amount)
        request_id = request.request_id

        self._request = request
        self._error = None
        self._state = ControllerState(
            phase=Phase.PENDING,
            current_request_id=request_id,
            message="Submitting...",
        )
        self._settled.clear()
        logger.info("controller.started", request_id=request_id)

        self._scheduler.schedule(request_id, 0, lambda: self._dispatch(request_id))
        return True

    def _is_current(self, request_id: str) -> bool:
        return (
            self._state.phase is Phase.PENDING
            and self._state.current_request_id == request_id
        )

    async def _dispatch(self, request_id: str) -> None:
        request = self._request
        if request is None or not self._is_current(request_id):
            logger.debug("controller.stale_timer", request_id=request_id, timer="dispatch")
            return

        self._state = self._state.evolve(attempts=self._state.attempts + 1)
        logger.debug(
            "controller.dispatch",
            request_id=request_id,
            attempt=self._state.attempts,
            retry_count=self._state.retry_count,
        )

        try:
            response = await self.channel.submit(request)
        except InvalidInputError as e:
            self._fail(request_id, e)
            return
        except Exception as e:
            failure = _channel_failure(e)
            logger.warning(
                "controller.channel_failure",
                request_id=request_id,
                error=failure.message,
                error_type=type(e).__name__,
            )
            self._on_transient_failure(request_id, failure)
            return

        self.handle_response(response)

    def handle_response(self, response: SubmissionResponse) -> bool:
        """Interpret a submit response for the current request.

        Success finalizes, accepted switches to polling, transient failure
        goes through retry accounting.

        Args:
            response: A submit response

        Returns:
            False if the response belongs to a request that is no longer
            current (it is ignored), True otherwise
        """
        if not self._is_current(response.request_id):
            logger.info("controller.stale_response", request_id=response.request_id)
            return False

        if isinstance(response, SuccessResponse):
            self._succeed(response)
        elif isinstance(response, AcceptedResponse):
            self._await_completion(response)
        else:
            self._on_transient_failure(
                response.request_id,
                TransientFailureError(
                    response.error,
                    request_id=response.request_id,
                    retry_after_seconds=response.retry_after_seconds,
                ),
            )
        return True

    def _on_transient_failure(self, request_id: str, error: SubmissionError) -> None:
        """Retry accounting shared by transient and channel failures."""
        if not self._is_current(request_id):
            return

        state = self._state
        reason = error.message
        if state.retry_count >= self.config.max_retries:
            exhausted = ExhaustedRetriesError(request_id, state.attempts, reason)
            exhausted.__cause__ = error
            self._fail(request_id, exhausted)
            return

        retry_count = state.retry_count + 1
        delay = self.config.backoff_delay(retry_count)
        self._state = state.evolve(
            retry_count=retry_count,
            last_error=reason,
            message=(
                f"{reason}. Retrying in {delay:g}s "
                f"(retry {retry_count} of {self.config.max_retries})"
            ),
        )
        record_retry()
        logger.info(
            "controller.retry_scheduled",
            request_id=request_id,
            retry_count=retry_count,
            delay_seconds=delay,
            reason=reason,
        )
        self._scheduler.schedule(request_id, delay, lambda: self._dispatch(request_id))

    def _await_completion(self, response: AcceptedResponse) -> None:
        request_id = response.request_id
        delay_ms = response.estimated_delay_ms
        self._state = self._state.evolve(
            estimated_delay_ms=delay_ms,
            message=f"{response.message} (about {math.ceil(delay_ms / 1000)}s)",
        )
        logger.info("controller.poll_scheduled", request_id=request_id, delay_ms=delay_ms)
        self._scheduler.schedule(request_id, delay_ms / 1000, lambda: self._poll(request_id))

    async def _poll(self, request_id: str) -> None:
        if not self._is_current(request_id):
            logger.debug("controller.stale_timer", request_id=request_id, timer="poll")
            return

        try:
            status = await self.channel.get_status(request_id)
        except UnknownRequestIdError as e:
            self._fail(request_id, e)
            return
        except Exception as e:
            logger.warning(
                "controller.poll_failed",
                request_id=request_id,
                error=_channel_failure(e).message,
                error_type=type(e).__name__,
            )
            self._schedule_poll(request_id)
            return

        if not self._is_current(request_id):
            return

        if status.status is RecordStatus.SUCCESS and status.timestamp is not None:
            self._succeed(
                SuccessResponse(
                    message=COMPLETED_MESSAGE,
                    request_id=status.request_id,
                    email=status.email,
                    amount=status.amount,
                    timestamp=status.timestamp,
                )
            )
            return

        self._state = self._state.evolve(message="Still processing...")
        self._schedule_poll(request_id)

    def _schedule_poll(self, request_id: str) -> None:
        self._scheduler.schedule(
            request_id,
            self.config.poll_interval_seconds,
            lambda: self._poll(request_id),
        )

    def _succeed(self, response: SuccessResponse) -> None:
        self._scheduler.cancel(response.request_id)
        self._state = self._state.evolve(
            phase=Phase.SUCCESS,
            result=response,
            message=response.message,
            estimated_delay_ms=None,
        )
        self._settled.set()
        record_controller_terminal("success")
        logger.info(
            "controller.succeeded",
            request_id=response.request_id,
            attempts=self._state.attempts,
            retry_count=self._state.retry_count,
        )

    def _fail(self, request_id: str, error: SubmissionError) -> None:
        self._scheduler.cancel(request_id)
        self._error = error
        self._state = self._state.evolve(
            phase=Phase.ERROR,
            last_error=error.message,
            message=error.message,
            estimated_delay_ms=None,
        )
        self._settled.set()
        record_controller_terminal("error")
        logger.warning(
            "controller.failed",
            request_id=request_id,
            error=error.message,
            error_type=type(error).__name__,
            attempts=self._state.attempts,
        )

    def reset(self) -> bool:
        """Return to idle after a finished submission.

        Only valid from success or error.

        Returns:
            True if the controller was reset
        """
        if self._state.phase not in (Phase.SUCCESS, Phase.ERROR):
            logger.debug("controller.reset_rejected", phase=self._state.phase.value)
            return False

        if self._state.current_request_id is not None:
            self._scheduler.cancel(self._state.current_request_id)
        self._state = ControllerState()
        self._request = None
        self._error = None
        logger.info("controller.reset")
        return True

    def cancel(self) -> bool:
        """Abandon the pending submission and return to idle.

        Outstanding timers are cancelled; one that fires anyway is ignored
        because its request id is no longer current.

        Returns:
            True if a pending submission was abandoned
        """
        if self._state.phase is not Phase.PENDING:
            return False

        request_id = self._state.current_request_id
        if request_id is not None:
            self._scheduler.cancel(request_id)
        self._state = ControllerState()
        self._request = None
        self._settled.set()
        record_controller_terminal("cancelled")
        logger.info("controller.cancelled", request_id=request_id)
        return True

    async def wait_settled(self, timeout: float | None = None) -> ControllerState:
        """Wait until the controller is no longer pending.

        Args:
            timeout: Seconds to wait; None waits forever

        Returns:
            The state at the time the controller settled

        Raises:
            asyncio.TimeoutError: If still pending after ``timeout``
        """
        await asyncio.wait_for(self._settled.wait(), timeout=timeout)
        return self._state

    async def close(self) -> None:
        """Cancel every outstanding timer."""
        await self._scheduler.close()
