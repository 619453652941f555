"""Custom exceptions for the submission protocol.

This module defines the error taxonomy shared by the controller, the ledger
and the channels between them.

Examples:
    Handling a channel failure in a dispatch::

        from eventual_submit.exceptions import ChannelFailure

        try:
            response = await channel.submit(request)
        except ChannelFailure as e:
            # No response at all, counts as a transient failure
            logger.warning("controller.channel_failure", error=e.message)

    Handling an unknown id on a status query::

        from eventual_submit.exceptions import UnknownRequestIdError

        try:
            status = await ledger.get_status(request_id)
        except UnknownRequestIdError:
            return JSONResponse(status_code=404, content={"error": "not found"})
"""


class SubmissionError(Exception):
    """Base exception for all submission-protocol errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class TransientFailureError(SubmissionError):
    """The server signalled temporary unavailability.

    Retryable within the controller's retry budget.

    Attributes:
        message: Human-readable error description.
        request_id: The request that failed.
        retry_after_seconds: Server-suggested wait before retrying.
    """

    def __init__(self, message: str, request_id: str, retry_after_seconds: int = 1) -> None:
        super().__init__(message)
        self.request_id = request_id
        self.retry_after_seconds = retry_after_seconds


class ChannelFailure(SubmissionError):
    """The request/response channel produced no usable response.

    Raised by channels for transport-level failures (connection refused,
    timeouts, undecodable bodies, unexpected status codes). The controller
    treats it exactly like a transient failure.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ExhaustedRetriesError(SubmissionError):
    """Every allowed retry ended in a transient failure.

    Terminal. Surfaced to the caller through the controller's error state.

    Attributes:
        message: Human-readable error description.
        request_id: The request that was given up on.
        attempts: Number of dispatches made, first attempt included.
        last_reason: The failure reason of the final attempt.
    """

    def __init__(self, request_id: str, attempts: int, last_reason: str) -> None:
        super().__init__(f"Submission failed after {attempts} attempts: {last_reason}")
        self.request_id = request_id
        self.attempts = attempts
        self.last_reason = last_reason


class UnknownRequestIdError(SubmissionError):
    """A status query named a request id that was never submitted.

    Terminal; status polls that hit it are not retried.

    Attributes:
        message: Human-readable error description.
        request_id: The unknown request id.
    """

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Unknown request id: {request_id}")
        self.request_id = request_id


class InvalidInputError(SubmissionError):
    """Malformed email or amount.

    Terminal. Invalid submissions are never dispatched and never retried.

    Attributes:
        message: Human-readable error description.
        field: Name of the offending field, when known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
