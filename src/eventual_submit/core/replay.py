"""Response construction from ledger records.

Every submit response is derived from the stored record rather than from
the incoming request, so the answer for a key only depends on what the
ledger holds. In particular a success response is a pure function of the
completed record: replaying a completed key yields a payload identical to
the one the first completion produced.

Examples:
    Replay a completed record::

        from eventual_submit.core.replay import success_response

        response = success_response(record)
        # response.timestamp == record.completed_at
"""

from eventual_submit.models import (
    AcceptedResponse,
    RecordStatus,
    SubmissionRecord,
    SuccessResponse,
    TransientFailureResponse,
)

SUCCESS_MESSAGE = "Submission successful"
ACCEPTED_MESSAGE = "Submission accepted and is being processed"
TRANSIENT_ERROR = "Service temporarily unavailable, please retry"


def success_response(record: SubmissionRecord) -> SuccessResponse:
    """Build the success payload of a completed record.

    Args:
        record: A record with status success

    Returns:
        SuccessResponse whose timestamp is the record's completion time

    Raises:
        ValueError: If the record is not completed
    """
    if record.status is not RecordStatus.SUCCESS or record.completed_at is None:
        raise ValueError(f"Record {record.request_id} is not completed")

    return SuccessResponse(
        message=SUCCESS_MESSAGE,
        request_id=record.request_id,
        email=record.email,
        amount=record.amount,
        timestamp=record.completed_at,
    )


def accepted_response(record: SubmissionRecord, estimated_delay_ms: int) -> AcceptedResponse:
    return AcceptedResponse(
        message=ACCEPTED_MESSAGE,
        request_id=record.request_id,
        email=record.email,
        amount=record.amount,
        estimated_delay_ms=max(0, estimated_delay_ms),
    )


def transient_failure_response(
    record: SubmissionRecord, retry_after_seconds: int
) -> TransientFailureResponse:
    return TransientFailureResponse(
        error=TRANSIENT_ERROR,
        request_id=record.request_id,
        retry_after_seconds=retry_after_seconds,
    )
