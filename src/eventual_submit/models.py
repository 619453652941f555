"""Core type definitions for the submission protocol.

This module provides the value objects exchanged between the submission
controller and the idempotency ledger: the immutable request, the
server-owned record, the three submit response variants, the status query
response, and the client-owned controller state.

Field names are snake_case in Python and camelCase on the wire
(``requestId``, ``estimatedDelayMs``...). Dump with ``by_alias=True`` to get
the wire form.

Examples:
    Creating a request for a new logical submission::

        from decimal import Decimal
        from eventual_submit.models import SubmissionRequest

        request = SubmissionRequest.create("alice@example.com", Decimal("100.50"))
        # request.request_id == "alice@example.com-1760000000000-k3j9x0a1b"

    Recording a completion::

        record = SubmissionRecord.from_request(request, created_at=datetime.now(UTC))
        record = record.mark_success(datetime.now(UTC))
        assert record.status is RecordStatus.SUCCESS
"""

import re
import time
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from eventual_submit.exceptions import InvalidInputError
from eventual_submit.fingerprint import compute_payload_fingerprint

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MAX_AMOUNT = Decimal("1000000000")

WIRE_MODEL_CONFIG: dict[str, Any] = {
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
}


def generate_request_id(email: str, timestamp_ms: int | None = None) -> str:
    """Build an idempotency key of the form ``{email}-{timestamp}-{token}``.

    Args:
        email: Submitter email address
        timestamp_ms: Epoch milliseconds (defaults to now)

    Returns:
        A new request id. Called once per logical submission, never per retry.

    Examples:
        >>> generate_request_id("a@b.io", 1700000000000).startswith("a@b.io-1700000000000-")
        True
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    token = uuid.uuid4().hex[:9]
    return f"{email}-{timestamp_ms}-{token}"


def _invalid_input(error: ValidationError) -> InvalidInputError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    return InvalidInputError(first.get("msg", str(error)), field=field)


class RecordStatus(str, Enum):
    """Server-side status of a submission record.

    Attributes:
        PENDING: Record exists, outcome not final yet.
        SUCCESS: Submission completed; final data is available.
    """

    PENDING = "pending"
    SUCCESS = "success"


class Phase(str, Enum):
    """Client-side phase of the submission controller."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class SubmissionRequest(BaseModel):
    """An immutable submission request.

    The request id is the idempotency key: it is generated once per logical
    submission and reused unchanged by every retry and poll.

    Attributes:
        request_id: Idempotency key, ``{email}-{timestamp}-{token}``.
        email: Submitter email address.
        amount: Submitted amount, positive with at most two decimals.
    """

    request_id: str = Field(..., min_length=1, max_length=320)
    email: str = Field(..., min_length=3, max_length=254)
    amount: Decimal

    model_config = WIRE_MODEL_CONFIG

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate the email has ``local@domain.tld`` shape.

        Raises:
            ValueError: If the address is malformed.
        """
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Invalid email address: {v!r}")
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Validate the amount is finite, positive and has at most two decimals.

        Raises:
            ValueError: If the amount is not a valid monetary value.
        """
        if not v.is_finite():
            raise ValueError("Amount must be a finite number")
        if v <= 0:
            raise ValueError(f"Amount must be greater than 0, got {v}")
        if v > MAX_AMOUNT:
            raise ValueError(f"Amount must not exceed {MAX_AMOUNT}, got {v}")
        exponent = v.normalize().as_tuple().exponent
        if isinstance(exponent, int) and exponent < -2:
            raise ValueError(f"Amount must have at most 2 decimal places, got {v}")
        return v

    @property
    def fingerprint(self) -> str:
        """SHA-256 fingerprint of the email/amount payload."""
        return compute_payload_fingerprint(self.email, self.amount)

    @classmethod
    def parse(cls, request_id: str, email: Any, amount: Any) -> "SubmissionRequest":
        """Validate raw values into a request.

        Raises:
            InvalidInputError: If any field is malformed.
        """
        try:
            return cls(request_id=request_id, email=email, amount=amount)
        except ValidationError as e:
            raise _invalid_input(e) from e

    @classmethod
    def create(cls, email: Any, amount: Any) -> "SubmissionRequest":
        """Validate a new logical submission and assign it a fresh request id.

        Raises:
            InvalidInputError: If the email or amount is malformed.
        """
        key = generate_request_id(email) if isinstance(email, str) else "invalid"
        return cls.parse(key, email, amount)


class SubmissionRecord(BaseModel):
    """Server-owned record of one logical submission.

    Records are immutable values. A state transition produces a new record
    which the store swaps in under the same key, so concurrent readers see
    either the old or the new record, never a mix.

    Attributes:
        request_id: The idempotency key.
        email: Submitter email (never changes once recorded).
        amount: Submitted amount (never changes once recorded).
        status: Current status.
        created_at: When the record was first created.
        completed_at: When the record turned to success.
        expected_completion_at: Deadline of a scheduled delayed completion.
        fingerprint: Payload fingerprint of the first submit.
        submit_count: Number of submit calls seen for this key.
    """

    request_id: str = Field(..., min_length=1, max_length=320)
    email: str
    amount: Decimal
    status: RecordStatus = RecordStatus.PENDING
    created_at: datetime
    completed_at: datetime | None = None
    expected_completion_at: datetime | None = None
    fingerprint: str = Field(..., pattern=r"^[a-f0-9]{64}$")
    submit_count: int = Field(default=1, ge=1)

    model_config = WIRE_MODEL_CONFIG

    @model_validator(mode="after")
    def validate_completion(self) -> "SubmissionRecord":
        """Validate completed_at is set exactly when the status is success.

        Raises:
            ValueError: If status and completed_at disagree.
        """
        if self.status is RecordStatus.SUCCESS and self.completed_at is None:
            raise ValueError("completed_at must be set when status is success")
        if self.status is RecordStatus.PENDING and self.completed_at is not None:
            raise ValueError("completed_at must be None while status is pending")
        return self

    @classmethod
    def from_request(cls, request: SubmissionRequest, created_at: datetime) -> "SubmissionRecord":
        return cls(
            request_id=request.request_id,
            email=request.email,
            amount=request.amount,
            created_at=created_at,
            fingerprint=request.fingerprint,
        )

    def mark_success(self, completed_at: datetime) -> "SubmissionRecord":
        """Return the success version of this record."""
        return self.model_copy(
            update={
                "status": RecordStatus.SUCCESS,
                "completed_at": completed_at,
                "expected_completion_at": None,
            }
        )

    def expecting_completion(self, at: datetime) -> "SubmissionRecord":
        return self.model_copy(update={"expected_completion_at": at})

    def resubmitted(self) -> "SubmissionRecord":
        return self.model_copy(update={"submit_count": self.submit_count + 1})


class SuccessResponse(BaseModel):
    """Submit outcome: the submission is complete (HTTP 200)."""

    http_status: ClassVar[int] = 200

    message: str
    request_id: str
    email: str
    amount: Decimal
    timestamp: datetime

    model_config = WIRE_MODEL_CONFIG


class AcceptedResponse(BaseModel):
    """Submit outcome: accepted, completes asynchronously (HTTP 202)."""

    http_status: ClassVar[int] = 202

    message: str
    request_id: str
    email: str
    amount: Decimal
    estimated_delay_ms: int = Field(..., ge=0)

    model_config = WIRE_MODEL_CONFIG


class TransientFailureResponse(BaseModel):
    """Submit outcome: temporarily unavailable, retry later (HTTP 503)."""

    http_status: ClassVar[int] = 503

    error: str
    request_id: str
    retry_after_seconds: int = Field(..., ge=0)

    model_config = WIRE_MODEL_CONFIG


SubmissionResponse = SuccessResponse | AcceptedResponse | TransientFailureResponse


class StatusResponse(BaseModel):
    """Answer to a status query for a known request id.

    ``timestamp`` is the completion time and is only present on success.
    """

    request_id: str
    status: RecordStatus
    email: str
    amount: Decimal
    timestamp: datetime | None = None

    model_config = WIRE_MODEL_CONFIG

    @classmethod
    def from_record(cls, record: SubmissionRecord) -> "StatusResponse":
        return cls(
            request_id=record.request_id,
            status=record.status,
            email=record.email,
            amount=record.amount,
            timestamp=record.completed_at,
        )


class ControllerState(BaseModel):
    """Client-owned snapshot of the submission controller.

    Each transition replaces the snapshot, so a state obtained from the
    controller never changes underneath the caller.

    Attributes:
        phase: Current phase.
        current_request_id: Idempotency key of the active lifecycle.
        retry_count: Retries performed so far (first attempt excluded).
        attempts: Dispatches made so far (first attempt included).
        last_error: Most recent failure reason.
        message: User-visible status line.
        estimated_delay_ms: Server estimate while awaiting a delayed completion.
        result: Final success payload.
    """

    phase: Phase = Phase.IDLE
    current_request_id: str | None = None
    retry_count: int = Field(default=0, ge=0)
    attempts: int = Field(default=0, ge=0)
    last_error: str | None = None
    message: str = ""
    estimated_delay_ms: int | None = None
    result: SuccessResponse | None = None

    model_config = {"frozen": True}

    def evolve(self, **changes: Any) -> "ControllerState":
        """Return a copy of this state with ``changes`` applied."""
        return self.model_copy(update=changes)
