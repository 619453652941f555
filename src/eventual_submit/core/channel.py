"""Request/response channel between controller and ledger.

The controller never touches the ledger directly. It talks to a channel,
which either delivers a response value or raises ChannelFailure when no
response could be obtained.

Available channels:
    - LedgerChannel: in-process, calls an IdempotencyLedger directly
    - HTTPChannel (eventual_submit.adapters.client): over HTTP via httpx
"""

from typing import Protocol, runtime_checkable

from eventual_submit.core.ledger import IdempotencyLedger
from eventual_submit.models import StatusResponse, SubmissionRequest, SubmissionResponse


@runtime_checkable
class SubmissionChannel(Protocol):
    """Transport used by the controller.

    Implementations raise:
        ChannelFailure: When no usable response was received
        InvalidInputError: When the server rejected the payload
        UnknownRequestIdError: When a status query names an unknown id
    """

    async def submit(self, request: SubmissionRequest) -> SubmissionResponse:
        """Send a submit for ``request``; retries reuse the same request."""
        ...

    async def get_status(self, request_id: str) -> StatusResponse:
        """Query the server-side status of ``request_id``."""
        ...


class LedgerChannel:
    """In-process channel delivering requests straight to a ledger.

    Only immutable values cross the channel, so the controller and ledger
    still share no mutable state.
    """

    def __init__(self, ledger: IdempotencyLedger) -> None:
        self.ledger = ledger

    async def submit(self, request: SubmissionRequest) -> SubmissionResponse:
        return await self.ledger.submit(request.request_id, request.email, request.amount)

    async def get_status(self, request_id: str) -> StatusResponse:
        return await self.ledger.get_status(request_id)
