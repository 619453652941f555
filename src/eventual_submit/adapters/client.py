"""HTTP channel for the submission controller.

HTTPChannel implements the SubmissionChannel protocol on top of
``httpx.AsyncClient`` and talks to the routes served by
``eventual_submit.adapters.http``. Transport problems become ChannelFailure,
which the controller retries like any transient failure.

Examples:
    Against a running server::

        from eventual_submit.adapters.client import HTTPChannel
        from eventual_submit.core.controller import SubmissionController

        async with HTTPChannel("http://localhost:8000") as channel:
            controller = SubmissionController(channel)
            controller.start_submission("alice@example.com", "100.50")
            await controller.wait_settled()

    In-process, against the ASGI app::

        transport = httpx.ASGITransport(app=create_app())
        client = httpx.AsyncClient(transport=transport, base_url="http://ledger")
        channel = HTTPChannel(client=client)
"""

from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from eventual_submit.exceptions import ChannelFailure, InvalidInputError, UnknownRequestIdError
from eventual_submit.models import (
    AcceptedResponse,
    StatusResponse,
    SubmissionRequest,
    SubmissionResponse,
    SuccessResponse,
    TransientFailureResponse,
)
from eventual_submit.observability.logging import get_logger
from eventual_submit.utils.headers import REQUEST_ID_HEADER

logger = get_logger(__name__)

SUBMIT_PATH = "/api/submit"
STATUS_PATH = "/api/status/{request_id}"

RESPONSE_TYPES: dict[int, type[SuccessResponse | AcceptedResponse | TransientFailureResponse]] = {
    200: SuccessResponse,
    202: AcceptedResponse,
    503: TransientFailureResponse,
}


def status_path(request_id: str) -> str:
    """Status URL path for ``request_id``, percent-encoded as one segment."""
    return STATUS_PATH.format(request_id=quote(request_id, safe="@"))


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ChannelFailure(f"Undecodable response body (HTTP {response.status_code})", cause=e) from e


def parse_submit_response(response: httpx.Response) -> SubmissionResponse:
    """Turn an HTTP submit answer into a response value.

    Raises:
        InvalidInputError: On 400/422
        ChannelFailure: On any other status or an unparseable body
    """
    status_code = response.status_code
    if status_code in (400, 422):
        body = _json_body(response)
        message = body.get("error") if isinstance(body, dict) else None
        raise InvalidInputError(message or f"Rejected by server (HTTP {status_code})")

    response_type = RESPONSE_TYPES.get(status_code)
    if response_type is None:
        raise ChannelFailure(f"Unexpected HTTP status {status_code}")

    try:
        return response_type.model_validate(_json_body(response))
    except ValidationError as e:
        raise ChannelFailure(f"Malformed {status_code} response body", cause=e) from e


class HTTPChannel:
    """SubmissionChannel over HTTP.

    Attributes:
        base_url: Server root URL
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the channel.

        Args:
            base_url: Server root URL (ignored when ``client`` is given)
            client: Preconfigured client; the channel then does not own it
            timeout: Request timeout in seconds for an owned client
        """
        self.base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def submit(self, request: SubmissionRequest) -> SubmissionResponse:
        try:
            response = await self._client.post(
                SUBMIT_PATH,
                json={"email": request.email, "amount": str(request.amount)},
                headers={REQUEST_ID_HEADER: request.request_id},
            )
        except httpx.RequestError as e:
            raise ChannelFailure(f"Submit failed: {e}", cause=e) from e

        logger.debug(
            "channel.submit_response",
            request_id=request.request_id,
            status_code=response.status_code,
        )
        return parse_submit_response(response)

    async def get_status(self, request_id: str) -> StatusResponse:
        """Query the status of ``request_id``.

        Raises:
            UnknownRequestIdError: On 404
            ChannelFailure: On transport errors or unexpected answers
        """
        try:
            response = await self._client.get(
                status_path(request_id),
                headers={REQUEST_ID_HEADER: request_id},
            )
        except httpx.RequestError as e:
            raise ChannelFailure(f"Status query failed: {e}", cause=e) from e

        if response.status_code == 404:
            raise UnknownRequestIdError(request_id)
        if response.status_code != 200:
            raise ChannelFailure(f"Unexpected HTTP status {response.status_code}")

        try:
            return StatusResponse.model_validate(_json_body(response))
        except ValidationError as e:
            raise ChannelFailure("Malformed status response body", cause=e) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HTTPChannel":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
