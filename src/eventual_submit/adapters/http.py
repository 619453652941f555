"""FastAPI application exposing an idempotency ledger over HTTP.

Routes:
    POST /api/submit               body {email, amount}, header X-Request-ID
        200 success | 202 accepted | 503 transient failure | 400 invalid input
    GET  /api/status/{request_id}
        200 status | 404 unknown request id

The request id may also be given as ``requestId`` in the submit body; the
header wins when both are present.

Examples:
    Serving a ledger::

        import uvicorn
        from eventual_submit.adapters.http import create_app

        app = create_app()
        uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from eventual_submit import __version__
from eventual_submit.config import SubmissionConfig
from eventual_submit.core.ledger import IdempotencyLedger
from eventual_submit.exceptions import InvalidInputError, UnknownRequestIdError
from eventual_submit.models import WIRE_MODEL_CONFIG, TransientFailureResponse
from eventual_submit.observability.logging import bind_request_id
from eventual_submit.utils.headers import build_response_headers, extract_request_id


class SubmitPayload(BaseModel):
    """Submit body. Values are validated by the ledger, not here."""

    email: Any = None
    amount: Any = None
    request_id: str | None = None

    model_config = WIRE_MODEL_CONFIG


def _error(status_code: int, message: str, request_id: str | None, **extra: Any) -> JSONResponse:
    headers = build_response_headers(request_id) if request_id else None
    content: dict[str, Any] = {"error": message, "requestId": request_id}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def create_app(
    ledger: IdempotencyLedger | None = None,
    config: SubmissionConfig | None = None,
) -> FastAPI:
    """Create a FastAPI app serving ``ledger``.

    Args:
        ledger: Ledger to expose (a new one built from ``config`` by default)
        config: Configuration used when creating the ledger

    Returns:
        The FastAPI application; ``app.state.ledger`` holds the ledger
    """
    ledger = ledger or IdempotencyLedger(config=config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await ledger.aclose()

    app = FastAPI(
        title="Eventual Submit Ledger",
        description="Idempotency ledger with simulated eventually-consistent outcomes",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.ledger = ledger

    @app.post("/api/submit")
    async def submit(payload: SubmitPayload, request: Request) -> JSONResponse:
        request_id = extract_request_id(dict(request.headers)) or payload.request_id
        if not request_id:
            return _error(400, "Missing X-Request-ID header", None)

        try:
            with bind_request_id(request_id):
                response = await ledger.submit(request_id, payload.email, payload.amount)
        except InvalidInputError as e:
            return _error(400, e.message, request_id, field=e.field)

        retry_after = (
            response.retry_after_seconds
            if isinstance(response, TransientFailureResponse)
            else None
        )
        return JSONResponse(
            status_code=response.http_status,
            content=response.model_dump(mode="json", by_alias=True),
            headers=build_response_headers(request_id, retry_after_seconds=retry_after),
        )

    @app.get("/api/status/{request_id:path}")
    async def get_status(request_id: str) -> JSONResponse:
        try:
            status = await ledger.get_status(request_id)
        except UnknownRequestIdError as e:
            return _error(404, e.message, request_id)

        return JSONResponse(
            status_code=200,
            content=status.model_dump(mode="json", by_alias=True),
            headers=build_response_headers(request_id),
        )

    return app
