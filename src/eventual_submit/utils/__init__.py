"""Utility modules for the submission protocol."""

from .headers import (
    REQUEST_ID_HEADER,
    RETRY_AFTER_HEADER,
    build_response_headers,
    extract_request_id,
)

__all__ = [
    "extract_request_id",
    "build_response_headers",
    "REQUEST_ID_HEADER",
    "RETRY_AFTER_HEADER",
]
