"""Header helpers for carrying the request id over HTTP.

The request id travels as an explicit correlation header on every submit,
retries included, and is echoed on every response:

    X-Request-ID: alice@example.com-1760000000000-k3j9x0a1b

Transient failures also carry a standard ``Retry-After`` header.
"""

REQUEST_ID_HEADER = "X-Request-ID"
RETRY_AFTER_HEADER = "Retry-After"


def extract_request_id(headers: dict[str, str]) -> str | None:
    """Extract the request id from request headers.

    Header names are matched case-insensitively and the value is stripped.

    Args:
        headers: Request headers

    Returns:
        The request id, or None if absent or blank

    Example:
        >>> extract_request_id({"x-request-id": " abc "})
        'abc'
        >>> extract_request_id({"content-type": "application/json"}) is None
        True
    """
    wanted = REQUEST_ID_HEADER.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            value = value.strip()
            return value or None
    return None


def build_response_headers(
    request_id: str,
    retry_after_seconds: int | None = None,
) -> dict[str, str]:
    """Build the correlation headers for a response.

    Args:
        request_id: Request id to echo
        retry_after_seconds: Adds Retry-After when given

    Returns:
        Header dictionary

    Example:
        >>> build_response_headers("abc", retry_after_seconds=1)
        {'X-Request-ID': 'abc', 'Retry-After': '1'}
    """
    headers = {REQUEST_ID_HEADER: request_id}
    if retry_after_seconds is not None:
        headers[RETRY_AFTER_HEADER] = str(retry_after_seconds)
    return headers
