"""HTTP adapters for the submission protocol.

- http: FastAPI application serving an IdempotencyLedger
- client: HTTPChannel, the httpx-based channel used by the controller
"""

from eventual_submit.adapters.client import HTTPChannel
from eventual_submit.adapters.http import create_app

__all__ = ["HTTPChannel", "create_app"]
