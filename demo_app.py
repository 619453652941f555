"""Demo of the eventually-consistent submission protocol.

Run the ledger server with:   python demo_app.py
Then run a client against it: python demo_app.py client alice@example.com 100.50

The server answers each new submission with a random outcome (immediate
success, transient failure or delayed success); the client retries with
exponential backoff and polls until the submission settles.
"""

import asyncio
import sys

import uvicorn

from eventual_submit.adapters.client import HTTPChannel
from eventual_submit.adapters.http import create_app
from eventual_submit.config import SubmissionConfig
from eventual_submit.core.controller import SubmissionController
from eventual_submit.models import Phase
from eventual_submit.observability.logging import configure_logging

config = SubmissionConfig.from_env()
app = create_app(config=config)


async def run_client(email: str, amount: str, base_url: str = "http://localhost:8000") -> int:
    async with HTTPChannel(base_url) as channel:
        controller = SubmissionController(channel, config=config)
        controller.start_submission(email, amount)
        state = await controller.wait_settled()
        await controller.close()

    if state.phase is Phase.SUCCESS and state.result is not None:
        print(f"Success: {state.result.model_dump_json(by_alias=True)}")
        return 0
    print(f"Failed: {state.last_error}")
    return 1


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "client":
        configure_logging(level="INFO", json_output=False)
        email = sys.argv[2] if len(sys.argv) > 2 else "alice@example.com"
        amount = sys.argv[3] if len(sys.argv) > 3 else "100.50"
        sys.exit(asyncio.run(run_client(email, amount)))

    configure_logging(level="INFO", json_output=True)
    print("=" * 60)
    print("Eventual Submit Ledger Demo Server")
    print("=" * 60)
    print("\nStarting server at http://localhost:8000")
    print("\nTry these commands:")
    print("  curl -X POST http://localhost:8000/api/submit \\")
    print("       -H 'X-Request-ID: demo-1' -H 'content-type: application/json' \\")
    print("       -d '{\"email\": \"alice@example.com\", \"amount\": \"100.50\"}'")
    print("  curl http://localhost:8000/api/status/demo-1")
    print("  python demo_app.py client alice@example.com 100.50")
    print("\nPress Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
