"""Ledger store protocol.

The idempotency ledger keeps its records behind this interface so that tests
(or a future backend) can substitute an isolated instance. The store only
holds records; every decision about them is made by the ledger.

Examples:
    Using a store from ledger code::

        async with store.lock(request_id):
            record = await store.get(request_id)
            if record is None:
                await store.insert(SubmissionRecord.from_request(request, now))
            else:
                await store.replace(record.resubmitted())

Thread Safety and Atomicity Requirements:
    All LedgerStore implementations MUST guarantee:

    1. **Per-key critical sections**: ``lock(request_id)`` serializes every
       holder of the same key; holders of different keys never wait on each
       other.

    2. **Single record per key**: ``insert()`` never overwrites. It returns
       False when a record already exists.

    3. **Whole-record swaps**: ``replace()`` swaps the stored value in one
       step, so ``get()`` returns either the old or the new record.

    4. **No deletion**: records live for the lifetime of the store.
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from eventual_submit.models import SubmissionRecord


@runtime_checkable
class LedgerStore(Protocol):
    """Protocol defining the interface for ledger record storage.

    Thread Safety:
        Methods must be safe to call concurrently from multiple asyncio tasks.
        Check-then-act sequences on one key are only atomic inside
        ``lock(request_id)``.
    """

    def lock(self, request_id: str) -> AbstractAsyncContextManager[None]:
        """Return an async context manager holding the critical section for a key.

        Args:
            request_id: The key to serialize on.
        """
        ...

    async def get(self, request_id: str) -> SubmissionRecord | None:
        """Retrieve a record by request id.

        Returns:
            The record if present, None otherwise.
        """
        ...

    async def insert(self, record: SubmissionRecord) -> bool:
        """Store a new record.

        Returns:
            True if stored, False if a record for the key already exists
            (the existing record is left untouched).
        """
        ...

    async def replace(self, record: SubmissionRecord) -> None:
        """Swap in a new version of an existing record.

        Raises:
            KeyError: If no record exists for ``record.request_id``.
        """
        ...

    async def count(self) -> int:
        """Return the number of records held."""
        ...
