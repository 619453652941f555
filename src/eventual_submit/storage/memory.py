"""In-memory ledger store with asyncio concurrency control.

This module provides the process-wide in-memory implementation of the
LedgerStore protocol. Records live until the process exits.

Thread Safety:
    - Each request id has its own asyncio.Lock
    - A global lock protects the _locks dictionary
    - Records are immutable; replace() swaps whole values

Examples:
    Basic usage::

        from eventual_submit.storage.memory import MemoryLedgerStore

        store = MemoryLedgerStore()

        async with store.lock("alice@example.com-1760000000000-k3j9x0a1b"):
            record = await store.get("alice@example.com-1760000000000-k3j9x0a1b")
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from eventual_submit.models import SubmissionRecord
from eventual_submit.storage.base import LedgerStore


class MemoryLedgerStore(LedgerStore):
    """In-memory ledger store with per-key asyncio.Lock.

    Attributes:
        _records: Dictionary mapping request ids to SubmissionRecord objects.
        _locks: Dictionary mapping request ids to asyncio.Lock objects.
        _global_lock: Lock protecting the _locks dictionary.
    """

    def __init__(self) -> None:
        self._records: dict[str, SubmissionRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    async def _lock_for(self, request_id: str) -> asyncio.Lock:
        async with self._global_lock:
            if request_id not in self._locks:
                self._locks[request_id] = asyncio.Lock()
            return self._locks[request_id]

    @asynccontextmanager
    async def lock(self, request_id: str) -> AsyncIterator[None]:
        """Hold the critical section for ``request_id``.

        Holders of other keys are not blocked.
        """
        key_lock = await self._lock_for(request_id)
        async with key_lock:
            yield

    async def get(self, request_id: str) -> SubmissionRecord | None:
        """Retrieve a record by request id.

        Args:
            request_id: The request id to look up.

        Returns:
            The record if found, None otherwise.
        """
        return self._records.get(request_id)

    async def insert(self, record: SubmissionRecord) -> bool:
        """Store a new record unless one already exists for its key.

        Args:
            record: The record to store.

        Returns:
            True if stored, False if the key was already taken.
        """
        if record.request_id in self._records:
            return False
        self._records[record.request_id] = record
        return True

    async def replace(self, record: SubmissionRecord) -> None:
        """Swap in a new version of an existing record.

        Raises:
            KeyError: If the record was never inserted.
        """
        if record.request_id not in self._records:
            raise KeyError(record.request_id)
        self._records[record.request_id] = record

    async def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        """Drop every record and lock.

        Only for resetting an isolated store between test runs; the ledger
        itself never deletes records.
        """
        self._records.clear()
        self._locks.clear()
