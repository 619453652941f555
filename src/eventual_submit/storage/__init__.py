"""Storage for idempotency ledger records.

All stores implement the LedgerStore protocol defined in base.py.

Available Stores:
    - MemoryLedgerStore: In-memory storage with per-key asyncio locks
"""

from eventual_submit.storage.base import LedgerStore
from eventual_submit.storage.memory import MemoryLedgerStore

__all__ = [
    "LedgerStore",
    "MemoryLedgerStore",
]
