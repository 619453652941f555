"""
Eventually-consistent submission protocol.

This package pairs a client-side submission controller (single-flight,
exponential backoff, status polling) with a server-side idempotency ledger
that simulates immediate, transient and delayed outcomes, so that every
logical submission takes effect exactly once.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
