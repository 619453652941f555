"""Payload fingerprinting for submission requests.

A request id is only supposed to ever carry one payload. The ledger stores the
fingerprint of the payload it first saw for a key and compares it with every
later submit of the same key, so a client that reuses a key for a different
email or amount can be detected.
"""

import hashlib
import json
from decimal import Decimal


def canonical_amount(amount: Decimal) -> str:
    """Return the canonical string form of an amount.

    Amounts are compared by value with two fractional digits, so ``100.5``
    and ``100.50`` share a fingerprint.

    Examples:
        >>> canonical_amount(Decimal("100.5"))
        '100.50'
        >>> canonical_amount(Decimal("7"))
        '7.00'
    """
    return str(amount.quantize(Decimal("0.01")))


def compute_payload_fingerprint(email: str, amount: Decimal) -> str:
    """Compute a deterministic fingerprint for a submission payload.

    The fingerprint is computed from canonical representations:
    1. Email: surrounding whitespace stripped, lowercased
    2. Amount: quantized to two fractional digits
    3. Final: SHA-256 of the JSON object with sorted keys

    Args:
        email: Submitter email address
        amount: Submitted amount

    Returns:
        Hexadecimal SHA-256 hash string (64 characters)

    Examples:
        >>> a = compute_payload_fingerprint("Alice@Example.com", Decimal("100.5"))
        >>> b = compute_payload_fingerprint("alice@example.com", Decimal("100.50"))
        >>> a == b
        True
        >>> len(a)
        64
    """
    canonical = json.dumps(
        {"amount": canonical_amount(amount), "email": email.strip().lower()},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
