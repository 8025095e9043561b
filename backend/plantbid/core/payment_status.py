"""Payment Status Normalization — the single place raw provider strings are interpreted.

Invariants:
    - normalize_payment_status is PURE and total: every input maps to a PaymentStatus
    - Case and surrounding whitespace are ignored
    - Unrecognized strings map to UNKNOWN (never to SUCCESS)
    - Partial cancellation counts as CANCELLED

Design Decisions:
    - Lookup table over if/elif chains: the gateway has shipped several spellings
      over time (success/SUCCESS/COMPLETED/PAID, cancel/CANCELLED/...)
"""

from plantbid.core.domain_types import PaymentStatus


_RAW_TO_CANONICAL: dict[str, PaymentStatus] = {
    "ready": PaymentStatus.READY,
    "pending": PaymentStatus.READY,
    "pay_pending": PaymentStatus.READY,
    "virtual_account_issued": PaymentStatus.READY,
    "success": PaymentStatus.SUCCESS,
    "completed": PaymentStatus.SUCCESS,
    "paid": PaymentStatus.SUCCESS,
    "approved": PaymentStatus.SUCCESS,
    "done": PaymentStatus.SUCCESS,
    "cancel": PaymentStatus.CANCELLED,
    "canceled": PaymentStatus.CANCELLED,
    "cancelled": PaymentStatus.CANCELLED,
    "partial_cancelled": PaymentStatus.CANCELLED,
    "partial_canceled": PaymentStatus.CANCELLED,
    "fail": PaymentStatus.FAILED,
    "failed": PaymentStatus.FAILED,
    "failure": PaymentStatus.FAILED,
    "aborted": PaymentStatus.FAILED,
}


def normalize_payment_status(raw: str | None) -> PaymentStatus:
    """Map a provider status string onto the canonical enum."""
    if not raw or not isinstance(raw, str):
        return PaymentStatus.UNKNOWN
    return _RAW_TO_CANONICAL.get(raw.strip().lower(), PaymentStatus.UNKNOWN)