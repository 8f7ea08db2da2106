# campgrounds/pg/types.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class PgPayRequest:
    """
    Payment (capture) request.

    Minimal fields for the simulated flow; a real gateway integration would
    extend this.
    """
    # merchant-side reference, e.g. "order:12"
    merchant_uid: str

    # amount to capture, in cents
    amount_cents: int

    paid_at: Optional[datetime] = None


@dataclass
class PgPayResult:
    success: bool

    # gateway-side status ("COMPLETED", "FAILED", ...)
    pg_status: str

    pg_approved_amount_cents: int

    # kept on the item and reused when refunding
    pg_transaction_id: Optional[str]
    pg_payment_intent_id: Optional[str]
    paid_at: Optional[datetime] = None

    pg_raw: Optional[dict[str, Any]] = None
    pg_error_code: Optional[str] = None
    pg_error_message: Optional[str] = None


@dataclass
class PgRefundRequest:
    """What we send to the gateway for a refund."""
    pg_transaction_id: Optional[str]

    merchant_uid: str

    # amount to refund, in cents
    amount_cents: int

    reason: Optional[str]


@dataclass
class PgRefundResult:
    """
    Gateway refund result normalized to our own shape, so the refund service
    never sees gateway-specific field names.
    """
    success: bool
    pg_status: str
    pg_refund_id: Optional[str]
    pg_cancel_amount_cents: int

    pg_raw: Optional[dict[str, Any]] = field(default=None)
    pg_error_code: Optional[str] = None
    pg_error_message: Optional[str] = None
