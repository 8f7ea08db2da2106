# campgrounds/policy/params/schema.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class RefundBracket:
    """
    One row of a refund table.

    Applies while elapsed hours < max_hours. max_hours=None is the open-ended
    last row.
    """
    max_hours: Optional[int]
    percent: int        # 0..100
    label: str = ""


@dataclass(frozen=True)
class OrderRefundPolicy:
    """Order refunds are keyed by status, then by elapsed time."""
    # status -> brackets; statuses missing here refund 0%
    brackets_by_status: Dict[str, Tuple[RefundBracket, ...]]
    # display-only rows for statuses that never refund
    no_refund_label: str = "Shipped or Delivered"


@dataclass(frozen=True)
class BookingRefundPolicy:
    brackets: Tuple[RefundBracket, ...]


@dataclass(frozen=True)
class GatewayPolicy:
    currency: str = "USD"
    simulated_delay_seconds: float = 1.0
    # synthesize a simulated paid payment when an item has none
    allow_simulated_payment_backfill: bool = True
    # a PENDING refund claimed longer ago than this is treated as abandoned
    refund_claim_timeout_seconds: float = 300.0


@dataclass(frozen=True)
class PolicyBundle:
    order: OrderRefundPolicy
    booking: BookingRefundPolicy
    gateway: GatewayPolicy = field(default_factory=GatewayPolicy)
