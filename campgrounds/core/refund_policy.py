# campgrounds/core/refund_policy.py
"""
Refund policy engine (pure part).

Amounts are integer cents. A policy row is an integer percentage, applied as
``cents * percent / 100`` rounded half-up, so 29.98 stays 29.98 and
135.00 at 80% is exactly 108.00.

Which table applies is decided by the item's explicit ``kind``:

- ORDER   : keyed by status, then elapsed hours since creation
- BOOKING : elapsed hours since creation only

A cancelled item is evaluated against ``status_before_cancel`` when one was
recorded, so cancelling a pending order still finds the "pending" row.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Sequence, Union

from campgrounds.core.time_policy import _as_utc, _utcnow, elapsed_between, hours_of
from campgrounds.models import ItemKind, RefundStatus
from campgrounds.policy.params.schema import PolicyBundle, RefundBracket
from campgrounds.policy.params.store import get_policy


class InvalidItemError(ValueError):
    """Item has no usable kind / full price, or an unknown policy type was asked for."""


@dataclass(frozen=True)
class RefundQuote:
    kind: ItemKind
    status: Optional[str]       # status the policy was evaluated against
    elapsed_hours: float
    percent: int
    full_amount_cents: int
    amount_cents: int


# ---------------------------------------------------------------------
# money helpers
# ---------------------------------------------------------------------
_CENT = Decimal("0.01")


def to_cents(amount: Union[int, float, str, Decimal]) -> int:
    d = Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return int(d * 100)


def from_cents(cents: int) -> float:
    return float(Decimal(int(cents)) / 100)


def apply_percent(cents: int, percent: int) -> int:
    # half-up on non-negative integers
    return (int(cents) * int(percent) * 2 + 100) // 200


# ---------------------------------------------------------------------
# item accessors
# ---------------------------------------------------------------------
def _value(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(getattr(v, "value", v)).strip().lower()


def item_kind(item: Any) -> ItemKind:
    raw = getattr(item, "kind", None)
    if raw is None:
        raise InvalidItemError("item has no kind (order/booking)")
    try:
        return ItemKind(_value(raw))
    except ValueError:
        raise InvalidItemError(f"unknown item kind: {raw!r}")


def full_amount_cents(item: Any) -> int:
    cents = getattr(item, "full_amount_cents", None)
    if cents is None:
        raise InvalidItemError("item has neither totalAmount nor totalPrice")
    cents = int(cents)
    if cents < 0:
        raise InvalidItemError(f"full price must be non-negative, got={cents}")
    return cents


def refund_status_of(item: Any) -> RefundStatus:
    # transient (never flushed) rows have no column defaults yet
    return RefundStatus(_value(getattr(item, "refund_status", None)) or RefundStatus.NONE.value)


def effective_status(item: Any) -> Optional[str]:
    status = _value(getattr(item, "status", None))
    if status == "cancelled":
        prior = _value(getattr(item, "status_before_cancel", None))
        if prior:
            return prior
    return status


def _pick_bracket(brackets: Sequence[RefundBracket], elapsed: timedelta) -> Optional[RefundBracket]:
    for b in brackets:
        if b.max_hours is None or elapsed < timedelta(hours=b.max_hours):
            return b
    return None


# ---------------------------------------------------------------------
# engine
# ---------------------------------------------------------------------
def quote_refund(
    item: Any,
    as_of: Optional[datetime] = None,
    policy: Optional[PolicyBundle] = None,
) -> RefundQuote:
    policy = policy or get_policy()
    kind = item_kind(item)
    full = full_amount_cents(item)

    created_at = getattr(item, "created_at", None)
    if created_at is None:
        raise InvalidItemError("item has no created_at")
    elapsed = elapsed_between(created_at, as_of or _utcnow())

    status = effective_status(item)
    if kind == ItemKind.ORDER:
        brackets = policy.order.brackets_by_status.get(status or "", ())
    else:
        brackets = policy.booking.brackets

    bracket = _pick_bracket(brackets, elapsed)
    percent = int(bracket.percent) if bracket is not None else 0

    return RefundQuote(
        kind=kind,
        status=status,
        elapsed_hours=hours_of(elapsed),
        percent=percent,
        full_amount_cents=full,
        amount_cents=apply_percent(full, percent),
    )


def compute_refund_amount(
    item: Any,
    as_of: Optional[datetime] = None,
    policy: Optional[PolicyBundle] = None,
) -> int:
    """Refund due for ``item`` at ``as_of`` (default now), in cents."""
    return quote_refund(item, as_of=as_of, policy=policy).amount_cents


def is_paid(item: Any) -> bool:
    return bool(getattr(item, "payment_method", None) is not None and getattr(item, "payment_paid", False))


def claim_stale_before(as_of: Optional[datetime] = None, policy: Optional[PolicyBundle] = None) -> datetime:
    """PENDING claims taken before this instant are considered abandoned."""
    policy = policy or get_policy()
    return (_as_utc(as_of) if as_of else _utcnow()) - timedelta(seconds=policy.gateway.refund_claim_timeout_seconds)


def refund_in_flight(
    item: Any,
    as_of: Optional[datetime] = None,
    policy: Optional[PolicyBundle] = None,
) -> bool:
    if refund_status_of(item) != RefundStatus.PENDING:
        return False
    claimed_at = getattr(item, "refund_claimed_at", None)
    # no timestamp: cannot tell how old the claim is, keep it
    if claimed_at is None:
        return True
    return _as_utc(claimed_at) >= claim_stale_before(as_of, policy)


def is_refund_allowed(
    item: Any,
    as_of: Optional[datetime] = None,
    policy: Optional[PolicyBundle] = None,
) -> bool:
    """
    Eligibility gate.

    False when a refund was already processed (or is in flight), when there is
    no paid payment on file, or when the policy yields exactly 0.
    """
    if refund_status_of(item) == RefundStatus.PROCESSED:
        return False
    if refund_in_flight(item, as_of=as_of, policy=policy):
        return False
    if not is_paid(item):
        return False
    return compute_refund_amount(item, as_of=as_of, policy=policy) > 0


def _percent_label(percent: int) -> str:
    return f"{int(percent)}%"


def get_refund_policy(item_type: Union[str, ItemKind], policy: Optional[PolicyBundle] = None) -> dict:
    """Human-readable policy table for display."""
    policy = policy or get_policy()
    try:
        kind = ItemKind(_value(item_type))
    except ValueError:
        raise InvalidItemError(f"unknown policy type: {item_type!r} (use 'order' or 'booking')")

    rows = []
    if kind == ItemKind.ORDER:
        for status, brackets in policy.order.brackets_by_status.items():
            for b in brackets:
                rows.append({
                    "condition": b.label or status,
                    "refund": _percent_label(b.percent),
                    "status": status,
                    "max_hours": b.max_hours,
                })
        rows.append({
            "condition": policy.order.no_refund_label,
            "refund": _percent_label(0),
            "status": None,
            "max_hours": None,
        })
    else:
        for b in policy.booking.brackets:
            rows.append({
                "condition": b.label or (f"Under {b.max_hours} hours" if b.max_hours else "Any time"),
                "refund": _percent_label(b.percent),
                "status": None,
                "max_hours": b.max_hours,
            })

    return {"type": kind.value, "policy": rows}
