# campgrounds/crud.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from campgrounds.core.time_policy import _utcnow, _as_utc
from campgrounds.pg.client import new_order_number, request_pg_pay
from campgrounds.pg.types import PgPayRequest
from campgrounds.models import (
    Booking,
    BookingStatus,
    ItemKind,
    Order,
    OrderStatus,
    RefundStatus,
)

logger = logging.getLogger(__name__)

Item = Union[Order, Booking]

# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------
class NotFoundError(Exception):
    pass

class ConflictError(Exception):
    pass

class ForbiddenError(Exception):
    pass

# ---------------------------------------------------------------------
# Lifecycle tables
# ---------------------------------------------------------------------
_MODELS = {
    ItemKind.ORDER: Order,
    ItemKind.BOOKING: Booking,
}

# one step forward at a time; cancelled/delivered are terminal
ORDER_NEXT_STATUS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}

CANCELLABLE_STATUSES = {
    ItemKind.ORDER: {OrderStatus.PENDING, OrderStatus.PROCESSING},
    ItemKind.BOOKING: {BookingStatus.CONFIRMED},
}

_CANCELLED = {
    ItemKind.ORDER: OrderStatus.CANCELLED,
    ItemKind.BOOKING: BookingStatus.CANCELLED,
}


def model_for(kind: Union[str, ItemKind]):
    return _MODELS[ItemKind(kind)]


# ---------------------------------------------------------------------
# Item store (SQLAlchemy)
# ---------------------------------------------------------------------
class SqlItemStore:
    """
    Loads / persists orders and bookings for the refund service.

    ``claim_refund`` is the only conditional write: it flips refund_status to
    PENDING only while the stored value is NONE or FAILED (or PENDING with a
    claim older than ``stale_before``), so at most one attempt per item can be
    in flight or succeed. A lost claim rolls back the item's unsaved edits.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def load(self, kind: Union[str, ItemKind], item_id: int) -> Item:
        model = model_for(kind)
        obj = self.db.get(model, item_id)
        if not obj:
            raise NotFoundError(f"{ItemKind(kind).value.capitalize()} not found: {item_id}")
        return obj

    def save(self, item: Item) -> Item:
        try:
            self.db.add(item)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(item)
        return item

    def claim_refund(
        self,
        item: Item,
        *,
        claimed_at: datetime,
        stale_before: Optional[datetime] = None,
    ) -> bool:
        model = type(item)
        claimable = model.refund_status.in_([RefundStatus.NONE, RefundStatus.FAILED])
        if stale_before is not None:
            claimable = or_(
                claimable,
                and_(model.refund_status == RefundStatus.PENDING, model.refund_claimed_at < stale_before),
            )

        try:
            with self.db.no_autoflush:
                res = self.db.execute(
                    update(model)
                    .where(model.id == item.id, claimable)
                    .values(refund_status=RefundStatus.PENDING, refund_claimed_at=claimed_at)
                    .execution_options(synchronize_session=False)
                )
            claimed = res.rowcount == 1
            if claimed:
                # pending edits on the item (status, backfilled payment) go in with the claim
                self.db.add(item)
                self.db.commit()
            else:
                self.db.rollback()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(item)
        return claimed


# ---------------------------------------------------------------------
# Purchase flow (simulated payment)
# ---------------------------------------------------------------------
def _capture_payment(item: Item, merchant_uid: str) -> None:
    pay = request_pg_pay(
        PgPayRequest(
            merchant_uid=merchant_uid,
            amount_cents=item.full_amount_cents,
            paid_at=_utcnow(),
        )
    )
    if not pay.success:
        raise ConflictError(f"payment failed: {pay.pg_error_message or pay.pg_status}")
    item.set_simulated_payment(
        transaction_id=pay.pg_transaction_id,
        payment_intent_id=pay.pg_payment_intent_id,
        paid_at=pay.paid_at,
    )


def create_order(
    db: Session,
    *,
    user_id: int,
    items: List[Dict[str, Any]],
    shipping_address: Optional[Dict[str, Any]] = None,
) -> Order:
    if not items:
        raise ConflictError("order must contain at least one item")

    total = sum(int(it["price_cents"]) * int(it["quantity"]) for it in items)
    order = Order(
        user_id=user_id,
        order_number=new_order_number(),
        items=items,
        shipping_address=shipping_address,
        total_amount_cents=total,
        status=OrderStatus.PENDING,
        refund_status=RefundStatus.NONE,
        refund_amount_cents=0,
        created_at=_utcnow(),
    )
    db.add(order)
    db.flush()
    _capture_payment(order, f"order:{order.id}")
    db.commit()
    db.refresh(order)
    logger.info("Created order %s (%s cents)", order.id, total)
    return order


def create_booking(
    db: Session,
    *,
    user_id: int,
    campground_id: int,
    days: int,
    total_price_cents: int,
    check_in_date: datetime,
    check_out_date: datetime,
) -> Booking:
    if _as_utc(check_out_date) <= _as_utc(check_in_date):
        raise ConflictError("check_out_date must be after check_in_date")

    booking = Booking(
        user_id=user_id,
        campground_id=campground_id,
        days=days,
        total_price_cents=total_price_cents,
        status=BookingStatus.CONFIRMED,
        check_in_date=check_in_date,
        check_out_date=check_out_date,
        refund_status=RefundStatus.NONE,
        refund_amount_cents=0,
        created_at=_utcnow(),
    )
    db.add(booking)
    db.flush()
    _capture_payment(booking, f"booking:{booking.id}")
    db.commit()
    db.refresh(booking)
    logger.info("Created booking %s (%s cents)", booking.id, total_price_cents)
    return booking


def get_item(db: Session, kind: Union[str, ItemKind], item_id: int) -> Item:
    return SqlItemStore(db).load(kind, item_id)


def list_items_for_user(db: Session, kind: Union[str, ItemKind], user_id: int) -> List[Item]:
    model = model_for(kind)
    stmt = select(model).where(model.user_id == user_id).order_by(model.created_at.desc(), model.id.desc())
    return list(db.execute(stmt).scalars().all())


# ---------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------
def advance_order_status(db: Session, *, order_id: int, status: OrderStatus) -> Order:
    order = get_item(db, ItemKind.ORDER, order_id)
    current = OrderStatus(order.status)
    target = OrderStatus(status)

    if target == OrderStatus.CANCELLED:
        raise ConflictError("use the cancel endpoint to cancel an order")
    if ORDER_NEXT_STATUS.get(current) != target:
        raise ConflictError(f"cannot move order from {current.value} to {target.value}")

    order.status = target
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def mark_cancelled(item: Item, *, now: Optional[datetime] = None) -> Item:
    """
    Apply the ``* -> cancelled`` transition in memory.

    The prior status is kept in ``status_before_cancel`` so the refund policy
    can still see where the item was when the customer cancelled.
    """
    kind = ItemKind(item.kind)
    current = type(_CANCELLED[kind])(item.status)
    if current not in CANCELLABLE_STATUSES[kind]:
        raise ConflictError(f"cannot cancel {kind.value}: status={current.value}")

    item.status_before_cancel = current.value
    item.status = _CANCELLED[kind]
    item.cancelled_at = now or _utcnow()
    return item


def expire_bookings(db: Session, *, now: Optional[datetime] = None) -> int:
    """CONFIRMED bookings past check-out -> EXPIRED. Returns the count."""
    now = now or _utcnow()
    rows = db.execute(
        select(Booking).where(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.check_out_date < now,
        )
    ).scalars().all()

    for b in rows:
        b.status = BookingStatus.EXPIRED
        b.expired_at = now
        db.add(b)

    if rows:
        db.commit()
        logger.info("Expired %d bookings", len(rows))
    return len(rows)
