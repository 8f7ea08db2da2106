# campgrounds/schemas.py
# Wire models. Field names are camelCase on the wire (totalAmount, processedAt, ...)
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from campgrounds.core.refund_policy import InvalidItemError, from_cents, to_cents
from campgrounds.core.time_policy import _as_utc
from campgrounds.models import Booking, ItemKind, Order, OrderStatus


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------- Refund result (wire contract) ----------------
class RefundInfo(WireModel):
    id: Optional[str] = None
    amount: Optional[float] = None
    currency: str = "USD"
    status: Literal["processed", "failed", "pending"]
    processed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None


class RefundResult(WireModel):
    success: bool
    refund: RefundInfo
    error: Optional[str] = None


# ---------------- Sub-records ----------------
class PaymentOut(WireModel):
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    paid: bool = False
    paid_at: Optional[datetime] = None


class RefundOut(WireModel):
    status: str = "none"
    amount: float = 0.0
    refund_id: Optional[str] = None
    reason: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None


def _payment_out(item: Union[Order, Booking]) -> Optional[PaymentOut]:
    if item.payment_method is None:
        return None
    return PaymentOut(
        method=getattr(item.payment_method, "value", item.payment_method),
        transaction_id=item.payment_transaction_id,
        payment_intent_id=item.payment_intent_id,
        paid=bool(item.payment_paid),
        paid_at=item.payment_paid_at,
    )


def _refund_out(item: Union[Order, Booking]) -> RefundOut:
    return RefundOut(
        status=getattr(item.refund_status, "value", item.refund_status) or "none",
        amount=from_cents(item.refund_amount_cents or 0),
        refund_id=item.refund_id,
        reason=item.refund_reason,
        failure_reason=item.refund_failure_reason,
        processed_at=item.refund_processed_at,
    )


# ---------------- Orders ----------------
class OrderItemIn(WireModel):
    product_id: int
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class ShippingAddress(WireModel):
    name: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str = "USA"


class OrderCreate(WireModel):
    user_id: int
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: Optional[ShippingAddress] = None


class OrderOut(WireModel):
    id: int
    kind: Literal["order"] = "order"
    user_id: int
    order_number: str
    items: List[Dict[str, Any]]
    shipping_address: Optional[Dict[str, Any]] = None
    total_amount: float
    status: str
    status_before_cancel: Optional[str] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    payment: Optional[PaymentOut] = None
    refund: RefundOut


def order_out(o: Order) -> OrderOut:
    return OrderOut(
        id=o.id,
        user_id=o.user_id,
        order_number=o.order_number,
        items=[
            {"productId": it.get("product_id"), "quantity": it.get("quantity"),
             "price": from_cents(it.get("price_cents") or 0)}
            for it in (o.items or [])
        ],
        shipping_address=o.shipping_address,
        total_amount=from_cents(o.total_amount_cents),
        status=OrderStatus(o.status).value,
        status_before_cancel=o.status_before_cancel,
        created_at=o.created_at,
        cancelled_at=o.cancelled_at,
        payment=_payment_out(o),
        refund=_refund_out(o),
    )


class OrderStatusIn(WireModel):
    status: OrderStatus


# ---------------- Bookings ----------------
class BookingCreate(WireModel):
    user_id: int
    campground_id: int
    days: int = Field(..., ge=1)
    total_price: float = Field(..., ge=0)
    check_in_date: datetime
    check_out_date: datetime

    @model_validator(mode="after")
    def _dates_in_order(self):
        if _as_utc(self.check_out_date) <= _as_utc(self.check_in_date):
            raise ValueError("checkOutDate must be after checkInDate")
        return self


class BookingOut(WireModel):
    id: int
    kind: Literal["booking"] = "booking"
    user_id: int
    campground_id: int
    days: int
    total_price: float
    status: str
    status_before_cancel: Optional[str] = None
    check_in_date: datetime
    check_out_date: datetime
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    payment: Optional[PaymentOut] = None
    refund: RefundOut


def booking_out(b: Booking) -> BookingOut:
    return BookingOut(
        id=b.id,
        user_id=b.user_id,
        campground_id=b.campground_id,
        days=b.days,
        total_price=from_cents(b.total_price_cents),
        status=getattr(b.status, "value", b.status),
        status_before_cancel=b.status_before_cancel,
        check_in_date=b.check_in_date,
        check_out_date=b.check_out_date,
        created_at=b.created_at,
        cancelled_at=b.cancelled_at,
        expired_at=b.expired_at,
        payment=_payment_out(b),
        refund=_refund_out(b),
    )


def item_out(item: Union[Order, Booking]) -> Union[OrderOut, BookingOut]:
    return order_out(item) if ItemKind(item.kind) == ItemKind.ORDER else booking_out(item)


# ---------------- Cancellation / refund requests ----------------
class CancelIn(WireModel):
    user_id: int
    reason: Optional[str] = None


class CancelOut(WireModel):
    message: str
    data: Dict[str, Any]


class ProcessRefundIn(WireModel):
    reason: Optional[str] = None
    # explicit refund amount (dollars); defaults to the policy amount
    amount: Optional[float] = Field(None, ge=0)


# ---------------- Policy display / quotes ----------------
class PolicyRow(WireModel):
    condition: str
    refund: str
    status: Optional[str] = None
    max_hours: Optional[int] = None


class PolicyDescription(WireModel):
    type: Literal["order", "booking"]
    policy: List[PolicyRow]


class RefundQuoteOut(WireModel):
    type: Literal["order", "booking"]
    eligible: bool
    amount: float
    percent: int
    full_amount: float
    elapsed_hours: float
    evaluated_status: Optional[str] = None
    policy: List[PolicyRow]


# ---------------- Raw item payloads ----------------
class PaymentIn(WireModel):
    method: str = "simulated"
    transaction_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    paid: bool = False
    paid_at: Optional[datetime] = None


class RefundIn(WireModel):
    status: Literal["none", "pending", "processed", "failed"] = "none"
    amount: float = 0.0


class ItemSnapshot(WireModel):
    """
    An order/booking as plain data, discriminated by which price is set:
    ``totalAmount`` -> order, ``totalPrice`` -> booking. Exactly one must be
    present.

    Exposes the same attributes the refund engine reads from ORM rows.
    """
    total_amount: Optional[float] = Field(None, ge=0)
    total_price: Optional[float] = Field(None, ge=0)
    status: Optional[str] = None
    status_before_cancel: Optional[str] = None
    created_at: datetime
    payment: Optional[PaymentIn] = None
    refund: RefundIn = Field(default_factory=RefundIn)

    @model_validator(mode="after")
    def _exactly_one_price(self):
        if (self.total_amount is None) == (self.total_price is None):
            raise InvalidItemError("exactly one of totalAmount / totalPrice is required")
        return self

    @property
    def kind(self) -> ItemKind:
        return ItemKind.ORDER if self.total_amount is not None else ItemKind.BOOKING

    @property
    def full_amount_cents(self) -> int:
        amount = self.total_amount if self.total_amount is not None else self.total_price
        return to_cents(amount)

    @property
    def payment_method(self) -> Optional[str]:
        return self.payment.method if self.payment else None

    @property
    def payment_paid(self) -> bool:
        return bool(self.payment and self.payment.paid)

    @property
    def refund_status(self) -> str:
        return self.refund.status
