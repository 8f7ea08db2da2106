# campgrounds/models.py
# Orders (shop) / Bookings (campground stays) with payment + refund sub-records
import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Enum as SAEnum, JSON, Index, CheckConstraint
)

from .database import Base
from .core.time_policy import _utcnow


def _enum_values(e):
    # store lowercase wire values, not member names
    return [m.value for m in e]


class ItemKind(str, enum.Enum):
    ORDER = "order"
    BOOKING = "booking"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class RefundStatus(str, enum.Enum):
    NONE = "none"
    PENDING = "pending"        # claimed by an in-flight refund attempt
    PROCESSED = "processed"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    SIMULATED = "simulated"
    STRIPE = "stripe"
    PAYPAL = "paypal"
    CREDIT_CARD = "credit_card"


# -------------------------------------------------------
# Shared payment / refund columns
# -------------------------------------------------------
class PaymentRefundMixin:
    # payment (absent while payment_method is NULL)
    payment_method = Column(SAEnum(PaymentMethod, values_callable=_enum_values, name="paymentmethod"), nullable=True)
    payment_transaction_id = Column(String, nullable=True)
    payment_intent_id = Column(String, nullable=True)
    payment_paid = Column(Boolean, nullable=False, default=False)
    payment_paid_at = Column(DateTime(timezone=True), nullable=True)

    # refund
    refund_status = Column(
        SAEnum(RefundStatus, values_callable=_enum_values, name="refundstatus"),
        nullable=False,
        default=RefundStatus.NONE,
    )
    refund_amount_cents = Column(Integer, nullable=False, default=0)
    refund_id = Column(String, nullable=True)
    refund_reason = Column(String, nullable=True)
    refund_failure_reason = Column(String, nullable=True)
    refund_processed_at = Column(DateTime(timezone=True), nullable=True)
    # set when an attempt claims the refund (PENDING); stale claims may be taken over
    refund_claimed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def has_payment(self) -> bool:
        return self.payment_method is not None

    def set_simulated_payment(self, *, transaction_id: str, payment_intent_id: str, paid_at) -> None:
        self.payment_method = PaymentMethod.SIMULATED
        self.payment_transaction_id = transaction_id
        self.payment_intent_id = payment_intent_id
        self.payment_paid = True
        self.payment_paid_at = paid_at

    def record_refund(
        self,
        *,
        status: RefundStatus,
        amount_cents: int,
        reason,
        processed_at,
        refund_id=None,
        failure_reason=None,
    ) -> None:
        self.refund_status = status
        self.refund_amount_cents = int(amount_cents)
        self.refund_id = refund_id
        self.refund_reason = reason
        self.refund_failure_reason = failure_reason
        self.refund_processed_at = processed_at


# -------------------------------------------------------
# Shop order
# -------------------------------------------------------
class Order(PaymentRefundMixin, Base):
    __tablename__ = "orders"

    kind = ItemKind.ORDER

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    order_number = Column(String, unique=True, index=True, nullable=False)

    # [{product_id, quantity, price_cents}]
    items = Column(JSON, nullable=False, default=list)
    shipping_address = Column(JSON, nullable=True)

    total_amount_cents = Column(Integer, nullable=False)
    status = Column(
        SAEnum(OrderStatus, values_callable=_enum_values, name="orderstatus"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    # status recorded right before the transition to cancelled
    status_before_cancel = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_order_user_status", "user_id", "status"),
        CheckConstraint("total_amount_cents >= 0", name="ck_order_total_non_negative"),
    )

    @property
    def full_amount_cents(self) -> int:
        return self.total_amount_cents

    def __repr__(self):
        return f"<Order(id={self.id}, status='{self.status}', refund='{self.refund_status}')>"


# -------------------------------------------------------
# Campground booking
# -------------------------------------------------------
class Booking(PaymentRefundMixin, Base):
    __tablename__ = "bookings"

    kind = ItemKind.BOOKING

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    campground_id = Column(Integer, nullable=False, index=True)

    days = Column(Integer, nullable=False)
    total_price_cents = Column(Integer, nullable=False)
    status = Column(
        SAEnum(BookingStatus, values_callable=_enum_values, name="bookingstatus"),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    status_before_cancel = Column(String(20), nullable=True)

    check_in_date = Column(DateTime(timezone=True), nullable=False)
    check_out_date = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_booking_user_status", "user_id", "status"),
        Index("ix_booking_status_checkout", "status", "check_out_date"),
        CheckConstraint("days > 0", name="ck_booking_days_positive"),
        CheckConstraint("total_price_cents >= 0", name="ck_booking_total_non_negative"),
    )

    @property
    def full_amount_cents(self) -> int:
        return self.total_price_cents

    def __repr__(self):
        return f"<Booking(id={self.id}, status='{self.status}', refund='{self.refund_status}')>"
