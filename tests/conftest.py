# tests/conftest.py
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from campgrounds.core.time_policy import set_test_now_utc
from campgrounds.database import Base, get_db
from campgrounds.models import (
    Booking,
    BookingStatus,
    Order,
    OrderStatus,
    PaymentMethod,
    RefundStatus,
)
from campgrounds.policy.params.loader import load_policy_yaml
from campgrounds.policy.params.store import set_policy

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def no_delay_policy(**gateway_overrides):
    base = load_policy_yaml()
    gateway = replace(base.gateway, **{"simulated_delay_seconds": 0, **gateway_overrides})
    return replace(base, gateway=gateway)


@pytest.fixture(autouse=True)
def policy():
    bundle = no_delay_policy()
    set_policy(bundle)
    yield bundle
    set_policy(None)


@pytest.fixture(autouse=True)
def _reset_clock():
    yield
    set_test_now_utc(None)


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    from campgrounds.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    # no context manager: skip lifespan (real DB + expiry worker)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------
# builders (transient rows; add to a session to persist)
# ---------------------------------------------------------------------
def _paid(item, paid: bool, with_payment: bool):
    if with_payment:
        item.payment_method = PaymentMethod.SIMULATED
        item.payment_transaction_id = "sim_test_tx"
        item.payment_intent_id = "pi_sim_test"
        item.payment_paid = paid
        item.payment_paid_at = item.created_at if paid else None
    return item


def build_order(
    *,
    total_cents=2998,
    status=OrderStatus.PENDING,
    created_at=T0,
    paid=True,
    with_payment=True,
    user_id=1,
    item_id=None,
):
    order = Order(
        id=item_id,
        user_id=user_id,
        order_number=f"TC-TEST-{uuid.uuid4().hex[:10].upper()}",
        items=[{"product_id": 1, "quantity": 1, "price_cents": total_cents}],
        total_amount_cents=total_cents,
        status=status,
        created_at=created_at,
        refund_status=RefundStatus.NONE,
        refund_amount_cents=0,
    )
    return _paid(order, paid, with_payment)


def build_booking(
    *,
    total_cents=13500,
    status=BookingStatus.CONFIRMED,
    created_at=T0,
    paid=True,
    with_payment=True,
    user_id=1,
    item_id=None,
    days=3,
):
    booking = Booking(
        id=item_id,
        user_id=user_id,
        campground_id=7,
        days=days,
        total_price_cents=total_cents,
        status=status,
        check_in_date=created_at + timedelta(days=14),
        check_out_date=created_at + timedelta(days=14 + days),
        created_at=created_at,
        refund_status=RefundStatus.NONE,
        refund_amount_cents=0,
    )
    return _paid(booking, paid, with_payment)


def persist(db, item):
    db.add(item)
    db.commit()
    db.refresh(item)
    return item
