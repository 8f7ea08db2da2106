# tests/test_cancellation_api.py
from datetime import timedelta

import pytest

from campgrounds.core.time_policy import set_test_now_utc
from campgrounds.models import RefundStatus

from conftest import T0, build_booking, build_order, persist


def _iso(dt):
    return dt.isoformat().replace("+00:00", "Z")


def _create_order(client, user_id=1):
    r = client.post(
        "/orders",
        json={
            "userId": user_id,
            "items": [{"productId": 11, "quantity": 2, "price": 14.99}],
            "shippingAddress": {
                "name": "Sam Camper",
                "address": "1 Pine Rd",
                "city": "Bend",
                "state": "OR",
                "zipCode": "97701",
            },
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def _create_booking(client, user_id=1, total_price=135.0, check_in=None, days=3):
    check_in = check_in or T0 + timedelta(days=14)
    r = client.post(
        "/bookings",
        json={
            "userId": user_id,
            "campgroundId": 7,
            "days": days,
            "totalPrice": total_price,
            "checkInDate": _iso(check_in),
            "checkOutDate": _iso(check_in + timedelta(days=days)),
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


# ---------------------------------------------------------------------
# purchase + read
# ---------------------------------------------------------------------
def test_create_order_captures_simulated_payment(client):
    set_test_now_utc(T0)
    body = _create_order(client)

    assert body["kind"] == "order"
    assert body["status"] == "pending"
    assert body["totalAmount"] == 29.98
    assert body["orderNumber"].startswith("TC-")
    assert body["payment"]["method"] == "simulated"
    assert body["payment"]["paid"] is True
    assert body["payment"]["transactionId"].startswith("sim_")
    assert body["refund"]["status"] == "none"
    assert body["refund"]["amount"] == 0.0

    r = client.get(f"/orders/{body['id']}")
    assert r.status_code == 200
    assert r.json()["orderNumber"] == body["orderNumber"]

    listing = client.get("/orders/user/1").json()
    assert [o["id"] for o in listing] == [body["id"]]
    assert client.get("/orders/user/2").json() == []


def test_missing_items_are_404(client):
    assert client.get("/orders/999").status_code == 404
    assert client.get("/bookings/999").status_code == 404
    r = client.patch("/orders/999/cancel", json={"userId": 1})
    assert r.status_code == 404


def test_booking_with_reversed_dates_is_rejected(client):
    r = client.post(
        "/bookings",
        json={
            "userId": 1,
            "campgroundId": 7,
            "days": 2,
            "totalPrice": 50,
            "checkInDate": _iso(T0 + timedelta(days=3)),
            "checkOutDate": _iso(T0 + timedelta(days=1)),
        },
    )
    assert r.status_code == 422


@pytest.mark.parametrize("check_in, check_out, expected", [
    ("2026-03-16T12:00:00", "2026-03-19T12:00:00Z", 201),
    ("2026-03-19T12:00:00Z", "2026-03-16T12:00:00", 422),
    ("2026-03-16T12:00:00+09:00", "2026-03-16T02:00:00", 422),  # 03:00Z -> 02:00Z
])
def test_booking_dates_with_and_without_offset(client, check_in, check_out, expected):
    set_test_now_utc(T0)
    r = client.post(
        "/bookings",
        json={
            "userId": 1,
            "campgroundId": 7,
            "days": 3,
            "totalPrice": 90,
            "checkInDate": check_in,
            "checkOutDate": check_out,
        },
    )
    assert r.status_code == expected, r.text


# ---------------------------------------------------------------------
# status transitions
# ---------------------------------------------------------------------
def test_order_status_moves_one_step_at_a_time(client):
    set_test_now_utc(T0)
    oid = _create_order(client)["id"]

    r = client.patch(f"/orders/{oid}/status", json={"status": "shipped"})
    assert r.status_code == 409

    r = client.patch(f"/orders/{oid}/status", json={"status": "processing"})
    assert r.status_code == 200
    assert r.json()["status"] == "processing"

    r = client.patch(f"/orders/{oid}/status", json={"status": "cancelled"})
    assert r.status_code == 409


# ---------------------------------------------------------------------
# cancellation
# ---------------------------------------------------------------------
def test_cancel_pending_order_refunds_in_full(client):
    set_test_now_utc(T0)
    oid = _create_order(client)["id"]

    set_test_now_utc(T0 + timedelta(hours=1))
    r = client.patch(f"/orders/{oid}/cancel", json={"userId": 1, "reason": "changed my mind"})

    assert r.status_code == 200, r.text
    out = r.json()
    assert out["message"] == "Order cancelled successfully. Refund of $29.98 processed."
    refund = out["data"]["refund"]
    assert refund["success"] is True
    assert refund["refund"]["amount"] == 29.98
    assert refund["refund"]["currency"] == "USD"
    assert refund["refund"]["status"] == "processed"
    assert refund["refund"]["id"].startswith("re_sim_")
    assert "error" not in refund

    order = client.get(f"/orders/{oid}").json()
    assert order["status"] == "cancelled"
    assert order["statusBeforeCancel"] == "pending"
    assert order["refund"]["status"] == "processed"
    assert order["refund"]["amount"] == 29.98
    assert order["refund"]["reason"] == "changed my mind"


def test_cancel_booking_after_100_hours_refunds_80_percent(client):
    set_test_now_utc(T0)
    bid = _create_booking(client, total_price=135.0)["id"]

    set_test_now_utc(T0 + timedelta(hours=100))
    r = client.patch(f"/bookings/{bid}/cancel", json={"userId": 1})

    assert r.status_code == 200, r.text
    out = r.json()
    assert out["data"]["booking"]["status"] == "cancelled"
    assert out["data"]["refund"]["refund"]["amount"] == 108.0
    assert "$108.00" in out["message"]


def test_cancel_old_processing_order_without_refund(client):
    set_test_now_utc(T0)
    oid = _create_order(client)["id"]
    client.patch(f"/orders/{oid}/status", json={"status": "processing"})

    set_test_now_utc(T0 + timedelta(hours=72))
    r = client.patch(f"/orders/{oid}/cancel", json={"userId": 1})

    assert r.status_code == 200
    out = r.json()
    assert out["message"] == "Order cancelled without refund."
    assert "refund" not in out["data"]
    assert out["data"]["order"]["refund"]["status"] == "none"


def test_cancel_rejects_shipped_orders_and_strangers(client):
    set_test_now_utc(T0)
    oid = _create_order(client, user_id=1)["id"]

    r = client.patch(f"/orders/{oid}/cancel", json={"userId": 2})
    assert r.status_code == 403

    client.patch(f"/orders/{oid}/status", json={"status": "processing"})
    client.patch(f"/orders/{oid}/status", json={"status": "shipped"})
    r = client.patch(f"/orders/{oid}/cancel", json={"userId": 1})
    assert r.status_code == 409

    assert client.get(f"/orders/{oid}").json()["status"] == "shipped"


def test_cancelled_booking_cannot_be_cancelled_again(client):
    set_test_now_utc(T0)
    bid = _create_booking(client)["id"]
    assert client.patch(f"/bookings/{bid}/cancel", json={"userId": 1}).status_code == 200
    assert client.patch(f"/bookings/{bid}/cancel", json={"userId": 1}).status_code == 409


# ---------------------------------------------------------------------
# refund policy / quotes
# ---------------------------------------------------------------------
def test_refund_policy_tables(client):
    booking = client.get("/refund-policy/booking").json()
    assert booking["type"] == "booking"
    assert [row["refund"] for row in booking["policy"]] == ["100%", "80%", "50%", "0%"]

    order = client.get("/refund-policy/order").json()
    assert order["type"] == "order"
    assert order["policy"][0]["refund"] == "100%"
    assert order["policy"][-1]["refund"] == "0%"

    assert client.get("/refund-policy/campground").status_code == 422


def test_item_refund_quote(client):
    set_test_now_utc(T0)
    bid = _create_booking(client, total_price=135.0)["id"]

    set_test_now_utc(T0 + timedelta(days=10))
    q = client.get(f"/bookings/{bid}/refund-policy").json()

    assert q["type"] == "booking"
    assert q["eligible"] is True
    assert q["percent"] == 50
    assert q["amount"] == 67.5
    assert q["fullAmount"] == 135.0
    assert q["elapsedHours"] == 240
    assert len(q["policy"]) == 4


@pytest.mark.parametrize(
    "payload, expected_type, expected_amount",
    [
        ({"totalAmount": 29.98, "status": "pending"}, "order", 29.98),
        ({"totalPrice": 100.0, "status": "confirmed"}, "booking", 100.0),
    ],
)
def test_snapshot_quote_picks_table_by_price_field(client, payload, expected_type, expected_amount):
    set_test_now_utc(T0 + timedelta(hours=1))
    body = dict(payload, createdAt=_iso(T0), payment={"paid": True, "transactionId": "sim_x"})

    r = client.post("/refund-policy/quote", json=body)

    assert r.status_code == 200, r.text
    assert r.json()["type"] == expected_type
    assert r.json()["amount"] == expected_amount


@pytest.mark.parametrize("prices", [{}, {"totalAmount": 10, "totalPrice": 10}])
def test_snapshot_quote_requires_exactly_one_price(client, prices):
    body = dict(prices, status="pending", createdAt=_iso(T0))
    assert client.post("/refund-policy/quote", json=body).status_code == 422


# ---------------------------------------------------------------------
# manual refund
# ---------------------------------------------------------------------
def _failed_after_cancel(item, prior):
    # cancelled earlier, automatic refund did not go through
    item.status_before_cancel = prior
    item.status = type(item.status)("cancelled")
    item.cancelled_at = item.created_at
    item.refund_status = RefundStatus.FAILED
    item.refund_failure_reason = "gateway timeout"
    return item


def test_process_refund_requires_cancelled_item(client):
    set_test_now_utc(T0)
    oid = _create_order(client)["id"]

    set_test_now_utc(T0 + timedelta(hours=2))
    r = client.post(f"/orders/{oid}/process-refund", json={"reason": "damaged box"})
    assert r.status_code == 409

    # untouched, and still free to move on
    order = client.get(f"/orders/{oid}").json()
    assert order["refund"]["status"] == "none"
    assert client.patch(f"/orders/{oid}/status", json={"status": "processing"}).status_code == 200


def test_process_refund_retries_failed_refund_once(client, db):
    set_test_now_utc(T0 + timedelta(hours=2))
    order = persist(db, _failed_after_cancel(build_order(total_cents=2998), "pending"))

    r = client.post(f"/orders/{order.id}/process-refund", json={"reason": "damaged box"})
    assert r.status_code == 200, r.text
    assert r.json()["success"] is True
    assert r.json()["refund"]["amount"] == 29.98
    assert "error" not in r.json()

    r = client.post(f"/orders/{order.id}/process-refund")
    assert r.status_code == 409

    stored = client.get(f"/orders/{order.id}").json()
    assert stored["status"] == "cancelled"
    assert stored["refund"]["status"] == "processed"
    assert stored["refund"]["reason"] == "damaged box"
    assert client.patch(f"/orders/{order.id}/status", json={"status": "processing"}).status_code == 409


def test_process_refund_explicit_amount(client, db):
    set_test_now_utc(T0 + timedelta(hours=1))
    booking = persist(db, _failed_after_cancel(build_booking(total_cents=13500), "confirmed"))

    r = client.post(f"/bookings/{booking.id}/process-refund", json={"amount": 200})
    assert r.status_code == 422

    r = client.post(f"/bookings/{booking.id}/process-refund", json={"amount": 40.5})
    assert r.status_code == 200
    assert r.json()["refund"]["amount"] == 40.5


def test_process_refund_on_ineligible_order_is_conflict(client, db):
    set_test_now_utc(T0 + timedelta(hours=80))
    order = persist(db, _failed_after_cancel(build_order(), "processing"))

    r = client.post(f"/orders/{order.id}/process-refund")
    assert r.status_code == 409


# ---------------------------------------------------------------------
# expiry sweep
# ---------------------------------------------------------------------
def test_expire_sweep_moves_past_bookings(client):
    set_test_now_utc(T0 - timedelta(days=10))
    past = _create_booking(client, check_in=T0 - timedelta(days=5), days=2)["id"]
    future = _create_booking(client, check_in=T0 + timedelta(days=5), days=2)["id"]

    set_test_now_utc(T0)
    r = client.post("/bookings/expire")

    assert r.status_code == 200
    assert r.json() == {"expired": 1}
    assert client.get(f"/bookings/{past}").json()["status"] == "expired"
    assert client.get(f"/bookings/{future}").json()["status"] == "confirmed"
    assert client.post("/bookings/expire").json() == {"expired": 0}
