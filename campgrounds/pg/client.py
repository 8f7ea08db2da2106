# campgrounds/pg/client.py

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from typing import Optional

from campgrounds.core.time_policy import _utcnow
from .types import (
    PgRefundRequest,
    PgRefundResult,
    PgPayRequest,
    PgPayResult,
)

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_lowercase + string.digits


def _millis() -> int:
    return int(time.time() * 1000)


def _rand(n: int = 9, alphabet: str = _ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(n))


def new_transaction_id() -> str:
    return f"sim_{_millis()}_{_rand()}"


def new_payment_intent_id() -> str:
    return f"pi_sim_{_millis()}"


def new_refund_id() -> str:
    return f"re_sim_{_millis()}_{_rand()}"


def new_order_number() -> str:
    return f"TC-{_millis()}-{_rand(5, string.ascii_uppercase + string.digits)}"


def request_pg_pay(req: PgPayRequest) -> PgPayResult:
    """
    Payment capture.

    Simulated gateway: always succeeds and hands back fresh transaction /
    payment-intent ids.
    """
    logger.debug("[pg] simulated pay request: %s", req)

    return PgPayResult(
        success=True,
        pg_status="COMPLETED",
        pg_approved_amount_cents=req.amount_cents,
        pg_transaction_id=new_transaction_id(),
        pg_payment_intent_id=new_payment_intent_id(),
        paid_at=req.paid_at or _utcnow(),
        pg_raw={"simulated": True, "merchant_uid": req.merchant_uid},
    )


async def request_pg_refund(req: PgRefundRequest, *, delay_seconds: Optional[float] = 1.0) -> PgRefundResult:
    """
    Refund call.

    Simulated gateway: waits ``delay_seconds`` to model the round trip, then
    succeeds with a synthetic refund id. The wait yields to the event loop.
    """
    logger.debug("[pg] simulated refund request: %s", req)

    if delay_seconds:
        await asyncio.sleep(delay_seconds)

    return PgRefundResult(
        success=True,
        pg_status="COMPLETED",
        pg_refund_id=new_refund_id(),
        pg_cancel_amount_cents=req.amount_cents,
        pg_raw={"simulated": True, "merchant_uid": req.merchant_uid},
    )
