# campgrounds/routers/refunds.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..core.refund_policy import InvalidItemError, to_cents
from ..crud import ConflictError, ForbiddenError, NotFoundError, SqlItemStore
from ..models import ItemKind
from ..services.refund_service import RefundService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["refunds"])


def _translate_error(exc: Exception) -> None:
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, InvalidItemError):
        raise HTTPException(status_code=422, detail=str(exc))
    logger.exception("Unhandled error", exc_info=exc)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")


def get_refund_service(db: Session = Depends(get_db)) -> RefundService:
    return RefundService(SqlItemStore(db))


# -------------------------------------------------------------------
# Shared handlers for /orders/{id}/... and /bookings/{id}/...
# -------------------------------------------------------------------
async def cancel_item(
    svc: RefundService, kind: ItemKind, item_id: int, body: schemas.CancelIn
) -> schemas.CancelOut:
    try:
        return await svc.cancel(kind, item_id, user_id=body.user_id, reason=body.reason)
    except Exception as e:
        _translate_error(e)


def quote_item(svc: RefundService, kind: ItemKind, item_id: int) -> schemas.RefundQuoteOut:
    try:
        return svc.quote(svc.store.load(kind, item_id))
    except Exception as e:
        _translate_error(e)


async def process_item_refund(
    svc: RefundService, kind: ItemKind, item_id: int, body: Optional[schemas.ProcessRefundIn]
) -> schemas.RefundResult:
    try:
        body = body or schemas.ProcessRefundIn()
        item = await run_in_threadpool(svc.store.load, kind, item_id)
        # only cancelled items are refunded
        if getattr(item.status, "value", item.status) != "cancelled":
            raise ConflictError(f"{kind.value} {item_id} must be cancelled before it can be refunded")
        if not svc.is_refund_allowed(item):
            raise ConflictError(f"refund not allowed for {kind.value} {item_id}")
        explicit = to_cents(body.amount) if body.amount is not None else None
        return await svc.process_refund(
            item,
            body.reason or "Refund requested",
            explicit_amount_cents=explicit,
        )
    except Exception as e:
        _translate_error(e)


# -------------------------------------------------------------------
# Policy tables
# -------------------------------------------------------------------
@router.get(
    "/refund-policy/{item_type}",
    response_model=schemas.PolicyDescription,
    summary="Refund policy table for 'order' or 'booking'",
    operation_id="Refunds__Policy",
)
def refund_policy(
    item_type: str = Path(..., description="order | booking"),
    svc: RefundService = Depends(get_refund_service),
):
    try:
        return svc.get_refund_policy(item_type)
    except Exception as e:
        _translate_error(e)


@router.post(
    "/refund-policy/quote",
    response_model=schemas.RefundQuoteOut,
    summary="Refund quote for a raw item payload (totalAmount -> order, totalPrice -> booking)",
    operation_id="Refunds__Quote",
)
def refund_quote(
    body: schemas.ItemSnapshot = Body(...),
    svc: RefundService = Depends(get_refund_service),
):
    try:
        return svc.quote(body)
    except Exception as e:
        _translate_error(e)
