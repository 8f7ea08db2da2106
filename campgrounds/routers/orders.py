# campgrounds/routers/orders.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, status
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..core.refund_policy import to_cents
from ..crud import advance_order_status, create_order, get_item, list_items_for_user
from ..models import ItemKind
from ..services.refund_service import RefundService
from .refunds import _translate_error, cancel_item, get_refund_service, process_item_refund, quote_item

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=schemas.OrderOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create order (simulated payment captured)",
    operation_id="Orders__Create",
)
def orders_create(
    body: schemas.OrderCreate = Body(...),
    db: Session = Depends(get_db),
):
    try:
        order = create_order(
            db,
            user_id=body.user_id,
            items=[
                {"product_id": it.product_id, "quantity": it.quantity, "price_cents": to_cents(it.price)}
                for it in body.items
            ],
            shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
        )
        return schemas.order_out(order)
    except Exception as e:
        _translate_error(e)


@router.get(
    "/user/{user_id}",
    response_model=List[schemas.OrderOut],
    summary="Orders of a user (newest first)",
    operation_id="Orders__ListByUser",
)
def orders_by_user(
    user_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
):
    try:
        return [schemas.order_out(o) for o in list_items_for_user(db, ItemKind.ORDER, user_id)]
    except Exception as e:
        _translate_error(e)


@router.get(
    "/{order_id}",
    response_model=schemas.OrderOut,
    summary="Order by id",
    operation_id="Orders__GetById",
)
def orders_get(
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
):
    try:
        return schemas.order_out(get_item(db, ItemKind.ORDER, order_id))
    except Exception as e:
        _translate_error(e)


@router.patch(
    "/{order_id}/status",
    response_model=schemas.OrderOut,
    summary="Advance order status (pending -> processing -> shipped -> delivered)",
    operation_id="Orders__AdvanceStatus",
)
def orders_advance_status(
    order_id: int = Path(..., ge=1),
    body: schemas.OrderStatusIn = Body(...),
    db: Session = Depends(get_db),
):
    try:
        return schemas.order_out(advance_order_status(db, order_id=order_id, status=body.status))
    except Exception as e:
        _translate_error(e)


@router.patch(
    "/{order_id}/cancel",
    response_model=schemas.CancelOut,
    summary="Cancel order (pending/processing) with automatic refund",
    operation_id="Orders__Cancel",
)
async def orders_cancel(
    order_id: int = Path(..., ge=1),
    body: schemas.CancelIn = Body(...),
    svc: RefundService = Depends(get_refund_service),
):
    return await cancel_item(svc, ItemKind.ORDER, order_id, body)


@router.get(
    "/{order_id}/refund-policy",
    response_model=schemas.RefundQuoteOut,
    summary="Refund policy + current refund quote for an order",
    operation_id="Orders__RefundPolicy",
)
def orders_refund_policy(
    order_id: int = Path(..., ge=1),
    svc: RefundService = Depends(get_refund_service),
):
    return quote_item(svc, ItemKind.ORDER, order_id)


@router.post(
    "/{order_id}/process-refund",
    response_model=schemas.RefundResult,
    response_model_exclude_none=True,
    summary="Refund a cancelled order (eligibility checked)",
    operation_id="Orders__ProcessRefund",
)
async def orders_process_refund(
    order_id: int = Path(..., ge=1),
    body: Optional[schemas.ProcessRefundIn] = Body(None),
    svc: RefundService = Depends(get_refund_service),
):
    return await process_item_refund(svc, ItemKind.ORDER, order_id, body)
