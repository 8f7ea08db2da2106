# campgrounds/routers/bookings.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, status
from sqlalchemy.orm import Session

from ..database import get_db
from .. import schemas
from ..core.refund_policy import to_cents
from ..crud import create_booking, expire_bookings, get_item, list_items_for_user
from ..models import ItemKind
from ..services.refund_service import RefundService
from .refunds import _translate_error, cancel_item, get_refund_service, process_item_refund, quote_item

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=schemas.BookingOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create booking (confirmed, simulated payment captured)",
    operation_id="Bookings__Create",
)
def bookings_create(
    body: schemas.BookingCreate = Body(...),
    db: Session = Depends(get_db),
):
    try:
        booking = create_booking(
            db,
            user_id=body.user_id,
            campground_id=body.campground_id,
            days=body.days,
            total_price_cents=to_cents(body.total_price),
            check_in_date=body.check_in_date,
            check_out_date=body.check_out_date,
        )
        return schemas.booking_out(booking)
    except Exception as e:
        _translate_error(e)


# -------------------------------------------------------------------
# Expiry sweep: CONFIRMED past check-out -> EXPIRED
# -------------------------------------------------------------------
@router.post(
    "/expire",
    summary="Expire confirmed bookings past their check-out date",
    operation_id="Bookings__ExpireSweep",
)
def bookings_expire(
    db: Session = Depends(get_db),
):
    try:
        return {"expired": expire_bookings(db)}
    except Exception as e:
        _translate_error(e)


@router.get(
    "/user/{user_id}",
    response_model=List[schemas.BookingOut],
    summary="Bookings of a user (newest first)",
    operation_id="Bookings__ListByUser",
)
def bookings_by_user(
    user_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
):
    try:
        return [schemas.booking_out(b) for b in list_items_for_user(db, ItemKind.BOOKING, user_id)]
    except Exception as e:
        _translate_error(e)


@router.get(
    "/{booking_id}",
    response_model=schemas.BookingOut,
    summary="Booking by id",
    operation_id="Bookings__GetById",
)
def bookings_get(
    booking_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
):
    try:
        return schemas.booking_out(get_item(db, ItemKind.BOOKING, booking_id))
    except Exception as e:
        _translate_error(e)


@router.patch(
    "/{booking_id}/cancel",
    response_model=schemas.CancelOut,
    summary="Cancel booking (confirmed only) with automatic refund",
    operation_id="Bookings__Cancel",
)
async def bookings_cancel(
    booking_id: int = Path(..., ge=1),
    body: schemas.CancelIn = Body(...),
    svc: RefundService = Depends(get_refund_service),
):
    return await cancel_item(svc, ItemKind.BOOKING, booking_id, body)


@router.get(
    "/{booking_id}/refund-policy",
    response_model=schemas.RefundQuoteOut,
    summary="Refund policy + current refund quote for a booking",
    operation_id="Bookings__RefundPolicy",
)
def bookings_refund_policy(
    booking_id: int = Path(..., ge=1),
    svc: RefundService = Depends(get_refund_service),
):
    return quote_item(svc, ItemKind.BOOKING, booking_id)


@router.post(
    "/{booking_id}/process-refund",
    response_model=schemas.RefundResult,
    response_model_exclude_none=True,
    summary="Refund a cancelled booking (eligibility checked)",
    operation_id="Bookings__ProcessRefund",
)
async def bookings_process_refund(
    booking_id: int = Path(..., ge=1),
    body: Optional[schemas.ProcessRefundIn] = Body(None),
    svc: RefundService = Depends(get_refund_service),
):
    return await process_item_refund(svc, ItemKind.BOOKING, booking_id, body)
