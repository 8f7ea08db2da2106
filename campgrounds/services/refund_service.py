# campgrounds/services/refund_service.py
"""
Refund service: eligibility, amounts and the refund write path for orders
and bookings.

The Item Store is injected so tests can swap in a fake. Any object with
``load(kind, id)``, ``save(item)`` and
``claim_refund(item, claimed_at=, stale_before=) -> bool`` works;
``SqlItemStore`` is the production one.

Write path of ``process_refund``:

1. backfill a simulated payment if the item has none (policy flag)
2. amount = explicit amount or the policy amount
3. claim the item (refund_status NONE/FAILED/stale PENDING -> PENDING,
   conditional update)
4. simulated gateway refund (awaits the configured delay)
5. record PROCESSED + persist
6. on any error: record FAILED + persist; if that save fails too, the
   refund is left PENDING and the caller gets a "status unknown" result.
   Cancellation of the awaiting task also records FAILED, then propagates.

Store calls are blocking SQLAlchemy work and run in the threadpool, so
only the gateway wait is spent on the event loop.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Protocol, Union

from fastapi.concurrency import run_in_threadpool

from campgrounds import crud
from campgrounds.core import refund_policy as rp
from campgrounds.core.time_policy import _utcnow
from campgrounds.models import ItemKind, RefundStatus
from campgrounds.pg.client import request_pg_pay, request_pg_refund
from campgrounds.pg.types import PgPayRequest, PgRefundRequest
from campgrounds.policy.params.schema import PolicyBundle
from campgrounds.policy.params.store import get_policy
from campgrounds.schemas import (
    CancelOut,
    PolicyDescription,
    RefundInfo,
    RefundQuoteOut,
    RefundResult,
    item_out,
)

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Cancelled by user"
DUPLICATE_ERROR = "refund already processed or in progress"
NO_PAYMENT_ERROR = "no payment on file"
UNKNOWN_STATUS_ERROR = "refund status unknown, contact support"
INTERRUPTED_ERROR = "refund interrupted before completion"


class ItemStore(Protocol):
    def load(self, kind: Union[str, ItemKind], item_id: int) -> Any: ...
    def save(self, item: Any) -> Any: ...
    def claim_refund(self, item: Any, *, claimed_at: datetime, stale_before: Optional[datetime] = None) -> bool: ...


class RefundGatewayError(RuntimeError):
    pass


class RefundService:
    def __init__(self, store: ItemStore, policy: Optional[PolicyBundle] = None) -> None:
        self.store = store
        self._policy = policy

    @property
    def policy(self) -> PolicyBundle:
        return self._policy or get_policy()

    @property
    def currency(self) -> str:
        return self.policy.gateway.currency

    # -----------------------------------------------------------------
    # pure operations
    # -----------------------------------------------------------------
    def compute_refund_amount(self, item: Any, as_of: Optional[datetime] = None) -> int:
        return rp.compute_refund_amount(item, as_of=as_of, policy=self.policy)

    def is_refund_allowed(self, item: Any, as_of: Optional[datetime] = None) -> bool:
        return rp.is_refund_allowed(item, as_of=as_of, policy=self.policy)

    def get_refund_policy(self, item_type: Union[str, ItemKind]) -> PolicyDescription:
        return PolicyDescription.model_validate(rp.get_refund_policy(item_type, policy=self.policy))

    def quote(self, item: Any, as_of: Optional[datetime] = None) -> RefundQuoteOut:
        q = rp.quote_refund(item, as_of=as_of, policy=self.policy)
        table = self.get_refund_policy(q.kind)
        return RefundQuoteOut(
            type=q.kind.value,
            eligible=rp.is_refund_allowed(item, as_of=as_of, policy=self.policy),
            amount=rp.from_cents(q.amount_cents),
            percent=q.percent,
            full_amount=rp.from_cents(q.full_amount_cents),
            elapsed_hours=round(q.elapsed_hours, 4),
            evaluated_status=q.status,
            policy=table.policy,
        )

    # -----------------------------------------------------------------
    # write path
    # -----------------------------------------------------------------
    def _backfill_payment(self, item: Any) -> None:
        pay = request_pg_pay(
            PgPayRequest(
                merchant_uid=f"{rp.item_kind(item).value}:{item.id}",
                amount_cents=rp.full_amount_cents(item),
                paid_at=getattr(item, "created_at", None) or _utcnow(),
            )
        )
        item.set_simulated_payment(
            transaction_id=pay.pg_transaction_id,
            payment_intent_id=pay.pg_payment_intent_id,
            paid_at=pay.paid_at,
        )
        logger.info("Backfilled simulated payment for %s %s", rp.item_kind(item).value, item.id)

    def _record_failed(self, item: Any, reason: Optional[str], message: str) -> None:
        item.record_refund(
            status=RefundStatus.FAILED,
            amount_cents=0,
            reason=reason,
            failure_reason=message,
            processed_at=_utcnow(),
        )

    def _committed_refund(self, item: Any) -> RefundInfo:
        status = rp.refund_status_of(item)
        return RefundInfo(
            id=item.refund_id,
            amount=rp.from_cents(item.refund_amount_cents or 0),
            currency=self.currency,
            # "none" never reaches here: a failed claim means someone else owns the refund
            status=status.value if status != RefundStatus.NONE else RefundStatus.PENDING.value,
            processed_at=item.refund_processed_at,
            failure_reason=item.refund_failure_reason,
        )

    async def process_refund(
        self,
        item: Any,
        reason: Optional[str] = DEFAULT_REASON,
        explicit_amount_cents: Optional[int] = None,
    ) -> RefundResult:
        """
        Refund ``item`` and persist the outcome.

        Does not check eligibility; callers gate with ``is_refund_allowed``.
        A second attempt on an item whose refund is already PROCESSED (or
        in flight) is a no-op that returns ``success=False``.
        """
        kind = rp.item_kind(item)
        full = rp.full_amount_cents(item)

        if explicit_amount_cents is not None:
            explicit_amount_cents = int(explicit_amount_cents)
            if explicit_amount_cents < 0 or explicit_amount_cents > full:
                raise rp.InvalidItemError(
                    f"refund amount must be between 0 and {full} cents, got={explicit_amount_cents}"
                )

        if not item.has_payment:
            if not self.policy.gateway.allow_simulated_payment_backfill:
                logger.warning("Refund refused for %s %s: %s", kind.value, item.id, NO_PAYMENT_ERROR)
                return RefundResult(
                    success=False,
                    error=NO_PAYMENT_ERROR,
                    refund=RefundInfo(status="failed", currency=self.currency, failure_reason=NO_PAYMENT_ERROR),
                )
            self._backfill_payment(item)

        amount = explicit_amount_cents if explicit_amount_cents is not None else self.compute_refund_amount(item)

        claimed = await run_in_threadpool(
            self.store.claim_refund,
            item,
            claimed_at=_utcnow(),
            stale_before=rp.claim_stale_before(policy=self.policy),
        )
        if not claimed:
            logger.info("Duplicate refund attempt for %s %s ignored", kind.value, item.id)
            return RefundResult(success=False, error=DUPLICATE_ERROR, refund=self._committed_refund(item))

        logger.info("Refund claimed for %s %s: %s cents", kind.value, item.id, amount)

        pg = None
        try:
            pg = await request_pg_refund(
                PgRefundRequest(
                    pg_transaction_id=item.payment_transaction_id,
                    merchant_uid=f"{kind.value}:{item.id}",
                    amount_cents=amount,
                    reason=reason,
                ),
                delay_seconds=self.policy.gateway.simulated_delay_seconds,
            )
            if not pg.success:
                raise RefundGatewayError(pg.pg_error_message or f"gateway status {pg.pg_status}")

            processed_at = _utcnow()
            item.record_refund(
                status=RefundStatus.PROCESSED,
                amount_cents=amount,
                refund_id=pg.pg_refund_id,
                reason=reason,
                processed_at=processed_at,
            )
            await run_in_threadpool(self.store.save, item)

        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning("Refund failed for %s %s: %s", kind.value, item.id, message)
            try:
                self._record_failed(item, reason, message)
                await run_in_threadpool(self.store.save, item)
            except Exception:
                logger.exception("Could not record failed refund for %s %s", kind.value, item.id)
                return RefundResult(
                    success=False,
                    error=UNKNOWN_STATUS_ERROR,
                    refund=RefundInfo(status="pending", currency=self.currency, failure_reason=message),
                )

            return RefundResult(
                success=False,
                error=message,
                refund=RefundInfo(status="failed", currency=self.currency, failure_reason=message),
            )

        except BaseException:
            # cancelled while holding the claim: release it as FAILED, saved
            # inline since a cancelled task must not await again
            if pg is not None and pg.success:
                # already refunded at the gateway: the claim stays PENDING
                logger.error("Refund %s for %s %s sent but not recorded", pg.pg_refund_id, kind.value, item.id)
                raise
            logger.warning("Refund interrupted for %s %s", kind.value, item.id)
            try:
                self._record_failed(item, reason, INTERRUPTED_ERROR)
                self.store.save(item)
            except Exception:
                logger.exception("Could not release interrupted refund for %s %s", kind.value, item.id)
            raise

        logger.info("Refund processed for %s %s: %s (%s cents)", kind.value, item.id, pg.pg_refund_id, amount)
        return RefundResult(
            success=True,
            refund=RefundInfo(
                id=pg.pg_refund_id,
                amount=rp.from_cents(amount),
                currency=self.currency,
                status="processed",
                processed_at=processed_at,
            ),
        )

    # -----------------------------------------------------------------
    # cancellation
    # -----------------------------------------------------------------
    async def cancel(
        self,
        kind: Union[str, ItemKind],
        item_id: int,
        *,
        user_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> CancelOut:
        """
        Cancel an order/booking and refund it when the policy allows.

        load -> ownership check -> status=cancelled (prior status kept) ->
        eligibility -> process_refund.
        """
        kind = ItemKind(kind)
        item = await run_in_threadpool(self.store.load, kind, item_id)

        if user_id is not None and item.user_id != user_id:
            raise crud.ForbiddenError(f"{kind.value} {item_id} does not belong to user {user_id}")

        crud.mark_cancelled(item)
        await run_in_threadpool(self.store.save, item)
        logger.info("%s %s cancelled (was %s)", kind.value.capitalize(), item.id, item.status_before_cancel)

        label = kind.value.capitalize()
        refund: Optional[RefundResult] = None
        if self.is_refund_allowed(item):
            refund = await self.process_refund(item, reason or DEFAULT_REASON)
            if refund.success:
                message = f"{label} cancelled successfully. Refund of ${refund.refund.amount:.2f} processed."
            else:
                message = f"{label} cancelled, but the refund could not be processed."
        else:
            message = f"{label} cancelled without refund."

        data = {kind.value: item_out(item).model_dump(by_alias=True, mode="json")}
        if refund is not None:
            data["refund"] = refund.model_dump(by_alias=True, mode="json", exclude_none=True)
        return CancelOut(message=message, data=data)
