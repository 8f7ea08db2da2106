# campgrounds/policy/params/guardrails.py
from __future__ import annotations

from typing import Sequence

from campgrounds.policy.params.errors import PolicyValidationError
from campgrounds.policy.params.schema import PolicyBundle, RefundBracket


def _validate_brackets(name: str, brackets: Sequence[RefundBracket]) -> None:
    if not brackets:
        raise PolicyValidationError(f"{name}: at least one bracket is required")

    prev = None
    for i, b in enumerate(brackets):
        if not (0 <= int(b.percent) <= 100):
            raise PolicyValidationError(f"{name}[{i}].percent must be 0~100, got={b.percent}")

        if b.max_hours is None:
            # open-ended row must be last
            if i != len(brackets) - 1:
                raise PolicyValidationError(f"{name}[{i}]: only the last bracket may be open-ended")
            continue

        if b.max_hours <= 0:
            raise PolicyValidationError(f"{name}[{i}].max_hours must be >0, got={b.max_hours}")
        if prev is not None and b.max_hours <= prev:
            raise PolicyValidationError(
                f"{name}[{i}].max_hours must be increasing: {prev} -> {b.max_hours}"
            )
        prev = b.max_hours


def validate_policy(bundle: PolicyBundle) -> None:
    g = bundle.gateway

    # --- gateway ---
    cur = str(g.currency or "")
    if len(cur) != 3 or not cur.isalpha() or not cur.isupper():
        raise PolicyValidationError(f"currency must be a 3-letter ISO code, got={g.currency!r}")
    if g.simulated_delay_seconds < 0 or g.simulated_delay_seconds > 60:
        raise PolicyValidationError(
            f"simulated_delay_seconds must be 0~60, got={g.simulated_delay_seconds}"
        )
    if g.refund_claim_timeout_seconds <= g.simulated_delay_seconds:
        raise PolicyValidationError(
            "refund_claim_timeout_seconds must exceed simulated_delay_seconds, "
            f"got={g.refund_claim_timeout_seconds} <= {g.simulated_delay_seconds}"
        )

    # --- order ---
    if not bundle.order.brackets_by_status:
        raise PolicyValidationError("order.statuses must list at least one refundable status")
    for status, brackets in bundle.order.brackets_by_status.items():
        if status == "cancelled":
            # cancelled orders are evaluated against status_before_cancel
            raise PolicyValidationError("order.statuses must not define 'cancelled'")
        _validate_brackets(f"order.statuses.{status}", brackets)

    # --- booking ---
    _validate_brackets("booking.brackets", bundle.booking.brackets)
