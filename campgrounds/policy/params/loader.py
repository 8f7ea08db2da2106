# campgrounds/policy/params/loader.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from campgrounds.policy.params.errors import PolicyConfigError
from campgrounds.policy.params.guardrails import validate_policy
from campgrounds.policy.params.schema import (
    BookingRefundPolicy,
    GatewayPolicy,
    OrderRefundPolicy,
    PolicyBundle,
    RefundBracket,
)

logger = logging.getLogger(__name__)


def _deep_get(d: dict, key: str) -> Any:
    if not isinstance(d, dict) or key not in d:
        raise PolicyConfigError(f"Missing key: {key}")
    return d[key]


def _parse_brackets(name: str, raw: Any) -> Tuple[RefundBracket, ...]:
    if not isinstance(raw, list):
        raise PolicyConfigError(f"{name} must be a list of brackets")

    out: List[RefundBracket] = []
    for it in raw:
        if not isinstance(it, dict):
            raise PolicyConfigError(f"{name}: bracket must be a mapping, got={it!r}")
        max_hours = it.get("max_hours")
        out.append(
            RefundBracket(
                max_hours=(int(max_hours) if max_hours is not None else None),
                percent=int(_deep_get(it, "percent")),
                label=str(it.get("label") or "").strip(),
            )
        )
    return tuple(out)


def parse_policy(raw: Dict[str, Any]) -> PolicyBundle:
    """Build a PolicyBundle from an already-parsed YAML mapping."""
    order_raw = _deep_get(raw, "order")
    booking_raw = _deep_get(raw, "booking")

    statuses_raw = _deep_get(order_raw, "statuses")
    if not isinstance(statuses_raw, dict):
        raise PolicyConfigError("order.statuses must be a mapping of status -> brackets")

    brackets_by_status = {
        str(status).strip().lower(): _parse_brackets(f"order.statuses.{status}", rows)
        for status, rows in statuses_raw.items()
    }

    # gateway is optional, defaults match the simulated payment flow
    gateway_raw = raw.get("gateway") or {}
    defaults = GatewayPolicy()
    gateway = GatewayPolicy(
        currency=str(gateway_raw.get("currency") or defaults.currency).strip(),
        simulated_delay_seconds=float(
            gateway_raw.get("simulated_delay_seconds", defaults.simulated_delay_seconds)
        ),
        allow_simulated_payment_backfill=bool(
            gateway_raw.get("allow_simulated_payment_backfill", defaults.allow_simulated_payment_backfill)
        ),
        refund_claim_timeout_seconds=float(
            gateway_raw.get("refund_claim_timeout_seconds", defaults.refund_claim_timeout_seconds)
        ),
    )

    bundle = PolicyBundle(
        order=OrderRefundPolicy(
            brackets_by_status=brackets_by_status,
            no_refund_label=str(order_raw.get("no_refund_label") or "Shipped or Delivered"),
        ),
        booking=BookingRefundPolicy(
            brackets=_parse_brackets("booking.brackets", _deep_get(booking_raw, "brackets")),
        ),
        gateway=gateway,
    )

    validate_policy(bundle)
    return bundle


def load_policy_yaml(path: str | None = None) -> PolicyBundle:
    """
    Loads the refund policy bundle from YAML.
    - default: campgrounds/policy/params/defaults.yaml
    - override path by env REFUND_POLICY_YAML_PATH or param
    """
    if path is None:
        path = os.environ.get("REFUND_POLICY_YAML_PATH")

    if path is None:
        base = Path(__file__).resolve().parent
        path = str(base / "defaults.yaml")

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Policy YAML not found: {p}")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    bundle = parse_policy(raw)
    logger.info("Loaded refund policy from %s", p)
    return bundle
