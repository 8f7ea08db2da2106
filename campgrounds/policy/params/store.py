# campgrounds/policy/params/store.py
# Process-wide access to the active policy bundle.

from __future__ import annotations
from typing import Optional

from .loader import load_policy_yaml
from .schema import PolicyBundle

_policy: Optional[PolicyBundle] = None

def set_policy(bundle: Optional[PolicyBundle]) -> None:
    """Install a bundle (tests). None forces a reload on next access."""
    global _policy
    _policy = bundle

def get_policy() -> PolicyBundle:
    global _policy
    if _policy is None:
        _policy = load_policy_yaml()
    return _policy
