"""SerialGuard policy state.

This subpackage provides:

* **PatternSet** -- ordered, compiled blacklist/whitelist matchers
  (:mod:`~serialguard.policy.patterns`).
* **PolicySnapshot** -- the immutable rules in effect at one point in
  time, and :func:`build_snapshot` (:mod:`~serialguard.policy.snapshot`).
* **JsonPolicyLoader** -- JSON policy files
  (:mod:`~serialguard.policy.loader`).
* **PolicyStore** / **StoreRegistry** -- hot reload, the safe-name cache
  and process-wide sharing of stores (:mod:`~serialguard.policy.store`).
"""
from __future__ import annotations

from serialguard.policy.loader import JsonPolicyLoader
from serialguard.policy.patterns import PatternSet
from serialguard.policy.snapshot import PolicySnapshot, build_snapshot
from serialguard.policy.store import (
    PolicyStore,
    SafeNameCache,
    StoreGeneration,
    StoreRegistry,
    current_snapshot,
    default_registry,
    get_or_create,
)

__all__ = [
    "JsonPolicyLoader",
    "PatternSet",
    "PolicySnapshot",
    "PolicyStore",
    "SafeNameCache",
    "StoreGeneration",
    "StoreRegistry",
    "build_snapshot",
    "current_snapshot",
    "default_registry",
    "get_or_create",
]
