"""Shared fixtures for SerialGuard conformance tests.

Provides policy sources, audit sinks, registries and a small factory for
stores built from inline rule lists.
"""
from __future__ import annotations

from collections.abc import Callable

import pytest

from serialguard.core.interfaces import InMemoryAuditSink, InMemoryPolicySource
from serialguard.core.types import ParsedPolicy
from serialguard.policy.store import PolicyStore, StoreRegistry

# ---------------------------------------------------------------------------
# Common source identifiers
# ---------------------------------------------------------------------------
SOURCE_ID = "conformance/policy"

StoreFactory = Callable[..., PolicyStore]


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def policy_source() -> InMemoryPolicySource:
    return InMemoryPolicySource()


@pytest.fixture()
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture()
def registry() -> StoreRegistry:
    return StoreRegistry()


# ---------------------------------------------------------------------------
# Store factory
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_store(
    policy_source: InMemoryPolicySource,
    audit_sink: InMemoryAuditSink,
    registry: StoreRegistry,
) -> StoreFactory:
    """Publish a policy under :data:`SOURCE_ID` and return its store."""

    def _make(
        *,
        blacklist: list[str] | None = None,
        names: list[str] | None = None,
        whitelist: list[str] | None = None,
        profiling: bool = False,
        refresh_interval_ms: int = 0,
    ) -> PolicyStore:
        policy_source.put(
            SOURCE_ID,
            ParsedPolicy(
                refresh_interval_ms=refresh_interval_ms,
                profiling=profiling,
                blacklist_patterns=blacklist or [],
                blacklist_names=names or [],
                whitelist_patterns=whitelist or [],
            ),
        )
        return registry.get_or_create(
            SOURCE_ID, loader=policy_source, audit_sink=audit_sink
        )

    return _make
