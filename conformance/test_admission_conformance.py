"""Admission filter conformance tests.

Verifies the required behaviour of the filter end to end: rule ordering
in both modes, rejection errors, the safe-name cache, hot reload and
the concurrency guarantees of the policy store.
"""
from __future__ import annotations

import threading
import time
from collections.abc import Callable

import pytest

from serialguard.core.errors import (
    BlacklistedType,
    ConfigurationError,
    NonWhitelistedType,
    PatternSyntaxError,
    RejectedTypeError,
)
from serialguard.core.interfaces import InMemoryAuditSink, InMemoryPolicySource
from serialguard.core.types import (
    AuditKind,
    Mode,
    Outcome,
    ParsedPolicy,
    VerdictReason,
)
from serialguard.filter.classifier import classify
from serialguard.filter.hook import admit
from serialguard.policy.patterns import PatternSet
from serialguard.policy.store import PolicyStore, StoreRegistry, current_snapshot

SOURCE_ID = "conformance/policy"

StoreFactory = Callable[..., PolicyStore]


class _SlowSource(InMemoryPolicySource):
    """Policy source whose loads take long enough to overlap."""

    def load(self, source_id: str) -> ParsedPolicy:
        time.sleep(0.05)
        return super().load(source_id)


# ===================================================================
# Pattern set
# ===================================================================

class TestPatternSet:
    """Pattern sets MUST reject bad configuration loudly."""

    def test_MUST_reject_invalid_pattern(self) -> None:
        """An invalid expression MUST raise PatternSyntaxError."""
        with pytest.raises(PatternSyntaxError):
            PatternSet(["ok", "(unclosed"], list_name="blacklist")

    def test_MUST_reject_absent_list(self) -> None:
        """A missing list MUST be a ConfigurationError, not an empty set."""
        with pytest.raises(ConfigurationError):
            PatternSet(None, list_name="whitelist")  # type: ignore[arg-type]

    def test_MUST_preserve_declared_order(self) -> None:
        """Matchers MUST be yielded in declared order, stable across passes."""
        patterns = PatternSet(["c", "a", "b"])
        first = [m.pattern for m in patterns]
        assert first == ["c", "a", "b"]
        assert [m.pattern for m in patterns] == first


# ===================================================================
# Classification, blocking mode
# ===================================================================

class TestBlockingClassification:
    """Blocking mode MUST enforce verdicts."""

    def test_MUST_allow_whitelisted_name(self, make_store: StoreFactory) -> None:
        store = make_store(blacklist=[r"^evil\."], whitelist=[r"^com\.app\."])
        assert classify("com.app.Order", store.snapshot).outcome is Outcome.ALLOW

    def test_MUST_block_blacklisted_without_whitelist_evaluation(
        self, make_store: StoreFactory, audit_sink: InMemoryAuditSink
    ) -> None:
        """A blacklist match MUST stop evaluation: exactly one record."""
        store = make_store(blacklist=["evil", "Gadget"], whitelist=["evil"])
        verdict = classify("evil.Gadget", store.snapshot)
        assert verdict.outcome is Outcome.BLOCK
        assert verdict.reason is VerdictReason.BLACKLIST_MATCH
        assert len(audit_sink) == 1
        assert audit_sink.records[0].mode is Mode.BLOCKING

    def test_MUST_block_whitelist_miss(self, make_store: StoreFactory) -> None:
        store = make_store(whitelist=[r"^com\.app\."])
        verdict = classify("java.sql.Date", store.snapshot)
        assert verdict.outcome is Outcome.BLOCK
        assert verdict.reason is VerdictReason.WHITELIST_MISS

    def test_MUST_match_exact_names(self, make_store: StoreFactory) -> None:
        store = make_store(names=["java.lang.ProcessBuilder"], whitelist=[".*"])
        assert classify("java.lang.ProcessBuilder", store.snapshot).blocked


# ===================================================================
# Classification, profiling mode
# ===================================================================

class TestProfilingClassification:
    """Profiling mode MUST observe without enforcing."""

    def test_MUST_allow_whitelisted_name(self, make_store: StoreFactory) -> None:
        store = make_store(whitelist=[r"^com\.app\."], profiling=True)
        assert classify("com.app.Order", store.snapshot).allowed

    def test_MUST_audit_every_blacklist_match(
        self, make_store: StoreFactory, audit_sink: InMemoryAuditSink
    ) -> None:
        """Every matching blacklist rule MUST produce a record, not just the first."""
        store = make_store(
            blacklist=["evil", "unrelated", r"\.Gadget$", ".*"],
            whitelist=[".*"],
            profiling=True,
        )
        verdict = classify("evil.Gadget", store.snapshot)
        assert verdict.allowed
        matches = audit_sink.of_kind(AuditKind.BLACKLIST_MATCH)
        assert [r.matched_rule for r in matches] == ["evil", r"\.Gadget$", ".*"]
        assert all(r.mode is Mode.PROFILING for r in matches)

    def test_MUST_stop_at_first_whitelist_match(
        self, make_store: StoreFactory, audit_sink: InMemoryAuditSink
    ) -> None:
        store = make_store(whitelist=["com", "app"], profiling=True)
        classify("com.app.Order", store.snapshot)
        (record,) = audit_sink.of_kind(AuditKind.WHITELIST_MATCH)
        assert record.matched_rule == "com"

    def test_MUST_allow_whitelist_miss(self, make_store: StoreFactory) -> None:
        store = make_store(whitelist=[r"^com\.app\."], profiling=True)
        assert classify("java.sql.Date", store.snapshot).allowed


# ===================================================================
# Admission hook
# ===================================================================

class TestAdmissionHook:
    """Rejections MUST be structured and audited before they propagate."""

    def test_MUST_distinguish_blacklist_rejection(self, make_store: StoreFactory) -> None:
        store = make_store(blacklist=[r"^evil\."], whitelist=[".*"])
        with pytest.raises(RejectedTypeError) as exc_info:
            admit("evil.Gadget", store)
        err = exc_info.value
        assert isinstance(err, BlacklistedType)
        assert err.is_blacklist
        assert err.matched_rule == r"^evil\."
        assert err.type_name == "evil.Gadget"

    def test_MUST_distinguish_whitelist_rejection(self, make_store: StoreFactory) -> None:
        store = make_store(whitelist=[r"^com\."])
        with pytest.raises(RejectedTypeError) as exc_info:
            admit("java.sql.Date", store)
        err = exc_info.value
        assert isinstance(err, NonWhitelistedType)
        assert err.is_whitelist
        assert err.matched_rule is None

    def test_MUST_flush_before_raising(
        self, make_store: StoreFactory, audit_sink: InMemoryAuditSink
    ) -> None:
        store = make_store(whitelist=[r"^com\."])
        with pytest.raises(NonWhitelistedType):
            admit("java.sql.Date", store)
        assert audit_sink.flush_count == 1
        assert len(audit_sink.of_kind(AuditKind.WHITELIST_MISS)) == 1

    def test_MUST_NOT_raise_in_profiling(self, make_store: StoreFactory) -> None:
        store = make_store(blacklist=[".*"], profiling=True)
        assert admit("anything.At.All", store).allowed


# ===================================================================
# Idempotence and the safe-name cache
# ===================================================================

class TestSafeNameCache:
    """Repeated names MUST be served from the cache of the current snapshot."""

    def test_MUST_serve_repeat_from_cache(
        self, make_store: StoreFactory, audit_sink: InMemoryAuditSink
    ) -> None:
        store = make_store(whitelist=[".*"], profiling=True)
        first = admit("com.app.Widget", store)
        records = len(audit_sink)
        second = admit("com.app.Widget", store)
        assert second == first
        assert len(audit_sink) == records
        assert store.cache.hits == 1

    def test_MUST_NOT_honour_cache_after_tightening(
        self,
        make_store: StoreFactory,
        policy_source: InMemoryPolicySource,
    ) -> None:
        store = make_store(whitelist=[".*"])
        admit("evil.Gadget", store)
        admit("evil.Gadget", store)
        policy_source.put(
            SOURCE_ID,
            ParsedPolicy(
                refresh_interval_ms=0,
                blacklist_patterns=[r"^evil\.Gadget$"],
                whitelist_patterns=[".*"],
            ),
        )
        with pytest.raises(BlacklistedType):
            admit("evil.Gadget", store)


# ===================================================================
# Policy store and reload
# ===================================================================

class TestPolicyStore:
    """Stores MUST be shared, reload on change and survive bad reloads."""

    def test_MUST_share_store_per_source(
        self, make_store: StoreFactory, registry: StoreRegistry,
        policy_source: InMemoryPolicySource,
    ) -> None:
        store = make_store(whitelist=[".*"])
        assert registry.get_or_create(SOURCE_ID, loader=policy_source) is store

    def test_MUST_reflect_new_rules_after_change(
        self, make_store: StoreFactory, policy_source: InMemoryPolicySource
    ) -> None:
        store = make_store(whitelist=[".*"])
        assert current_snapshot(store).version == 1
        policy_source.put(
            SOURCE_ID,
            ParsedPolicy(refresh_interval_ms=0, blacklist_patterns=["x"], whitelist_patterns=[]),
        )
        snapshot = current_snapshot(store)
        assert snapshot.version == 2
        assert snapshot.blacklist.patterns == ("x",)

    def test_MUST_NOT_check_within_refresh_interval(
        self, make_store: StoreFactory, policy_source: InMemoryPolicySource
    ) -> None:
        store = make_store(whitelist=[".*"], refresh_interval_ms=60_000)
        policy_source.put(
            SOURCE_ID,
            ParsedPolicy(blacklist_patterns=["x"], whitelist_patterns=[]),
        )
        assert current_snapshot(store).version == 1

    def test_MUST_keep_previous_policy_on_failed_reload(
        self,
        make_store: StoreFactory,
        policy_source: InMemoryPolicySource,
        audit_sink: InMemoryAuditSink,
    ) -> None:
        store = make_store(whitelist=[r"^com\."])
        policy_source.put(
            SOURCE_ID,
            ParsedPolicy(
                refresh_interval_ms=0,
                blacklist_patterns=["(broken"],
                whitelist_patterns=[".*"],
            ),
        )
        # The failure is audited, never raised from admit.
        assert admit("com.app.Order", store).allowed
        assert current_snapshot(store).version == 1
        (failure,) = audit_sink.of_kind(AuditKind.RELOAD_FAILURE)
        assert failure.metadata["error"]["code"] == "SG-E102"


# ===================================================================
# Concurrency
# ===================================================================

class TestConcurrency:
    """Shared stores MUST stay consistent under concurrent callers."""

    def test_MUST_parse_once_on_concurrent_first_access(self) -> None:
        source = _SlowSource()
        source.put(SOURCE_ID, ParsedPolicy(blacklist_patterns=[], whitelist_patterns=[".*"]))
        registry = StoreRegistry()
        results: list[object] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            results.append(
                registry.get_or_create(
                    SOURCE_ID, loader=source, audit_sink=InMemoryAuditSink()
                )
            )

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 8
        assert all(r is results[0] for r in results)
        assert source.load_count == 1

    def test_MUST_reload_single_flight(self) -> None:
        source = _SlowSource()
        source.put(
            SOURCE_ID,
            ParsedPolicy(refresh_interval_ms=0, blacklist_patterns=[], whitelist_patterns=[".*"]),
        )
        store = StoreRegistry().get_or_create(
            SOURCE_ID, loader=source, audit_sink=InMemoryAuditSink()
        )
        source.put(
            SOURCE_ID,
            ParsedPolicy(refresh_interval_ms=0, blacklist_patterns=["x"], whitelist_patterns=[".*"]),
        )
        versions: list[int] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            versions.append(store.current().snapshot.version)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert source.load_count == 2
        assert set(versions) <= {1, 2}
        assert store.snapshot.version == 2


# ===================================================================
# Concrete scenarios
# ===================================================================

class TestScenarios:
    """The reference scenarios."""

    def test_MUST_scenario_a_blacklisted_gadget(self, make_store: StoreFactory) -> None:
        store = make_store(blacklist=[r"^evil\.Gadget$"], whitelist=[".*"])
        verdict = classify("evil.Gadget", store.snapshot)
        assert verdict.outcome is Outcome.BLOCK
        assert verdict.reason is VerdictReason.BLACKLIST_MATCH
        assert classify("com.app.Widget", store.snapshot).outcome is Outcome.ALLOW

    def test_MUST_scenario_b_whitelist_miss(self, make_store: StoreFactory) -> None:
        store = make_store(whitelist=[r"^com\.app\..*"])
        verdict = classify("java.sql.Date", store.snapshot)
        assert verdict.outcome is Outcome.BLOCK
        assert verdict.reason is VerdictReason.WHITELIST_MISS
        assert classify("com.app.Order", store.snapshot).outcome is Outcome.ALLOW

    def test_MUST_scenario_c_profiling_whitelist_miss(
        self, make_store: StoreFactory, audit_sink: InMemoryAuditSink
    ) -> None:
        store = make_store(whitelist=[r"^com\.app\..*"], profiling=True)
        verdict = admit("java.sql.Date", store)
        assert verdict.outcome is Outcome.ALLOW
        assert len(audit_sink.of_kind(AuditKind.WHITELIST_MISS)) == 1

    def test_MUST_scenario_d_bad_pattern_at_load(
        self,
        policy_source: InMemoryPolicySource,
        registry: StoreRegistry,
    ) -> None:
        policy_source.put(
            SOURCE_ID,
            ParsedPolicy(blacklist_patterns=["*invalid"], whitelist_patterns=[".*"]),
        )
        with pytest.raises(ConfigurationError):
            registry.get_or_create(SOURCE_ID, loader=policy_source)
        assert SOURCE_ID not in registry
        assert registry.get(SOURCE_ID, loader=policy_source) is None
