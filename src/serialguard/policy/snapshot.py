"""Immutable policy snapshots.

A :class:`PolicySnapshot` is the set of rules in effect at one point in
time.  Snapshots are never modified: a reload builds a new one and the
store publishes it with a single reference assignment.  Evaluations that
started against an older snapshot keep using it until they finish.
"""
from __future__ import annotations

from dataclasses import dataclass

from serialguard.audit.sinks import CompositeAuditSink, NDJSONFileAuditSink
from serialguard.core.interfaces import AuditSink
from serialguard.core.types import Mode, ParsedPolicy
from serialguard.policy.patterns import PatternSet


@dataclass(frozen=True, slots=True)
class PolicySnapshot:
    """The rules in effect right now for one policy source.

    Attributes
    ----------
    source_id:
        Canonical identifier of the policy source.
    version:
        Monotonic counter, incremented by the owning store on every
        successful (re)load.
    blacklist:
        Blacklist patterns; ``blacklist.names`` holds the exact names.
    whitelist:
        Whitelist patterns.
    profiling:
        ``True`` when verdicts are recorded but not enforced.
    refresh_interval_ms:
        Minimum delay between two staleness checks of the source.
    audit_sink:
        Where the classifier sends audit records.
    """

    source_id: str
    version: int
    blacklist: PatternSet
    whitelist: PatternSet
    profiling: bool
    refresh_interval_ms: int
    audit_sink: AuditSink

    @property
    def mode(self) -> Mode:
        return Mode.PROFILING if self.profiling else Mode.BLOCKING


def build_snapshot(
    policy: ParsedPolicy,
    *,
    source_id: str,
    version: int,
    audit_sink: AuditSink,
) -> PolicySnapshot:
    """Compile *policy* into a :class:`PolicySnapshot`.

    All patterns are compiled eagerly, so any invalid pattern raises
    :class:`~serialguard.core.errors.PatternSyntaxError` here and no
    snapshot is produced.  When the policy names an ``audit_log`` file,
    records go to *audit_sink* and to that file.
    """
    blacklist = PatternSet(
        policy.blacklist_patterns,
        policy.blacklist_names,
        list_name="blacklist",
    )
    whitelist = PatternSet(policy.whitelist_patterns, list_name="whitelist")

    sink: AuditSink = audit_sink
    if policy.audit_log:
        sink = CompositeAuditSink([audit_sink, NDJSONFileAuditSink(policy.audit_log)])

    return PolicySnapshot(
        source_id=source_id,
        version=version,
        blacklist=blacklist,
        whitelist=whitelist,
        profiling=policy.profiling,
        refresh_interval_ms=policy.refresh_interval_ms,
        audit_sink=sink,
    )
