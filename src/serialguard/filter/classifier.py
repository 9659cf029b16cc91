"""Type-name classification.

:func:`classify` decides whether a fully-qualified type name may be
reconstructed under a :class:`PolicySnapshot`.  Evaluation order:

0. **Safe-name cache** -- a name admitted earlier under the same
   snapshot is answered from the cache without evaluating any rule.
1. **Exact blacklist names**.
2. **Blacklist patterns**, in declared order.  In blocking mode the
   first match BLOCKS immediately and nothing else is evaluated.  In
   profiling mode every matching rule is audited and evaluation goes on.
3. **Whitelist patterns**, in declared order.  The first match wins.
4. **Whitelist miss** -- BLOCK in blocking mode; audited and allowed in
   profiling mode.
5. **Allow** -- the name is memoized in the safe-name cache.

Profiling mode never blocks.  Its verdicts keep the reason that blocking
mode would have reported, so a profiling run shows what enforcement
would do.

The classifier never raises for a well-formed snapshot; turning a BLOCK
verdict into an exception is the job of
:func:`~serialguard.filter.hook.admit`.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from serialguard.audit.records import create_audit_record
from serialguard.core.types import (
    AuditKind,
    AuditLevel,
    Outcome,
    Verdict,
    VerdictReason,
)

if TYPE_CHECKING:
    from serialguard.policy.snapshot import PolicySnapshot
    from serialguard.policy.store import SafeNameCache


def classify(
    type_name: str,
    snapshot: PolicySnapshot,
    cache: SafeNameCache | None = None,
) -> Verdict:
    """Return the admission :class:`Verdict` for *type_name*.

    Parameters
    ----------
    type_name:
        Fully-qualified name of the type about to be reconstructed.
    snapshot:
        The policy to evaluate against.
    cache:
        Safe-name cache bound to *snapshot*.  When given, admitted names
        are memoized in it and answered from it on later calls.

    Audit records are emitted to ``snapshot.audit_sink`` but not flushed.
    """
    if cache is not None and cache.snapshot is not snapshot:
        # bound to another snapshot; never honour or extend it
        cache = None
    if cache is not None:
        cached = cache.get(type_name)
        if cached is not None:
            return cached

    profiling = snapshot.profiling
    first_blacklist_rule: str | None = None

    # -- Step 1: Exact blacklist names --------------------------------------
    if type_name in snapshot.blacklist.names:
        _audit_blacklist(snapshot, type_name, type_name)
        if not profiling:
            return Verdict(Outcome.BLOCK, VerdictReason.BLACKLIST_MATCH, type_name)
        first_blacklist_rule = type_name

    # -- Step 2: Blacklist patterns -----------------------------------------
    for matcher in snapshot.blacklist:
        if matcher.search(type_name) is None:
            continue
        _audit_blacklist(snapshot, type_name, matcher.pattern)
        if not profiling:
            return Verdict(
                Outcome.BLOCK, VerdictReason.BLACKLIST_MATCH, matcher.pattern
            )
        if first_blacklist_rule is None:
            first_blacklist_rule = matcher.pattern

    # -- Step 3: Whitelist patterns (first match wins) ----------------------
    whitelist_rule: str | None = None
    for matcher in snapshot.whitelist:
        if matcher.search(type_name) is not None:
            whitelist_rule = matcher.pattern
            if profiling:
                _emit(
                    snapshot,
                    AuditLevel.INFO,
                    AuditKind.WHITELIST_MATCH,
                    type_name,
                    whitelist_rule,
                )
            break

    # -- Step 4: Whitelist miss ---------------------------------------------
    if whitelist_rule is None:
        _emit(
            snapshot,
            AuditLevel.INFO if profiling else AuditLevel.ERROR,
            AuditKind.WHITELIST_MISS,
            type_name,
            None,
        )
        if not profiling:
            return Verdict(Outcome.BLOCK, VerdictReason.WHITELIST_MISS)

    # -- Step 5: Allow ------------------------------------------------------
    if first_blacklist_rule is not None:
        verdict = Verdict(
            Outcome.ALLOW, VerdictReason.BLACKLIST_MATCH, first_blacklist_rule
        )
    elif whitelist_rule is None:
        verdict = Verdict(Outcome.ALLOW, VerdictReason.WHITELIST_MISS)
    else:
        verdict = Verdict(Outcome.ALLOW, VerdictReason.WHITELIST_MATCH, whitelist_rule)

    if cache is not None:
        cache.add(type_name, verdict)
    return verdict


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _audit_blacklist(snapshot: PolicySnapshot, type_name: str, rule: str) -> None:
    _emit(
        snapshot,
        AuditLevel.INFO if snapshot.profiling else AuditLevel.ERROR,
        AuditKind.BLACKLIST_MATCH,
        type_name,
        rule,
    )


def _emit(
    snapshot: PolicySnapshot,
    level: AuditLevel,
    kind: AuditKind,
    type_name: str,
    matched_rule: str | None,
) -> None:
    snapshot.audit_sink.emit(
        create_audit_record(
            level=level,
            kind=kind,
            type_name=type_name,
            matched_rule=matched_rule,
            mode=snapshot.mode,
            source_id=snapshot.source_id,
        )
    )
