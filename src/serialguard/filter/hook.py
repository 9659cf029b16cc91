"""Admission hook.

:func:`admit` is the single entry point called by a deserializer right
before it resolves a type.  It classifies the name against the current
policy of a store, flushes the audit trail, and raises a
:class:`~serialguard.core.errors.RejectedTypeError` subclass when the
verdict is BLOCK.

:class:`TypeFilter` binds the hook to one policy source so that callers
do not have to carry the store around.
"""
from __future__ import annotations

from serialguard.core.config import GuardConfig
from serialguard.core.errors import BlacklistedType, NonWhitelistedType, RejectedTypeError
from serialguard.core.interfaces import AuditSink, PolicyLoader
from serialguard.core.types import Verdict, VerdictReason
from serialguard.filter.classifier import classify
from serialguard.policy.store import PolicyStore, StoreRegistry, default_registry


def admit(type_name: str, store_handle: PolicyStore) -> Verdict:
    """Admit *type_name* under the current policy of *store_handle*.

    Returns the ALLOW :class:`Verdict` (profiling mode always allows).

    Raises
    ------
    BlacklistedType
        The name matched a blacklist rule in blocking mode.
    NonWhitelistedType
        The name matched no whitelist rule in blocking mode.

    Every audit record produced by the evaluation is flushed before this
    function returns or raises.
    """
    generation = store_handle.current()
    snapshot = generation.snapshot
    try:
        verdict = classify(type_name, snapshot, generation.cache)
    finally:
        snapshot.audit_sink.flush()
    if verdict.blocked:
        raise rejection_for(type_name, verdict)
    return verdict


def rejection_for(type_name: str, verdict: Verdict) -> RejectedTypeError:
    """Build the exception matching a BLOCK *verdict*."""
    if verdict.reason is VerdictReason.BLACKLIST_MATCH:
        return BlacklistedType(type_name, matched_rule=verdict.matched_rule)
    return NonWhitelistedType(type_name)


class TypeFilter:
    """A classification engine bound to the store of one policy source.

    Parameters
    ----------
    source_id:
        Policy source (a JSON file path with the default loader).
    store:
        An existing store to bind to instead of looking one up.
    registry:
        Store registry; defaults to the process-wide registry, so every
        filter built for the same source shares one store.
    loader / audit_sink / config:
        Passed to :meth:`StoreRegistry.get_or_create` when the store does
        not exist yet.

    Raises
    ------
    ConfigurationError
        If the store has to be created and the source cannot be loaded.
    """

    def __init__(
        self,
        source_id: str | None = None,
        *,
        store: PolicyStore | None = None,
        registry: StoreRegistry | None = None,
        loader: PolicyLoader | None = None,
        audit_sink: AuditSink | None = None,
        config: GuardConfig | None = None,
    ) -> None:
        if store is None:
            if source_id is None:
                raise TypeError("TypeFilter needs a source_id or a store")
            if registry is None:
                registry = default_registry()
            store = registry.get_or_create(
                source_id, loader=loader, audit_sink=audit_sink, config=config
            )
        self._store = store

    @property
    def store(self) -> PolicyStore:
        return self._store

    def classify(self, type_name: str) -> Verdict:
        """Classify *type_name* without raising (audit records are flushed)."""
        generation = self._store.current()
        try:
            return classify(type_name, generation.snapshot, generation.cache)
        finally:
            generation.snapshot.audit_sink.flush()

    def admit(self, type_name: str) -> Verdict:
        """See :func:`admit`."""
        return admit(type_name, self._store)

    def __repr__(self) -> str:
        return f"TypeFilter(source_id={self._store.source_id!r})"
