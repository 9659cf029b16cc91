"""Hot-reloadable policy stores and the process-wide store registry.

A :class:`PolicyStore` owns the current :class:`PolicySnapshot` of one
policy source together with the :class:`SafeNameCache` computed against
it.  Both are published as one immutable :class:`StoreGeneration`, so a
reader always gets a cache that belongs to the snapshot it reads and a
reload can never leave names approved by an older policy in effect.

Reload discipline:

1. The staleness marker of the source is read at most once per
   ``refresh_interval_ms`` (taken from the current snapshot).
2. Only one thread performs the check-and-reload.  Threads arriving
   while it runs do not wait: they keep using the current generation.
3. A failed reload keeps the previous generation, emits an ERROR audit
   record of kind ``reload_failure`` and remembers the failed marker, so
   the same broken content is not reparsed at every window.  A source
   that cannot be inspected is audited once, when it becomes unreadable.

Stores are shared per canonical source identifier through a
:class:`StoreRegistry`; the module-level :func:`get_or_create` uses a
process-wide default registry.
"""
from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Hashable
from dataclasses import dataclass

from serialguard.audit.records import create_audit_record
from serialguard.audit.sinks import LoggingAuditSink
from serialguard.core.config import GuardConfig
from serialguard.core.errors import ConfigurationError
from serialguard.core.interfaces import AuditSink, PolicyLoader
from serialguard.core.types import AuditKind, AuditLevel, Verdict
from serialguard.policy.loader import JsonPolicyLoader
from serialguard.policy.snapshot import PolicySnapshot, build_snapshot

logger = logging.getLogger(__name__)

# Marker held while the source cannot be inspected.  Unequal to any loader
# marker, so a restored source is reloaded.
_UNREADABLE = object()


# ---------------------------------------------------------------------------
# Safe-name cache
# ---------------------------------------------------------------------------

class SafeNameCache:
    """Type names already admitted under one snapshot.

    Maps each admitted name to the :class:`Verdict` computed for it, so a
    cached answer is identical to the original one.  Reads are lock-free;
    insertions are serialised.  Once *max_entries* names are held, new
    names are evaluated normally but no longer memoized.
    """

    def __init__(self, snapshot: PolicySnapshot, max_entries: int) -> None:
        self._snapshot = snapshot
        self._max_entries = max_entries
        self._entries: dict[str, Verdict] = {}
        self._lock = threading.Lock()
        # approximate under concurrent readers
        self.hits = 0

    @property
    def snapshot(self) -> PolicySnapshot:
        """The snapshot this cache was computed against."""
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, type_name: str) -> Verdict | None:
        verdict = self._entries.get(type_name)
        if verdict is not None:
            self.hits += 1
        return verdict

    def add(self, type_name: str, verdict: Verdict) -> None:
        if self._max_entries <= 0:
            return
        with self._lock:
            if type_name in self._entries:
                return
            if len(self._entries) >= self._max_entries:
                return
            self._entries[type_name] = verdict

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True, slots=True)
class StoreGeneration:
    """A snapshot and the cache bound to it, published together."""

    snapshot: PolicySnapshot
    cache: SafeNameCache


# ---------------------------------------------------------------------------
# PolicyStore
# ---------------------------------------------------------------------------

class PolicyStore:
    """Owns the current policy of one source and reloads it when it changes.

    Construction loads the source; any :class:`ConfigurationError` is
    raised to the caller and no store exists afterwards.  Prefer
    :meth:`StoreRegistry.get_or_create` over direct construction so that
    every client of a source shares one store.

    Parameters
    ----------
    source_id:
        Canonical source identifier (see
        :meth:`PolicyLoader.canonical_id`).
    loader:
        Backend used to stat and parse the source.
    audit_sink:
        Base sink for classifier and reload records.  Defaults to a
        :class:`LoggingAuditSink`.
    config:
        Runtime configuration.
    """

    def __init__(
        self,
        source_id: str,
        *,
        loader: PolicyLoader,
        audit_sink: AuditSink | None = None,
        config: GuardConfig | None = None,
    ) -> None:
        self._config = config or GuardConfig()
        self._source_id = source_id
        self._loader = loader
        if audit_sink is None:
            audit_sink = LoggingAuditSink(self._config.default_audit_logger)
        self._audit_sink: AuditSink = audit_sink
        self._reload_lock = threading.Lock()
        self.reload_count = 0

        # Marker first: a change landing between the two calls is seen
        # at the next check instead of being missed.
        self._marker: Hashable = loader.marker(source_id)
        snapshot = build_snapshot(
            loader.load(source_id),
            source_id=source_id,
            version=1,
            audit_sink=self._audit_sink,
        )
        self._generation = self._new_generation(snapshot)
        self._next_check = time.monotonic() + snapshot.refresh_interval_ms / 1000.0
        logger.debug("Loaded policy '%s' (%s mode)", source_id, snapshot.mode)

    # -- public properties --------------------------------------------------

    @property
    def source_id(self) -> str:
        return self._source_id

    @property
    def config(self) -> GuardConfig:
        return self._config

    @property
    def snapshot(self) -> PolicySnapshot:
        """The published snapshot, without a staleness check."""
        return self._generation.snapshot

    @property
    def cache(self) -> SafeNameCache:
        """The published safe-name cache, without a staleness check."""
        return self._generation.cache

    # -- access -------------------------------------------------------------

    def current(self) -> StoreGeneration:
        """Return the current generation, reloading first if it is due."""
        if time.monotonic() < self._next_check:
            return self._generation
        return self.refresh()

    def refresh(self, *, force: bool = False) -> StoreGeneration:
        """Check the source for changes and reload it if needed.

        Returns the generation in effect afterwards.  When another thread
        is already checking, returns the current generation immediately.
        *force* ignores the refresh interval.
        """
        if not self._reload_lock.acquire(blocking=False):
            return self._generation
        try:
            now = time.monotonic()
            if not force and now < self._next_check:
                return self._generation
            current = self._generation
            self._next_check = now + current.snapshot.refresh_interval_ms / 1000.0

            try:
                marker = self._loader.marker(self._source_id)
            except ConfigurationError as exc:
                if self._marker is not _UNREADABLE:
                    self._marker = _UNREADABLE
                    self._report_failure(current.snapshot, exc)
                return current
            if marker == self._marker:
                return current
            self._marker = marker

            try:
                snapshot = build_snapshot(
                    self._loader.load(self._source_id),
                    source_id=self._source_id,
                    version=current.snapshot.version + 1,
                    audit_sink=self._audit_sink,
                )
            except ConfigurationError as exc:
                self._report_failure(current.snapshot, exc)
                return current

            generation = self._new_generation(snapshot)
            self._generation = generation
            self._next_check = now + snapshot.refresh_interval_ms / 1000.0
            self.reload_count += 1
            self._report_reload(snapshot)
            return generation
        finally:
            self._reload_lock.release()

    # -- internal helpers ---------------------------------------------------

    def _new_generation(self, snapshot: PolicySnapshot) -> StoreGeneration:
        return StoreGeneration(
            snapshot=snapshot,
            cache=SafeNameCache(snapshot, self._config.max_safe_names),
        )

    def _report_reload(self, snapshot: PolicySnapshot) -> None:
        logger.info(
            "Reloaded policy '%s' (version %d, %s mode)",
            self._source_id,
            snapshot.version,
            snapshot.mode,
        )
        snapshot.audit_sink.emit(
            create_audit_record(
                level=AuditLevel.INFO,
                kind=AuditKind.POLICY_RELOAD,
                mode=snapshot.mode,
                source_id=self._source_id,
                metadata={"version": snapshot.version},
            )
        )
        snapshot.audit_sink.flush()

    def _report_failure(self, snapshot: PolicySnapshot, exc: ConfigurationError) -> None:
        logger.error(
            "Reload of policy '%s' failed, keeping version %d: %s",
            self._source_id,
            snapshot.version,
            exc.message,
        )
        snapshot.audit_sink.emit(
            create_audit_record(
                level=AuditLevel.ERROR,
                kind=AuditKind.RELOAD_FAILURE,
                mode=snapshot.mode,
                source_id=self._source_id,
                metadata={"version": snapshot.version, **exc.to_dict()},
            )
        )
        snapshot.audit_sink.flush()

    def __repr__(self) -> str:
        return (
            f"PolicyStore(source_id={self._source_id!r}, "
            f"version={self._generation.snapshot.version})"
        )


# ---------------------------------------------------------------------------
# StoreRegistry
# ---------------------------------------------------------------------------

class StoreRegistry:
    """Get-or-create registry of :class:`PolicyStore` instances.

    Concurrent first requests for one source serialise on a per-source
    creation lock, so the source is parsed once and every caller gets the
    same store.  A failed creation registers nothing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stores: dict[str, PolicyStore] = {}
        self._creation_locks: dict[str, threading.Lock] = {}

    def get_or_create(
        self,
        source_id: str,
        *,
        loader: PolicyLoader | None = None,
        audit_sink: AuditSink | None = None,
        config: GuardConfig | None = None,
    ) -> PolicyStore:
        """Return the store for *source_id*, loading it on first use.

        *loader*, *audit_sink* and *config* only apply when the store is
        created by this call; an existing store is returned as is.

        Raises
        ------
        ConfigurationError
            If the source cannot be loaded on first use.
        """
        loader = loader or JsonPolicyLoader()
        key = loader.canonical_id(source_id)

        store = self._stores.get(key)
        if store is not None:
            return store

        with self._lock:
            store = self._stores.get(key)
            if store is not None:
                return store
            creation_lock = self._creation_locks.setdefault(key, threading.Lock())

        with creation_lock:
            store = self._stores.get(key)
            if store is not None:
                return store
            try:
                store = PolicyStore(
                    key, loader=loader, audit_sink=audit_sink, config=config
                )
            except Exception:
                logger.error("Cannot create policy store for '%s'", key)
                with self._lock:
                    if self._creation_locks.get(key) is creation_lock:
                        del self._creation_locks[key]
                raise
            with self._lock:
                self._stores[key] = store
                self._creation_locks.pop(key, None)
            return store

    def get(self, source_id: str, *, loader: PolicyLoader | None = None) -> PolicyStore | None:
        """Return the registered store for *source_id*, or ``None``."""
        key = (loader or JsonPolicyLoader()).canonical_id(source_id)
        return self._stores.get(key)

    def discard(self, source_id: str, *, loader: PolicyLoader | None = None) -> bool:
        """Forget the store for *source_id*.  Returns ``True`` if one existed."""
        key = (loader or JsonPolicyLoader()).canonical_id(source_id)
        with self._lock:
            return self._stores.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._stores.clear()
            self._creation_locks.clear()

    def __contains__(self, source_id: object) -> bool:
        """Whether *source_id*, as a registry key or a file path, has a store."""
        if source_id in self._stores:
            return True
        if not isinstance(source_id, (str, os.PathLike)) or source_id == "":
            return False
        return JsonPolicyLoader().canonical_id(source_id) in self._stores

    def __len__(self) -> int:
        return len(self._stores)


# ---------------------------------------------------------------------------
# Process-wide default registry
# ---------------------------------------------------------------------------

_default_registry = StoreRegistry()


def default_registry() -> StoreRegistry:
    """Return the process-wide registry used by :func:`get_or_create`."""
    return _default_registry


def get_or_create(
    source_id: str,
    *,
    loader: PolicyLoader | None = None,
    audit_sink: AuditSink | None = None,
    config: GuardConfig | None = None,
) -> PolicyStore:
    """Return the process-wide store for *source_id* (see :class:`StoreRegistry`)."""
    return _default_registry.get_or_create(
        source_id, loader=loader, audit_sink=audit_sink, config=config
    )


def current_snapshot(handle: PolicyStore) -> PolicySnapshot:
    """Return the snapshot in effect for *handle*, reloading first if due."""
    return handle.current().snapshot
