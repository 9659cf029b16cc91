"""SerialGuard abstract interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``) for
the collaborators the filter depends on, plus lightweight in-memory
implementations suitable for testing and embedding:

* :class:`AuditSink` -- receives audit records.
* :class:`PolicyLoader` -- turns a source identifier into a
  :class:`~serialguard.core.types.ParsedPolicy` and reports a cheap
  staleness marker for it.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.

Unlike the stores they back, these in-memory implementations ARE
thread-safe: a single sink or source is routinely shared by every
thread that deserializes untrusted input.
"""
from __future__ import annotations

import threading
from collections.abc import Hashable
from typing import Protocol, runtime_checkable

from serialguard.core.errors import PolicySourceNotFound
from serialguard.core.types import AuditKind, AuditRecord, ParsedPolicy

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class AuditSink(Protocol):
    """Destination for audit records.

    ``emit`` may buffer; ``flush`` MUST make every previously emitted
    record durable (or visible) before returning.
    """

    def emit(self, record: AuditRecord) -> None:
        """Accept *record*."""
        ...

    def flush(self) -> None:
        """Push buffered records to their destination."""
        ...


@runtime_checkable
class PolicyLoader(Protocol):
    """Backend that resolves policy sources."""

    def canonical_id(self, source_id: str) -> str:
        """Return the registry key for *source_id*.

        Two identifiers naming the same source MUST map to the same key.
        """
        ...

    def marker(self, source_id: str) -> Hashable:
        """Return a cheap modification marker for *source_id*.

        Raises :class:`~serialguard.core.errors.ConfigurationError` if the
        source cannot be inspected.
        """
        ...

    def load(self, source_id: str) -> ParsedPolicy:
        """Read and validate *source_id*.

        Raises :class:`~serialguard.core.errors.ConfigurationError` (or a
        subclass) if the source is missing or malformed.
        """
        ...


# ===================================================================
# In-memory implementations
# ===================================================================

class InMemoryAuditSink:
    """Collects audit records in a list.

    ``flush_count`` counts calls to :meth:`flush`, which lets callers
    check that records were flushed before an admission returned.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[AuditRecord] = []
        self.flush_count = 0

    def emit(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    def flush(self) -> None:
        with self._lock:
            self.flush_count += 1

    @property
    def records(self) -> list[AuditRecord]:
        """Return a copy of the collected records."""
        with self._lock:
            return list(self._records)

    def of_kind(self, kind: AuditKind) -> list[AuditRecord]:
        """Return the collected records of the given *kind*."""
        return [r for r in self.records if r.kind is kind]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self.flush_count = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class InMemoryPolicySource:
    """A :class:`PolicyLoader` serving policies registered with :meth:`put`.

    Every :meth:`put` bumps the marker of its source, which makes the
    owning store pick up the new policy at its next staleness check.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._policies: dict[str, ParsedPolicy] = {}
        self._versions: dict[str, int] = {}
        self.load_count = 0

    def put(self, source_id: str, policy: ParsedPolicy) -> None:
        with self._lock:
            self._policies[source_id] = policy
            self._versions[source_id] = self._versions.get(source_id, 0) + 1

    def remove(self, source_id: str) -> None:
        with self._lock:
            self._policies.pop(source_id, None)
            self._versions[source_id] = self._versions.get(source_id, 0) + 1

    def canonical_id(self, source_id: str) -> str:
        return source_id

    def marker(self, source_id: str) -> Hashable:
        with self._lock:
            if source_id not in self._policies:
                raise PolicySourceNotFound(
                    f"No policy registered under '{source_id}'",
                    details={"source_id": source_id},
                )
            return self._versions[source_id]

    def load(self, source_id: str) -> ParsedPolicy:
        with self._lock:
            self.load_count += 1
            try:
                return self._policies[source_id]
            except KeyError:
                raise PolicySourceNotFound(
                    f"No policy registered under '{source_id}'",
                    details={"source_id": source_id},
                ) from None
