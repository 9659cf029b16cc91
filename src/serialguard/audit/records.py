"""AuditRecord construction helpers.

Factory functions for the records emitted by the classifier and by the
policy store, plus the human-readable message used by log-based sinks.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from serialguard.core.types import AuditKind, AuditLevel, AuditRecord, Mode


def create_audit_record(
    *,
    level: AuditLevel,
    kind: AuditKind,
    type_name: str | None = None,
    matched_rule: str | None = None,
    mode: Mode = Mode.BLOCKING,
    source_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
    record_id: str | None = None,
) -> AuditRecord:
    """Build an :class:`AuditRecord` with all required fields populated.

    Parameters
    ----------
    level:
        ``INFO`` for observations, ``ERROR`` for rejections and reload
        failures.
    kind:
        What happened.
    type_name:
        The fully-qualified type name under evaluation, if any.
    matched_rule:
        Source text of the rule involved, if any.
    mode:
        Operating mode of the policy that produced the record.
    source_id:
        Policy source identifier.
    metadata:
        Extra machine-readable context.
    timestamp / record_id:
        Override the generated values (mostly useful in tests).
    """
    fields: dict[str, Any] = {
        "level": level,
        "kind": kind,
        "type_name": type_name,
        "matched_rule": matched_rule,
        "mode": mode,
        "source_id": source_id,
        "metadata": metadata or {},
    }
    if timestamp is not None:
        fields["timestamp"] = timestamp
    if record_id is not None:
        fields["record_id"] = record_id
    return AuditRecord(**fields)


def describe(record: AuditRecord) -> str:
    """Return the one-line log message for *record*."""
    kind = record.kind
    if kind is AuditKind.BLACKLIST_MATCH:
        if record.level is AuditLevel.ERROR:
            return (
                f"Blocked by blacklist '{record.matched_rule}'. "
                f"Match found for '{record.type_name}'"
            )
        return f"Blacklist match: '{record.type_name}'"
    if kind is AuditKind.WHITELIST_MATCH:
        return f"Whitelist match: '{record.type_name}'"
    if kind is AuditKind.WHITELIST_MISS:
        if record.level is AuditLevel.ERROR:
            return f"Blocked by whitelist. No match found for '{record.type_name}'"
        return f"Whitelist miss: '{record.type_name}'"
    if kind is AuditKind.POLICY_RELOAD:
        return f"Policy reloaded from '{record.source_id}'"
    error = record.metadata.get("error", {})
    return (
        f"Policy reload failed for '{record.source_id}': "
        f"{error.get('message', 'unknown error')}"
    )
