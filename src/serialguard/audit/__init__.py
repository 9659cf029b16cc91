"""SerialGuard audit trail.

This subpackage provides:

* **Record helpers** -- the :func:`create_audit_record` factory and the
  log message renderer (:mod:`~serialguard.audit.records`).
* **Sinks** -- logging, NDJSON file and fan-out sinks
  (:mod:`~serialguard.audit.sinks`).
"""
from __future__ import annotations

from serialguard.audit.records import create_audit_record, describe
from serialguard.audit.sinks import (
    CompositeAuditSink,
    LoggingAuditSink,
    NDJSONFileAuditSink,
)

__all__ = [
    # Records
    "create_audit_record",
    "describe",
    # Sinks
    "CompositeAuditSink",
    "LoggingAuditSink",
    "NDJSONFileAuditSink",
]
