"""SerialGuard -- look-ahead type admission for untrusted deserialization.

Before a deserializer instantiates a type, SerialGuard checks the type's
fully-qualified name against a hot-reloadable blacklist/whitelist policy
and either lets reconstruction continue or aborts it.

Packages
--------
* Core types, errors, config, interfaces (:mod:`serialguard.core`)
* Policy patterns, snapshots, loaders and stores (:mod:`serialguard.policy`)
* Audit records and sinks (:mod:`serialguard.audit`)
* Classification, admission hook and pickle integration
  (:mod:`serialguard.filter`)
"""
from __future__ import annotations

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
from serialguard.audit import (
    CompositeAuditSink,
    LoggingAuditSink,
    NDJSONFileAuditSink,
    create_audit_record,
)

# ---------------------------------------------------------------------------
# Core types, errors, config, interfaces
# ---------------------------------------------------------------------------
from serialguard.core.config import GuardConfig
from serialguard.core.errors import (
    BlacklistedType,
    ConfigurationError,
    MalformedPolicy,
    NonWhitelistedType,
    PatternSyntaxError,
    PolicySourceNotFound,
    RejectedTypeError,
    SerialGuardError,
)
from serialguard.core.interfaces import (
    AuditSink,
    InMemoryAuditSink,
    InMemoryPolicySource,
    PolicyLoader,
)
from serialguard.core.types import (
    AuditKind,
    AuditLevel,
    AuditRecord,
    Mode,
    Outcome,
    ParsedPolicy,
    Verdict,
    VerdictReason,
)

# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------
from serialguard.filter import (
    SafeUnpickler,
    TypeFilter,
    admit,
    classify,
    load,
    loads,
)

# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------
from serialguard.policy import (
    JsonPolicyLoader,
    PatternSet,
    PolicySnapshot,
    PolicyStore,
    SafeNameCache,
    StoreRegistry,
    build_snapshot,
    current_snapshot,
    get_or_create,
)

__all__ = [
    # Meta
    "__version__",
    # Core types & enums
    "AuditKind",
    "AuditLevel",
    "AuditRecord",
    "Mode",
    "Outcome",
    "ParsedPolicy",
    "Verdict",
    "VerdictReason",
    # Config
    "GuardConfig",
    # Error hierarchy
    "SerialGuardError",
    "ConfigurationError",
    "PolicySourceNotFound",
    "MalformedPolicy",
    "PatternSyntaxError",
    "RejectedTypeError",
    "BlacklistedType",
    "NonWhitelistedType",
    # Interfaces
    "AuditSink",
    "PolicyLoader",
    "InMemoryAuditSink",
    "InMemoryPolicySource",
    # Audit
    "CompositeAuditSink",
    "LoggingAuditSink",
    "NDJSONFileAuditSink",
    "create_audit_record",
    # Policy
    "JsonPolicyLoader",
    "PatternSet",
    "PolicySnapshot",
    "PolicyStore",
    "SafeNameCache",
    "StoreRegistry",
    "build_snapshot",
    "current_snapshot",
    "get_or_create",
    # Filter
    "SafeUnpickler",
    "TypeFilter",
    "admit",
    "classify",
    "load",
    "loads",
]
