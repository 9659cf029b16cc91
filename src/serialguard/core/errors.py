"""SerialGuard error hierarchy.

Hierarchy
---------
::

    SerialGuardError
    +-- ConfigurationError        (SG-E1xx)
    |   +-- PolicySourceNotFound  (SG-E100)
    |   +-- MalformedPolicy       (SG-E101)
    |   +-- PatternSyntaxError    (SG-E102)
    +-- RejectedTypeError         (SG-E2xx)
        +-- BlacklistedType       (SG-E200)
        +-- NonWhitelistedType    (SG-E201)

Usage
-----
Raise concrete subclasses directly::

    raise PolicySourceNotFound("/etc/serialguard/policy.json")

Catch by category::

    try:
        SafeUnpickler(stream, type_filter=guard).load()
    except RejectedTypeError as exc:
        # handles BlacklistedType and NonWhitelistedType
        audit(exc.type_name, exc.reason, exc.matched_rule)

Configuration errors are raised when a policy source is loaded for the
first time.  During a hot reload they are caught by the store, audited,
and the previous policy stays authoritative.
"""
from __future__ import annotations

from typing import Any

from serialguard.core.types import VerdictReason

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class SerialGuardError(Exception):
    """Base exception for all SerialGuard errors.

    Attributes
    ----------
    code : str
        Error code, e.g. ``"SG-E100"``.
    message : str
        Human-readable description.  Never parsed by callers.
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the caller.
    """

    code: str = "SG-E000"
    message: str = "Unknown SerialGuard error"
    resolution: str = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error into a plain mapping (used in audit metadata)."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# SG-E1xx  Configuration errors
# ===================================================================

class ConfigurationError(SerialGuardError):
    """SG-E1xx -- The policy source is missing, unreadable or malformed."""

    code = "SG-E1XX"
    message = "SerialGuard is not properly configured"
    resolution = "Check the policy source and its contents."


class PolicySourceNotFound(ConfigurationError):
    """SG-E100 -- The policy source does not exist or cannot be read."""

    code = "SG-E100"
    message = "Policy source could not be read"
    resolution = "Verify the policy path exists and is readable."


class MalformedPolicy(ConfigurationError):
    """SG-E101 -- The policy source does not have the expected structure."""

    code = "SG-E101"
    message = "Policy source is malformed"
    resolution = (
        "The policy must be a JSON object with 'blacklist_patterns' and "
        "'whitelist_patterns' lists (and optionally 'blacklist_names', "
        "'profiling', 'refresh_interval_ms', 'audit_log')."
    )


class PatternSyntaxError(ConfigurationError):
    """SG-E102 -- A blacklist or whitelist pattern is not a valid regex.

    Attributes
    ----------
    pattern:
        The offending pattern source.
    list_name:
        ``"blacklist"`` or ``"whitelist"``.
    position:
        Index of the pattern within its list.
    """

    code = "SG-E102"
    message = "Invalid pattern expression"
    resolution = "Fix the regular expression syntax in the policy source."

    def __init__(
        self,
        pattern: str,
        *,
        list_name: str,
        position: int,
        reason: str = "",
    ) -> None:
        self.pattern = pattern
        self.list_name = list_name
        self.position = position
        super().__init__(
            f"Invalid {list_name} pattern #{position} {pattern!r}: {reason}",
            details={
                "pattern": pattern,
                "list": list_name,
                "position": position,
                "reason": reason,
            },
        )


# ===================================================================
# SG-E2xx  Admission rejections
# ===================================================================

class RejectedTypeError(SerialGuardError):
    """SG-E2xx -- A type was refused before it could be reconstructed.

    Attributes
    ----------
    type_name:
        Fully-qualified name of the rejected type.
    reason:
        :class:`VerdictReason` that produced the rejection.
    matched_rule:
        The blacklist rule that matched, or ``None`` for whitelist misses.
    """

    code = "SG-E2XX"
    message = "Type blocked from deserialization"
    resolution = (
        "If the type is expected, add it to the whitelist; otherwise "
        "treat the input stream as hostile."
    )

    def __init__(
        self,
        type_name: str,
        *,
        reason: VerdictReason,
        matched_rule: str | None = None,
        message: str | None = None,
    ) -> None:
        self.type_name = type_name
        self.reason = reason
        self.matched_rule = matched_rule
        super().__init__(
            message,
            details={
                "type_name": type_name,
                "reason": str(reason),
                "matched_rule": matched_rule,
            },
        )

    @property
    def is_blacklist(self) -> bool:
        return self.reason is VerdictReason.BLACKLIST_MATCH

    @property
    def is_whitelist(self) -> bool:
        return self.reason is VerdictReason.WHITELIST_MISS


class BlacklistedType(RejectedTypeError):
    """SG-E200 -- The type matched a blacklist rule."""

    code = "SG-E200"

    def __init__(self, type_name: str, *, matched_rule: str | None = None) -> None:
        super().__init__(
            type_name,
            reason=VerdictReason.BLACKLIST_MATCH,
            matched_rule=matched_rule,
            message=(
                f"Type '{type_name}' blocked from deserialization "
                f"(blacklist rule {matched_rule!r})"
            ),
        )


class NonWhitelistedType(RejectedTypeError):
    """SG-E201 -- The type matched no whitelist rule."""

    code = "SG-E201"

    def __init__(self, type_name: str) -> None:
        super().__init__(
            type_name,
            reason=VerdictReason.WHITELIST_MISS,
            message=f"Type '{type_name}' blocked from deserialization (non-whitelist)",
        )
