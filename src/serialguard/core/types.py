"""SerialGuard shared domain types.

This module defines the value types, enums and Pydantic models shared by
the policy, audit and filter subpackages.

Key design decisions:
* ``ParsedPolicy`` and ``AuditRecord`` are Pydantic **v2** models; the
  former is the validated in-memory form of a policy source, the latter
  is what every audit sink receives.
* ``Verdict`` is a frozen dataclass: it is produced on the hot path, once
  per resolved type, and never serialised directly.
* Enums use *string* values so they serialise cleanly to JSON.
"""
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_REFRESH_INTERVAL_MS = 6000
"""Minimum delay between two staleness checks of a policy source."""


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Outcome(enum.StrEnum):
    """Admission outcome for a single type name."""

    ALLOW = "allow"
    BLOCK = "block"


class VerdictReason(enum.StrEnum):
    """Which rule family decided the verdict."""

    BLACKLIST_MATCH = "blacklist_match"
    WHITELIST_MISS = "whitelist_miss"
    WHITELIST_MATCH = "whitelist_match"


class Mode(enum.StrEnum):
    """Operating mode of a policy.

    * ``BLOCKING`` -- verdicts are enforced.
    * ``PROFILING`` -- verdicts are only recorded; nothing is blocked.
    """

    BLOCKING = "blocking"
    PROFILING = "profiling"


class AuditLevel(enum.StrEnum):
    INFO = "info"
    ERROR = "error"


class AuditKind(enum.StrEnum):
    """Kinds of audit records emitted by the filter and the store."""

    BLACKLIST_MATCH = "blacklist_match"
    WHITELIST_MATCH = "whitelist_match"
    WHITELIST_MISS = "whitelist_miss"
    POLICY_RELOAD = "policy_reload"
    RELOAD_FAILURE = "reload_failure"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_record_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Verdict:
    """The admission decision for one type name.

    Attributes
    ----------
    outcome:
        :attr:`Outcome.ALLOW` or :attr:`Outcome.BLOCK`.
    reason:
        The rule family that decided.  In profiling mode the outcome is
        always ``ALLOW`` and the reason records what *would* have happened
        in blocking mode.
    matched_rule:
        Source text of the deciding rule (blacklist pattern, exact
        blacklisted name, or first matching whitelist pattern), if any.
    """

    outcome: Outcome
    reason: VerdictReason
    matched_rule: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW

    @property
    def blocked(self) -> bool:
        return self.outcome is Outcome.BLOCK


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class ParsedPolicy(BaseModel):
    """The validated form of a policy source.

    Both pattern lists are required (an empty list is fine, ``null`` is
    not).  Patterns are regular expressions searched anywhere in the
    fully-qualified type name, so anchor them (``^...$``) for exact
    matches.
    """

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    refresh_interval_ms: int = Field(
        default=DEFAULT_REFRESH_INTERVAL_MS,
        ge=0,
        description="Minimum delay between two staleness checks of the source.",
    )
    profiling: bool = Field(
        default=False,
        description="When True, record verdicts without enforcing them.",
    )
    blacklist_patterns: list[str] = Field(
        description="Ordered regular expressions whose match forbids admission.",
    )
    blacklist_names: list[str] = Field(
        default_factory=list,
        description="Exact type names forbidden without regex evaluation.",
    )
    whitelist_patterns: list[str] = Field(
        description="Ordered regular expressions whose match permits admission.",
    )
    audit_log: str | None = Field(
        default=None,
        description="Optional NDJSON file receiving a copy of every audit record.",
    )


class AuditRecord(BaseModel):
    """A single audit event.

    Records are emitted for every blacklist match, for whitelist misses,
    for whitelist matches in profiling mode, and for policy reloads.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    record_id: str = Field(default_factory=_new_record_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    level: AuditLevel
    kind: AuditKind
    type_name: str | None = None
    matched_rule: str | None = None
    mode: Mode = Mode.BLOCKING
    source_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
