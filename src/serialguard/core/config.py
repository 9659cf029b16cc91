"""SerialGuard runtime configuration.

Process-level knobs that are not part of a policy source.  Policy content
(rules, mode, refresh interval) always comes from the source itself; see
:class:`~serialguard.core.types.ParsedPolicy`.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GuardConfig(BaseModel):
    """Configuration shared by a policy store and the filters bound to it.

    All fields carry defaults, so ``GuardConfig()`` is a valid production
    configuration.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    max_safe_names: int = Field(
        default=65_536,
        ge=0,
        description=(
            "Maximum number of admitted type names memoized per policy "
            "snapshot.  0 disables the safe-name cache."
        ),
    )
    default_audit_logger: str = Field(
        default="serialguard.audit",
        description="Logger name used by the default logging audit sink.",
    )
