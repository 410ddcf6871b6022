"""Core type definitions for specks.

Type aliases for the small closed vocabularies used across the codebase.
"""

from __future__ import annotations

from typing import Literal, TypeAlias

# Lifecycle status declared in the Plan Metadata table
LifecycleStatus: TypeAlias = Literal["draft", "active", "done"]

# Issue severity, highest first
Severity: TypeAlias = Literal["error", "warning", "info"]

# Validation strictness
# - lenient: warnings hidden
# - normal: errors fail, warnings reported
# - strict: warnings fail too
ValidationLevel: TypeAlias = Literal["lenient", "normal", "strict"]

# Normalized external record status
RecordStatus: TypeAlias = Literal["open", "closed"]

LIFECYCLE_STATUSES: tuple[str, ...] = ("draft", "active", "done")

SEVERITY_ORDER: dict[str, int] = {"error": 0, "warning": 1, "info": 2}


def normalize_lifecycle_status(value: str | None) -> LifecycleStatus | None:
    """Normalize a declared status to the lifecycle enumeration.

    Case-insensitive; surrounding whitespace is ignored.

    Examples:
        >>> normalize_lifecycle_status("Active")
        'active'
        >>> normalize_lifecycle_status("shipped") is None
        True

    """
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in LIFECYCLE_STATUSES:
        return normalized  # type: ignore[return-value]
    return None
