"""Normalized beads record types.

ExternalRecord is the only record shape the reconciler and the readiness
resolver see. Raw tracker output is turned into it by the adapter and
never passed further.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from specks.core.types import RecordStatus

__all__ = ["ExternalRecord", "ReadinessState"]


class ReadinessState(str, Enum):
    """Execution eligibility of a step derived from bead status."""

    COMPLETE = "complete"
    READY = "ready"
    BLOCKED = "blocked"
    PENDING = "pending"

    def __str__(self) -> str:
        return self.value


class ExternalRecord(BaseModel):
    """A normalized bead.

    Attributes:
        id: Bead id (e.g., "bd-a1b2").
        title: Bead title.
        status: "closed" if the bead is closed, otherwise "open".
        kind: Issue type ("task", "epic", ...).
        dependencies: Ids of beads this one is blocked by, in tracker order.
            Parent/child links are not dependencies.

    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    status: RecordStatus = "open"
    kind: str = "task"
    dependencies: list[str] = Field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"
