"""Completion and lifecycle status for speck documents.

Completion is derived from checkboxes only. The declared lifecycle status
(Plan Metadata ``Status``) is compared against it, and a declared "done"
that the checkboxes do not support is reported as a conflict rather than
silently resolved either way.

Public API:
    - completion: (checked, total) across all steps and substeps
    - step_completion: (checked, total) for one step
    - reconcile_status: Compare declared and computed status
    - status_report: Per-step rows plus aggregate status
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from specks.core.types import LIFECYCLE_STATUSES, normalize_lifecycle_status
from specks.speck.models import Document, ItemKind, Step, StepBase

logger = logging.getLogger(__name__)

__all__ = [
    "StepState",
    "StatusReconciliation",
    "StepStatus",
    "StatusReport",
    "completion",
    "step_completion",
    "reconcile_status",
    "status_report",
]


class StepState(str, Enum):
    """Checkbox-derived progress of a single step."""

    DONE = "done"
    IN_PROGRESS = "in-progress"
    NOT_STARTED = "not-started"

    def __str__(self) -> str:
        return self.value


class StatusReconciliation(NamedTuple):
    """Declared vs. computed lifecycle status.

    Attributes:
        declared: Status from metadata, lowercased when it is a known value.
        computed: Status derived from checkbox completion.
        conflict: True when declared is "done" but completion is under 100%.

    """

    declared: str | None
    computed: str
    conflict: bool


def completion(document: Document, kind: ItemKind | None = None) -> tuple[int, int]:
    """Count checked and total checkbox items across the document.

    Args:
        document: Parsed document.
        kind: Restrict to one category; None counts every item.

    Returns:
        (checked, total). A document with no items returns (0, 0).

    """
    checked = total = 0
    for step in document.all_steps():
        checked += step.completed_items(kind)
        total += step.total_items(kind)
    return checked, total


def step_completion(step: StepBase, kind: ItemKind | None = None) -> tuple[int, int]:
    """Count items for one step; a Step includes its substeps' items."""
    checked = step.completed_items(kind)
    total = step.total_items(kind)
    if isinstance(step, Step):
        for sub in step.substeps:
            checked += sub.completed_items(kind)
            total += sub.total_items(kind)
    return checked, total


def reconcile_status(declared: str | None, checked: int, total: int) -> StatusReconciliation:
    """Compare a declared lifecycle status with checkbox completion.

    Computed status is "done" iff every item is checked and there is at
    least one item. Otherwise a declared "draft" passes through and
    anything else computes to "active".

    Examples:
        >>> reconcile_status("done", 2, 5)
        StatusReconciliation(declared='done', computed='active', conflict=True)
        >>> reconcile_status("draft", 0, 0)
        StatusReconciliation(declared='draft', computed='draft', conflict=False)

    """
    normalized = normalize_lifecycle_status(declared)
    if total > 0 and checked == total:
        computed = "done"
    elif normalized == "draft":
        computed = "draft"
    else:
        computed = "active"
    conflict = normalized == "done" and computed != "done"
    if conflict:
        logger.debug("Declared status 'done' but only %d/%d items checked", checked, total)
    return StatusReconciliation(
        declared=normalized if normalized in LIFECYCLE_STATUSES else declared,
        computed=computed,
        conflict=conflict,
    )


class StepStatus(BaseModel):
    """One row of a status report."""

    model_config = ConfigDict(frozen=True)

    anchor: str
    number: str = ""
    title: str = ""
    external_id: str | None = None
    checked: int = 0
    total: int = 0
    state: StepState = StepState.NOT_STARTED


class StatusReport(BaseModel):
    """Status of a whole document.

    Attributes:
        steps: One row per step and substep, in document order.
        checked: Checked items across the document.
        total: Total items across the document.
        status: Declared vs. computed lifecycle status.

    """

    model_config = ConfigDict(frozen=True)

    steps: list[StepStatus] = Field(default_factory=list)
    checked: int = 0
    total: int = 0
    status: StatusReconciliation

    @property
    def percent(self) -> float:
        return 100.0 * self.checked / self.total if self.total else 0.0


def _step_state(checked: int, total: int) -> StepState:
    if total > 0 and checked == total:
        return StepState.DONE
    if checked > 0:
        return StepState.IN_PROGRESS
    return StepState.NOT_STARTED


def status_report(document: Document, kind: ItemKind | None = None) -> StatusReport:
    """Build the per-step and aggregate status of a document."""
    rows: list[StepStatus] = []
    for step in document.all_steps():
        checked, total = step_completion(step, kind)
        rows.append(
            StepStatus(
                anchor=step.anchor,
                number=step.number,
                title=step.title,
                external_id=step.external_id,
                checked=checked,
                total=total,
                state=_step_state(checked, total),
            )
        )
    checked, total = completion(document, kind)
    return StatusReport(
        steps=rows,
        checked=checked,
        total=total,
        status=reconcile_status(document.metadata.status, checked, total),
    )
