"""Step readiness from bead status and the dependency graph.

Readiness is recomputed from current records on every call; nothing is
cached between calls.

    pending   step has no linked record (or the record could not be read)
    complete  the step's record is closed
    ready     every dependency's record is closed
    blocked   otherwise; blocked_by lists the unfinished dependencies

Dependencies resolve to records the same way the reconciler links them:
with ``beads.substeps: none`` a dependency on a substep anchor stands for
the parent step's record.

Public API:
    - StepReadiness: Classification of one step
    - classify: Classify one step
    - resolve: Classify every step of a document
    - dependency_ids: Bead id per dependency anchor
    - load_records: Fetch the records a document links to
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from specks.beads.client import BeadsClient
from specks.beads.models import ExternalRecord, ReadinessState
from specks.core.config import BeadsConfig, get_config
from specks.core.exceptions import BeadsCommandError
from specks.speck.models import Document, StepBase

logger = logging.getLogger(__name__)

__all__ = ["StepReadiness", "classify", "resolve", "dependency_ids", "load_records"]


class StepReadiness(BaseModel):
    """Readiness of a single step.

    Attributes:
        anchor: Step anchor.
        external_id: Linked bead id, if any.
        state: Readiness classification.
        blocked_by: Dependency anchors not yet complete (blocked only).
        blocked_by_ids: Bead ids behind blocked_by, for dependencies that
            have one.

    """

    model_config = ConfigDict(frozen=True)

    anchor: str
    external_id: str | None = None
    state: ReadinessState
    blocked_by: list[str] = Field(default_factory=list)
    blocked_by_ids: list[str] = Field(default_factory=list)


def dependency_ids(document: Document, config: BeadsConfig | None = None) -> dict[str, str]:
    """Map every dependency anchor to the bead id it stands for.

    Substeps own their bead only with ``substeps: children``; otherwise a
    substep anchor maps to its parent step's bead.
    """
    config = config or get_config().beads
    ids = document.external_ids()
    if config.substeps == "children":
        return ids
    for step in document.steps:
        for substep in step.substeps:
            if step.external_id:
                ids[substep.anchor] = step.external_id
            else:
                ids.pop(substep.anchor, None)
    return ids


def classify(
    step: StepBase,
    records: Mapping[str, ExternalRecord],
    id_by_anchor: Mapping[str, str],
) -> StepReadiness:
    """Classify one step.

    Args:
        step: Step or substep.
        records: Normalized records keyed by bead id.
        id_by_anchor: Bead ids keyed by dependency anchor (dependency_ids()).

    Returns:
        The step's readiness.

    """
    record = records.get(step.external_id) if step.external_id else None
    if record is None:
        return StepReadiness(
            anchor=step.anchor, external_id=step.external_id, state=ReadinessState.PENDING
        )
    if record.is_closed:
        return StepReadiness(
            anchor=step.anchor, external_id=step.external_id, state=ReadinessState.COMPLETE
        )

    blocked_by: list[str] = []
    blocked_by_ids: list[str] = []
    for dep in step.depends_on:
        dep_id = id_by_anchor.get(dep)
        dep_record = records.get(dep_id) if dep_id else None
        if dep_record is not None and dep_record.is_closed:
            continue
        blocked_by.append(dep)
        if dep_id and dep_id not in blocked_by_ids:
            blocked_by_ids.append(dep_id)

    return StepReadiness(
        anchor=step.anchor,
        external_id=step.external_id,
        state=ReadinessState.BLOCKED if blocked_by else ReadinessState.READY,
        blocked_by=blocked_by,
        blocked_by_ids=blocked_by_ids,
    )


def resolve(
    document: Document,
    records: Mapping[str, ExternalRecord],
    config: BeadsConfig | None = None,
) -> list[StepReadiness]:
    """Classify every step and substep in document order."""
    id_by_anchor = dependency_ids(document, config)
    return [classify(step, records, id_by_anchor) for step in document.all_steps()]


def load_records(client: BeadsClient, document: Document) -> dict[str, ExternalRecord]:
    """Fetch every record the document links to, keyed by bead id.

    Ids that do not resolve, or whose lookup fails, are left out and show
    up as pending. BeadsUnavailableError propagates.
    """
    records: dict[str, ExternalRecord] = {}
    for bead_id in document.external_ids().values():
        if bead_id in records:
            continue
        try:
            records[bead_id] = client.show(bead_id)
        except BeadsCommandError as e:
            logger.warning("Cannot read bead %s: %s", bead_id, e)
    return records
