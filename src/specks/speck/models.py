"""Canonical models for parsed speck documents.

A Document is rebuilt from text on every parse and never mutated: the file
on disk is the durable state. All models are frozen pydantic models so they
can be shared between the validator, the status calculator and the
reconciler without defensive copies.

Public API:
    - ItemKind: Enum for checkbox categories (task/test/checkpoint)
    - CheckboxItem: One ``- [ ]`` / ``- [x]`` line
    - Substep: Nested step, references its parent's anchor
    - Step: Execution step with items, dependencies and substeps
    - Metadata: Plan Metadata table values
    - Section: Any heading in the document
    - AnchorRef: One occurrence of an explicit ``{#anchor}``
    - Issue: Validation/build diagnostic
    - Document: Parsed speck
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from specks.core.types import Severity

__all__ = [
    "ItemKind",
    "CheckboxItem",
    "StepBase",
    "Substep",
    "Step",
    "Metadata",
    "Section",
    "AnchorRef",
    "Issue",
    "Document",
    "METADATA_FIELDS",
]


# Canonical metadata keys, keyed by normalized table label
METADATA_FIELDS: dict[str, str] = {
    "owner": "owner",
    "status": "status",
    "target branch": "target_branch",
    "tracking issue/pr": "tracking",
    "tracking issue": "tracking",
    "tracking": "tracking",
    "last updated": "last_updated",
    "beads root": "beads_root",
}


class ItemKind(str, Enum):
    """Category of a checkbox item."""

    TASK = "task"
    TEST = "test"
    CHECKPOINT = "checkpoint"

    def __str__(self) -> str:
        return self.value


class CheckboxItem(BaseModel):
    """A checkbox item (task, test, or checkpoint).

    Attributes:
        checked: Whether the box is ticked.
        text: Item text after the box.
        kind: Category from the nearest preceding category label.
        line: 1-based source line.

    """

    model_config = ConfigDict(frozen=True)

    checked: bool
    text: str = ""
    kind: ItemKind = ItemKind.TASK
    line: int = 0


class StepBase(BaseModel):
    """Fields shared by steps and substeps.

    Attributes:
        number: Step number as written ("0", "2.1").
        title: Display title (never used as identity).
        anchor: Stable identity from ``{#anchor}``.
        line: 1-based line of the heading.
        depends_on: Dependency anchors in declaration order.
        depends_on_line: Line of the ``**Depends on:**`` label, if any.
        external_id: Linked bead id, if any.
        external_id_line: Line of the ``**Bead:**`` label, if any.
        commit_message: Text of the ``**Commit:**`` line, if any.
        references: Text of the ``**References:**`` line, None if absent.
        items: Checkbox items in source order.

    """

    model_config = ConfigDict(frozen=True)

    number: str = ""
    title: str = ""
    anchor: str
    line: int = 0
    depends_on: list[str] = Field(default_factory=list)
    depends_on_line: int | None = None
    external_id: str | None = None
    external_id_line: int | None = None
    commit_message: str | None = None
    references: str | None = None
    items: list[CheckboxItem] = Field(default_factory=list)

    def completed_items(self, kind: ItemKind | None = None) -> int:
        """Count checked items, optionally of one category."""
        return sum(1 for item in self.items if item.checked and (kind is None or item.kind == kind))

    def total_items(self, kind: ItemKind | None = None) -> int:
        """Count items, optionally of one category."""
        return sum(1 for item in self.items if kind is None or item.kind == kind)


class Substep(StepBase):
    """A nested substep within a step."""

    parent_anchor: str


class Step(StepBase):
    """An execution step within a speck."""

    substeps: list[Substep] = Field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"Step(anchor={self.anchor!r}, number={self.number!r}, "
            f"depends_on={self.depends_on!r}, external_id={self.external_id!r})"
        )


class Metadata(BaseModel):
    """Plan Metadata table values.

    ``entries`` maps canonical keys (see METADATA_FIELDS) to raw cell text;
    ``lines`` maps the same keys to source lines. Absent keys were never
    written; an empty string means the row exists but is blank.
    """

    model_config = ConfigDict(frozen=True)

    entries: dict[str, str] = Field(default_factory=dict)
    lines: dict[str, int] = Field(default_factory=dict)
    line: int | None = None

    def get(self, key: str) -> str | None:
        return self.entries.get(key)

    @property
    def owner(self) -> str | None:
        return self.entries.get("owner")

    @property
    def status(self) -> str | None:
        return self.entries.get("status")

    @property
    def target_branch(self) -> str | None:
        return self.entries.get("target_branch")

    @property
    def tracking(self) -> str | None:
        return self.entries.get("tracking")

    @property
    def last_updated(self) -> str | None:
        return self.entries.get("last_updated")


class Section(BaseModel):
    """A heading in the document."""

    model_config = ConfigDict(frozen=True)

    title: str
    level: int
    anchor: str | None = None
    line: int = 0


class AnchorRef(BaseModel):
    """One occurrence of an explicit anchor."""

    model_config = ConfigDict(frozen=True)

    anchor: str
    line: int


class Issue(BaseModel):
    """A diagnostic produced by the builder or the validator.

    Attributes:
        code: Stable code (E001, W002, I001, ...).
        severity: error, warning or info.
        message: Human-readable description.
        anchor: Anchor the issue is about, if any.
        line: 1-based source line, if any.

    """

    model_config = ConfigDict(frozen=True)

    code: str
    severity: Severity
    message: str
    anchor: str | None = None
    line: int | None = None

    def __str__(self) -> str:
        where = f" (line {self.line})" if self.line is not None else ""
        return f"{self.severity}[{self.code}]{where}: {self.message}"


class Document(BaseModel):
    """A parsed speck document.

    Attributes:
        title: First top-level heading title (phase title).
        metadata: Plan Metadata values.
        steps: Execution steps in document order.
        sections: Every heading, in document order.
        anchors: Every explicit anchor occurrence, including duplicates.
        root_external_id: Beads Root id, if declared.
        root_external_id_line: Line of the Beads Root declaration.
        line_count: Number of lines in the source text.
        deep_dive_lines: Lines that belong to deep-dive sections.
        build_issues: Issues found while building (merged into validation).

    """

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    metadata: Metadata = Field(default_factory=Metadata)
    steps: list[Step] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)
    anchors: list[AnchorRef] = Field(default_factory=list)
    root_external_id: str | None = None
    root_external_id_line: int | None = None
    line_count: int = 0
    deep_dive_lines: int = 0
    build_issues: list[Issue] = Field(default_factory=list)

    def all_steps(self) -> list[StepBase]:
        """Return steps and substeps flattened in document order."""
        result: list[StepBase] = []
        for step in self.steps:
            result.append(step)
            result.extend(step.substeps)
        return result

    def find_step(self, anchor: str) -> StepBase | None:
        """Return the step or substep with the given anchor."""
        for step in self.all_steps():
            if step.anchor == anchor:
                return step
        return None

    def external_ids(self) -> dict[str, str]:
        """Map step/substep anchors to linked bead ids."""
        return {s.anchor: s.external_id for s in self.all_steps() if s.external_id}
