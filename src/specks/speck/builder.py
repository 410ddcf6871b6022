"""Document builder: assembles scanner tokens into a Document.

The builder walks the token list once, left to right, keeping a cursor on
the open step and substep. It never fails on structure: missing sections,
stray labels and orphan substeps produce a best-effort Document plus
build issues, which the validator merges into its output. Only input that
is not text at all is rejected (DocumentReadError).

Nesting rules:
    - The depth of the first step heading fixes the step level.
    - A step heading deeper than the step level, while a step is open, opens
      a substep of that step. With no open step it becomes a step (W003).
    - A non-step heading at or above the step level closes the open step;
      at or above the substep level it closes the open substep.
    - Checkbox categories come from the last category label seen in the
      current step/substep and reset to "task" at each step heading.

Public API:
    - parse_speck: Build a Document from text or bytes
    - load_speck: Read a file and build a Document
    - build_document: Build a Document from already-scanned tokens
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from specks.core.io import decode_text, read_text
from specks.speck.models import (
    METADATA_FIELDS,
    AnchorRef,
    CheckboxItem,
    Document,
    Issue,
    ItemKind,
    Metadata,
    Section,
    Step,
    Substep,
)
from specks.speck.scanner import (
    Label,
    Token,
    TokenKind,
    is_separator_row,
    parse_step_heading,
    scan,
)

logger = logging.getLogger(__name__)

__all__ = [
    "parse_speck",
    "load_speck",
    "build_document",
    "parse_dependency_list",
    "clean_bead_id",
]

_METADATA_SECTION = "plan metadata"
_DEEP_DIVE_MARKERS = ("deep dive", "deep-dive")
_DEP_ANCHOR_RE = re.compile(r"#([^\s,()\[\]]+)")


def parse_dependency_list(value: str) -> list[str]:
    """Extract dependency anchors from a ``Depends on`` value.

    Examples:
        >>> parse_dependency_list("#step-0, (#step-1)")
        ['step-0', 'step-1']
        >>> parse_dependency_list("None")
        []

    """
    return _DEP_ANCHOR_RE.findall(value)


def clean_bead_id(value: str) -> str | None:
    """Strip backticks and whitespace from a bead id cell; None if empty."""
    cleaned = value.strip().strip("`").strip()
    return cleaned or None


@dataclass
class _StepDraft:
    """Mutable step under construction."""

    number: str
    title: str
    anchor: str
    line: int
    level: int
    parent_anchor: str | None = None
    depends_on: list[str] = field(default_factory=list)
    depends_on_line: int | None = None
    external_id: str | None = None
    external_id_line: int | None = None
    commit_message: str | None = None
    commit_line: int | None = None
    references: str | None = None
    references_line: int | None = None
    items: list[CheckboxItem] = field(default_factory=list)
    substeps: list[_StepDraft] = field(default_factory=list)

    def freeze_common(self) -> dict[str, object]:
        return {
            "number": self.number,
            "title": self.title,
            "anchor": self.anchor,
            "line": self.line,
            "depends_on": list(self.depends_on),
            "depends_on_line": self.depends_on_line,
            "external_id": self.external_id,
            "external_id_line": self.external_id_line,
            "commit_message": self.commit_message,
            "references": self.references,
            "items": list(self.items),
        }


class _DocumentBuilder:
    """Single-pass token consumer. Use build_document() instead."""

    def __init__(self, line_count: int) -> None:
        self.line_count = line_count
        self.title: str | None = None
        self.sections: list[Section] = []
        self.anchors: list[AnchorRef] = []
        self.issues: list[Issue] = []
        self.steps: list[_StepDraft] = []
        self.step_level: int | None = None
        self.current_step: _StepDraft | None = None
        self.current_substep: _StepDraft | None = None
        self.category: ItemKind = ItemKind.TASK
        self.in_metadata = False
        self.metadata_entries: dict[str, str] = {}
        self.metadata_lines: dict[str, int] = {}
        self.metadata_line: int | None = None
        self.root_id: str | None = None
        self.root_id_line: int | None = None
        self.deep_dive_level: int | None = None
        self.deep_dive_lines = 0

    # -------------------------------------------------------------------------
    # Token handlers
    # -------------------------------------------------------------------------

    def feed(self, token: Token) -> None:
        if token.kind is TokenKind.HEADING:
            self._on_heading(token)
        elif self.deep_dive_level is not None:
            self.deep_dive_lines += 1

        if token.kind is TokenKind.TABLE_ROW:
            self._on_table_row(token)
        elif token.kind is TokenKind.LABEL:
            self._on_label(token)
        elif token.kind is TokenKind.CATEGORY:
            if self._target() is not None:
                self.category = token.category or ItemKind.TASK
        elif token.kind is TokenKind.CHECKBOX:
            self._on_checkbox(token)

    def _on_heading(self, token: Token) -> None:
        level = token.level
        if token.anchor is not None:
            self.anchors.append(AnchorRef(anchor=token.anchor, line=token.line))
        self.sections.append(
            Section(title=token.title, level=level, anchor=token.anchor, line=token.line)
        )
        if self.title is None:
            self.title = token.title

        title_lower = token.title.lower()
        self.in_metadata = _METADATA_SECTION in title_lower
        if self.in_metadata and self.metadata_line is None:
            self.metadata_line = token.line

        if self.deep_dive_level is not None and level <= self.deep_dive_level:
            self.deep_dive_level = None
        if self.deep_dive_level is None and any(m in title_lower for m in _DEEP_DIVE_MARKERS):
            self.deep_dive_level = level
        if self.deep_dive_level is not None:
            self.deep_dive_lines += 1

        parsed = parse_step_heading(token.title)
        anchor = token.anchor
        if parsed is not None and not anchor:
            self._issue(
                "W006",
                "warning",
                f"Step heading '{token.title}' has no {{#anchor}}; it is not tracked as a step",
                line=token.line,
            )
            parsed = None

        if parsed is None or not anchor:
            self._close_for_heading(level)
            return

        number, title = parsed
        if self.step_level is None:
            self.step_level = level

        if level > self.step_level and self.current_step is not None:
            draft = _StepDraft(
                number=number,
                title=title,
                anchor=anchor,
                line=token.line,
                level=level,
                parent_anchor=self.current_step.anchor,
            )
            self.current_step.substeps.append(draft)
            self.current_substep = draft
        else:
            if level > self.step_level:
                self._issue(
                    "W003",
                    "warning",
                    f"Substep '{token.title}' has no parent step; treating it as a step",
                    anchor=anchor,
                    line=token.line,
                )
            draft = _StepDraft(
                number=number, title=title, anchor=anchor, line=token.line, level=level
            )
            self.steps.append(draft)
            self.current_step = draft
            self.current_substep = None
        self.category = ItemKind.TASK

    def _close_for_heading(self, level: int) -> None:
        if self.current_substep is not None and level <= self.current_substep.level:
            self.current_substep = None
        if self.current_step is not None and level <= self.current_step.level:
            self.current_step = None
            self.current_substep = None

    def _on_table_row(self, token: Token) -> None:
        if not self.in_metadata or len(token.cells) < 2 or is_separator_row(token.cells):
            return
        key = token.cells[0].strip().strip("*").strip().lower()
        value = token.cells[1].strip()
        if key in ("field", "key", ""):
            return
        canonical = METADATA_FIELDS.get(key, key)
        if canonical == "beads_root":
            self._set_root_id(value, token.line)
            return
        if canonical in self.metadata_entries:
            return
        self.metadata_entries[canonical] = value
        self.metadata_lines[canonical] = token.line

    def _set_root_id(self, value: str, line: int) -> None:
        root_id = clean_bead_id(value)
        if root_id is None:
            return
        if self.root_id is None:
            self.root_id = root_id
            self.root_id_line = line
        elif self.root_id != root_id:
            self._issue(
                "E007",
                "error",
                f"Multiple Beads Root values: '{self.root_id}' (line {self.root_id_line}) "
                f"and '{root_id}'",
                line=line,
            )

    def _target(self) -> _StepDraft | None:
        return self.current_substep or self.current_step

    def _on_label(self, token: Token) -> None:
        label = token.label
        if label is Label.BEADS_ROOT:
            self._set_root_id(token.value, token.line)
            return

        target = self._target()
        if target is None:
            if label in (Label.DEPENDS_ON, Label.BEAD):
                self._issue(
                    "W004",
                    "warning",
                    f"'{token.raw.strip()}' appears outside of any step and is ignored",
                    line=token.line,
                )
            return

        if label is Label.DEPENDS_ON:
            if self._duplicate(target, target.depends_on_line, "Depends on", token.line):
                return
            target.depends_on = parse_dependency_list(token.value)
            target.depends_on_line = token.line
        elif label is Label.BEAD:
            if self._duplicate(target, target.external_id_line, "Bead", token.line):
                return
            target.external_id = clean_bead_id(token.value)
            target.external_id_line = token.line
        elif label is Label.COMMIT:
            if self._duplicate(target, target.commit_line, "Commit", token.line):
                return
            target.commit_message = token.value.strip().strip("`").strip() or None
            target.commit_line = token.line
        elif label is Label.REFERENCES:
            if self._duplicate(target, target.references_line, "References", token.line):
                return
            target.references = token.value
            target.references_line = token.line

    def _duplicate(self, target: _StepDraft, seen_line: int | None, name: str, line: int) -> bool:
        if seen_line is None:
            return False
        self._issue(
            "W005",
            "warning",
            f"Step '{target.anchor}' repeats '{name}' (first at line {seen_line}); "
            "the first value is used",
            anchor=target.anchor,
            line=line,
        )
        return True

    def _on_checkbox(self, token: Token) -> None:
        target = self._target()
        if target is None:
            return
        target.items.append(
            CheckboxItem(
                checked=token.checked,
                text=token.text,
                kind=token.hint or self.category,
                line=token.line,
            )
        )

    def _issue(
        self,
        code: str,
        severity: str,
        message: str,
        anchor: str | None = None,
        line: int | None = None,
    ) -> None:
        self.issues.append(
            Issue(code=code, severity=severity, message=message, anchor=anchor, line=line)  # type: ignore[arg-type]
        )

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def finish(self) -> Document:
        steps = [
            Step(
                **draft.freeze_common(),  # type: ignore[arg-type]
                substeps=[
                    Substep(**sub.freeze_common(), parent_anchor=draft.anchor)  # type: ignore[arg-type]
                    for sub in draft.substeps
                ],
            )
            for draft in self.steps
        ]
        return Document(
            title=self.title,
            metadata=Metadata(
                entries=self.metadata_entries,
                lines=self.metadata_lines,
                line=self.metadata_line,
            ),
            steps=steps,
            sections=self.sections,
            anchors=self.anchors,
            root_external_id=self.root_id,
            root_external_id_line=self.root_id_line,
            line_count=self.line_count,
            deep_dive_lines=self.deep_dive_lines,
            build_issues=self.issues,
        )


def build_document(tokens: list[Token]) -> Document:
    """Assemble scanned tokens into a Document.

    Args:
        tokens: Output of scanner.scan().

    Returns:
        Best-effort Document; structural problems are in ``build_issues``.

    """
    builder = _DocumentBuilder(line_count=len(tokens))
    for token in tokens:
        builder.feed(token)
    document = builder.finish()
    logger.debug(
        "Built document: %d steps, %d substeps, %d build issues",
        len(document.steps),
        sum(len(s.substeps) for s in document.steps),
        len(document.build_issues),
    )
    return document


def parse_speck(content: str | bytes) -> Document:
    """Parse speck text into a Document.

    Args:
        content: Document text, or raw bytes (decoded as UTF-8).

    Returns:
        Parsed Document.

    Raises:
        DocumentReadError: If content is not text.

    """
    text = decode_text(content)
    return build_document(scan(text))


def load_speck(path: Path) -> Document:
    """Read a speck file whole and parse it.

    Raises:
        DocumentReadError: If the file is missing, unreadable or not text.

    """
    return parse_speck(read_text(path))
