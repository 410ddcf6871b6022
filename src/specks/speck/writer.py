"""Text-level write-back into speck documents.

Every function here takes the whole document text and returns the whole
new text; callers persist it with atomic_write(). Edits are line-based and
touch only the lines they own, so the rest of the document (including line
endings) is preserved byte for byte.

Bead line position, per step:
    - An existing ``**Bead:**`` line in the step's own block (heading up to
      the next heading) is rewritten in place.
    - Otherwise the line goes right after the step's ``**Depends on:**``
      line, when that line exists and precedes any ``**Commit:**`` line.
    - Otherwise it goes right after the heading.
    - A new line is always preceded by a blank line.

Public API:
    - write_step_external_id: Set a step's ``**Bead:**`` line
    - write_root_external_id: Set the Plan Metadata ``Beads Root`` row
    - has_root_slot: Whether a root id can be recorded at all
    - pull_checkboxes: Check items of steps whose bead is closed
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING

from specks.core.exceptions import WriteBackError
from specks.speck.models import Document, ItemKind
from specks.speck.scanner import Label, Token, TokenKind, parse_step_heading, scan

if TYPE_CHECKING:
    from specks.beads.models import ExternalRecord

logger = logging.getLogger(__name__)

__all__ = [
    "write_step_external_id",
    "write_root_external_id",
    "has_root_slot",
    "pull_checkboxes",
    "format_bead_line",
]

_UNCHECKED_RE = re.compile(r"^(\s*[-*+]\s+\[) \]")


def format_bead_line(bead_id: str) -> str:
    return f"**Bead:** `{bead_id}`"


def _newline(lines: list[str]) -> str:
    for line in lines:
        if line.endswith("\r\n"):
            return "\r\n"
        if line.endswith("\n"):
            return "\n"
    return "\n"


def _ensure_terminated(lines: list[str], index: int, nl: str) -> None:
    if not lines[index].endswith(("\n", "\r")):
        lines[index] += nl


def _line_ending(line: str) -> str:
    return line[len(line.rstrip("\r\n")) :]


def _find_step_block(tokens: list[Token], anchor: str) -> tuple[int, int] | None:
    """Return (heading index, end index) of a step's own block."""
    for i, token in enumerate(tokens):
        if (
            token.kind is TokenKind.HEADING
            and token.anchor == anchor
            and parse_step_heading(token.title) is not None
        ):
            end = i + 1
            while end < len(tokens) and tokens[end].kind is not TokenKind.HEADING:
                end += 1
            return i, end
    return None


def write_step_external_id(content: str, anchor: str, bead_id: str) -> str:
    """Write a step's bead id at its fixed position.

    Args:
        content: Whole document text.
        anchor: Step or substep anchor.
        bead_id: Id to record.

    Returns:
        New document text (identical to content if the id is already there).

    Raises:
        WriteBackError: If no step heading carries the anchor.

    """
    tokens = scan(content)
    lines = content.splitlines(keepends=True)
    block = _find_step_block(tokens, anchor)
    if block is None:
        raise WriteBackError(f"No step with anchor '#{anchor}' to write bead id into", anchor)
    start, end = block
    nl = _newline(lines)

    depends: Token | None = None
    commit: Token | None = None
    for token in tokens[start + 1 : end]:
        if token.kind is not TokenKind.LABEL:
            continue
        if token.label is Label.BEAD:
            # Update in place
            idx = token.line - 1
            new_line = format_bead_line(bead_id) + _line_ending(lines[idx])
            if lines[idx] == new_line:
                return content
            lines[idx] = new_line
            logger.debug("Updated bead line for #%s at line %d", anchor, token.line)
            return "".join(lines)
        if token.label is Label.DEPENDS_ON and depends is None:
            depends = token
        elif token.label is Label.COMMIT and commit is None:
            commit = token

    if depends is not None and (commit is None or depends.line < commit.line):
        after = depends.line - 1
    else:
        after = start
    _ensure_terminated(lines, after, nl)
    lines[after + 1 : after + 1] = [nl, format_bead_line(bead_id) + nl]
    logger.debug("Inserted bead line for #%s after line %d", anchor, after + 1)
    return "".join(lines)


def _metadata_span(tokens: list[Token]) -> tuple[int, int] | None:
    """Return (heading index, end index) of the Plan Metadata section."""
    for i, token in enumerate(tokens):
        if token.kind is TokenKind.HEADING and "plan metadata" in token.title.lower():
            end = i + 1
            while end < len(tokens) and tokens[end].kind is not TokenKind.HEADING:
                end += 1
            return i, end
    return None


def _is_root_row(token: Token) -> bool:
    return (
        token.kind is TokenKind.TABLE_ROW
        and len(token.cells) >= 2
        and token.cells[0].strip().strip("*").strip().lower() == "beads root"
    )


def _root_slot(tokens: list[Token]) -> tuple[Token | None, int | None]:
    """Locate where the root id goes.

    Returns:
        (existing Beads Root row or label token, None), or (None, index of
        the last Plan Metadata row to insert after), or (None, None) when
        there is no slot at all.

    """
    for token in tokens:
        if _is_root_row(token) or (
            token.kind is TokenKind.LABEL and token.label is Label.BEADS_ROOT
        ):
            return token, None

    span = _metadata_span(tokens)
    last_row: int | None = None
    if span is not None:
        start, end = span
        for token in tokens[start + 1 : end]:
            if token.kind is TokenKind.TABLE_ROW:
                last_row = token.line - 1
            elif last_row is not None and token.raw.strip():
                break
    return None, last_row


def has_root_slot(content: str) -> bool:
    """Return True if write_root_external_id() can record a root id in content."""
    existing, last_row = _root_slot(scan(content))
    return existing is not None or last_row is not None


def write_root_external_id(content: str, bead_id: str) -> str:
    """Write the root bead id into the Plan Metadata table.

    An existing ``Beads Root`` row (or ``**Beads Root:**`` line) anywhere in
    the document is updated in place. Otherwise a row is appended after the
    last row of the Plan Metadata table.

    Raises:
        WriteBackError: If there is no existing slot and no metadata table.

    """
    lines = content.splitlines(keepends=True)
    nl = _newline(lines)
    existing, last_row = _root_slot(scan(content))

    if existing is not None:
        if _is_root_row(existing):
            new_line = f"| Beads Root | `{bead_id}` |"
        else:
            new_line = f"**Beads Root:** `{bead_id}`"
        idx = existing.line - 1
        new_line += _line_ending(lines[idx])
        if lines[idx] == new_line:
            return content
        lines[idx] = new_line
        logger.debug("Updated Beads Root at line %d", existing.line)
        return "".join(lines)

    if last_row is None:
        raise WriteBackError("No Plan Metadata table to record the Beads Root in", "root")

    _ensure_terminated(lines, last_row, nl)
    lines.insert(last_row + 1, f"| Beads Root | `{bead_id}` |{nl}")
    logger.debug("Inserted Beads Root row after line %d", last_row + 1)
    return "".join(lines)


def pull_checkboxes(
    content: str,
    document: Document,
    records: Mapping[str, ExternalRecord],
    kind: ItemKind | None = ItemKind.CHECKPOINT,
) -> str:
    """Check unchecked items of steps whose bead is closed.

    Only checkbox marks change. ``document`` must be parsed from
    ``content`` so item line numbers line up.

    Args:
        content: Whole document text.
        document: Document parsed from content.
        records: Normalized records keyed by bead id.
        kind: Category to check; None checks every category.

    Returns:
        New document text.

    """
    lines = content.splitlines(keepends=True)
    updated = 0
    for step in document.all_steps():
        record = records.get(step.external_id) if step.external_id else None
        if record is None or record.status != "closed":
            continue
        for item in step.items:
            if item.checked or (kind is not None and item.kind != kind):
                continue
            idx = item.line - 1
            lines[idx], count = _UNCHECKED_RE.subn(r"\1x]", lines[idx], count=1)
            updated += count
    if updated:
        logger.info("Checked %d item(s) from closed beads", updated)
    return "".join(lines)
