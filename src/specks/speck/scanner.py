"""Line scanner for speck documents.

Turns raw text into a flat list of typed tokens, one per source line. The
scanner has no notion of document structure; the builder assembles tokens
into steps. Scanning never fails: anything unrecognized becomes a TEXT
token, and lines inside fenced code blocks are always TEXT.

Recognized lines:
    ``## Title {#anchor}``            -> HEADING
    ``| Owner | Jane |``              -> TABLE_ROW (header/separator rows too)
    ``- [ ] text`` / ``- [x] text``   -> CHECKBOX
    ``**Depends on:** #step-0``       -> LABEL (Depends on, Bead, Beads Root,
                                         Commit, References)
    ``**Tasks:**``                    -> CATEGORY (Tasks, Tests, Checkpoint)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from specks.speck.models import ItemKind

logger = logging.getLogger(__name__)

__all__ = [
    "TokenKind",
    "Label",
    "Token",
    "scan",
    "parse_step_heading",
    "split_table_row",
    "is_separator_row",
]


class TokenKind(str, Enum):
    """Type of a scanned line."""

    HEADING = "heading"
    TABLE_ROW = "table_row"
    CHECKBOX = "checkbox"
    LABEL = "label"
    CATEGORY = "category"
    TEXT = "text"


class Label(str, Enum):
    """Attribute labels the builder attaches to steps or the document."""

    DEPENDS_ON = "depends_on"
    BEAD = "bead"
    BEADS_ROOT = "beads_root"
    COMMIT = "commit"
    REFERENCES = "references"


_LABELS: dict[str, Label] = {
    "depends on": Label.DEPENDS_ON,
    "depends": Label.DEPENDS_ON,
    "bead": Label.BEAD,
    "beads root": Label.BEADS_ROOT,
    "commit": Label.COMMIT,
    "references": Label.REFERENCES,
}

_CATEGORIES: dict[str, ItemKind] = {
    "task": ItemKind.TASK,
    "tasks": ItemKind.TASK,
    "test": ItemKind.TEST,
    "tests": ItemKind.TEST,
    "checkpoint": ItemKind.CHECKPOINT,
    "checkpoints": ItemKind.CHECKPOINT,
}


@dataclass(frozen=True)
class Token:
    """One scanned line.

    Only the fields relevant to ``kind`` are populated.

    Attributes:
        kind: Line type.
        line: 1-based source line number.
        raw: Original line text.
        level: Heading depth (HEADING).
        title: Heading title without the anchor (HEADING).
        anchor: Anchor text, possibly malformed (HEADING).
        cells: Stripped cell texts (TABLE_ROW).
        checked: Box state (CHECKBOX).
        text: Item text (CHECKBOX).
        hint: Inline ``[task]``/``[test]``/``[checkpoint]`` tag (CHECKBOX).
        label: Attribute label (LABEL).
        value: Text after the label (LABEL, CATEGORY).
        category: Item category selected (CATEGORY).

    """

    kind: TokenKind
    line: int
    raw: str
    level: int = 0
    title: str = ""
    anchor: str | None = None
    cells: tuple[str, ...] = field(default_factory=tuple)
    checked: bool = False
    text: str = ""
    hint: ItemKind | None = None
    label: Label | None = None
    value: str = ""
    category: ItemKind | None = None


_HEADING_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)\s*$")
_ANCHOR_RE = re.compile(r"\s*\{#([^}]*)\}\s*$")
_FENCE_RE = re.compile(r"^\s{0,3}(```|~~~)")
_TABLE_ROW_RE = re.compile(r"^\s*\|(.*)\|\s*$")
_SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")
_CHECKBOX_RE = re.compile(r"^\s*[-*+]\s+\[([ xX])\]\s?(.*)$")
_HINT_RE = re.compile(r"^\[(task|test|checkpoint)\]\s*", re.IGNORECASE)
# **Label:** value  or  **Label**: value
_LABEL_RE = re.compile(r"^\s*\*\*\s*([^*:]+?)\s*(:?)\s*\*\*\s*(:?)\s*(.*?)\s*$")
_STEP_TITLE_RE = re.compile(r"^Step\s+(\d+(?:\.\d+)*)\s*:\s*(.*)$", re.IGNORECASE)


def parse_step_heading(title: str) -> tuple[str, str] | None:
    """Split a heading title into (number, title) if it names a step.

    Examples:
        >>> parse_step_heading("Step 2.1: Wire parser")
        ('2.1', 'Wire parser')
        >>> parse_step_heading("Phase Overview") is None
        True

    """
    match = _STEP_TITLE_RE.match(title.strip())
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def split_table_row(line: str) -> tuple[str, ...] | None:
    """Return stripped cells of a ``| a | b |`` row, or None."""
    match = _TABLE_ROW_RE.match(line)
    if not match:
        return None
    return tuple(cell.strip() for cell in match.group(1).split("|"))


def is_separator_row(cells: tuple[str, ...]) -> bool:
    """Return True for ``|---|:---:|`` rows."""
    return bool(cells) and all(_SEPARATOR_CELL_RE.match(c.replace(" ", "")) for c in cells)


def _scan_heading(line: str, lineno: int) -> Token | None:
    match = _HEADING_RE.match(line)
    if not match:
        return None
    level = len(match.group(1))
    title = match.group(2)
    anchor: str | None = None
    anchor_match = _ANCHOR_RE.search(title)
    if anchor_match:
        anchor = anchor_match.group(1).strip()
        title = title[: anchor_match.start()].rstrip()
    return Token(TokenKind.HEADING, lineno, line, level=level, title=title, anchor=anchor)


def _scan_label(line: str, lineno: int) -> Token | None:
    match = _LABEL_RE.match(line)
    if not match:
        return None
    name = match.group(1).strip().lower()
    # A colon is required either inside or right after the bold markers
    if not (match.group(2) or match.group(3)):
        return None
    value = match.group(4)
    if name in _LABELS:
        return Token(TokenKind.LABEL, lineno, line, label=_LABELS[name], value=value)
    if name in _CATEGORIES:
        return Token(TokenKind.CATEGORY, lineno, line, category=_CATEGORIES[name], value=value)
    return None


def _scan_checkbox(line: str, lineno: int) -> Token | None:
    match = _CHECKBOX_RE.match(line)
    if not match:
        return None
    text = match.group(2).strip()
    hint: ItemKind | None = None
    hint_match = _HINT_RE.match(text)
    if hint_match:
        hint = _CATEGORIES[hint_match.group(1).lower()]
        text = text[hint_match.end() :]
    return Token(
        TokenKind.CHECKBOX,
        lineno,
        line,
        checked=match.group(1) in ("x", "X"),
        text=text,
        hint=hint,
    )


def scan(text: str) -> list[Token]:
    """Scan document text into one token per line.

    Args:
        text: Full document text.

    Returns:
        Tokens in source order; ``tokens[i].line == i + 1``.

    """
    tokens: list[Token] = []
    in_fence = False

    for lineno, line in enumerate(text.splitlines(), 1):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            tokens.append(Token(TokenKind.TEXT, lineno, line))
            continue
        if in_fence:
            tokens.append(Token(TokenKind.TEXT, lineno, line))
            continue

        token = _scan_heading(line, lineno) or _scan_checkbox(line, lineno)
        if token is None:
            cells = split_table_row(line)
            if cells is not None:
                token = Token(TokenKind.TABLE_ROW, lineno, line, cells=cells)
        if token is None:
            token = _scan_label(line, lineno)
        tokens.append(token or Token(TokenKind.TEXT, lineno, line))

    logger.debug("Scanned %d lines", len(tokens))
    return tokens
