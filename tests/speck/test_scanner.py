"""Tests for the line scanner.

Tests cover:
- Heading level, title and anchor extraction
- Checkbox state, text and inline category hints
- Table rows and separator detection
- Attribute and category labels (colon inside or outside the bold)
- Fenced code blocks treated as opaque text
- Never raising on arbitrary input
"""

import pytest

from specks.speck.models import ItemKind
from specks.speck.scanner import (
    Label,
    TokenKind,
    is_separator_row,
    parse_step_heading,
    scan,
    split_table_row,
)


class TestHeadings:
    """Tests for heading tokens."""

    def test_heading_with_anchor(self) -> None:
        """Level, title and anchor are split apart."""
        (token,) = scan("#### Step 1: Parser {#step-1}")
        assert token.kind is TokenKind.HEADING
        assert token.level == 4
        assert token.title == "Step 1: Parser"
        assert token.anchor == "step-1"

    def test_heading_without_anchor(self) -> None:
        """Anchor is None when absent."""
        (token,) = scan("## Overview")
        assert token.anchor is None
        assert token.title == "Overview"

    def test_malformed_anchor_kept_verbatim(self) -> None:
        """Anchors are not validated by the scanner."""
        (token,) = scan("### Notes {#Bad_Anchor}")
        assert token.anchor == "Bad_Anchor"

    def test_title_with_hash(self) -> None:
        """A '#' inside the title is part of the title."""
        (token,) = scan("## Using C# {#csharp}")
        assert token.title == "Using C#"

    def test_hash_without_space_is_text(self) -> None:
        """'#tag' is not a heading."""
        (token,) = scan("#tag")
        assert token.kind is TokenKind.TEXT


class TestCheckboxes:
    """Tests for checkbox tokens."""

    @pytest.mark.parametrize(
        ("line", "checked"),
        [("- [ ] a", False), ("- [x] a", True), ("- [X] a", True), ("  * [ ] a", False)],
    )
    def test_checkbox_state(self, line: str, checked: bool) -> None:
        """Both box states and bullet styles are recognized."""
        (token,) = scan(line)
        assert token.kind is TokenKind.CHECKBOX
        assert token.checked is checked
        assert token.text == "a"

    def test_inline_hint(self) -> None:
        """A leading [checkpoint] tag sets the hint and is removed from text."""
        (token,) = scan("- [ ] [checkpoint] Build passes")
        assert token.hint is ItemKind.CHECKPOINT
        assert token.text == "Build passes"

    def test_no_hint(self) -> None:
        """Plain items carry no hint."""
        (token,) = scan("- [ ] Build passes")
        assert token.hint is None


class TestTables:
    """Tests for table rows."""

    def test_split_row(self) -> None:
        """Cells are stripped."""
        assert split_table_row("| Owner |  Jane |") == ("Owner", "Jane")

    def test_non_row(self) -> None:
        """Lines without pipes are not rows."""
        assert split_table_row("Owner: Jane") is None

    def test_separator(self) -> None:
        """Dash rows with optional alignment colons are separators."""
        assert is_separator_row(("---", ":---:", "--:"))
        assert not is_separator_row(("Owner", "---"))

    def test_table_row_token(self) -> None:
        """Rows become TABLE_ROW tokens."""
        (token,) = scan("| Status | active |")
        assert token.kind is TokenKind.TABLE_ROW
        assert token.cells == ("Status", "active")


class TestLabels:
    """Tests for attribute and category labels."""

    @pytest.mark.parametrize(
        "line", ["**Depends on:** #step-0", "**Depends on**: #step-0", "**depends on:** #step-0"]
    )
    def test_depends_on_variants(self, line: str) -> None:
        """Colon placement and case do not matter."""
        (token,) = scan(line)
        assert token.kind is TokenKind.LABEL
        assert token.label is Label.DEPENDS_ON
        assert token.value == "#step-0"

    def test_bead_label(self) -> None:
        """The Bead label keeps its raw value."""
        (token,) = scan("**Bead:** `bd-abc1`")
        assert token.label is Label.BEAD
        assert token.value == "`bd-abc1`"

    def test_beads_root_label(self) -> None:
        """Beads Root is distinct from Bead."""
        (token,) = scan("**Beads Root:** bd-root")
        assert token.label is Label.BEADS_ROOT

    def test_category_label(self) -> None:
        """Tasks/Tests/Checkpoint select a category."""
        kinds = [t.category for t in scan("**Tasks:**\n**Tests:**\n**Checkpoint:**")]
        assert kinds == [ItemKind.TASK, ItemKind.TEST, ItemKind.CHECKPOINT]

    def test_bold_without_colon_is_text(self) -> None:
        """Bold text without a colon is not a label."""
        (token,) = scan("**Depends on** the weather")
        assert token.kind is TokenKind.TEXT

    def test_unknown_label_is_text(self) -> None:
        """Unrecognized bold labels become text."""
        (token,) = scan("**Owner:** Jane")
        assert token.kind is TokenKind.TEXT


class TestScan:
    """Tests for whole-text scanning."""

    def test_one_token_per_line(self) -> None:
        """Line numbers are 1-based and contiguous."""
        tokens = scan("a\n\n## B {#b}\n")
        assert [t.line for t in tokens] == [1, 2, 3]

    def test_fenced_block_is_opaque(self) -> None:
        """Headings and checkboxes inside fences are text."""
        text = "```\n## Step 1: Fake {#fake}\n- [ ] not an item\n```\n## Real {#real}"
        kinds = [t.kind for t in scan(text)]
        assert kinds == [
            TokenKind.TEXT,
            TokenKind.TEXT,
            TokenKind.TEXT,
            TokenKind.TEXT,
            TokenKind.HEADING,
        ]

    def test_garbage_never_raises(self) -> None:
        """Arbitrary input degrades to text tokens."""
        tokens = scan("|\n**\n- [\n{#}\n####### too deep\n")
        assert len(tokens) == 5
        assert tokens[-1].kind is TokenKind.TEXT


class TestParseStepHeading:
    """Tests for parse_step_heading()."""

    def test_step(self) -> None:
        """Number and title are split."""
        assert parse_step_heading("Step 2: Wiring") == ("2", "Wiring")

    def test_substep(self) -> None:
        """Dotted numbers are kept as strings."""
        assert parse_step_heading("Step 2.10: Wiring") == ("2.10", "Wiring")

    def test_not_a_step(self) -> None:
        """Other headings return None."""
        assert parse_step_heading("Stepping stones") is None
