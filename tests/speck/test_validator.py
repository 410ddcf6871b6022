"""Tests for the validation engine.

Tests cover:
- Required sections (E001)
- Metadata completeness, placeholders, N/A and status values (E002, W001, E003)
- Step structure (E004, W002)
- Anchor format and duplicates (E005, E006)
- Unknown dependencies and cycles (E010, E011), including Scenario A
- Bead id format and the existence gate (E012, E014, E015)
- Volume info issues (I001, I002)
- Builder issues merged first
- ValidationResult levels
"""

import pytest

from specks.core.config import ValidationConfig
from specks.speck.builder import parse_speck
from specks.speck.validator import (
    ValidationResult,
    is_valid_anchor,
    is_valid_bead_id,
    validate,
    validate_document,
)

DEFAULT_ROWS = (
    "| Owner | Jane |\n"
    "| Status | active |\n"
    "| Target branch | main |\n"
    "| Tracking issue/PR | N/A |\n"
    "| Last updated | 2026-02-04 |\n"
)

STEP_0 = "#### Step 0: Setup {#step-0}\n\n**References:** x\n"


def make_speck(steps: str = STEP_0, rows: str = DEFAULT_ROWS, sections: bool = True) -> str:
    overview = "### Phase Overview {#phase-overview}\n\n" if sections else ""
    return (
        "## Phase 1.0: Test {#phase-1}\n\n"
        "### Plan Metadata {#plan-metadata}\n\n"
        "| Field | Value |\n"
        "|------|-------|\n"
        f"{rows}\n"
        f"{overview}"
        "### Design Decisions {#design-decisions}\n\n"
        "### Execution Steps {#execution-steps}\n\n"
        f"{steps}\n"
        "### Deliverables {#deliverables}\n"
    )


def run(text: str, config: ValidationConfig | None = None, exists=None) -> list[str]:
    issues = validate(parse_speck(text), config or ValidationConfig(), exists)
    return [issue.code for issue in issues]


class TestCleanDocuments:
    """Tests for documents with no issues."""

    def test_sample_is_clean(self, sample_speck: str) -> None:
        """The sample speck passes every rule."""
        assert validate(parse_speck(sample_speck), ValidationConfig()) == []

    def test_minimal_is_clean(self) -> None:
        """The minimal builder document passes every rule."""
        assert run(make_speck()) == []


class TestSections:
    """Tests for required sections."""

    def test_missing_section(self) -> None:
        """Each missing section is one E001."""
        issues = validate(parse_speck(make_speck(sections=False)), ValidationConfig())
        assert [i.code for i in issues] == ["E001"]
        assert "Phase Overview" in issues[0].message

    def test_all_missing(self) -> None:
        """An empty document reports all five sections and all metadata."""
        codes = run("")
        assert codes.count("E001") == 5
        assert codes.count("E002") == 5


class TestMetadata:
    """Tests for metadata rules."""

    def test_missing_field(self) -> None:
        """An absent row is an error."""
        rows = DEFAULT_ROWS.replace("| Owner | Jane |\n", "")
        assert run(make_speck(rows=rows)) == ["E002"]

    def test_empty_field(self) -> None:
        """A blank cell is an error."""
        rows = DEFAULT_ROWS.replace("| Owner | Jane |", "| Owner |  |")
        assert run(make_speck(rows=rows)) == ["E002"]

    @pytest.mark.parametrize("value", ["<your name>", "TBD", "tbd"])
    def test_placeholder_is_warning(self, value: str) -> None:
        """Unfilled placeholders are warnings, not errors."""
        rows = DEFAULT_ROWS.replace("| Owner | Jane |", f"| Owner | {value} |")
        assert run(make_speck(rows=rows)) == ["W001"]

    def test_not_applicable_counts_as_present(self) -> None:
        """N/A satisfies a required field without a warning."""
        rows = DEFAULT_ROWS.replace("| Target branch | main |", "| Target branch | N/A |")
        assert run(make_speck(rows=rows)) == []

    def test_not_applicable_status_is_invalid(self) -> None:
        """N/A is not a lifecycle status."""
        rows = DEFAULT_ROWS.replace("| Status | active |", "| Status | N/A |")
        assert run(make_speck(rows=rows)) == ["E003"]

    @pytest.mark.parametrize("status", ["draft", "Active", "DONE"])
    def test_valid_status_any_case(self, status: str) -> None:
        """Status is checked case-insensitively."""
        rows = DEFAULT_ROWS.replace("| Status | active |", f"| Status | {status} |")
        assert run(make_speck(rows=rows)) == []

    def test_invalid_status(self) -> None:
        """Unknown status values are errors."""
        rows = DEFAULT_ROWS.replace("| Status | active |", "| Status | shipped |")
        assert run(make_speck(rows=rows)) == ["E003"]


class TestSteps:
    """Tests for per-step structure rules."""

    def test_missing_references(self) -> None:
        """A step without a References line is an error."""
        steps = "#### Step 0: Setup {#step-0}\n"
        issues = validate(parse_speck(make_speck(steps)), ValidationConfig())
        assert [i.code for i in issues] == ["E004"]
        assert issues[0].anchor == "step-0"

    def test_first_step_needs_no_dependencies(self) -> None:
        """The first step is exempt from W002."""
        assert run(make_speck(STEP_0)) == []

    def test_later_step_without_dependencies(self) -> None:
        """Other steps without dependencies get W002."""
        steps = STEP_0 + "#### Step 1: Next {#step-1}\n\n**References:** x\n"
        assert run(make_speck(steps)) == ["W002"]


class TestAnchors:
    """Tests for anchor rules."""

    def test_invalid_anchor(self) -> None:
        """Uppercase and underscores are not allowed."""
        steps = STEP_0 + "#### Notes {#Bad_Anchor}\n"
        assert run(make_speck(steps)) == ["E005"]

    def test_duplicate_anchor_reported_once(self, find_line) -> None:
        """N occurrences produce exactly one E006 listing all lines."""
        steps = STEP_0 + "#### A {#dup}\n#### B {#dup}\n#### C {#dup}\n"
        text = make_speck(steps)
        issues = validate(parse_speck(text), ValidationConfig())
        duplicates = [i for i in issues if i.code == "E006"]
        assert len(duplicates) == 1
        lines = [find_line(text, "#### A"), find_line(text, "#### B"), find_line(text, "#### C")]
        assert f"lines {lines[0]}, {lines[1]}, {lines[2]}" in duplicates[0].message
        assert duplicates[0].line == lines[0]

    def test_anchor_grammar(self) -> None:
        """Only lowercase letters, digits and hyphens."""
        assert is_valid_anchor("step-1-2")
        assert not is_valid_anchor("")
        assert not is_valid_anchor("step.1")


class TestDependencies:
    """Tests for dependency graph rules."""

    def test_unknown_dependency(self) -> None:
        """A dependency on a missing anchor is E010."""
        steps = STEP_0 + (
            "#### Step 1: Next {#step-1}\n\n**Depends on:** #step-9\n\n**References:** x\n"
        )
        assert run(make_speck(steps)) == ["E010"]

    def test_scenario_a_single_cycle(self) -> None:
        """S2 depends on S0 and S0 on S2: exactly one cycle S0 → S2 → S0."""
        steps = (
            "#### Step 0: A {#step-0}\n**Depends on:** #step-2\n**References:** x\n"
            "#### Step 1: B {#step-1}\n**Depends on:** #step-0\n**References:** x\n"
            "#### Step 2: C {#step-2}\n**Depends on:** #step-0\n**References:** x\n"
        )
        issues = validate(parse_speck(make_speck(steps)), ValidationConfig())
        assert [i.code for i in issues] == ["E011"]
        assert "step-0 → step-2 → step-0" in issues[0].message
        assert issues[0].anchor == "step-0"

    def test_self_dependency(self) -> None:
        """A step depending on itself is a cycle."""
        steps = "#### Step 0: A {#step-0}\n**Depends on:** #step-0\n**References:** x\n"
        issues = validate(parse_speck(make_speck(steps)), ValidationConfig())
        assert [i.code for i in issues] == ["E011"]
        assert "step-0 → step-0" in issues[0].message

    def test_two_distinct_cycles(self) -> None:
        """Each distinct cycle is reported once."""
        steps = (
            "#### Step 0: A {#a}\n**Depends on:** #b\n**References:** x\n"
            "#### Step 1: B {#b}\n**Depends on:** #a\n**References:** x\n"
            "#### Step 2: C {#c}\n**Depends on:** #d\n**References:** x\n"
            "#### Step 3: D {#d}\n**Depends on:** #c\n**References:** x\n"
        )
        assert run(make_speck(steps)).count("E011") == 2

    def test_substep_dependencies_checked(self) -> None:
        """Substep dependencies are part of the graph."""
        steps = (
            "#### Step 0: A {#step-0}\n**References:** x\n"
            "##### Step 0.1: Sub {#step-0-1}\n**Depends on:** #missing\n"
        )
        assert run(make_speck(steps)) == ["E010"]


class TestBeadIds:
    """Tests for bead id rules and the existence gate."""

    STEPS = "#### Step 0: A {{#step-0}}\n**Bead:** `{bead}`\n**References:** x\n"

    def test_valid_ids(self) -> None:
        """Ids follow prefix-hash with optional dotted children."""
        assert is_valid_bead_id("bd-abc1")
        assert is_valid_bead_id("specks-x9.1.2")
        assert not is_valid_bead_id("bd")
        assert not is_valid_bead_id("-bd-1")

    def test_invalid_step_bead(self) -> None:
        """A malformed step bead id is E012."""
        assert run(make_speck(self.STEPS.format(bead="BD_1"))) == ["E012"]

    def test_invalid_root_bead(self) -> None:
        """A malformed root id is E012 too."""
        rows = DEFAULT_ROWS + "| Beads Root | not valid |\n"
        assert run(make_speck(rows=rows)) == ["E012"]

    def test_existence_gate_off_by_default(self) -> None:
        """Without the config flag the callable is not consulted."""
        calls: list[str] = []

        def exists(bead_id: str) -> bool:
            calls.append(bead_id)
            return False

        assert run(make_speck(self.STEPS.format(bead="bd-a1")), exists=exists) == []
        assert calls == []

    def test_existence_gate(self) -> None:
        """Missing root and step beads are E014 and E015."""
        rows = DEFAULT_ROWS + "| Beads Root | `bd-root` |\n"
        text = make_speck(self.STEPS.format(bead="bd-gone"), rows=rows)
        config = ValidationConfig(check_bead_existence=True)
        assert run(text, config, exists=lambda _: False) == ["E014", "E015"]

    def test_malformed_ids_not_existence_checked(self) -> None:
        """Ids failing the format check never reach the existence check."""
        calls: list[str] = []

        def exists(bead_id: str) -> bool:
            calls.append(bead_id)
            return True

        config = ValidationConfig(check_bead_existence=True)
        assert run(make_speck(self.STEPS.format(bead="BD_1")), config, exists) == ["E012"]
        assert calls == []


class TestVolume:
    """Tests for info-level volume rules."""

    def test_long_document(self) -> None:
        """Documents over the threshold get I001."""
        assert run(make_speck(), ValidationConfig(max_document_lines=10)) == ["I001"]

    def test_deep_dive_ratio(self) -> None:
        """A document dominated by deep dives gets I002."""
        text = make_speck() + "### Deep Dive {#deep-dive}\n" + "detail\n" * 100
        assert run(text) == ["I002"]


class TestOrdering:
    """Tests for issue ordering."""

    def test_builder_issues_first(self) -> None:
        """Builder issues precede rule issues."""
        steps = STEP_0 + "**Bead:** bd-a1\n**Bead:** bd-b2\n"
        text = make_speck(steps, sections=False)
        assert run(text) == ["W005", "E001"]

    def test_aggregates_everything(self) -> None:
        """All rules run even when earlier ones fail."""
        rows = DEFAULT_ROWS.replace("| Status | active |", "| Status | nope |")
        steps = "#### Step 0: A {#Step0}\n**Bead:** BAD\n"
        codes = run(make_speck(steps, rows=rows, sections=False))
        assert codes == ["E001", "E003", "E004", "E005", "E012"]


class TestValidationResult:
    """Tests for level semantics."""

    def _result(self, level: str, show_info: bool = False) -> ValidationResult:
        steps = STEP_0 + "#### Step 1: Next {#step-1}\n\n**References:** x\n"
        config = ValidationConfig(level=level, show_info=show_info, max_document_lines=10)
        return validate_document(parse_speck(make_speck(steps)), config)

    def test_normal_warnings_pass(self) -> None:
        """Warnings do not fail under normal."""
        result = self._result("normal")
        assert result.valid
        assert [i.code for i in result.visible] == ["W002"]

    def test_strict_warnings_fail(self) -> None:
        """Warnings fail under strict."""
        assert not self._result("strict").valid

    def test_lenient_hides_warnings(self) -> None:
        """Lenient hides warnings but keeps them in issues."""
        result = self._result("lenient")
        assert result.visible == []
        assert [i.code for i in result.warnings] == ["W002"]

    def test_show_info(self) -> None:
        """Info issues are visible only with show_info."""
        assert [i.code for i in self._result("normal", show_info=True).visible] == [
            "W002",
            "I001",
        ]

    def test_errors_always_fail(self) -> None:
        """Errors fail at every level."""
        document = parse_speck(make_speck(sections=False))
        result = validate_document(document, ValidationConfig(level="lenient"))
        assert not result.valid
        assert [i.code for i in result.visible] == ["E001"]

    def test_uses_loaded_config_by_default(self) -> None:
        """validate_document falls back to get_config()."""
        result = validate_document(parse_speck(make_speck()))
        assert result.level == "normal"
        assert result.valid
