"""Validation engine for speck documents.

validate() runs the full rule catalog over a built Document and returns
every issue found. It is aggregating, never fail-fast: each rule runs
regardless of earlier failures, and issue order is deterministic for the
same input.

Rule order (builder issues always come first):
    1. Required sections (E001)
    2. Metadata fields (E002, W001, E003)
    3. Per-step structure (E004, W002)
    4. Anchors (E005, E006)
    5. Dependency graph (E010, E011)
    6. Bead ids (E012, plus E014/E015 when the existence gate is on)
    7. Volume and shape (I001, I002)

Public API:
    - validate: Run all rules, return the raw issue list
    - validate_document: Run all rules, return a level-aware ValidationResult
    - ValidationResult: Issues plus pass/fail under a validation level
    - is_valid_anchor / is_valid_bead_id: Grammar checks
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from specks.core.config import ValidationConfig, get_config
from specks.core.types import SEVERITY_ORDER, ValidationLevel, normalize_lifecycle_status
from specks.speck.graph import build_graph, find_cycles, format_cycle
from specks.speck.models import Document, Issue

logger = logging.getLogger(__name__)

__all__ = [
    "REQUIRED_SECTIONS",
    "REQUIRED_METADATA",
    "ValidationResult",
    "validate",
    "validate_document",
    "is_valid_anchor",
    "is_valid_bead_id",
]

# (display name, lowercase title fragment)
REQUIRED_SECTIONS: tuple[tuple[str, str], ...] = (
    ("Plan Metadata", "plan metadata"),
    ("Phase Overview", "phase overview"),
    ("Design Decisions", "design decisions"),
    ("Execution Steps", "execution steps"),
    ("Deliverables", "deliverables"),
)

# (display name, canonical metadata key)
REQUIRED_METADATA: tuple[tuple[str, str], ...] = (
    ("Owner", "owner"),
    ("Status", "status"),
    ("Target branch", "target_branch"),
    ("Tracking issue/PR", "tracking"),
    ("Last updated", "last_updated"),
)

NOT_APPLICABLE = "N/A"

_ANCHOR_RE = re.compile(r"^[a-z0-9-]+$")
_BEAD_ID_RE = re.compile(r"^[a-z0-9][a-z0-9-]*-[a-z0-9]+(\.[0-9]+)*$")
_PLACEHOLDER_RE = re.compile(r"^(<[^>]*>|TBD)$", re.IGNORECASE)

ExistsFn = Callable[[str], bool]


def is_valid_anchor(anchor: str) -> bool:
    """Return True if anchor uses only lowercase letters, digits and hyphens."""
    return bool(_ANCHOR_RE.match(anchor))


def is_valid_bead_id(bead_id: str) -> bool:
    """Return True if bead_id matches the tracker's id grammar.

    Examples:
        >>> is_valid_bead_id("bd-abc1")
        True
        >>> is_valid_bead_id("bd-abc1.2")
        True
        >>> is_valid_bead_id("BD_1")
        False

    """
    return bool(_BEAD_ID_RE.match(bead_id))


# =============================================================================
# Rules
# =============================================================================


def _check_sections(document: Document) -> list[Issue]:
    titles = [section.title.lower() for section in document.sections]
    return [
        Issue(code="E001", severity="error", message=f"Missing required section: {name}")
        for name, fragment in REQUIRED_SECTIONS
        if not any(fragment in title for title in titles)
    ]


def _check_metadata(document: Document) -> list[Issue]:
    issues: list[Issue] = []
    metadata = document.metadata

    for name, key in REQUIRED_METADATA:
        value = metadata.get(key)
        line = metadata.lines.get(key, metadata.line)
        if value is None:
            issues.append(
                Issue(
                    code="E002",
                    severity="error",
                    message=f"Missing required metadata field: {name}",
                    line=line,
                )
            )
            continue
        value = value.strip()
        if not value:
            issues.append(
                Issue(
                    code="E002",
                    severity="error",
                    message=f"Metadata field '{name}' is empty",
                    line=line,
                )
            )
        elif value.upper() == NOT_APPLICABLE and key != "status":
            continue
        elif _PLACEHOLDER_RE.match(value):
            issues.append(
                Issue(
                    code="W001",
                    severity="warning",
                    message=f"Metadata field '{name}' has placeholder value: {value}",
                    line=line,
                )
            )
        elif key == "status" and normalize_lifecycle_status(value) is None:
            issues.append(
                Issue(
                    code="E003",
                    severity="error",
                    message=f"Invalid status '{value}' (must be draft, active or done)",
                    line=line,
                )
            )
    return issues


def _check_steps(document: Document) -> list[Issue]:
    issues: list[Issue] = []
    for index, step in enumerate(document.steps):
        if step.references is None:
            issues.append(
                Issue(
                    code="E004",
                    severity="error",
                    message=f"Step {step.number} is missing a **References:** line",
                    anchor=step.anchor,
                    line=step.line,
                )
            )
        if index > 0 and not step.depends_on:
            issues.append(
                Issue(
                    code="W002",
                    severity="warning",
                    message=f"Step {step.number} has no dependencies",
                    anchor=step.anchor,
                    line=step.line,
                )
            )
    return issues


def _check_anchors(document: Document) -> list[Issue]:
    issues: list[Issue] = []
    occurrences: dict[str, list[int]] = {}

    for ref in document.anchors:
        if not is_valid_anchor(ref.anchor):
            issues.append(
                Issue(
                    code="E005",
                    severity="error",
                    message=(
                        f"Invalid anchor '{ref.anchor}' "
                        "(use lowercase letters, digits and hyphens)"
                    ),
                    anchor=ref.anchor,
                    line=ref.line,
                )
            )
        occurrences.setdefault(ref.anchor, []).append(ref.line)

    for anchor, lines in occurrences.items():
        if len(lines) > 1:
            issues.append(
                Issue(
                    code="E006",
                    severity="error",
                    message=(
                        f"Duplicate anchor '{anchor}' defined {len(lines)} times "
                        f"(lines {', '.join(str(n) for n in lines)})"
                    ),
                    anchor=anchor,
                    line=lines[0],
                )
            )
    return issues


def _check_dependencies(document: Document) -> list[Issue]:
    issues: list[Issue] = []
    steps = document.all_steps()
    known = {step.anchor for step in steps}

    for step in steps:
        for dep in step.depends_on:
            if dep not in known:
                issues.append(
                    Issue(
                        code="E010",
                        severity="error",
                        message=f"Step {step.number} depends on unknown anchor '#{dep}'",
                        anchor=step.anchor,
                        line=step.depends_on_line or step.line,
                    )
                )

    graph = build_graph(document)
    for cycle in find_cycles(graph):
        first = document.find_step(cycle[0])
        issues.append(
            Issue(
                code="E011",
                severity="error",
                message=f"Circular dependency: {format_cycle(cycle)}",
                anchor=cycle[0],
                line=first.line if first is not None else None,
            )
        )
    return issues


def _check_bead_ids(document: Document, exists: ExistsFn | None) -> list[Issue]:
    issues: list[Issue] = []

    # (code for missing, owner anchor, bead id, line)
    targets: list[tuple[str, str | None, str, int | None]] = []
    if document.root_external_id:
        targets.append(
            ("E014", None, document.root_external_id, document.root_external_id_line)
        )
    for step in document.all_steps():
        if step.external_id:
            targets.append(
                ("E015", step.anchor, step.external_id, step.external_id_line or step.line)
            )

    for missing_code, anchor, bead_id, line in targets:
        owner = "Beads Root" if anchor is None else f"Step '{anchor}'"
        if not is_valid_bead_id(bead_id):
            issues.append(
                Issue(
                    code="E012",
                    severity="error",
                    message=f"{owner} has invalid bead id '{bead_id}'",
                    anchor=anchor,
                    line=line,
                )
            )
        elif exists is not None and not exists(bead_id):
            issues.append(
                Issue(
                    code=missing_code,
                    severity="error",
                    message=f"{owner} references bead '{bead_id}' which does not exist",
                    anchor=anchor,
                    line=line,
                )
            )
    return issues


def _check_volume(document: Document, config: ValidationConfig) -> list[Issue]:
    issues: list[Issue] = []
    if document.line_count > config.max_document_lines:
        issues.append(
            Issue(
                code="I001",
                severity="info",
                message=(
                    f"Document has {document.line_count} lines "
                    f"(threshold {config.max_document_lines}); consider splitting it"
                ),
            )
        )
    if document.line_count > 0:
        ratio = document.deep_dive_lines / document.line_count
        if ratio > config.deep_dive_ratio:
            issues.append(
                Issue(
                    code="I002",
                    severity="info",
                    message=(
                        f"Deep-dive sections make up {ratio:.0%} of the document "
                        f"(threshold {config.deep_dive_ratio:.0%})"
                    ),
                )
            )
    return issues


# =============================================================================
# Entry points
# =============================================================================


def validate(
    document: Document,
    config: ValidationConfig | None = None,
    exists: ExistsFn | None = None,
) -> list[Issue]:
    """Run every validation rule over a document.

    Args:
        document: Parsed document.
        config: Validation settings (default: loaded configuration).
        exists: Optional bead existence check. Used only when
            ``config.check_bead_existence`` is set, and only for ids that
            pass the format check. Exceptions it raises propagate.

    Returns:
        Builder issues followed by rule issues, in rule order.

    """
    if config is None:
        config = get_config().validation
    gate = exists if config.check_bead_existence else None

    issues = list(document.build_issues)
    issues.extend(_check_sections(document))
    issues.extend(_check_metadata(document))
    issues.extend(_check_steps(document))
    issues.extend(_check_anchors(document))
    issues.extend(_check_dependencies(document))
    issues.extend(_check_bead_ids(document, gate))
    issues.extend(_check_volume(document, config))

    logger.debug(
        "Validation finished: %d issues (%d errors)",
        len(issues),
        sum(1 for i in issues if i.severity == "error"),
    )
    return issues


@dataclass(frozen=True)
class ValidationResult:
    """Validation outcome under a strictness level.

    Attributes:
        issues: Every issue found, unfiltered.
        level: lenient hides warnings, strict fails on warnings.
        show_info: Whether info issues are visible.

    """

    issues: list[Issue] = field(default_factory=list)
    level: ValidationLevel = "normal"
    show_info: bool = False

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def infos(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "info"]

    @property
    def valid(self) -> bool:
        """True when there are no errors (and no warnings under strict)."""
        if self.errors:
            return False
        return not (self.level == "strict" and self.warnings)

    @property
    def visible(self) -> list[Issue]:
        """Issues to display at this level, most severe first.

        Sorting is stable, so issues of equal severity keep rule order.
        """
        shown = [
            i
            for i in self.issues
            if not (i.severity == "warning" and self.level == "lenient")
            and not (i.severity == "info" and not self.show_info)
        ]
        return sorted(shown, key=lambda i: SEVERITY_ORDER[i.severity])


def validate_document(
    document: Document,
    config: ValidationConfig | None = None,
    exists: ExistsFn | None = None,
) -> ValidationResult:
    """Validate a document and wrap the issues with level semantics.

    See validate() for arguments.
    """
    if config is None:
        config = get_config().validation
    issues = validate(document, config, exists)
    return ValidationResult(issues=issues, level=config.level, show_info=config.show_info)
