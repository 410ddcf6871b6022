"""Speck document model, parser, validation and status.

Usage:
    from specks.speck import parse_speck, validate_document

    document = parse_speck(text)
    result = validate_document(document)
    if not result.valid:
        for issue in result.visible:
            print(issue)
"""

from specks.speck.builder import build_document, load_speck, parse_speck
from specks.speck.graph import build_graph, find_cycles, format_cycle
from specks.speck.models import (
    AnchorRef,
    CheckboxItem,
    Document,
    Issue,
    ItemKind,
    Metadata,
    Section,
    Step,
    StepBase,
    Substep,
)
from specks.speck.scanner import Token, TokenKind, scan
from specks.speck.status import (
    StatusReconciliation,
    StatusReport,
    StepState,
    StepStatus,
    completion,
    reconcile_status,
    status_report,
    step_completion,
)
from specks.speck.validator import ValidationResult, validate, validate_document
from specks.speck.writer import (
    has_root_slot,
    pull_checkboxes,
    write_root_external_id,
    write_step_external_id,
)

__all__ = [
    # Models
    "AnchorRef",
    "CheckboxItem",
    "Document",
    "Issue",
    "ItemKind",
    "Metadata",
    "Section",
    "Step",
    "StepBase",
    "Substep",
    # Parsing
    "Token",
    "TokenKind",
    "scan",
    "build_document",
    "load_speck",
    "parse_speck",
    # Validation
    "ValidationResult",
    "validate",
    "validate_document",
    "build_graph",
    "find_cycles",
    "format_cycle",
    # Status
    "StatusReconciliation",
    "StatusReport",
    "StepState",
    "StepStatus",
    "completion",
    "reconcile_status",
    "status_report",
    "step_completion",
    # Write-back
    "has_root_slot",
    "pull_checkboxes",
    "write_root_external_id",
    "write_step_external_id",
]
