"""Beads tracker integration.

This module provides:
- ExternalRecord, the normalized record shape, and the adapter producing it
- BeadsBackend protocol and the normalizing BeadsClient
- Reconciliation of documents against the tracker (reconcile, reconcile_file)
- Checkbox pull from closed beads (pull_file)
- Step readiness classification (classify, resolve)
"""

from specks.beads.adapter import normalize, normalize_dependency_ids, normalize_many
from specks.beads.client import BeadsBackend, BeadsClient
from specks.beads.models import ExternalRecord, ReadinessState
from specks.beads.readiness import (
    StepReadiness,
    classify,
    dependency_ids,
    load_records,
    resolve,
)
from specks.beads.reconciler import (
    ItemResult,
    PullResult,
    ReconcileResult,
    pull_file,
    reconcile,
    reconcile_file,
)

__all__ = [
    # Records
    "ExternalRecord",
    "ReadinessState",
    "normalize",
    "normalize_dependency_ids",
    "normalize_many",
    # Client
    "BeadsBackend",
    "BeadsClient",
    # Reconciliation
    "ItemResult",
    "PullResult",
    "ReconcileResult",
    "pull_file",
    "reconcile",
    "reconcile_file",
    # Readiness
    "StepReadiness",
    "classify",
    "dependency_ids",
    "load_records",
    "resolve",
]
