"""Reconciliation of a speck document against the beads tracker.

reconcile() converges tracker state toward the document in two passes and
writes new ids back into the text:

    Pass 1 (nodes): verify the root bead and one bead per step with show().
        A recorded id that no longer resolves is recreated; a missing id is
        created. Nothing is ever deleted.
    Pass 2 (edges): add every declared dependency the tracker lacks. Extra
        tracker edges are removed only when pruning is requested.
    Write-back: new or replaced ids go into the text at their fixed
        positions (see specks.speck.writer).

Running it twice with no changes on either side issues only show() calls
the second time and leaves the text untouched.

Failure handling:
    - BeadsCommandError (one operation failed, bad response, id not found)
      is recorded as a failed item; the run carries on.
    - BeadsUnavailableError (tracker missing or not initialized) propagates
      immediately and is never retried.

Public API:
    - reconcile: Reconcile document text, return new text and item results
    - reconcile_file: Read, reconcile and atomically rewrite a file
    - pull_file: Check checkboxes of steps whose bead is closed
    - ReconcileResult / ItemResult / PullResult: Outcomes
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from specks.beads.client import BeadsBackend, BeadsClient
from specks.beads.models import ExternalRecord
from specks.beads.readiness import load_records
from specks.core.config import BeadsConfig, get_config
from specks.core.exceptions import (
    BeadsCommandError,
    ConfigError,
    RecordNotFoundError,
    WriteBackError,
)
from specks.core.io import atomic_write, read_document
from specks.speck.builder import parse_speck
from specks.speck.models import Document, ItemKind, StepBase, Substep
from specks.speck.writer import (
    has_root_slot,
    pull_checkboxes,
    write_root_external_id,
    write_step_external_id,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ItemResult",
    "ReconcileResult",
    "PullResult",
    "reconcile",
    "reconcile_file",
    "pull_file",
]

DEFAULT_ROOT_TITLE = "Untitled speck"
DRY_RUN_ROOT_ID = "bd-dryrun-root"
DRY_RUN_PREFIX = "bd-dryrun-"

# Item actions
VERIFIED = "verified"
CREATED = "created"
RECREATED = "recreated"
ADDED = "added"
REMOVED = "removed"
WRITTEN = "written"
PLANNED = "planned"
FAILED = "failed"


@dataclass(frozen=True)
class ItemResult:
    """Outcome of one node, edge or write-back operation.

    Attributes:
        kind: "root", "step", "substep", "edge" or "write".
        target: Anchor, "root", or ``"<anchor> -> <dependency>"`` for edges
            (``"<anchor> -x <bead id>"`` for a planned removal).
        action: What was done (verified, created, recreated, added,
            removed, written, planned, failed). Dry runs record edges and
            writes as planned.
        ok: False if the operation failed.
        error: Failure reason.

    """

    kind: str
    target: str
    action: str
    ok: bool = True
    error: str | None = None

    def __str__(self) -> str:
        if self.ok:
            return f"{self.kind} {self.target}: {self.action}"
        return f"{self.kind} {self.target}: failed ({self.error})"


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation run.

    Attributes:
        root_id: Root bead id after the run (None if it could not be ensured).
        content: Document text after write-back.
        changed: True if content differs from the input.
        dry_run: True if no mutations were made.
        ids: Bead id per reconciled step anchor.
        items: Per-item results in execution order.

    """

    root_id: str | None = None
    content: str = ""
    changed: bool = False
    dry_run: bool = False
    ids: dict[str, str] = field(default_factory=dict)
    items: list[ItemResult] = field(default_factory=list)

    def _count(self, *actions: str) -> int:
        return sum(1 for item in self.items if item.ok and item.action in actions)

    @property
    def failures(self) -> list[ItemResult]:
        return [item for item in self.items if not item.ok]

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def created(self) -> int:
        return self._count(CREATED)

    @property
    def recreated(self) -> int:
        return self._count(RECREATED)

    @property
    def verified(self) -> int:
        return self._count(VERIFIED)

    @property
    def edges_added(self) -> int:
        return sum(1 for i in self.items if i.ok and i.kind == "edge" and i.action == ADDED)

    @property
    def edges_removed(self) -> int:
        return sum(1 for i in self.items if i.ok and i.kind == "edge" and i.action == REMOVED)

    @property
    def written(self) -> int:
        return self._count(WRITTEN)

    @property
    def planned(self) -> int:
        return self._count(PLANNED)


@dataclass(frozen=True)
class _Node:
    step: StepBase
    kind: str  # "step" or "substep"
    parent_anchor: str | None = None


class _Reconciler:
    """One reconciliation run. Use reconcile() instead."""

    def __init__(
        self,
        content: str,
        client: BeadsClient,
        *,
        source: str,
        config: BeadsConfig,
        prune: bool,
        dry_run: bool,
    ) -> None:
        self.original = content
        self.content = content
        self.client = client
        self.source = source
        self.config = config
        self.prune = prune
        self.dry_run = dry_run
        self.result = ReconcileResult(content=content, dry_run=dry_run)
        self.ids: dict[str, str] = {}
        self.actual: dict[str, list[str]] = {}
        self.all_anchors: set[str] = set()
        # Substep anchor -> parent anchor, for substeps without their own bead
        self.folded: dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def _ok(self, kind: str, target: str, action: str) -> None:
        self.result.items.append(ItemResult(kind=kind, target=target, action=action))

    def _fail(self, kind: str, target: str, error: str) -> None:
        logger.warning("Reconcile %s %s failed: %s", kind, target, error)
        self.result.items.append(
            ItemResult(kind=kind, target=target, action=FAILED, ok=False, error=error)
        )

    # -------------------------------------------------------------------------
    # Pass 1: nodes
    # -------------------------------------------------------------------------

    def _ensure(
        self,
        kind: str,
        target: str,
        recorded: str | None,
        create: Callable[[], ExternalRecord],
        placeholder: str,
        blocker: str | None = None,
    ) -> tuple[str | None, ExternalRecord | None]:
        """Verify a recorded bead, or create one.

        Returns:
            (bead id, verified record). The record is None when the bead was
            created (or planned); the id is None on failure.

        """
        action = CREATED
        if recorded:
            try:
                record = self.client.show(recorded)
            except RecordNotFoundError:
                logger.warning("Bead %s for %s no longer exists; recreating", recorded, target)
                action = RECREATED
            except BeadsCommandError as e:
                self._fail(kind, target, f"cannot verify bead {recorded}: {e}")
                return None, None
            else:
                self._ok(kind, target, VERIFIED)
                return recorded, record

        if blocker is not None:
            self._fail(kind, target, blocker)
            return None, None
        if self.dry_run:
            self._ok(kind, target, action)
            return placeholder, None

        try:
            created = create()
        except BeadsCommandError as e:
            self._fail(kind, target, f"cannot create bead: {e}")
            return None, None
        self._ok(kind, target, action)
        return created.id, None

    def _ensure_root(self, document: Document) -> str | None:
        title = document.title or DEFAULT_ROOT_TITLE
        blocker = None
        if not has_root_slot(self.content):
            blocker = "no Plan Metadata table or Beads Root line for the root id; not creating"
        root_id, _ = self._ensure(
            "root",
            "root",
            document.root_external_id,
            lambda: self.client.create(
                title,
                description=f"Specks: {self.source}",
                kind=self.config.root_issue_type,
            ),
            DRY_RUN_ROOT_ID,
            blocker,
        )
        self.result.root_id = root_id
        return root_id

    def _declared_deps(self, node: _Node, document: Document) -> list[str]:
        if node.step.depends_on or node.parent_anchor is None:
            return list(node.step.depends_on)
        parent = document.find_step(node.parent_anchor)
        return list(parent.depends_on) if parent is not None else []

    def _description(self, node: _Node, document: Document) -> str:
        step = node.step
        lines = [f"Specks: {self.source}#{step.anchor}"]
        if step.commit_message:
            lines.append(f"Commit: {step.commit_message}")
        deps = self._declared_deps(node, document)
        if deps:
            lines.append("Depends on: " + ", ".join(f"#{d}" for d in deps))
        return "\n".join(lines)

    def _ensure_step(self, node: _Node, document: Document, root_id: str | None) -> None:
        step = node.step
        if node.parent_anchor is None:
            parent_id = root_id
            blocker = None if root_id else "root bead unavailable; not creating step bead"
        else:
            parent_id = self.ids.get(node.parent_anchor)
            blocker = None if parent_id else "parent step bead unavailable; not creating"

        bead_id, record = self._ensure(
            node.kind,
            step.anchor,
            step.external_id,
            lambda: self.client.create(
                f"Step {step.number}: {step.title}",
                description=self._description(node, document),
                parent=parent_id,
            ),
            f"{DRY_RUN_PREFIX}{step.anchor}",
            blocker,
        )
        if bead_id is None:
            return
        self.ids[step.anchor] = bead_id
        self.actual[step.anchor] = list(record.dependencies) if record is not None else []

    def _nodes(self, document: Document) -> list[_Node]:
        with_substeps = self.config.substeps == "children"
        nodes: list[_Node] = []
        seen: set[str] = set()
        for step in document.all_steps():
            self.all_anchors.add(step.anchor)
            if isinstance(step, Substep):
                if not with_substeps:
                    self.folded[step.anchor] = step.parent_anchor
                    continue
                node = _Node(step, "substep", step.parent_anchor)
            else:
                node = _Node(step, "step")
            if step.anchor in seen:
                self._fail(node.kind, step.anchor, "duplicate anchor; only the first is tracked")
                continue
            seen.add(step.anchor)
            nodes.append(node)
        return nodes

    # -------------------------------------------------------------------------
    # Pass 2: edges
    # -------------------------------------------------------------------------

    def _resolve_dep(self, dep: str) -> tuple[str | None, str | None]:
        """Map a dependency anchor to (bead id, error)."""
        if dep in self.ids:
            return self.ids[dep], None
        if dep in self.folded and self.folded[dep] in self.ids:
            return self.ids[self.folded[dep]], None
        if dep not in self.all_anchors:
            return None, f"unknown dependency '#{dep}'"
        return None, f"bead for '#{dep}' unavailable"

    def _reconcile_edges(self, node: _Node, document: Document) -> None:
        anchor = node.step.anchor
        deps = self._declared_deps(node, document)
        from_id = self.ids.get(anchor)
        if from_id is None:
            for dep in deps:
                self._fail("edge", f"{anchor} -> {dep}", f"bead for '#{anchor}' unavailable")
            return

        desired: list[str] = []
        for dep in deps:
            dep_id, error = self._resolve_dep(dep)
            if dep_id is None:
                self._fail("edge", f"{anchor} -> {dep}", error or "unresolved")
                continue
            if dep_id == from_id or dep_id in desired:
                continue
            desired.append(dep_id)
            if dep_id in self.actual[anchor]:
                continue
            if self.dry_run:
                self._ok("edge", f"{anchor} -> {dep}", PLANNED)
                continue
            try:
                self.client.dep_add(from_id, dep_id)
            except BeadsCommandError as e:
                self._fail("edge", f"{anchor} -> {dep}", f"cannot add {from_id} -> {dep_id}: {e}")
            else:
                self._ok("edge", f"{anchor} -> {dep}", ADDED)

        if not self.prune:
            return
        for dep_id in self.actual[anchor]:
            if dep_id in desired:
                continue
            if self.dry_run:
                self._ok("edge", f"{anchor} -x {dep_id}", PLANNED)
                continue
            try:
                self.client.dep_remove(from_id, dep_id)
            except BeadsCommandError as e:
                self._fail(
                    "edge", f"{anchor} -> {dep_id}", f"cannot remove {from_id} -> {dep_id}: {e}"
                )
            else:
                self._ok("edge", f"{anchor} -> {dep_id}", REMOVED)

    # -------------------------------------------------------------------------
    # Write-back
    # -------------------------------------------------------------------------

    def _write(self, target: str, apply: Callable[[str], str]) -> None:
        if self.dry_run:
            self._ok("write", target, PLANNED)
            return
        try:
            self.content = apply(self.content)
        except WriteBackError as e:
            self._fail("write", target, str(e))
        else:
            self._ok("write", target, WRITTEN)

    def _write_back(self, document: Document, nodes: list[_Node]) -> None:
        root_id = self.result.root_id
        if root_id and root_id != document.root_external_id:
            self._write("root", lambda text: write_root_external_id(text, root_id))
        for node in nodes:
            anchor = node.step.anchor
            bead_id = self.ids.get(anchor)
            if bead_id and bead_id != node.step.external_id:
                self._write(
                    anchor,
                    lambda text, a=anchor, b=bead_id: write_step_external_id(text, a, b),
                )

    def run(self) -> ReconcileResult:
        document = parse_speck(self.content)
        root_id = self._ensure_root(document)
        nodes = self._nodes(document)
        for node in nodes:
            self._ensure_step(node, document, root_id)
        for node in nodes:
            self._reconcile_edges(node, document)
        self._write_back(document, nodes)

        self.result.ids = dict(self.ids)
        self.result.content = self.content
        self.result.changed = self.content != self.original
        return self.result


def _client_for(backend: BeadsBackend | BeadsClient) -> BeadsClient:
    return backend if isinstance(backend, BeadsClient) else BeadsClient(backend)


def _beads_config(config: BeadsConfig | None) -> BeadsConfig:
    config = config or get_config().beads
    if not config.enabled:
        raise ConfigError("Beads integration is disabled (beads.enabled: false)")
    return config


def reconcile(
    content: str,
    backend: BeadsBackend | BeadsClient,
    *,
    source: str = "",
    config: BeadsConfig | None = None,
    prune_deps: bool | None = None,
    dry_run: bool = False,
) -> ReconcileResult:
    """Reconcile document text against the tracker.

    Args:
        content: Whole document text.
        backend: Tracker backend (or an existing client).
        source: Document name used in bead descriptions.
        config: Beads settings (default: loaded configuration).
        prune_deps: Remove undeclared tracker edges. None uses
            ``config.prune_deps``.
        dry_run: Only check existence; report planned creations, edges and
            writes without performing them.

    Returns:
        ReconcileResult with the new text and per-item results.

    Raises:
        BeadsUnavailableError: If the tracker cannot be used.
        ConfigError: If beads integration is disabled.
        DocumentReadError: If content is not text.

    """
    config = _beads_config(config)
    prune = config.prune_deps if prune_deps is None else prune_deps
    reconciler = _Reconciler(
        content,
        _client_for(backend),
        source=source,
        config=config,
        prune=prune,
        dry_run=dry_run,
    )
    result = reconciler.run()
    logger.info(
        "Reconciled %s: %d created, %d recreated, %d verified, %d edges added, "
        "%d edges removed, %d failed",
        source or "document",
        result.created,
        result.recreated,
        result.verified,
        result.edges_added,
        result.edges_removed,
        len(result.failures),
    )
    return result


def reconcile_file(
    path: Path,
    backend: BeadsBackend | BeadsClient,
    *,
    source: str | None = None,
    config: BeadsConfig | None = None,
    prune_deps: bool | None = None,
    dry_run: bool = False,
) -> ReconcileResult:
    """Reconcile a document file and rewrite it atomically if it changed.

    The file is read whole and written whole, keeping a leading BOM; in
    dry-run mode it is never written. See reconcile() for the other arguments.
    """
    path = Path(path)
    content, encoding = read_document(path)
    result = reconcile(
        content,
        backend,
        source=source or path.name,
        config=config,
        prune_deps=prune_deps,
        dry_run=dry_run,
    )
    if result.changed and not dry_run:
        atomic_write(path, result.content, encoding)
        logger.info("Wrote bead ids to %s", path)
    return result


@dataclass
class PullResult:
    """Outcome of a checkbox pull.

    Attributes:
        content: Document text after the pull.
        changed: True if any checkbox was checked.
        records: Records that were read, keyed by bead id.

    """

    content: str
    changed: bool = False
    records: dict[str, ExternalRecord] = field(default_factory=dict)


def pull_file(
    path: Path,
    backend: BeadsBackend | BeadsClient,
    *,
    config: BeadsConfig | None = None,
    dry_run: bool = False,
) -> PullResult:
    """Check checkboxes of steps whose bead is closed.

    ``beads.pull_checkbox_mode`` selects checkpoint items only
    ("checkpoints") or every item ("all").
    """
    config = _beads_config(config)
    path = Path(path)
    content, encoding = read_document(path)
    document = parse_speck(content)
    records = load_records(_client_for(backend), document)
    kind = ItemKind.CHECKPOINT if config.pull_checkbox_mode == "checkpoints" else None
    new_content = pull_checkboxes(content, document, records, kind=kind)
    changed = new_content != content
    if changed and not dry_run:
        atomic_write(path, new_content, encoding)
        logger.info("Pulled checkbox state into %s", path)
    return PullResult(content=new_content, changed=changed, records=records)
