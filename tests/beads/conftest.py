"""Pytest fixtures for specks.beads tests.

Fixture Organization:
- fake_backend: In-memory BeadsBackend that records every call
- client: BeadsClient over fake_backend
- beads_config: BeadsConfig with defaults

FakeBeadsBackend behaves like ``bd ... --json``: show() returns a bare
object (or a one-element array with ``show_as_array = True``), child
records carry a parent-child dependency on their parent, and unknown ids
raise RecordNotFoundError. Failures can be injected per (operation, target).
"""

import json
from typing import Any

import pytest

from specks.beads.client import BeadsClient
from specks.core.config import BeadsConfig
from specks.core.exceptions import RecordNotFoundError

MUTATING_OPERATIONS = frozenset({"create", "dep_add", "dep_remove", "close"})


class FakeBeadsBackend:
    """In-memory beads tracker."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.unavailable: Exception | None = None
        self.show_as_array = False
        self._counter = 0

    # -- test helpers ---------------------------------------------------------

    def add(
        self,
        bead_id: str,
        title: str = "",
        *,
        status: str = "open",
        issue_type: str = "task",
        parent: str | None = None,
        blocked_by: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        dependencies: list[dict[str, str]] = []
        if parent is not None:
            dependencies.append({"id": parent, "dependency_type": "parent-child"})
        dependencies.extend({"id": dep, "dependency_type": "blocks"} for dep in blocked_by)
        record = {
            "id": bead_id,
            "title": title,
            "description": "",
            "status": status,
            "priority": 2,
            "issue_type": issue_type,
            "dependencies": dependencies,
        }
        self.records[bead_id] = record
        return record

    def delete(self, bead_id: str) -> None:
        del self.records[bead_id]

    def blocking(self, bead_id: str) -> list[str]:
        deps = self.records[bead_id]["dependencies"]
        return [d["id"] for d in deps if d["dependency_type"] == "blocks"]

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in MUTATING_OPERATIONS]

    def operations(self) -> set[str]:
        return {op for op, _ in self.calls}

    def _call(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        if self.unavailable is not None:
            raise self.unavailable
        failure = self.failures.get((operation, target))
        if failure is not None:
            raise failure

    def _require(self, bead_id: str, operation: str) -> dict[str, Any]:
        record = self.records.get(bead_id)
        if record is None:
            raise RecordNotFoundError(
                f"no issue found matching {bead_id!r}", operation=operation, target=bead_id
            )
        return record

    # -- BeadsBackend ---------------------------------------------------------

    def create(
        self,
        title: str,
        *,
        description: str | None = None,
        parent: str | None = None,
        kind: str | None = None,
    ) -> str:
        self._call("create", title)
        self._counter += 1
        record = self.add(
            f"bd-new{self._counter}", title, issue_type=kind or "task", parent=parent
        )
        record["description"] = description or ""
        return json.dumps(record)

    def show(self, bead_id: str) -> str:
        self._call("show", bead_id)
        record = self._require(bead_id, "show")
        return json.dumps([record] if self.show_as_array else record)

    def dep_add(self, from_id: str, to_id: str) -> str:
        self._call("dep_add", f"{from_id}->{to_id}")
        self._require(from_id, "dep add")["dependencies"].append(
            {"id": to_id, "dependency_type": "blocks"}
        )
        return json.dumps(
            {"status": "added", "issue_id": from_id, "depends_on_id": to_id, "type": "blocks"}
        )

    def dep_remove(self, from_id: str, to_id: str) -> str:
        self._call("dep_remove", f"{from_id}->{to_id}")
        record = self._require(from_id, "dep remove")
        record["dependencies"] = [d for d in record["dependencies"] if d["id"] != to_id]
        return json.dumps({"status": "removed", "issue_id": from_id, "depends_on_id": to_id})

    def dep_list(self, bead_id: str) -> str:
        self._call("dep_list", bead_id)
        record = self._require(bead_id, "dep list")
        return json.dumps(record["dependencies"])

    def ready(self, parent: str | None = None) -> str:
        self._call("ready", parent or "")
        result = []
        for record in self.records.values():
            if record["status"] == "closed":
                continue
            deps = record["dependencies"]
            if parent is not None and {"id": parent, "dependency_type": "parent-child"} not in deps:
                continue
            blockers = [d["id"] for d in deps if d["dependency_type"] == "blocks"]
            if all(self.records.get(b, {}).get("status") == "closed" for b in blockers):
                result.append(record)
        return json.dumps(result)

    def close(self, bead_id: str, reason: str | None = None) -> str:
        self._call("close", bead_id)
        record = self._require(bead_id, "close")
        record["status"] = "closed"
        return json.dumps(record)


@pytest.fixture
def fake_backend() -> FakeBeadsBackend:
    """Empty in-memory tracker."""
    return FakeBeadsBackend()


@pytest.fixture
def client(fake_backend: FakeBeadsBackend) -> BeadsClient:
    """BeadsClient over the fake tracker."""
    return BeadsClient(fake_backend)


@pytest.fixture
def beads_config() -> BeadsConfig:
    """Default beads settings."""
    return BeadsConfig()
