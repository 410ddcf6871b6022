"""Pytest configuration and fixtures for specks tests.

Fixture Organization:
- reset_config_singleton: Auto-reset of the config singleton (autouse=True)
- sample_speck: A complete, valid speck document
- write_speck: Factory fixture writing a document to tmp_path
"""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from specks.core.config import ENV_BD_PATH, _reset_config

SAMPLE_SPECK = """\
## Phase 1.0: Widget pipeline {#phase-1}

### Plan Metadata {#plan-metadata}

| Field | Value |
|------|-------|
| Owner | Jane |
| Status | active |
| Target branch | main |
| Tracking issue/PR | N/A |
| Last updated | 2026-02-04 |

### Phase Overview {#phase-overview}

Build the widget pipeline.

### 1.0.0 Design Decisions {#design-decisions}

#### [D01] Anchors are identity (DECIDED) {#d01-anchors}

Titles change, anchors do not.

### 1.0.5 Execution Steps {#execution-steps}

#### Step 0: Setup {#step-0}

**Commit:** `feat: setup`

**References:** [D01] Anchors are identity

**Tasks:**
- [x] Create project
- [ ] Add config

**Tests:**
- [x] Unit test

**Checkpoint:**
- [ ] Build passes

#### Step 1: Parser {#step-1}

**Depends on:** #step-0

**Commit:** `feat: parser`

**References:** (#d01-anchors)

**Tasks:**
- [ ] Write parser

##### Step 1.1: Tokens {#step-1-1}

**Tasks:**
- [ ] Scan lines

##### Step 1.2: Tree {#step-1-2}

**Depends on:** #step-1-1

**Checkpoint:**
- [ ] Tree builds

#### Step 2: Wiring {#step-2}

**Depends on:** #step-0, #step-1

**References:** (#execution-steps)

**Checkpoint:**
- [ ] End to end

### 1.0.6 Deliverables and Checkpoints {#deliverables}

- [ ] Not part of any step
"""


@pytest.fixture(autouse=True)
def reset_config_singleton(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Reset config singleton before and after each test."""
    monkeypatch.delenv(ENV_BD_PATH, raising=False)
    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def sample_speck() -> str:
    """Complete, valid speck text (3 steps, 2 substeps, 8 checkboxes)."""
    return SAMPLE_SPECK


@pytest.fixture
def write_speck(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory fixture to write a speck file.

    Usage:
        path = write_speck(sample_speck, "specks-1.md")
    """

    def _write(content: str, name: str = "specks-1.md") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


def line_of(text: str, needle: str) -> int:
    """Return the 1-based line number of the first line containing needle."""
    for number, line in enumerate(text.splitlines(), 1):
        if needle in line:
            return number
    raise AssertionError(f"{needle!r} not found")


@pytest.fixture
def find_line() -> Callable[[str, str], int]:
    """Line lookup helper: find_line(text, needle) -> 1-based line."""
    return line_of
