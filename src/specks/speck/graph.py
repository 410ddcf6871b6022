"""Dependency graph helpers for speck steps.

The graph is an adjacency mapping keyed by anchor: each step points at the
steps it depends on. Cycle detection is an iterative three-color DFS, so
deep dependency chains cannot hit the recursion limit.

Public API:
    - build_graph: Adjacency mapping for a Document's steps and substeps
    - find_cycles: Distinct cycles, each rotated to its lowest-ordered node
    - format_cycle: Render a cycle as ``a → b → a``
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum

from specks.speck.models import Document

logger = logging.getLogger(__name__)

__all__ = [
    "build_graph",
    "find_cycles",
    "format_cycle",
]


class _Color(Enum):
    WHITE = 0  # unvisited
    GRAY = 1  # on the current DFS path
    BLACK = 2  # fully explored


def build_graph(document: Document) -> dict[str, list[str]]:
    """Build the dependency adjacency mapping for a document.

    Keys are step and substep anchors in document order. Dependencies on
    unknown anchors are dropped (the validator reports those separately).
    When an anchor is duplicated, the first step carrying it wins.

    Args:
        document: Parsed document.

    Returns:
        Mapping of anchor to dependency anchors, insertion-ordered.

    """
    graph: dict[str, list[str]] = {}
    for step in document.all_steps():
        graph.setdefault(step.anchor, list(step.depends_on))
    for anchor, deps in graph.items():
        graph[anchor] = [d for d in deps if d in graph]
    return graph


def _canonical(cycle: list[str], rank: Mapping[str, int]) -> tuple[str, ...]:
    start = min(range(len(cycle)), key=lambda i: rank[cycle[i]])
    return tuple(cycle[start:] + cycle[:start])


def find_cycles(
    graph: Mapping[str, Sequence[str]],
    order: Sequence[str] | None = None,
) -> list[list[str]]:
    """Find dependency cycles with a three-color DFS.

    Nodes are visited in ``order`` (default: the graph's key order), and
    each node's edges in declaration order, so output is deterministic. A
    back-edge into a GRAY node yields the cycle formed by the DFS path from
    that node. Each cycle is rotated to start at its lowest-ordered node and
    reported once.

    Args:
        graph: Adjacency mapping (node -> dependencies).
        order: Node ordering used for traversal and tie-breaks.

    Returns:
        Distinct cycles as node lists without the closing repeat. A
        self-dependency is reported as a one-node cycle.

    Examples:
        >>> find_cycles({"a": ["b"], "b": ["a"], "c": []})
        [['a', 'b']]

    """
    nodes = list(order) if order is not None else list(graph)
    rank = {node: i for i, node in enumerate(nodes)}
    color = dict.fromkeys(nodes, _Color.WHITE)
    seen: set[tuple[str, ...]] = set()
    cycles: list[list[str]] = []

    for start in nodes:
        if color[start] is not _Color.WHITE:
            continue
        color[start] = _Color.GRAY
        path = [start]
        stack = [iter(graph.get(start, ()))]

        while stack:
            for nxt in stack[-1]:
                state = color.get(nxt)
                if state is _Color.GRAY:
                    key = _canonical(path[path.index(nxt) :], rank)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(list(key))
                elif state is _Color.WHITE:
                    color[nxt] = _Color.GRAY
                    path.append(nxt)
                    stack.append(iter(graph.get(nxt, ())))
                    break
            else:
                color[path.pop()] = _Color.BLACK
                stack.pop()

    if cycles:
        logger.debug("Found %d dependency cycle(s)", len(cycles))
    return cycles


def format_cycle(cycle: Sequence[str]) -> str:
    """Render a cycle path, repeating the first node at the end.

    Examples:
        >>> format_cycle(["step-0", "step-2"])
        'step-0 → step-2 → step-0'

    """
    return " → ".join([*cycle, cycle[0]])
