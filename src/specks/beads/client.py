"""Beads tracker access.

BeadsBackend is the query/mutate interface specks consumes. How it reaches
the tracker (subprocess, HTTP, in-memory) is the backend's business; each
method returns the raw JSON the tracker produced and raises the beads
errors from specks.core.exceptions:

- RecordNotFoundError when an id does not resolve
- BeadsCommandError when one operation fails
- BeadsUnavailableError when the tracker cannot be used at all

BeadsClient wraps a backend and normalizes every response, so callers only
ever see ExternalRecord values.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from specks.beads.adapter import (
    RawResponse,
    normalize,
    normalize_dependency_ids,
    normalize_many,
)
from specks.beads.models import ExternalRecord
from specks.core.exceptions import RecordNotFoundError

logger = logging.getLogger(__name__)

__all__ = ["BeadsBackend", "BeadsClient"]


@runtime_checkable
class BeadsBackend(Protocol):
    """Raw tracker operations, one call per tracker command."""

    def create(
        self,
        title: str,
        *,
        description: str | None = None,
        parent: str | None = None,
        kind: str | None = None,
    ) -> RawResponse: ...

    def show(self, bead_id: str) -> RawResponse: ...

    def dep_add(self, from_id: str, to_id: str) -> RawResponse: ...

    def dep_remove(self, from_id: str, to_id: str) -> RawResponse: ...

    def dep_list(self, bead_id: str) -> RawResponse: ...

    def ready(self, parent: str | None = None) -> RawResponse: ...

    def close(self, bead_id: str, reason: str | None = None) -> RawResponse: ...


class BeadsClient:
    """Normalizing wrapper around a BeadsBackend.

    Example:
        >>> client = BeadsClient(backend)
        >>> record = client.show("bd-a1b2")
        >>> record.status
        'open'

    """

    def __init__(self, backend: BeadsBackend) -> None:
        self.backend = backend

    def show(self, bead_id: str) -> ExternalRecord:
        """Fetch one record.

        Raises:
            RecordNotFoundError: If the id does not resolve.
            MalformedResponseError: If the response is unusable.

        """
        raw = self.backend.show(bead_id)
        return normalize(raw, operation="show", target=bead_id)

    def exists(self, bead_id: str) -> bool:
        """Return True if the id resolves; other failures propagate."""
        try:
            self.show(bead_id)
        except RecordNotFoundError:
            return False
        return True

    def create(
        self,
        title: str,
        *,
        description: str | None = None,
        parent: str | None = None,
        kind: str | None = None,
    ) -> ExternalRecord:
        raw = self.backend.create(title, description=description, parent=parent, kind=kind)
        record = normalize(raw, operation="create", target=title)
        logger.info("Created bead %s: %s", record.id, title)
        return record

    def dep_add(self, from_id: str, to_id: str) -> None:
        """Make from_id blocked by to_id."""
        self.backend.dep_add(from_id, to_id)
        logger.info("Added dependency %s -> %s", from_id, to_id)

    def dep_remove(self, from_id: str, to_id: str) -> None:
        self.backend.dep_remove(from_id, to_id)
        logger.info("Removed dependency %s -> %s", from_id, to_id)

    def dep_list(self, bead_id: str) -> list[str]:
        """Return the ids blocking bead_id."""
        raw = self.backend.dep_list(bead_id)
        return normalize_dependency_ids(raw, operation="dep list", target=bead_id)

    def ready(self, parent: str | None = None) -> list[ExternalRecord]:
        """Return open records with no open blockers, optionally under parent."""
        raw = self.backend.ready(parent)
        return normalize_many(raw, operation="ready", target=parent)

    def close(self, bead_id: str, reason: str | None = None) -> None:
        self.backend.close(bead_id, reason)
        logger.info("Closed bead %s", bead_id)
