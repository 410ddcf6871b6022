"""Normalization of raw beads tracker responses.

``bd show --json`` returns a bare object from some versions and a
one-element array from others; field sets also vary (``issue_type`` vs.
``type``, dependency entries as objects or bare ids). normalize() folds all
of these into one ExternalRecord and rejects anything it cannot read
without guessing.

Public API:
    - normalize: One record from a show/create response
    - normalize_many: A list of records (ready/list responses)
    - normalize_dependency_ids: Blocking dependency ids from a dep list
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from specks.beads.models import ExternalRecord
from specks.core.exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

__all__ = [
    "RawResponse",
    "normalize",
    "normalize_many",
    "normalize_dependency_ids",
]

# JSON text as printed by the tracker, or already-decoded JSON
RawResponse = str | bytes | dict[str, Any] | list[Any] | None

# Dependency types that express hierarchy rather than ordering
NON_BLOCKING_DEPENDENCY_TYPES = frozenset({"parent-child"})

_MAX_RAW_DISPLAY = 200


class _RawDependency(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    depends_on_id: str | None = None
    dependency_type: str | None = None
    dep_type: str | None = Field(default=None, alias="type")

    @property
    def target(self) -> str | None:
        return self.id or self.depends_on_id

    @property
    def blocking(self) -> bool:
        kind = self.dependency_type or self.dep_type
        return kind not in NON_BLOCKING_DEPENDENCY_TYPES


class _RawRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)
    title: str | None = None
    status: str | None = None
    issue_type: str | None = None
    record_type: str | None = Field(default=None, alias="type")
    dependencies: list[_RawDependency | str] | None = None


def _truncate(raw: object) -> str:
    text = raw if isinstance(raw, str) else repr(raw)
    if len(text) > _MAX_RAW_DISPLAY:
        return text[:_MAX_RAW_DISPLAY] + "..."
    return text


def _decode(raw: RawResponse, operation: str | None, target: str | None) -> Any:
    """Decode JSON text/bytes; pass already-decoded values through."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedResponseError(
                f"Tracker response is not UTF-8: {e}",
                raw=_truncate(raw),
                operation=operation,
                target=target,
            ) from e
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(
                f"Tracker response is not valid JSON: {e}",
                raw=_truncate(raw),
                operation=operation,
                target=target,
            ) from e
    return raw


def _dependency_ids(entries: list[_RawDependency | str] | None) -> list[str]:
    ids: list[str] = []
    for entry in entries or []:
        if isinstance(entry, str):
            dep_id = entry
        elif entry.blocking:
            dep_id = entry.target or ""
        else:
            continue
        if dep_id and dep_id not in ids:
            ids.append(dep_id)
    return ids


def _record_from_object(
    data: Any, raw: RawResponse, operation: str | None, target: str | None
) -> ExternalRecord:
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(data).__name__}",
            raw=_truncate(raw),
            operation=operation,
            target=target,
        )
    try:
        parsed = _RawRecord.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Tracker record is missing required fields: {e.error_count()} error(s)",
            raw=_truncate(raw),
            operation=operation,
            target=target,
        ) from e

    status = (parsed.status or "").strip().lower()
    return ExternalRecord(
        id=parsed.id,
        title=parsed.title or "",
        status="closed" if status == "closed" else "open",
        kind=parsed.issue_type or parsed.record_type or "task",
        dependencies=_dependency_ids(parsed.dependencies),
    )


def normalize(
    raw: RawResponse,
    *,
    operation: str | None = None,
    target: str | None = None,
) -> ExternalRecord:
    """Normalize a single-record response.

    A bare object and a one-element array are treated identically.

    Args:
        raw: JSON text, bytes, or decoded JSON.
        operation: Operation name for error context.
        target: Requested id for error context.

    Returns:
        The normalized record.

    Raises:
        MalformedResponseError: If the response is not JSON, is an array
            whose length is not 1, or is not a record object.

    Examples:
        >>> normalize('[{"id": "bd-1", "status": "closed"}]').status
        'closed'

    """
    data = _decode(raw, operation, target)
    if isinstance(data, list):
        if len(data) != 1:
            raise MalformedResponseError(
                f"Expected exactly one record, got an array of {len(data)}",
                raw=_truncate(raw),
                operation=operation,
                target=target,
            )
        data = data[0]
    return _record_from_object(data, raw, operation, target)


def normalize_many(
    raw: RawResponse,
    *,
    operation: str | None = None,
    target: str | None = None,
) -> list[ExternalRecord]:
    """Normalize a list response; a bare object counts as one record.

    Raises:
        MalformedResponseError: If the response or any element is unusable.

    """
    data = _decode(raw, operation, target)
    if data is None:
        return []
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise MalformedResponseError(
            f"Expected a JSON array, got {type(data).__name__}",
            raw=_truncate(raw),
            operation=operation,
            target=target,
        )
    return [_record_from_object(item, raw, operation, target) for item in data]


def normalize_dependency_ids(
    raw: RawResponse,
    *,
    operation: str | None = "dep list",
    target: str | None = None,
) -> list[str]:
    """Extract blocking dependency ids from a dependency list response.

    Entries may be objects (``{"id": ..., "dependency_type": ...}``) or
    bare id strings. Parent/child entries are dropped.

    Raises:
        MalformedResponseError: If the response is not a JSON array.

    """
    data = _decode(raw, operation, target)
    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedResponseError(
            f"Expected a JSON array, got {type(data).__name__}",
            raw=_truncate(raw),
            operation=operation,
            target=target,
        )
    entries: list[_RawDependency | str] = []
    for item in data:
        if isinstance(item, str):
            entries.append(item)
        elif isinstance(item, dict):
            try:
                entries.append(_RawDependency.model_validate(item))
            except ValidationError as e:
                raise MalformedResponseError(
                    f"Invalid dependency entry: {e.error_count()} error(s)",
                    raw=_truncate(raw),
                    operation=operation,
                    target=target,
                ) from e
        else:
            raise MalformedResponseError(
                f"Unexpected dependency entry of type {type(item).__name__}",
                raw=_truncate(raw),
                operation=operation,
                target=target,
            )
    return _dependency_ids(entries)
