"""Exception hierarchy for specks.

All specks exceptions inherit from SpecksError. Errors raised while talking
to the beads tracker fall in two groups that callers must treat differently:

- BeadsCommandError and its subclasses describe a single failed operation.
  The reconciler records them per item and carries on.
- BeadsUnavailableError and its subclasses mean the tracker itself cannot be
  used (not installed, not initialized). They abort the whole run and are
  never retried internally.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification.

    - RECOVERABLE: one operation failed, the rest of the run may continue
    - FATAL_UNAVAILABLE: the external system cannot be used at all
    - FATAL_INVALID: invalid input or configuration
    """

    RECOVERABLE = "recoverable"
    FATAL_UNAVAILABLE = "fatal_unavailable"
    FATAL_INVALID = "fatal_invalid"


class SpecksError(Exception):
    """Base exception for all specks errors."""

    category: ErrorCategory = ErrorCategory.FATAL_INVALID

    @property
    def is_fatal(self) -> bool:
        """Return True if this error must stop the current run."""
        return self.category is not ErrorCategory.RECOVERABLE


class ConfigError(SpecksError):
    """Configuration file is malformed or fails schema validation."""


class DocumentReadError(SpecksError):
    """Document input is not readable text.

    Attributes:
        path: Source path, if the input came from a file.

    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


# =============================================================================
# Beads errors
# =============================================================================


class BeadsError(SpecksError):
    """Base exception for beads tracker interaction."""


class BeadsCommandError(BeadsError):
    """A single tracker operation failed.

    Attributes:
        operation: Operation name (e.g., "show", "dep add").
        target: Record id or edge the operation was applied to.

    """

    category = ErrorCategory.RECOVERABLE

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        target: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.target = target


class RecordNotFoundError(BeadsCommandError):
    """The requested record id does not resolve in the tracker."""


class MalformedResponseError(BeadsCommandError):
    """Tracker output is not a usable record.

    Raised for invalid JSON, arrays whose length is not exactly one, and
    objects missing required fields.

    Attributes:
        raw: The offending raw response (truncated for display).

    """

    def __init__(
        self,
        message: str,
        raw: object = None,
        operation: str | None = None,
        target: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation, target=target)
        self.raw = raw


class BeadsUnavailableError(BeadsError):
    """The tracker cannot be used; the whole run stops."""

    category = ErrorCategory.FATAL_UNAVAILABLE


class BeadsNotInstalledError(BeadsUnavailableError):
    """The beads CLI is not installed or not on PATH."""


class BeadsNotInitializedError(BeadsUnavailableError):
    """The project has no beads database (run ``bd init``)."""


class WriteBackError(SpecksError):
    """An id or checkbox could not be written back into the document.

    Attributes:
        target: Anchor (or "root") the write-back was for.

    """

    category = ErrorCategory.RECOVERABLE

    def __init__(self, message: str, target: str | None = None) -> None:
        super().__init__(message)
        self.target = target
