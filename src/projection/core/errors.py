"""
Error taxonomy for the record store and thumbnail lifecycle.

Every error carries a short ``code`` plus a ``details`` mapping (the project id,
the attempted operation, paths) so a presentation layer can render a specific
message without parsing strings.
"""

from __future__ import annotations

from typing import Any


class ProjectionError(Exception):
    """Base class for all errors raised by projection."""

    code = "PROJECTION_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def to_user_message(self) -> str:
        """Format the error with its details for console output."""
        lines = [f"Error: {self.message}"]
        if self.details:
            lines.append("")
            lines.append("Details:")
            for key, value in self.details.items():
                lines.append(f"  {key}: {value}")
        return "\n".join(lines)


class ParseError(ProjectionError):
    """Backing file is unreadable or not a valid projects document."""

    code = "PARSE_ERROR"


class RecordError(ProjectionError):
    """An operation targeting a single project record failed."""

    def __init__(self, message: str, project_id: str | None = None, operation: str | None = None, **details: Any):
        super().__init__(message, project_id=project_id, operation=operation, **details)
        self.project_id = project_id
        self.operation = operation


class NotFoundError(RecordError):
    """No record with the requested id exists."""

    code = "NOT_FOUND"


class DuplicateIdError(RecordError):
    """A record with the requested id already exists."""

    code = "DUPLICATE_ID"


class NotInitializedError(ProjectionError):
    """A mutator was called before the document was read."""

    code = "NOT_INITIALIZED"


class InvalidRecordError(RecordError):
    """Record data violates a shape or identity invariant."""

    code = "VALIDATION_ERROR"


class SharedRecordError(RecordError):
    """The record is a YAML anchor or alias shared with another node."""

    code = "SHARED_RECORD"


class AssetError(ProjectionError):
    """Base class for thumbnail validation errors."""

    code = "ASSET_ERROR"


class UnsupportedTypeError(AssetError):
    """Upload declares a MIME type that is not an accepted image type."""

    code = "UNSUPPORTED_TYPE"


class TooLargeError(AssetError):
    """Upload exceeds the maximum thumbnail size."""

    code = "TOO_LARGE"


class InvalidAssetRefError(AssetError):
    """An ``asset://`` reference could not be parsed."""

    code = "INVALID_ASSET_REF"
