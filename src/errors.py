"""Error taxonomy for the verification-and-delivery pipeline.

Stage components never raise these across the orchestrator boundary; they
hand them back inside a ``StageResult`` so each terminal state is chosen by
inspecting the result. The ``code`` is the only part that may reach an
HTTP caller.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for every pipeline failure."""

    code = "pipeline_error"

    def __init__(self, message: str, **context: Any) -> None:
        self.context = context
        super().__init__(message)


class RequestValidationError(PipelineError):
    """Malformed or missing input. Never reaches an external system."""

    code = "validation_error"


class NotFoundError(PipelineError):
    """Phone absent from the directory, or no document for a key."""

    code = "not_found"


class MissingSecondaryKeyError(PipelineError):
    code = "missing_secondary_key"


class DirectoryLookupError(PipelineError):
    """The directory could not be reached or read."""

    code = "directory_lookup_error"


class MissingColumnError(DirectoryLookupError):
    """A column the pipeline depends on is absent from the sheet header."""

    code = "directory_schema_error"

    def __init__(self, column: str, **context: Any) -> None:
        self.column = column
        super().__init__(f"Column '{column}' is not present in the directory", **context)


class EmptyValueError(PipelineError):
    """The column exists but holds no value for this row."""

    code = "empty_value"

    def __init__(self, column: str, row_number: int, **context: Any) -> None:
        self.column = column
        self.row_number = row_number
        super().__init__(
            f"Column '{column}' is empty in row {row_number}", **context,
        )


class LocatorError(PipelineError):
    code = "locator_error"


class DownloadError(PipelineError):
    code = "download_error"


class DispatchError(PipelineError):
    code = "dispatch_error"
