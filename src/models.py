"""Shared data models for the document delivery service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from src.errors import NotFoundError, PipelineError

T = TypeVar("T")

# --- Enums ---


class StageStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class PipelineStage(str, Enum):
    """States a single pipeline invocation moves through."""

    RECEIVED = "received"
    VALIDATED = "validated"
    DIRECTORY_CHECKED = "directory_checked"
    SECONDARY_KEY_RESOLVED = "secondary_key_resolved"
    DOCUMENT_LOCATED = "document_located"
    FETCHED = "fetched"
    DISPATCHED = "dispatched"
    COMPLETE = "complete"
    ERROR_DISPATCH = "error_dispatch"
    FATAL = "fatal"


# --- Stage results ---


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one fallible stage: a value, a NotFoundError, or a failure."""

    status: StageStatus
    value: T | None = None
    reason: str = ""
    error: PipelineError | None = None

    @classmethod
    def found(cls, value: T) -> StageResult[T]:
        return cls(status=StageStatus.FOUND, value=value)

    @classmethod
    def not_found(cls, error: NotFoundError) -> StageResult[T]:
        return cls(status=StageStatus.NOT_FOUND, error=error, reason=str(error))

    @classmethod
    def failed(cls, error: PipelineError) -> StageResult[T]:
        return cls(status=StageStatus.FAILED, error=error, reason=str(error))

    @property
    def is_found(self) -> bool:
        return self.status is StageStatus.FOUND


# --- Document models ---


class DocumentRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    download_link: str


# --- Delivery models ---


class DeliveryResult(BaseModel):
    """Outcome of a single messaging-gateway send."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    response: dict[str, Any] | None = None
    error: PipelineError | None = None

    @property
    def error_text(self) -> str:
        return str(self.error) if self.error else ""
