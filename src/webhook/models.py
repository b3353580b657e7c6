"""Data models for the document delivery webhook."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.directory.phone import is_valid_phone, normalize_phone
from src.errors import PipelineError, RequestValidationError
from src.models import StageResult

MISSING_FIELDS_MESSAGE = "Name and phone number are required"
INVALID_PHONE_MESSAGE = "Invalid phone number format"


def _as_text(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int)):
        return str(value)
    return ""


@dataclass(frozen=True)
class IncomingRequest:
    """Raw webhook payload fields, before validation."""

    name: str
    raw_phone: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> IncomingRequest:
        # phoneNumber wins over phone_number when both are sent.
        phone = payload.get("phoneNumber") or payload.get("phone_number")
        return cls(name=_as_text(payload.get("name")), raw_phone=_as_text(phone))


@dataclass(frozen=True)
class ValidatedRequest:
    name: str
    phone: str


def sanitize_name(name: str) -> str:
    return name.strip().replace("<", "").replace(">", "")


def validate_request(incoming: IncomingRequest) -> StageResult[ValidatedRequest]:
    """Received -> Validated. No external system is touched here."""
    name = sanitize_name(incoming.name)
    if not name or not incoming.raw_phone.strip():
        return StageResult.failed(RequestValidationError(MISSING_FIELDS_MESSAGE))
    phone = normalize_phone(incoming.raw_phone)
    if not is_valid_phone(phone):
        return StageResult.failed(
            RequestValidationError(INVALID_PHONE_MESSAGE, raw_phone=incoming.raw_phone),
        )
    return StageResult.found(ValidatedRequest(name=name, phone=phone))


@dataclass(frozen=True)
class PipelineOutcome:
    """Final HTTP-facing result of one pipeline invocation.

    ``cause`` records the error behind a non-200 outcome for logging and
    callers; it never reaches the response body.
    """

    status_code: int
    success: bool
    message: str
    data: dict[str, Any] | None = None
    error: str | None = None
    cause: PipelineError | None = field(default=None, compare=False)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        if self.error is not None:
            body["error"] = self.error
        return body
