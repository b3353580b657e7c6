"""Directory lookup: phone number to directory record.

The directory is read fresh on every lookup; nothing is cached between
invocations. Rows are matched by comparing the digit-normalized phone
column against the already normalized request phone.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from src.directory.phone import normalize_phone
from src.errors import (
    DirectoryLookupError,
    EmptyValueError,
    MissingColumnError,
    NotFoundError,
)
from src.google_api.client import GoogleApiError
from src.models import StageResult

logger = logging.getLogger(__name__)

DEFAULT_PHONE_COLUMN = "PhoneNumber"
DEFAULT_KEY_COLUMN = "enrollmentNumber"


# --- Collaborator interfaces ---


class Row(Protocol):
    row_number: int

    def get(self, column: str) -> str | None: ...


class Sheet(Protocol):
    title: str
    columns: tuple[str, ...]

    def get_rows(self) -> Sequence[Row]: ...


class DirectorySource(Protocol):
    async def load_first_sheet(self) -> Sheet: ...


# --- Records ---


class DirectoryRecord(BaseModel):
    """A matched directory row behind a schema-checked accessor."""

    model_config = ConfigDict(frozen=True)

    row_number: int
    columns: tuple[str, ...]
    values: dict[str, str]

    def get(self, column: str) -> str | None:
        if column not in self.columns:
            return None
        return self.values.get(column) or None

    def require(self, column: str) -> str:
        """Return a non-empty value.

        Raises MissingColumnError when the sheet has no such column and
        EmptyValueError when the column exists but this row leaves it blank.
        """
        if column not in self.columns:
            raise MissingColumnError(column, row_number=self.row_number)
        value = (self.values.get(column) or "").strip()
        if not value:
            raise EmptyValueError(column, self.row_number)
        return value


class DirectoryLookup:
    """Resolves a normalized phone number to a DirectoryRecord."""

    def __init__(
        self,
        source: DirectorySource,
        phone_column: str = DEFAULT_PHONE_COLUMN,
        key_column: str = DEFAULT_KEY_COLUMN,
    ) -> None:
        self._source = source
        self.phone_column = phone_column
        self.key_column = key_column

    async def find(self, phone: str) -> StageResult[DirectoryRecord]:
        """Return the first row, in sheet order, whose phone column matches."""
        try:
            sheet = await self._source.load_first_sheet()
        except (GoogleApiError, DirectoryLookupError) as exc:
            logger.error("Directory unavailable while looking up %s: %s", phone, exc)
            return StageResult.failed(
                DirectoryLookupError(f"Directory unavailable: {exc}", phone=phone),
            )

        columns = tuple(sheet.columns)
        # A missing key column is left to extract_secondary_key.
        if self.phone_column not in columns:
            logger.error(
                "Directory sheet '%s' has no '%s' column (columns: %s)",
                sheet.title, self.phone_column, list(columns),
            )
            return StageResult.failed(
                MissingColumnError(self.phone_column, sheet=sheet.title),
            )

        logger.info("Searching for phone number in sheet: %s", phone)
        for row in sheet.get_rows():
            if normalize_phone(row.get(self.phone_column) or "") != phone:
                continue
            logger.info("Phone number found in sheet at row %d", row.row_number)
            values = {c: row.get(c) or "" for c in columns if c}
            return StageResult.found(DirectoryRecord(
                row_number=row.row_number, columns=columns, values=values,
            ))

        logger.info("Phone number not found in sheet")
        return StageResult.not_found(NotFoundError("phone not registered", phone=phone))

    def extract_secondary_key(self, record: DirectoryRecord) -> str | None:
        """Read the enrollment identifier; None when it is empty or the column is absent."""
        try:
            key = record.require(self.key_column)
        except EmptyValueError:
            logger.warning(
                "Enrollment number not found in the matched row %d", record.row_number,
            )
            return None
        except MissingColumnError:
            logger.warning(
                "Matched record has no '%s' column", self.key_column,
            )
            return None
        logger.info("Found enrollment number: %s", key)
        return key
