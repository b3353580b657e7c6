"""Tests for DirectoryLookup and the schema-checked DirectoryRecord."""

from __future__ import annotations

import pytest

from src.directory.lookup import DirectoryLookup
from src.errors import (
    DirectoryLookupError,
    EmptyValueError,
    MissingColumnError,
    NotFoundError,
)
from src.google_api.client import GoogleApiError
from src.models import StageStatus
from tests.conftest import FakeDirectorySource, make_record, make_sheet


class TestDirectoryRecord:
    def test_require_returns_value(self) -> None:
        record = make_record()
        assert record.require("enrollmentNumber") == "EN100"

    def test_require_missing_column_is_schema_error(self) -> None:
        record = make_record()
        with pytest.raises(MissingColumnError) as exc_info:
            record.require("studentId")
        assert exc_info.value.column == "studentId"
        assert isinstance(exc_info.value, DirectoryLookupError)

    def test_require_blank_value_is_empty_error(self) -> None:
        record = make_record(values={"Name": "Jane", "PhoneNumber": "1", "enrollmentNumber": "  "})
        with pytest.raises(EmptyValueError) as exc_info:
            record.require("enrollmentNumber")
        assert exc_info.value.row_number == 2

    def test_get_returns_none_for_unknown_or_empty(self) -> None:
        record = make_record(values={"Name": "", "PhoneNumber": "1", "enrollmentNumber": "E"})
        assert record.get("Name") is None
        assert record.get("Unknown") is None
        assert record.get("enrollmentNumber") == "E"

    def test_frozen(self) -> None:
        record = make_record()
        with pytest.raises(Exception):
            record.row_number = 5  # type: ignore[misc]


class TestFind:
    @pytest.mark.asyncio
    async def test_matches_formatting_variants(self) -> None:
        sheet = make_sheet([
            {"Name": "Jane", "PhoneNumber": "+1 (234) 567-8901", "enrollmentNumber": "EN100"},
        ])
        lookup = DirectoryLookup(FakeDirectorySource(sheet))

        result = await lookup.find("12345678901")

        assert result.status is StageStatus.FOUND
        assert result.value is not None
        assert result.value.values["enrollmentNumber"] == "EN100"
        assert result.value.row_number == 2

    @pytest.mark.asyncio
    async def test_first_match_in_sheet_order_wins(self) -> None:
        sheet = make_sheet([
            {"Name": "Other", "PhoneNumber": "999 999 9999", "enrollmentNumber": "EN000"},
            {"Name": "First", "PhoneNumber": "12345678901", "enrollmentNumber": "EN1"},
            {"Name": "Second", "PhoneNumber": "+1 234 567 8901", "enrollmentNumber": "EN2"},
        ])
        lookup = DirectoryLookup(FakeDirectorySource(sheet))

        result = await lookup.find("12345678901")

        assert result.value is not None
        assert result.value.values["Name"] == "First"
        assert result.value.row_number == 3

    @pytest.mark.asyncio
    async def test_requires_exact_match_after_normalization(self) -> None:
        sheet = make_sheet([
            {"Name": "Jane", "PhoneNumber": "2345678901", "enrollmentNumber": "EN100"},
        ])
        lookup = DirectoryLookup(FakeDirectorySource(sheet))

        result = await lookup.find("12345678901")

        assert result.status is StageStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_empty_sheet_is_not_found(self) -> None:
        lookup = DirectoryLookup(FakeDirectorySource(make_sheet([])))
        result = await lookup.find("12345678901")
        assert result.status is StageStatus.NOT_FOUND
        assert isinstance(result.error, NotFoundError)
        assert result.error.context == {"phone": "12345678901"}

    @pytest.mark.asyncio
    async def test_unreachable_directory_fails(self) -> None:
        source = FakeDirectorySource(error=GoogleApiError("HTTP 503", status_code=503))
        lookup = DirectoryLookup(source)

        result = await lookup.find("12345678901")

        assert result.status is StageStatus.FAILED
        assert isinstance(result.error, DirectoryLookupError)

    @pytest.mark.asyncio
    async def test_missing_phone_column_is_schema_failure(self) -> None:
        sheet = make_sheet(
            [{"Name": "Jane", "Phone": "12345678901", "enrollmentNumber": "EN"}],
            columns=("Name", "Phone", "enrollmentNumber"),
        )
        lookup = DirectoryLookup(FakeDirectorySource(sheet))

        result = await lookup.find("12345678901")

        assert result.status is StageStatus.FAILED
        assert isinstance(result.error, MissingColumnError)
        assert result.error.column == "PhoneNumber"

    @pytest.mark.asyncio
    async def test_missing_key_column_still_matches(self) -> None:
        sheet = make_sheet(
            [{"Name": "Jane", "PhoneNumber": "12345678901"}],
            columns=("Name", "PhoneNumber"),
        )
        lookup = DirectoryLookup(FakeDirectorySource(sheet))

        result = await lookup.find("12345678901")

        assert result.status is StageStatus.FOUND
        assert result.value is not None
        assert lookup.extract_secondary_key(result.value) is None

    @pytest.mark.asyncio
    async def test_custom_columns(self) -> None:
        sheet = make_sheet(
            [{"mobile": "12345678901", "roll": "R7"}], columns=("mobile", "roll"),
        )
        lookup = DirectoryLookup(
            FakeDirectorySource(sheet), phone_column="mobile", key_column="roll",
        )

        result = await lookup.find("12345678901")

        assert result.value is not None
        assert lookup.extract_secondary_key(result.value) == "R7"

    @pytest.mark.asyncio
    async def test_reads_directory_fresh_each_time(self) -> None:
        source = FakeDirectorySource(make_sheet([]))
        lookup = DirectoryLookup(source)
        await lookup.find("12345678901")
        await lookup.find("12345678901")
        assert source.calls == 2


class TestExtractSecondaryKey:
    def test_returns_key(self) -> None:
        lookup = DirectoryLookup(FakeDirectorySource())
        assert lookup.extract_secondary_key(make_record()) == "EN100"

    def test_empty_value_returns_none(self) -> None:
        lookup = DirectoryLookup(FakeDirectorySource())
        record = make_record(values={"Name": "Jane", "PhoneNumber": "1", "enrollmentNumber": ""})
        assert lookup.extract_secondary_key(record) is None

    def test_absent_column_returns_none(self) -> None:
        lookup = DirectoryLookup(FakeDirectorySource())
        record = make_record(columns=("Name", "PhoneNumber"), values={"Name": "J", "PhoneNumber": "1"})
        assert lookup.extract_secondary_key(record) is None
