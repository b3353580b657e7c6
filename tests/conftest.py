"""Shared test fixtures for the document delivery service."""

from __future__ import annotations

import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from src.directory.lookup import DirectoryRecord
from src.documents.fetcher import FetchedDocument
from src.google_api.drive import DriveFile
from src.google_api.sheets import Sheet, build_sheet
from src.models import DocumentRef

PDF_BYTES = b"%PDF-1.4\n% test document\n%%EOF\n"
DEFAULT_COLUMNS = ("Name", "PhoneNumber", "enrollmentNumber")


class StaticAuth:
    """Auth provider returning a fixed bearer header."""

    async def authorization_headers(self) -> dict[str, str]:
        return {"Authorization": "Bearer test-token"}


class FakeDirectorySource:
    """DirectorySource double serving one in-memory sheet."""

    def __init__(self, sheet: Sheet | None = None, error: Exception | None = None) -> None:
        self.sheet = sheet or make_sheet([])
        self.error = error
        self.calls = 0

    async def load_first_sheet(self) -> Sheet:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.sheet


class FakeDocumentStore:
    """DocumentStore double with canned files and links."""

    def __init__(
        self,
        files: Sequence[DriveFile] = (),
        link: str | None = "https://files.example.com/download?id=FILE1",
        error: Exception | None = None,
    ) -> None:
        self.files = list(files)
        self.link = link
        self.error = error
        self.list_calls: list[tuple[str, str, str]] = []
        self.link_calls: list[str] = []

    async def list_files(
        self, folder_id: str, name_contains: str, mime_type: str,
    ) -> list[DriveFile]:
        self.list_calls.append((folder_id, name_contains, mime_type))
        if self.error is not None:
            raise self.error
        return self.files

    async def get_download_link(self, file_id: str) -> str | None:
        self.link_calls.append(file_id)
        return self.link


@pytest.fixture
def static_auth() -> StaticAuth:
    return StaticAuth()


@pytest.fixture
def download_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path


# --- Factory functions for test data ---


def make_sheet(
    rows: Sequence[dict[str, str]],
    columns: Sequence[str] = DEFAULT_COLUMNS,
    title: str = "Sheet1",
) -> Sheet:
    """Build a Sheet the way the Sheets adapter does, from dict rows."""
    grid: list[list[Any]] = [list(columns)]
    grid.extend([row.get(column, "") for column in columns] for row in rows)
    return build_sheet(title, grid)


def make_record(**kwargs: Any) -> DirectoryRecord:
    """Factory for DirectoryRecord with sensible defaults."""
    defaults: dict[str, Any] = {
        "row_number": 2,
        "columns": DEFAULT_COLUMNS,
        "values": {
            "Name": "Jane",
            "PhoneNumber": "+1 202-555-0178",
            "enrollmentNumber": "EN100",
        },
    }
    defaults.update(kwargs)
    return DirectoryRecord(**defaults)


def make_document_ref(**kwargs: Any) -> DocumentRef:
    defaults: dict[str, Any] = {
        "id": "FILE1",
        "name": "EN100.pdf",
        "download_link": "https://files.example.com/download?id=FILE1",
    }
    defaults.update(kwargs)
    return DocumentRef(**defaults)


def make_fetched_document(
    base_dir: Path, file_name: str = "EN100.pdf", content: bytes = PDF_BYTES,
) -> FetchedDocument:
    """Write a document into its own scoped directory, like the fetcher does."""
    scope = Path(tempfile.mkdtemp(prefix="docrelay-", dir=base_dir))
    path = scope / file_name
    path.write_bytes(content)
    return FetchedDocument(path=path, file_name=file_name, size_bytes=len(content))
