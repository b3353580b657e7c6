"""Google Sheets adapter: the spreadsheet-backed directory source."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from src.google_api.client import AuthProvider, GoogleApiError, get_json

logger = logging.getLogger(__name__)

_SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"


@dataclass(frozen=True)
class SheetRow:
    """One data row keyed by header name. Row numbers follow the sheet (header is 1)."""

    row_number: int
    values: dict[str, str]

    def get(self, column: str) -> str | None:
        return self.values.get(column)


@dataclass(frozen=True)
class Sheet:
    title: str
    columns: tuple[str, ...]
    rows: tuple[SheetRow, ...]

    def get_rows(self) -> list[SheetRow]:
        return list(self.rows)


def build_sheet(title: str, values: list[list[Any]]) -> Sheet:
    """Turn a raw ``values`` grid into a Sheet; the first row is the header."""
    if not values:
        return Sheet(title=title, columns=(), rows=())

    columns = tuple(str(cell).strip() for cell in values[0])
    rows: list[SheetRow] = []
    for offset, cells in enumerate(values[1:]):
        mapped: dict[str, str] = {}
        for index, column in enumerate(columns):
            if not column or column in mapped:
                continue
            # The API omits trailing empty cells.
            cell = cells[index] if index < len(cells) else ""
            mapped[column] = str(cell).strip()
        rows.append(SheetRow(row_number=offset + 2, values=mapped))
    return Sheet(title=title, columns=columns, rows=tuple(rows))


def _a1_range(title: str) -> str:
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


class GoogleSheetsSource:
    """Reads the first sheet of one spreadsheet through the Sheets v4 REST API."""

    def __init__(
        self,
        spreadsheet_id: str,
        auth: AuthProvider,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._auth = auth
        self._transport = transport

    async def load_first_sheet(self) -> Sheet:
        base = f"{_SHEETS_API_BASE}/{self._spreadsheet_id}"
        meta = await get_json(
            base,
            auth=self._auth,
            params={"fields": "sheets.properties"},
            transport=self._transport,
        )
        sheets = meta.get("sheets") or []
        if not sheets:
            raise GoogleApiError("No sheet found in the spreadsheet")
        title = str(sheets[0].get("properties", {}).get("title", ""))
        if not title:
            raise GoogleApiError("First sheet has no title")

        data = await get_json(
            f"{base}/values/{quote(_a1_range(title), safe='')}",
            auth=self._auth,
            params={"majorDimension": "ROWS"},
            transport=self._transport,
        )
        sheet = build_sheet(title, data.get("values") or [])
        logger.debug(
            "Loaded sheet '%s' with %d rows and columns %s",
            title, len(sheet.rows), list(sheet.columns),
        )
        return sheet
