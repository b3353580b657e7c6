"""Google Drive adapter: the cloud file store holding per-person documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from src.google_api.client import AuthProvider, get_json

logger = logging.getLogger(__name__)

_DRIVE_API_BASE = "https://www.googleapis.com/drive/v3/files"


@dataclass(frozen=True)
class DriveFile:
    id: str
    name: str


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_query(folder_id: str, name_contains: str, mime_type: str) -> str:
    """Drive ``q`` expression for non-trashed files of one type inside one folder."""
    return (
        f"'{_escape(folder_id)}' in parents"
        f" and name contains '{_escape(name_contains)}'"
        f" and mimeType='{_escape(mime_type)}'"
        " and trashed=false"
    )


class GoogleDriveStore:
    """Lists files and resolves download links through the Drive v3 REST API."""

    def __init__(
        self,
        auth: AuthProvider,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth = auth
        self._transport = transport

    async def list_files(
        self, folder_id: str, name_contains: str, mime_type: str,
    ) -> list[DriveFile]:
        data = await get_json(
            _DRIVE_API_BASE,
            auth=self._auth,
            params={
                "q": build_query(folder_id, name_contains, mime_type),
                "fields": "files(id, name)",
                "spaces": "drive",
                "supportsAllDrives": "true",
                "includeItemsFromAllDrives": "true",
            },
            transport=self._transport,
        )
        return [
            DriveFile(id=str(f["id"]), name=str(f.get("name", "")))
            for f in data.get("files") or []
            if f.get("id")
        ]

    async def get_download_link(self, file_id: str) -> str | None:
        data = await get_json(
            f"{_DRIVE_API_BASE}/{file_id}",
            auth=self._auth,
            params={"fields": "webContentLink", "supportsAllDrives": "true"},
            transport=self._transport,
        )
        link = data.get("webContentLink")
        if not link:
            return None
        return str(link).replace("&export=download", "")
