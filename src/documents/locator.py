"""Document locator: enrollment identifier to a downloadable document."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from src.errors import LocatorError, NotFoundError
from src.google_api.client import GoogleApiError
from src.models import DocumentRef, StageResult

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/pdf"


class StoredFile(Protocol):
    id: str
    name: str


class DocumentStore(Protocol):
    async def list_files(
        self, folder_id: str, name_contains: str, mime_type: str,
    ) -> Sequence[StoredFile]: ...

    async def get_download_link(self, file_id: str) -> str | None: ...


class DocumentLocator:
    """Finds the first document in one folder whose name contains the key."""

    def __init__(
        self,
        store: DocumentStore,
        folder_id: str,
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> None:
        self._store = store
        self._folder_id = folder_id
        self._mime_type = mime_type

    async def locate(self, secondary_key: str) -> StageResult[DocumentRef]:
        logger.info(
            "Searching for document with enrollment number %s in folder %s",
            secondary_key, self._folder_id,
        )
        try:
            files = await self._store.list_files(
                self._folder_id, secondary_key, self._mime_type,
            )
            if not files:
                logger.warning("No document found for enrollment number: %s", secondary_key)
                return StageResult.not_found(NotFoundError(
                    "document not found", secondary_key=secondary_key,
                ))

            # Store-default ordering; no ranking beyond first result.
            first = files[0]
            logger.info("Found document file: %s (%s)", first.name, first.id)
            link = await self._store.get_download_link(first.id)
        except GoogleApiError as exc:
            logger.error(
                "File store lookup failed for enrollment number %s: %s",
                secondary_key, exc,
            )
            return StageResult.failed(LocatorError(
                f"File store unavailable: {exc}", secondary_key=secondary_key,
            ))

        if not link:
            logger.warning("Could not generate download link for file %s", first.id)
            return StageResult.not_found(NotFoundError(
                "download link unavailable", secondary_key=secondary_key, file_id=first.id,
            ))

        return StageResult.found(DocumentRef(id=first.id, name=first.name, download_link=link))
