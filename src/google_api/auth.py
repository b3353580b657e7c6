"""Service-account credentials for the Google REST adapters."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from google.auth.transport.requests import Request
from google.oauth2 import service_account

SHEETS_READONLY_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"
DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"

_TOKEN_URI = "https://oauth2.googleapis.com/token"


class ServiceAccountAuth:
    """Bearer headers from a service account, refreshed when the token lapses."""

    def __init__(self, email: str, private_key: str, scopes: Iterable[str]) -> None:
        info = {
            "client_email": email,
            "private_key": private_key,
            "token_uri": _TOKEN_URI,
        }
        self._credentials = service_account.Credentials.from_service_account_info(
            info, scopes=list(scopes),
        )

    async def authorization_headers(self) -> dict[str, str]:
        if not self._credentials.valid:
            # The token exchange is a blocking HTTP call.
            await asyncio.to_thread(self._credentials.refresh, Request())
        return {"Authorization": f"Bearer {self._credentials.token}"}
