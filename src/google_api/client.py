"""Thin async JSON client shared by the Sheets and Drive adapters."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from google.auth.exceptions import GoogleAuthError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0


class GoogleApiError(Exception):
    """Raised when a Google REST call cannot produce a usable JSON object."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class AuthProvider(Protocol):
    async def authorization_headers(self) -> dict[str, str]: ...


async def get_json(
    url: str,
    *,
    auth: AuthProvider,
    params: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = _DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """GET ``url`` with service-account auth and return the decoded JSON object."""
    try:
        headers = await auth.authorization_headers()
    except GoogleAuthError as exc:
        raise GoogleApiError(f"Credential refresh failed: {exc}") from exc

    try:
        async with httpx.AsyncClient(
            verify=True, transport=transport, timeout=timeout,
        ) as client:
            resp = await client.get(url, params=params, headers=headers)
    except httpx.HTTPError as exc:
        raise GoogleApiError(f"Request to {url} failed: {exc}") from exc

    if resp.status_code >= 400:
        logger.error("Google API %s returned HTTP %d", url, resp.status_code)
        raise GoogleApiError(
            f"{url} returned HTTP {resp.status_code}",
            status_code=resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise GoogleApiError(f"{url} returned a non-JSON body") from exc
    if not isinstance(data, dict):
        raise GoogleApiError(f"{url} returned an unexpected JSON shape")
    return data
