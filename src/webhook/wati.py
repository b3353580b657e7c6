"""WATI messaging gateway and delivery dispatcher.

The gateway speaks HTTP to WATI's session endpoints. The dispatcher sits on
top of it and owns the success policy: a send only counts when the response
body says so explicitly (``success`` or ``result`` is ``true``). Every other
shape, status, timeout or transport error becomes a failed DeliveryResult.
"""

from __future__ import annotations

import logging
import mimetypes
from typing import Any, BinaryIO, Protocol

import httpx

from src.documents.fetcher import FetchedDocument
from src.errors import DispatchError
from src.models import DeliveryResult

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 10.0


class MessagingGateway(Protocol):
    async def send_file(
        self, phone: str, file_stream: BinaryIO, file_name: str, caption: str,
    ) -> dict[str, Any]: ...

    async def send_text(self, phone: str, message: str) -> dict[str, Any]: ...


class WatiGateway:
    """HTTP client for the WATI session-file and session-message endpoints."""

    def __init__(
        self,
        base_url: str,
        bearer_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bearer_token = bearer_token
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._bearer_token}"}

    async def send_file(
        self, phone: str, file_stream: BinaryIO, file_name: str, caption: str,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/api/v1/sendSessionFile/{phone}"
        content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
        async with httpx.AsyncClient(verify=True, transport=self._transport) as client:
            resp = await client.post(
                url,
                files={"file": (file_name, file_stream, content_type)},
                data={"phone": phone, "caption": caption, "filename": file_name},
                headers=self._headers(),
                timeout=SEND_TIMEOUT_SECONDS,
            )
        return self._decode(resp)

    async def send_text(self, phone: str, message: str) -> dict[str, Any]:
        url = f"{self._base_url}/api/v1/sendSessionMessage/{phone}"
        async with httpx.AsyncClient(verify=True, transport=self._transport) as client:
            resp = await client.post(
                url,
                json={"phone": phone, "message": message},
                headers=self._headers(),
                timeout=SEND_TIMEOUT_SECONDS,
            )
        return self._decode(resp)

    @staticmethod
    def _decode(resp: httpx.Response) -> dict[str, Any]:
        if resp.status_code >= 400:
            raise DispatchError(
                f"Gateway returned HTTP {resp.status_code}", status_code=resp.status_code,
            )
        try:
            body = resp.json()
        except ValueError as exc:
            raise DispatchError("Gateway returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise DispatchError("Gateway returned an unexpected JSON shape")
        return body


def _asserts_success(body: dict[str, Any]) -> bool:
    return body.get("success") is True or body.get("result") is True


def document_caption(display_name: str) -> str:
    return f"Hello {display_name}, here's your requested document."


class DeliveryDispatcher:
    """Sends the fetched document, or a plain-text error, to the requester."""

    def __init__(self, gateway: MessagingGateway) -> None:
        self._gateway = gateway

    async def send_document(
        self, phone: str, display_name: str, document: FetchedDocument,
    ) -> DeliveryResult:
        """Post the document as a session file.

        The caller keeps ownership of ``document`` and releases it whatever
        this returns.
        """
        logger.info("Sending %s to %s via WATI", document.file_name, phone)
        try:
            with document.path.open("rb") as fh:
                body = await self._gateway.send_file(
                    phone, fh, document.file_name, document_caption(display_name),
                )
        except (httpx.HTTPError, DispatchError, OSError) as exc:
            return self._failed("send_document", phone, exc)
        return self._settle("send_document", phone, body)

    async def send_text(self, phone: str, message: str) -> DeliveryResult:
        logger.info("Sending text message to %s via WATI", phone)
        try:
            body = await self._gateway.send_text(phone, message)
        except (httpx.HTTPError, DispatchError) as exc:
            return self._failed("send_text", phone, exc)
        return self._settle("send_text", phone, body)

    @staticmethod
    def _settle(action: str, phone: str, body: dict[str, Any]) -> DeliveryResult:
        if _asserts_success(body):
            logger.info("%s to %s succeeded", action, phone)
            return DeliveryResult(success=True, response=body)
        logger.error("%s to %s rejected by gateway: %s", action, phone, body)
        detail = body.get("message") or body.get("info") or "success not asserted"
        return DeliveryResult(
            success=False,
            response=body,
            error=DispatchError(f"Gateway did not confirm {action}: {detail}", phone=phone),
        )

    @staticmethod
    def _failed(action: str, phone: str, exc: Exception) -> DeliveryResult:
        if isinstance(exc, httpx.TimeoutException):
            message = f"{action} timed out after {SEND_TIMEOUT_SECONDS:.0f}s"
        else:
            message = f"{action} failed: {exc}"
        logger.error("%s to %s failed: %s", action, phone, exc)
        error = exc if isinstance(exc, DispatchError) else DispatchError(message, phone=phone)
        return DeliveryResult(success=False, error=error)
