"""Tests for the WATI gateway and the delivery dispatcher success policy."""

from __future__ import annotations

import io
import json
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from src.errors import DispatchError
from src.webhook.wati import DeliveryDispatcher, WatiGateway, document_caption
from tests.conftest import PDF_BYTES, make_fetched_document

BASE_URL = "https://live-server.wati.example/"


def _gateway(handler) -> WatiGateway:
    return WatiGateway(BASE_URL, "wati-token", transport=httpx.MockTransport(handler))


class TestWatiGateway:
    @pytest.mark.asyncio
    async def test_send_file_posts_multipart(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"result": True})

        body = await _gateway(handler).send_file(
            "12025550178", io.BytesIO(PDF_BYTES), "EN100.pdf", document_caption("Jane"),
        )

        assert body == {"result": True}
        request = seen[0]
        assert str(request.url) == "https://live-server.wati.example/api/v1/sendSessionFile/12025550178"
        assert request.headers["authorization"] == "Bearer wati-token"
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b"Hello Jane, here's your requested document." in request.content
        assert b'filename="EN100.pdf"' in request.content
        assert PDF_BYTES in request.content

    @pytest.mark.asyncio
    async def test_send_text_posts_json(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        await _gateway(handler).send_text("12025550178", "hello")

        request = seen[0]
        assert request.url.path == "/api/v1/sendSessionMessage/12025550178"
        assert json.loads(request.content) == {"phone": "12025550178", "message": "hello"}

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        gateway = _gateway(lambda request: httpx.Response(401, json={"message": "bad token"}))
        with pytest.raises(DispatchError) as exc_info:
            await gateway.send_text("12025550178", "hello")
        assert exc_info.value.context["status_code"] == 401

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self) -> None:
        gateway = _gateway(lambda request: httpx.Response(200, text="OK"))
        with pytest.raises(DispatchError, match="non-JSON"):
            await gateway.send_text("12025550178", "hello")


class TestDispatcherSendDocument:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"success": True}, {"result": True, "info": "queued"}])
    async def test_explicit_success_shapes(self, tmp_path: Path, body: dict) -> None:
        gateway = AsyncMock()
        gateway.send_file.return_value = body
        dispatcher = DeliveryDispatcher(gateway)
        document = make_fetched_document(tmp_path)

        result = await dispatcher.send_document("12025550178", "Jane", document)

        assert result.success is True
        assert result.response == body
        phone, _, file_name, caption = gateway.send_file.call_args[0]
        assert phone == "12025550178"
        assert file_name == "EN100.pdf"
        assert caption == "Hello Jane, here's your requested document."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"success": False},
        {"result": False, "info": "Invalid Contact"},
        {"success": "true"},
        {"result": 1},
    ])
    async def test_anything_else_is_failure(self, tmp_path: Path, body: dict) -> None:
        gateway = AsyncMock()
        gateway.send_file.return_value = body
        dispatcher = DeliveryDispatcher(gateway)

        result = await dispatcher.send_document(
            "12025550178", "Jane", make_fetched_document(tmp_path),
        )

        assert result.success is False
        assert result.response == body
        assert isinstance(result.error, DispatchError)

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self, tmp_path: Path) -> None:
        gateway = AsyncMock()
        gateway.send_file.side_effect = httpx.ReadTimeout("slow")
        dispatcher = DeliveryDispatcher(gateway)

        result = await dispatcher.send_document(
            "12025550178", "Jane", make_fetched_document(tmp_path),
        )

        assert result.success is False
        assert "timed out" in result.error_text

    @pytest.mark.asyncio
    async def test_gateway_error_is_failure(self, tmp_path: Path) -> None:
        gateway = AsyncMock()
        gateway.send_file.side_effect = DispatchError("Gateway returned HTTP 500")
        dispatcher = DeliveryDispatcher(gateway)

        result = await dispatcher.send_document(
            "12025550178", "Jane", make_fetched_document(tmp_path),
        )

        assert result.success is False
        assert result.error_text == "Gateway returned HTTP 500"

    @pytest.mark.asyncio
    async def test_dispatcher_leaves_release_to_caller(self, tmp_path: Path) -> None:
        gateway = AsyncMock()
        gateway.send_file.return_value = {"result": True}
        document = make_fetched_document(tmp_path)

        await DeliveryDispatcher(gateway).send_document("12025550178", "Jane", document)

        assert document.path.exists()


class TestDispatcherSendText:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        gateway = AsyncMock()
        gateway.send_text.return_value = {"result": True}

        result = await DeliveryDispatcher(gateway).send_text("12025550178", "hi")

        assert result.success is True
        gateway.send_text.assert_awaited_once_with("12025550178", "hi")

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        gateway = AsyncMock()
        gateway.send_text.side_effect = httpx.ConnectError("refused")

        result = await DeliveryDispatcher(gateway).send_text("12025550178", "hi")

        assert result.success is False
        assert result.error is not None
        assert result.error.code == "dispatch_error"
