"""ASGI middleware rejecting oversized request bodies."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

MAX_BODY_BYTES = 100 * 1024
PAYLOAD_TOO_LARGE_MESSAGE = "Payload too large"


def payload_too_large() -> JSONResponse:
    return JSONResponse(
        {"success": False, "message": PAYLOAD_TOO_LARGE_MESSAGE}, status_code=413,
    )


class BodySizeLimitMiddleware:
    """Answers 413 when the declared Content-Length exceeds ``max_bytes``.

    Bodies sent without a Content-Length are measured again by the route.
    """

    def __init__(self, app: ASGIApp, max_bytes: int = MAX_BODY_BYTES) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_bytes:
            await payload_too_large()(scope, receive, send)
            return

        await self.app(scope, receive, send)
