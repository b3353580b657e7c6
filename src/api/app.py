"""FastAPI application for the document delivery webhook."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.body_limit import MAX_BODY_BYTES, BodySizeLimitMiddleware, payload_too_large
from src.config import Settings
from src.directory.lookup import DirectoryLookup
from src.documents.fetcher import DocumentFetcher
from src.documents.locator import DocumentLocator
from src.google_api.auth import (
    DRIVE_READONLY_SCOPE,
    SHEETS_READONLY_SCOPE,
    ServiceAccountAuth,
)
from src.google_api.drive import GoogleDriveStore
from src.google_api.sheets import GoogleSheetsSource
from src.webhook.models import MISSING_FIELDS_MESSAGE, IncomingRequest, PipelineOutcome
from src.webhook.pipeline import FATAL_MESSAGE, DocumentDeliveryPipeline
from src.webhook.wati import DeliveryDispatcher, WatiGateway

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_pipeline(settings: Settings) -> DocumentDeliveryPipeline:
    """Wire the Google, download and WATI collaborators from settings."""
    sheets_auth = ServiceAccountAuth(
        settings.google_service_account_email,
        settings.google_private_key,
        [SHEETS_READONLY_SCOPE],
    )
    drive_auth = ServiceAccountAuth(
        settings.google_service_account_email,
        settings.google_private_key,
        [DRIVE_READONLY_SCOPE],
    )
    return DocumentDeliveryPipeline(
        directory=DirectoryLookup(
            GoogleSheetsSource(settings.google_sheet_id, sheets_auth),
            phone_column=settings.phone_column,
            key_column=settings.key_column,
        ),
        locator=DocumentLocator(
            GoogleDriveStore(drive_auth),
            folder_id=settings.google_drive_folder_id,
            mime_type=settings.document_mime_type,
        ),
        fetcher=DocumentFetcher(
            download_dir=settings.download_dir,
            timeout=settings.download_timeout_seconds,
            max_bytes=settings.download_max_bytes,
        ),
        dispatcher=DeliveryDispatcher(
            WatiGateway(settings.wati_base_url, settings.wati_bearer_token),
        ),
    )


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(build_pipeline(settings), cors_origins=settings.cors_origins)


def create_app(
    pipeline: DocumentDeliveryPipeline,
    cors_origins: list[str] | None = None,
    max_body_bytes: int = MAX_BODY_BYTES,
) -> FastAPI:
    """Create the webhook app around an already wired pipeline."""
    app = FastAPI(docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "message": "API server is running"}

    @app.get("/webhook/test")
    async def webhook_test() -> dict[str, Any]:
        logger.info("Test endpoint accessed")
        return {"success": True, "message": "Webhook endpoint is working"}

    @app.post("/webhook/receive")
    async def webhook_receive(request: Request) -> JSONResponse:
        body = await request.body()
        if len(body) > max_body_bytes:
            return payload_too_large()

        try:
            payload = json.loads(body) if body else {}
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.warning("Webhook body is not a JSON object")
            return JSONResponse(
                {"success": False, "message": MISSING_FIELDS_MESSAGE}, status_code=400,
            )

        try:
            outcome = await pipeline.run(IncomingRequest.from_payload(payload))
        except Exception:
            logger.exception("Unhandled error processing webhook")
            outcome = PipelineOutcome(
                status_code=500,
                success=False,
                message=FATAL_MESSAGE,
                error="internal_error",
            )
        return JSONResponse(outcome.to_body(), status_code=outcome.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                {"success": False, "message": "Route not found"}, status_code=404,
            )
        return JSONResponse(
            {"success": False, "message": str(exc.detail)}, status_code=exc.status_code,
        )

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=max_body_bytes)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    return app
