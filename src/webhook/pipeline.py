"""Verification-and-delivery pipeline.

Sequences the four collaborators for one webhook invocation:

1. Validate and normalize the request (400 on failure, no external calls)
2. Directory lookup by phone
3. Enrollment identifier from the matched row
4. Locate the document in the file store
5. Fetch the document to scoped local storage
6. Dispatch it to the requester

Not-found outcomes at stages 2 and 4 send the requester one text message
before answering 404. A row without an enrollment identifier answers 404
without messaging anyone. Infrastructure failures answer a generic 500.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.errors import MissingSecondaryKeyError, PipelineError
from src.models import PipelineStage, StageStatus
from src.webhook.models import (
    IncomingRequest,
    PipelineOutcome,
    validate_request,
)

if TYPE_CHECKING:
    from src.directory.lookup import DirectoryLookup
    from src.documents.fetcher import DocumentFetcher
    from src.documents.locator import DocumentLocator
    from src.webhook.wati import DeliveryDispatcher

logger = logging.getLogger(__name__)

NOT_REGISTERED_TEXT = (
    "Invalid phone number. Please ensure you've registered with the correct number."
)
DOCUMENT_MISSING_TEXT = (
    "We couldn't find your document. Please contact support for assistance."
)

PHONE_NOT_FOUND_MESSAGE = "Phone number not found in the database"
KEY_NOT_FOUND_MESSAGE = "Enrollment number not found for the matched phone number"
DOCUMENT_NOT_FOUND_MESSAGE = "PDF not found for the enrollment number"
SUCCESS_MESSAGE = "PDF sent successfully"
FATAL_MESSAGE = "Error processing webhook"


class DocumentDeliveryPipeline:
    """Runs one invocation from Received to a terminal outcome."""

    def __init__(
        self,
        directory: DirectoryLookup,
        locator: DocumentLocator,
        fetcher: DocumentFetcher,
        dispatcher: DeliveryDispatcher,
    ) -> None:
        self._directory = directory
        self._locator = locator
        self._fetcher = fetcher
        self._dispatcher = dispatcher

    async def run(self, incoming: IncomingRequest) -> PipelineOutcome:
        logger.info(
            "Received webhook request name=%r phone=%r", incoming.name, incoming.raw_phone,
        )

        # Received -> Validated
        validated = validate_request(incoming)
        if not validated.is_found:
            logger.warning("Rejected webhook request: %s", validated.reason)
            return PipelineOutcome(
                status_code=400, success=False, message=validated.reason,
                cause=validated.error,
            )
        request = validated.value
        phone = request.phone
        logger.info("Processing webhook for %s with phone number %s", request.name, phone)

        # Validated -> DirectoryChecked
        lookup = await self._directory.find(phone)
        if lookup.status is StageStatus.FAILED:
            return self._fatal(PipelineStage.DIRECTORY_CHECKED, lookup.error, phone=phone)
        if lookup.status is StageStatus.NOT_FOUND:
            return await self._error_dispatch(
                phone, NOT_REGISTERED_TEXT, PHONE_NOT_FOUND_MESSAGE, lookup.error,
            )
        record = lookup.value

        # DirectoryChecked -> SecondaryKeyResolved
        enrollment = self._directory.extract_secondary_key(record)
        if enrollment is None:
            # No compensating text here, unlike the other not-found branches.
            error = MissingSecondaryKeyError(
                KEY_NOT_FOUND_MESSAGE, phone=phone, row=record.row_number,
            )
            logger.warning("%s (phone=%s row=%d)", error, phone, record.row_number)
            return PipelineOutcome(
                status_code=404, success=False, message=KEY_NOT_FOUND_MESSAGE, cause=error,
            )

        # SecondaryKeyResolved -> DocumentLocated
        located = await self._locator.locate(enrollment)
        if located.status is StageStatus.FAILED:
            return self._fatal(
                PipelineStage.DOCUMENT_LOCATED, located.error,
                phone=phone, enrollment=enrollment,
            )
        if located.status is StageStatus.NOT_FOUND:
            logger.warning("PDF not found for enrollment number: %s", enrollment)
            return await self._error_dispatch(
                phone, DOCUMENT_MISSING_TEXT, DOCUMENT_NOT_FOUND_MESSAGE, located.error,
            )
        document_ref = located.value

        # DocumentLocated -> Fetched
        fetched = await self._fetcher.fetch(document_ref.download_link)
        if fetched.status is not StageStatus.FOUND:
            return self._fatal(
                PipelineStage.FETCHED, fetched.error,
                phone=phone, enrollment=enrollment, file_id=document_ref.id,
            )
        document = fetched.value

        # Fetched -> Dispatched; the local file goes away on every exit path.
        try:
            delivery = await self._dispatcher.send_document(phone, request.name, document)
        finally:
            document.release()

        if not delivery.success:
            return self._fatal(
                PipelineStage.DISPATCHED, delivery.error,
                phone=phone, enrollment=enrollment, file_id=document_ref.id,
            )

        logger.info("PDF sent successfully to %s", phone)
        return PipelineOutcome(
            status_code=200, success=True, message=SUCCESS_MESSAGE, data=delivery.response,
        )

    async def _error_dispatch(
        self, phone: str, text: str, message: str, cause: PipelineError | None,
    ) -> PipelineOutcome:
        logger.info("%s, sending error message to %s", message, phone)
        delivery = await self._dispatcher.send_text(phone, text)
        if not delivery.success:
            return self._fatal(PipelineStage.ERROR_DISPATCH, delivery.error, phone=phone)
        return PipelineOutcome(
            status_code=404, success=False, message=message, data=delivery.response,
            cause=cause,
        )

    @staticmethod
    def _fatal(
        stage: PipelineStage, error: PipelineError | None, **context: Any,
    ) -> PipelineOutcome:
        error = error or PipelineError(f"{stage.value} failed")
        logger.error(
            "Pipeline failed at %s: %s (%s) context=%s",
            stage.value, error, error.code, {**error.context, **context},
        )
        return PipelineOutcome(
            status_code=500, success=False, message=FATAL_MESSAGE, error=error.code,
            cause=error,
        )
