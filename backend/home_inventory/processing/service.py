"""
Receipt Processing Service.

Orchestrates the pipeline from an uploaded photo to a draft receipt awaiting review.
"""
import asyncio
import logging
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from home_inventory.common.exceptions import NextAction
from home_inventory.config import settings
from home_inventory.ocr.exceptions import OcrTimeoutError
from home_inventory.ocr.schemas import OcrOptions, OcrResult
from home_inventory.ocr.services import OcrService
from home_inventory.parsing.services import ReceiptParser
from home_inventory.preprocessing.schemas import PreprocessedImage, PreprocessingLevel, RawImage
from home_inventory.preprocessing.services import ImagePreprocessor
from home_inventory.processing.exceptions import ProcessingError
from home_inventory.receipts.schemas import ReceiptDraftResponse
from home_inventory.receipts.services import ReceiptService
from home_inventory.receipts.validation import validate_upload
from home_inventory.scoring.service import ConfidenceScorer
from home_inventory.storage.service import EXTENSIONS_BY_MIME, ReceiptImageStorage

logger = logging.getLogger(__name__)


class ReceiptProcessorService:
    """
    Service orchestrating the receipt processing pipeline.

    Flow:
    1. Validate upload and store the photo under a fresh storage key
    2. Preprocess (worker thread)
    3. OCR (thread pool, hard timeout, one retry on timeout)
    4. Parse lines into metadata and candidate items
    5. Score items and assess the receipt
    6. Persist draft receipt with items in one commit (shielded from cancellation)

    Low confidence, no text and zero items are returned as data in the
    quality report. Only structural failures raise.
    """

    def __init__(
        self,
        receipt_service: ReceiptService,
        ocr_service: OcrService,
        storage: ReceiptImageStorage,
        preprocessor: Optional[ImagePreprocessor] = None,
        parser: Optional[ReceiptParser] = None,
        scorer: Optional[ConfidenceScorer] = None
    ):
        self.receipt_service = receipt_service
        self.ocr_service = ocr_service
        self.storage = storage
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.parser = parser or ReceiptParser()
        self.scorer = scorer or ConfidenceScorer()

    async def process_receipt(
        self,
        image: RawImage,
        level: Optional[PreprocessingLevel] = None,
        ocr_options: Optional[OcrOptions] = None
    ) -> ReceiptDraftResponse:
        """
        Runs the whole pipeline for one photo.

        Raises:
            FileValidationError: If the upload is not an accepted image
            UnsupportedFormatError: If the image cannot be decoded
            EngineInitFailedError: If the OCR engine is unavailable
            OcrTimeoutError: If OCR timed out on every attempt
            ProcessingError: If the draft could not be saved
        """
        level = level or PreprocessingLevel(settings.DEFAULT_PREPROCESSING_LEVEL)
        mime_type = validate_upload(image.data, image.mime_type)

        storage_key = uuid.uuid4().hex
        stored = await asyncio.to_thread(
            self.storage.save, storage_key, image.data, EXTENSIONS_BY_MIME[mime_type]
        )
        logger.info(f"Starting receipt processing key={storage_key} level={level.value}")

        persist_task: Optional[asyncio.Task] = None
        try:
            preprocessed = await asyncio.to_thread(self.preprocessor.preprocess, image, level)
            quality = await asyncio.to_thread(self.preprocessor.measure_quality, image)

            try:
                ocr_result = await self._recognize(preprocessed, ocr_options)
            except OcrTimeoutError as e:
                # Retries are spent; offer manual entry instead of another retry
                e.next_action = NextAction.MANUAL_ENTRY
                raise

            # Unreadable output would only yield garbage candidates
            parsed = self.parser.parse(ocr_result.lines if ocr_result.text_detected else [])
            item_confidences = self.scorer.score_items(parsed, ocr_result.lines)
            report = self.scorer.analyze(parsed, ocr_result, item_confidences, quality)
            confidence = report.overall_confidence

            persist_task = asyncio.ensure_future(
                self.receipt_service.create_draft(
                    parsed=parsed,
                    ocr_result=ocr_result,
                    item_confidences=item_confidences,
                    confidence=confidence,
                    preprocessing_level=level,
                    stored_image=stored,
                )
            )
            receipt = await asyncio.shield(persist_task)
        except asyncio.CancelledError:
            # Once persisting started the draft owns the image
            if persist_task is None:
                logger.info(f"Receipt processing cancelled key={storage_key}, removing image")
                self.storage.delete(stored.path)
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to save draft receipt key={storage_key}: {e}", exc_info=True)
            self.storage.delete(stored.path)
            raise ProcessingError("Failed to save the receipt draft", storage_key=storage_key) from e
        except Exception as e:
            logger.error(f"Error processing receipt key={storage_key}: {e}", exc_info=True)
            self.storage.delete(stored.path)
            raise

        logger.info(
            f"Receipt processing finished receipt_id={receipt.id}",
            extra={
                "items": len(parsed.items),
                "confidence": confidence,
                "next_action": report.next_action.value,
            }
        )
        return ReceiptDraftResponse.from_model(receipt, quality=report)

    @retry(
        stop=stop_after_attempt(settings.OCR_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(OcrTimeoutError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _recognize(self, image: PreprocessedImage, options: Optional[OcrOptions]) -> OcrResult:
        return await self.ocr_service.recognize(image, options)
