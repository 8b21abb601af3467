import asyncio
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Annotated, Optional

from fastapi import Depends

from home_inventory.config import settings
from home_inventory.ocr.engines import BaseOcrEngine, TesseractOcrEngine
from home_inventory.ocr.exceptions import OcrTimeoutError
from home_inventory.ocr.schemas import OcrLine, OcrOptions, OcrResult
from home_inventory.preprocessing.schemas import PreprocessedImage

logger = logging.getLogger(__name__)


class OcrService:
    """
    Async front of an OCR engine.

    The engine is CPU/subprocess bound, so every call runs in a thread pool
    and is bounded by a hard wall-clock timeout. No state is shared between
    calls apart from the engine and the pool.
    """

    def __init__(
        self,
        engine: BaseOcrEngine,
        executor: Optional[Executor] = None,
        timeout_seconds: float = settings.OCR_TIMEOUT_SECONDS,
        min_text_confidence: float = settings.OCR_MIN_TEXT_CONFIDENCE,
    ):
        self.engine = engine
        self.executor = executor
        self.timeout_seconds = timeout_seconds
        self.min_text_confidence = min_text_confidence

    async def recognize(self, image: PreprocessedImage, options: Optional[OcrOptions] = None) -> OcrResult:
        """
        Runs text recognition on a preprocessed image.

        Args:
            image: Image ready for OCR
            options: Page segmentation / engine mode (defaults from settings)

        Returns:
            OcrResult; text_detected=False for empty or near-zero confidence output

        Raises:
            OcrTimeoutError: If recognition exceeds timeout_seconds
            EngineInitFailedError: If the engine is unavailable
            RecognitionError: If the engine failed on this image
        """
        options = options or OcrOptions()
        loop = asyncio.get_running_loop()
        started = time.monotonic()

        try:
            lines = await asyncio.wait_for(
                loop.run_in_executor(self.executor, self.engine.recognize, image, options),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"OCR timed out after {self.timeout_seconds}s",
                extra={"engine": self.engine.name, "psm": options.page_segmentation_mode.value}
            )
            raise OcrTimeoutError(self.timeout_seconds) from e

        duration_ms = int((time.monotonic() - started) * 1000)
        result = self._build_result(lines, duration_ms)

        logger.info(
            "OCR completed",
            extra={
                "engine": self.engine.name,
                "lines": len(result.lines),
                "overall_confidence": result.overall_confidence,
                "text_detected": result.text_detected,
                "duration_ms": duration_ms,
            }
        )
        return result

    def _build_result(self, lines: list[OcrLine], duration_ms: int) -> OcrResult:
        overall = sum(line.confidence for line in lines) / len(lines) if lines else 0.0
        overall = round(min(max(overall, 0.0), 1.0), 4)
        return OcrResult(
            lines=list(lines),
            overall_confidence=overall,
            text_detected=bool(lines) and overall >= self.min_text_confidence,
            engine=self.engine.name,
            duration_ms=duration_ms,
        )


_ocr_engine: Optional[BaseOcrEngine] = None
_ocr_executor: Optional[ThreadPoolExecutor] = None


def get_ocr_engine() -> BaseOcrEngine:
    """
    Lazily creates the Tesseract engine.
    A failed initialization is not cached, so installing Tesseract fixes the next request.
    """
    global _ocr_engine
    if _ocr_engine is None:
        _ocr_engine = TesseractOcrEngine(
            tesseract_cmd=settings.TESSERACT_CMD,
            timeout_seconds=settings.OCR_TIMEOUT_SECONDS,
        )
    return _ocr_engine


def get_ocr_executor() -> ThreadPoolExecutor:
    global _ocr_executor
    if _ocr_executor is None:
        _ocr_executor = ThreadPoolExecutor(
            max_workers=settings.OCR_MAX_WORKERS,
            thread_name_prefix="ocr",
        )
    return _ocr_executor


def shutdown_ocr_executor() -> None:
    global _ocr_executor
    if _ocr_executor is not None:
        _ocr_executor.shutdown(wait=False, cancel_futures=True)
        _ocr_executor = None


async def get_ocr_service(engine: Annotated[BaseOcrEngine, Depends(get_ocr_engine)]) -> OcrService:
    return OcrService(engine=engine, executor=get_ocr_executor())
