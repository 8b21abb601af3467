"""
OCR engine adapters.

The engine's nested output (page > block > paragraph > line > word) is
translated into flat OcrLine rows in exactly one place, flatten_tesseract_data().
Nothing downstream of this module knows what the engine returns.
"""
import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any, Optional

import pytesseract
from PIL import Image

from home_inventory.ocr.exceptions import (
    EngineInitFailedError,
    OcrTimeoutError,
    RecognitionError,
)
from home_inventory.ocr.schemas import BoundingBox, OcrLine, OcrOptions, OcrWord
from home_inventory.preprocessing.schemas import PreprocessedImage

logger = logging.getLogger(__name__)

# Two fragments belong to the same row when they share this much of the smaller height
ROW_OVERLAP_RATIO = 0.5


class BaseOcrEngine(ABC):
    """Synchronous text recognition engine. Runs inside a worker thread."""

    name: str = "base"

    @abstractmethod
    def recognize(self, image: PreprocessedImage, options: OcrOptions) -> list[OcrLine]:
        """
        Reads text from an image.

        Returns:
            Lines ordered top-to-bottom, words left-to-right

        Raises:
            OcrTimeoutError: If the engine exceeded its time limit
            RecognitionError: If the engine failed on this image
        """


class TesseractOcrEngine(BaseOcrEngine):
    """Tesseract adapter built on pytesseract.image_to_data()."""

    name = "tesseract"

    def __init__(self, tesseract_cmd: Optional[str] = None, timeout_seconds: float = 30.0):
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.timeout_seconds = timeout_seconds

        try:
            self.version = str(pytesseract.get_tesseract_version())
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            logger.error(f"Tesseract is not available: {e}")
            raise EngineInitFailedError(
                "Tesseract OCR is not installed or not on PATH. Enter the receipt manually."
            ) from e

        logger.info(f"Tesseract OCR initialized (version {self.version})")

    def recognize(self, image: PreprocessedImage, options: OcrOptions) -> list[OcrLine]:
        config = f"--psm {options.page_segmentation_mode.value} --oem {options.ocr_engine_mode.value}"

        try:
            with Image.open(BytesIO(image.data)) as pil_image:
                data = pytesseract.image_to_data(
                    pil_image,
                    lang=options.language,
                    config=config,
                    output_type=pytesseract.Output.DICT,
                    timeout=self.timeout_seconds,
                )
        except pytesseract.TesseractNotFoundError as e:
            raise EngineInitFailedError("Tesseract binary disappeared during recognition") from e
        except pytesseract.TesseractError as e:
            logger.error(f"Tesseract failed: {e}", extra={"config": config})
            raise RecognitionError(f"Tesseract failed to read the image: {e.message}") from e
        except RuntimeError as e:
            # pytesseract kills the subprocess and raises RuntimeError on timeout
            if "timeout" in str(e).lower():
                raise OcrTimeoutError(self.timeout_seconds) from e
            raise

        return flatten_tesseract_data(data)


def flatten_tesseract_data(data: dict[str, list[Any]]) -> list[OcrLine]:
    """
    Converts pytesseract's image_to_data DICT output into ordered OcrLine rows.

    Words are grouped by (page, block, paragraph, line). Lines whose vertical
    extents overlap are merged into one row, so a name and a price detected
    as separate blocks end up on the same line. Rows are ordered top to bottom.

    Args:
        data: Output of pytesseract.image_to_data(output_type=Output.DICT)

    Returns:
        List of OcrLine ordered top-to-bottom, each with words ordered left-to-right
    """
    groups: dict[tuple, list[OcrWord]] = {}

    for i, raw_text in enumerate(data.get("text", [])):
        text = str(raw_text).strip()
        confidence = float(data["conf"][i])
        # Structural rows (page/block/paragraph) carry conf == -1 and no text
        if not text or confidence < 0:
            continue

        key = (
            int(data["page_num"][i]),
            int(data["block_num"][i]),
            int(data["par_num"][i]),
            int(data["line_num"][i]),
        )
        groups.setdefault(key, []).append(
            OcrWord(
                text=text,
                confidence=min(max(confidence / 100.0, 0.0), 1.0),
                bounding_box=BoundingBox(
                    x=max(int(data["left"][i]), 0),
                    y=max(int(data["top"][i]), 0),
                    width=max(int(data["width"][i]), 0),
                    height=max(int(data["height"][i]), 0),
                ),
            )
        )

    fragments = sorted(groups.values(), key=lambda words: _union_box(words).y)

    rows: list[list[OcrWord]] = []
    for words in fragments:
        box = _union_box(words)
        if rows and _same_row(_union_box(rows[-1]), box):
            rows[-1].extend(words)
        else:
            rows.append(list(words))

    return [_build_line(words) for words in rows]


def _union_box(words: list[OcrWord]) -> BoundingBox:
    box = words[0].bounding_box
    for word in words[1:]:
        box = box.union(word.bounding_box)
    return box


def _same_row(row: BoundingBox, candidate: BoundingBox) -> bool:
    smaller = min(row.height, candidate.height)
    if smaller <= 0:
        return False
    return row.vertical_overlap(candidate) >= smaller * ROW_OVERLAP_RATIO


def _build_line(words: list[OcrWord]) -> OcrLine:
    ordered = tuple(sorted(words, key=lambda word: word.bounding_box.x))
    confidence = sum(word.confidence for word in ordered) / len(ordered)
    return OcrLine(
        text=" ".join(word.text for word in ordered),
        confidence=round(confidence, 4),
        bounding_box=_union_box(list(ordered)),
        words=ordered,
    )
