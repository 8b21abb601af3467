import enum
from typing import Optional

from pydantic import ConfigDict, Field

from home_inventory.common.schemas import AppBaseModel
from home_inventory.config import settings


class PageSegmentationMode(int, enum.Enum):
    """Tesseract --psm values used by the application."""
    AUTO = 3
    SINGLE_COLUMN = 4
    UNIFORM_BLOCK = 6
    INDEPENDENT_LINES = 11  # Sparse text; rows are rebuilt from geometry afterwards
    RAW_LINE = 13  # Whole image is one text line


class OcrEngineMode(int, enum.Enum):
    """Tesseract --oem values."""
    LEGACY = 0
    LSTM = 1
    LEGACY_AND_LSTM = 2
    DEFAULT = 3


class BoundingBox(AppBaseModel):
    model_config = ConfigDict(frozen=True)

    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def union(self, other: "BoundingBox") -> "BoundingBox":
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        return BoundingBox(
            x=left,
            y=top,
            width=max(self.right, other.right) - left,
            height=max(self.bottom, other.bottom) - top,
        )

    def vertical_overlap(self, other: "BoundingBox") -> int:
        return max(0, min(self.bottom, other.bottom) - max(self.y, other.y))


class OcrWord(AppBaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0, le=1.0)
    bounding_box: Optional[BoundingBox] = None


class OcrLine(AppBaseModel):
    """One physical text row of the receipt, words ordered left to right."""
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    bounding_box: BoundingBox
    words: tuple[OcrWord, ...] = ()


class OcrOptions(AppBaseModel):
    page_segmentation_mode: PageSegmentationMode = Field(
        default_factory=lambda: PageSegmentationMode(settings.OCR_PAGE_SEGMENTATION_MODE)
    )
    ocr_engine_mode: OcrEngineMode = Field(
        default_factory=lambda: OcrEngineMode(settings.OCR_ENGINE_MODE)
    )
    language: str = Field(default_factory=lambda: settings.OCR_LANGUAGE, min_length=1)


class OcrResult(AppBaseModel):
    """
    Flattened OCR output.

    text_detected=False is a normal (degraded) outcome, not an error: the
    caller should suggest a retake or manual entry.
    """
    lines: list[OcrLine] = Field(default_factory=list)
    overall_confidence: float = Field(0.0, ge=0.0, le=1.0)
    text_detected: bool = False
    engine: str
    duration_ms: int = Field(0, ge=0)

    @property
    def raw_text(self) -> str:
        return "\n".join(line.text for line in self.lines)
