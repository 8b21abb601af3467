import enum
from typing import Optional

from pydantic import Field

from home_inventory.common.schemas import AppBaseModel


class PreprocessingLevel(str, enum.Enum):
    NONE = "none"
    QUICK = "quick"
    FULL = "full"


class RawImage(AppBaseModel):
    """Uploaded photo as received from the client. Owned by the caller."""
    data: bytes = Field(..., min_length=1)
    mime_type: Optional[str] = Field(None, description="Declared MIME type (e.g. image/jpeg)")


class PreprocessedImage(AppBaseModel):
    """Image buffer ready for OCR. Lives only for one pipeline invocation."""
    data: bytes = Field(..., min_length=1)
    mime_type: str
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    level: PreprocessingLevel
    applied: list[str] = Field(default_factory=list, description="Transformations applied, in order")


class ImageQualityReport(AppBaseModel):
    """Photo quality metrics used to tell the user whether a retake would help."""
    width: int
    height: int
    brightness: float = Field(..., description="Mean gray level (0-255)")
    contrast: float = Field(..., description="Gray level standard deviation")
    sharpness: float = Field(..., description="Variance of the Laplacian")
    issues: list[str] = Field(default_factory=list, description="Problems likely to break OCR")
    warnings: list[str] = Field(default_factory=list, description="Problems likely to reduce accuracy")

    @property
    def is_acceptable(self) -> bool:
        return not self.issues
