"""
Image preprocessing for receipt photos.

Preprocessing is a tunable, not a fixed step. Heavy enhancement of a decent
phone photo tends to wipe out exactly the edge contrast Tesseract relies on,
so the default level is NONE and callers opt into QUICK or FULL explicitly.

Levels:
- NONE:  pass-through (input is only decoded to make sure it is an image)
- QUICK: EXIF orientation, grayscale, mild contrast boost
- FULL:  grayscale, denoise, CLAHE, deskew, sharpen
"""
import logging
from io import BytesIO

import cv2
import numpy as np
from PIL import Image, ImageEnhance, ImageOps, UnidentifiedImageError

from home_inventory.preprocessing.exceptions import UnsupportedFormatError
from home_inventory.preprocessing.schemas import (
    ImageQualityReport,
    PreprocessedImage,
    PreprocessingLevel,
    RawImage,
)

logger = logging.getLogger(__name__)


class ImagePreprocessor:
    """
    Pure image transformations applied before OCR.

    Every method is synchronous and CPU-bound; async callers should run
    them in a worker thread.
    """

    SUPPORTED_FORMATS = {
        "JPEG": "image/jpeg",
        # Multi-picture JPEG from phone cameras; the first frame is used
        "MPO": "image/jpeg",
        "PNG": "image/png",
        "WEBP": "image/webp",
    }

    MAX_WIDTH = 2000  # Wider images are halved before enhancement
    QUICK_CONTRAST_FACTOR = 1.2
    CLAHE_CLIP_LIMIT = 2.0
    CLAHE_TILE_GRID = (8, 8)
    DENOISE_STRENGTH = 10
    MAX_DESKEW_ANGLE = 15.0  # Larger angles are more likely a misdetection than real skew
    MIN_DESKEW_ANGLE = 0.5

    # Quality thresholds
    MIN_WIDTH = 600
    MIN_HEIGHT = 400
    MIN_SHARPNESS = 10.0
    MIN_CONTRAST = 30.0
    MIN_BRIGHTNESS = 50.0
    MAX_BRIGHTNESS = 200.0

    def preprocess(self, image: RawImage, level: PreprocessingLevel = PreprocessingLevel.NONE) -> PreprocessedImage:
        """
        Prepares a raw photo for OCR.

        Args:
            image: Raw uploaded image
            level: How much enhancement to apply (default: none)

        Returns:
            PreprocessedImage ready for the OCR engine

        Raises:
            UnsupportedFormatError: If the input is not a decodable JPEG/PNG/WEBP image
        """
        pil_image = self._decode(image)
        source_format = pil_image.format
        width, height = pil_image.size

        if level == PreprocessingLevel.NONE:
            return PreprocessedImage(
                data=image.data,
                mime_type=self.SUPPORTED_FORMATS[source_format],
                width=width,
                height=height,
                level=level,
                applied=[],
            )

        applied: list[str] = []

        pil_image = ImageOps.exif_transpose(pil_image)
        applied.append("exif_orientation")

        if pil_image.width > self.MAX_WIDTH:
            pil_image = pil_image.resize(
                (pil_image.width // 2, pil_image.height // 2),
                Image.Resampling.LANCZOS,
            )
            applied.append("downscale")

        gray = pil_image.convert("L")
        applied.append("grayscale")

        if level == PreprocessingLevel.QUICK:
            gray = ImageEnhance.Contrast(gray).enhance(self.QUICK_CONTRAST_FACTOR)
            applied.append("contrast")
        else:
            gray = Image.fromarray(self._enhance(np.array(gray), applied))

        result = self._encode(gray, level, applied)
        logger.info(
            f"Preprocessed image ({level.value}): {width}x{height} -> {result.width}x{result.height}",
            extra={"applied": applied}
        )
        return result

    def measure_quality(self, image: RawImage) -> ImageQualityReport:
        """
        Measures brightness, contrast and sharpness of a raw photo.

        Raises:
            UnsupportedFormatError: If the input is not a decodable image
        """
        pil_image = ImageOps.exif_transpose(self._decode(image))
        gray = np.array(pil_image.convert("L"))

        brightness = float(gray.mean())
        contrast = float(gray.std())
        sharpness = float(cv2.Laplacian(gray, cv2.CV_64F).var())
        height, width = gray.shape

        issues: list[str] = []
        warnings: list[str] = []

        if width < self.MIN_WIDTH or height < self.MIN_HEIGHT:
            issues.append(f"Image resolution {width}x{height} is below {self.MIN_WIDTH}x{self.MIN_HEIGHT}")
        if sharpness < self.MIN_SHARPNESS:
            issues.append("Image is too blurry")
        if contrast < self.MIN_CONTRAST:
            warnings.append("Low contrast, text may be hard to read")
        if brightness < self.MIN_BRIGHTNESS:
            warnings.append("Image is too dark")
        elif brightness > self.MAX_BRIGHTNESS:
            warnings.append("Image is overexposed")

        return ImageQualityReport(
            width=int(width),
            height=int(height),
            brightness=round(brightness, 2),
            contrast=round(contrast, 2),
            sharpness=round(sharpness, 2),
            issues=issues,
            warnings=warnings,
        )

    def _decode(self, image: RawImage) -> Image.Image:
        """
        Decodes and verifies the raster image.

        Image.verify() leaves the object unusable, so the buffer is opened twice.
        """
        try:
            with Image.open(BytesIO(image.data)) as probe:
                probe.verify()
            pil_image = Image.open(BytesIO(image.data))
            pil_image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            logger.warning(f"Rejected undecodable image ({image.mime_type}): {e}")
            raise UnsupportedFormatError(f"Image could not be decoded: {e}") from e

        if pil_image.format not in self.SUPPORTED_FORMATS:
            raise UnsupportedFormatError(
                f"Unsupported image format: {pil_image.format}. Allowed: JPEG, PNG, WEBP"
            )

        return pil_image

    def _enhance(self, gray: np.ndarray, applied: list[str]) -> np.ndarray:
        gray = cv2.fastNlMeansDenoising(gray, None, self.DENOISE_STRENGTH, 7, 21)
        applied.append("denoise")

        clahe = cv2.createCLAHE(clipLimit=self.CLAHE_CLIP_LIMIT, tileGridSize=self.CLAHE_TILE_GRID)
        gray = clahe.apply(gray)
        applied.append("clahe")

        angle = self._detect_skew(gray)
        if self.MIN_DESKEW_ANGLE <= abs(angle) <= self.MAX_DESKEW_ANGLE:
            gray = self._rotate(gray, angle)
            applied.append("deskew")

        # Unsharp mask
        blurred = cv2.GaussianBlur(gray, (0, 0), 3)
        gray = cv2.addWeighted(gray, 1.5, blurred, -0.5, 0)
        applied.append("sharpen")

        return gray

    def _detect_skew(self, gray: np.ndarray) -> float:
        """Returns the dominant text angle in degrees, normalized to [-45, 45]."""
        _, thresh = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
        coords = cv2.findNonZero(thresh)
        if coords is None or len(coords) < 10:
            return 0.0

        angle = cv2.minAreaRect(coords)[-1]
        # minAreaRect angle convention differs between OpenCV releases
        if angle > 45:
            angle -= 90
        elif angle < -45:
            angle += 90
        return float(angle)

    def _rotate(self, gray: np.ndarray, angle: float) -> np.ndarray:
        height, width = gray.shape
        matrix = cv2.getRotationMatrix2D((width / 2, height / 2), angle, 1.0)
        return cv2.warpAffine(
            gray,
            matrix,
            (width, height),
            flags=cv2.INTER_CUBIC,
            borderMode=cv2.BORDER_REPLICATE,
        )

    def _encode(self, gray: Image.Image, level: PreprocessingLevel, applied: list[str]) -> PreprocessedImage:
        # Re-encoding drops EXIF and every other metadata chunk
        buffer = BytesIO()
        gray.save(buffer, format="PNG")
        return PreprocessedImage(
            data=buffer.getvalue(),
            mime_type="image/png",
            width=gray.width,
            height=gray.height,
            level=level,
            applied=applied,
        )
