from home_inventory.common.exceptions import AppError, NextAction


class OCRException(AppError):
    """Base exception for OCR-related errors"""
    pass


class EngineInitFailedError(OCRException):
    """OCR engine is not installed or cannot be started"""
    next_action = NextAction.MANUAL_ENTRY


class OcrTimeoutError(OCRException):
    """OCR exceeded its wall-clock limit"""
    next_action = NextAction.RETRY

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Text recognition did not finish within {timeout_seconds:g}s")


class RecognitionError(OCRException):
    """Engine started but failed while reading the image"""
    next_action = NextAction.RETAKE
