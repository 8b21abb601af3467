"""
Receipt processing pipeline.

Turns an uploaded receipt photo into a persisted draft receipt:
preprocessing, OCR, parsing, confidence scoring and draft storage.
"""

from home_inventory.processing.service import ReceiptProcessorService
from home_inventory.processing.exceptions import ProcessingError

__all__ = ["ReceiptProcessorService", "ProcessingError"]
