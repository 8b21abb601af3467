"""
Factory functions for receipt processing pipeline dependencies.
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from home_inventory.db.main import get_session
from home_inventory.ocr.services import OcrService, get_ocr_service
from home_inventory.processing.service import ReceiptProcessorService
from home_inventory.receipts.services import ReceiptService
from home_inventory.storage.service import ReceiptImageStorage, get_receipt_image_storage


async def get_receipt_processor_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    ocr_service: Annotated[OcrService, Depends(get_ocr_service)],
    storage: Annotated[ReceiptImageStorage, Depends(get_receipt_image_storage)]
) -> ReceiptProcessorService:
    """
    Builds the processing pipeline for one request.
    The OCR engine and its thread pool are shared; everything else is per request.
    """
    return ReceiptProcessorService(
        receipt_service=ReceiptService(session, storage),
        ocr_service=ocr_service,
        storage=storage
    )


ReceiptProcessorServiceDependency = Annotated[
    ReceiptProcessorService,
    Depends(get_receipt_processor_service)
]
