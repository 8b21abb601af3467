"""
Factory functions for receipt services.
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from home_inventory.db.main import get_session
from home_inventory.extracted_items.services import ExtractedItemService
from home_inventory.receipts.confirmation_service import ReceiptConfirmationService
from home_inventory.receipts.services import ReceiptService
from home_inventory.storage.service import ReceiptImageStorage, get_receipt_image_storage


async def get_receipt_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    storage: Annotated[ReceiptImageStorage, Depends(get_receipt_image_storage)]
) -> ReceiptService:
    return ReceiptService(session, storage)


async def get_receipt_confirmation_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    receipt_service: Annotated[ReceiptService, Depends(get_receipt_service)]
) -> ReceiptConfirmationService:
    return ReceiptConfirmationService(
        session=session,
        receipt_service=receipt_service,
        extracted_item_service=ExtractedItemService(session)
    )


ReceiptServiceDependency = Annotated[ReceiptService, Depends(get_receipt_service)]
ConfirmationServiceDependency = Annotated[ReceiptConfirmationService, Depends(get_receipt_confirmation_service)]
