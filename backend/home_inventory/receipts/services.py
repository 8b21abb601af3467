import logging
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import select, func, update, delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from home_inventory.common.exceptions import ResourceNotFoundError
from home_inventory.common.services import AppService
from home_inventory.extracted_items.models import ExtractedItem
from home_inventory.extracted_items.services import ExtractedItemService
from home_inventory.inventory.models import InventoryItem
from home_inventory.ocr.schemas import OcrResult
from home_inventory.parsing.schemas import ParsedReceipt
from home_inventory.preprocessing.schemas import PreprocessingLevel
from home_inventory.receipts.exceptions import (
    ConfirmationInProgressError,
    ConfirmedReceiptDeletionError,
    ReceiptNotEditableError,
)
from home_inventory.receipts.models import Receipt, ReceiptStatus
from home_inventory.receipts.schemas import ReceiptUpdate
from home_inventory.storage.service import ReceiptImageStorage, StoredImage

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (ReceiptStatus.DRAFT, ReceiptStatus.FAILED)


class ReceiptService(AppService[Receipt, ReceiptUpdate, ReceiptUpdate]):

    def __init__(self, session: AsyncSession, storage: ReceiptImageStorage):
        super().__init__(model=Receipt, session=session)
        self.storage = storage
        self.extracted_item_service = ExtractedItemService(session)

    async def create_draft(
        self,
        parsed: ParsedReceipt,
        ocr_result: OcrResult,
        item_confidences: list[float],
        confidence: float,
        preprocessing_level: PreprocessingLevel = PreprocessingLevel.NONE,
        stored_image: Optional[StoredImage] = None
    ) -> Receipt:
        """
        Persists a draft receipt with its extracted items in a single commit.

        Returns:
            The receipt reloaded with its items
        """
        receipt = Receipt(
            processing_status=ReceiptStatus.DRAFT,
            merchant_name=parsed.merchant_name[:255] if parsed.merchant_name else None,
            receipt_date=parsed.receipt_date,
            total_amount=parsed.total_amount,
            subtotal_amount=parsed.subtotal_amount,
            tax_amount=parsed.tax_amount,
            confidence=confidence,
            raw_ocr_text=ocr_result.raw_text or None,
            preprocessing_level=preprocessing_level.value,
            image_url=stored_image.path if stored_image else None,
            image_hash=stored_image.hash if stored_image else None,
            image_expires_at=stored_image.expires_at if stored_image else None,
            image_status="active" if stored_image else None,
        )
        receipt.extracted_items = [
            self.extracted_item_service.build(position, candidate, item_confidence)
            for position, (candidate, item_confidence) in enumerate(zip(parsed.items, item_confidences))
        ]

        self.session.add(receipt)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        logger.info(
            f"Draft receipt created id={receipt.id}",
            extra={"items": len(receipt.extracted_items), "confidence": confidence}
        )
        return await self.get_receipt(receipt.id)

    async def get_receipt(self, receipt_id: int) -> Receipt:
        """Loads a receipt with its extracted items (in receipt order)."""
        stmt = (
            select(Receipt)
            .where(Receipt.id == receipt_id)
            .options(selectinload(Receipt.extracted_items))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        receipt = result.scalar_one_or_none()

        if not receipt:
            raise ResourceNotFoundError("Receipt", receipt_id)

        return receipt

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[ReceiptStatus] = None
    ) -> dict[str, Any]:
        filters = [Receipt.processing_status == status] if status else []
        return await super().get_all(skip=skip, limit=limit, filters=filters)

    async def update(self, receipt_id: int, data: ReceiptUpdate) -> Receipt:
        receipt = await self.get_by_id(receipt_id)
        if receipt.processing_status not in EDITABLE_STATUSES:
            raise ReceiptNotEditableError(receipt_id, receipt.processing_status.value)

        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(receipt, field, value)

        if update_data:
            try:
                await self.session.commit()
            except SQLAlchemyError:
                await self.session.rollback()
                raise

        return await self.get_receipt(receipt_id)

    async def delete_receipt(self, receipt_id: int, acknowledge_linked_items: bool = False) -> None:
        """
        Deletes a receipt, its extracted items and its stored image.

        Inventory items created from the receipt survive; their receipt_id and
        extracted_item_id are cleared.

        Raises:
            ResourceNotFoundError: If the receipt does not exist
            ConfirmationInProgressError: If the receipt is being confirmed right now
            ConfirmedReceiptDeletionError: If the receipt is confirmed and the caller did not acknowledge it
        """
        receipt = await self.get_by_id(receipt_id)

        if receipt.processing_status == ReceiptStatus.PROCESSING:
            raise ConfirmationInProgressError(receipt_id)

        item_ids = select(ExtractedItem.id).where(ExtractedItem.receipt_id == receipt_id)
        linked_filter = or_(
            InventoryItem.receipt_id == receipt_id,
            InventoryItem.extracted_item_id.in_(item_ids)
        )

        if receipt.processing_status == ReceiptStatus.CONFIRMED and not acknowledge_linked_items:
            count_result = await self.session.execute(
                select(func.count()).select_from(InventoryItem).where(linked_filter)
            )
            raise ConfirmedReceiptDeletionError(receipt_id, count_result.scalar() or 0)

        image_url = receipt.image_url

        try:
            # Explicit so the soft links are cleared even where the database does not enforce SET NULL
            await self.session.execute(
                update(InventoryItem)
                .where(linked_filter)
                .values(receipt_id=None, extracted_item_id=None)
            )
            await self.session.execute(
                delete(ExtractedItem).where(ExtractedItem.receipt_id == receipt_id)
            )
            await self.session.execute(delete(Receipt).where(Receipt.id == receipt_id))
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        self.storage.delete(image_url)
        logger.info(f"Deleted receipt id={receipt_id}")

    async def purge_expired_images(self, now: Optional[datetime] = None) -> int:
        """
        Removes stored photos past their retention date. Receipt data is kept.

        Returns:
            Number of images purged
        """
        now = now or datetime.now(timezone.utc)
        stmt = select(Receipt).where(
            Receipt.image_url.is_not(None),
            Receipt.image_expires_at.is_not(None),
            Receipt.image_expires_at <= now
        )
        result = await self.session.execute(stmt)
        receipts = result.scalars().all()

        for receipt in receipts:
            self.storage.delete(receipt.image_url)
            receipt.image_url = None
            receipt.image_status = "expired"

        if receipts:
            await self.session.commit()
            logger.info(f"Purged {len(receipts)} expired receipt image(s)")

        return len(receipts)
