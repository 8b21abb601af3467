"""
Receipt review and confirmation.

Review edits keep the receipt in draft. Confirmation turns the reviewed
receipt lines into inventory items:

    draft|failed → processing → confirmed
                             ↘ draft   (database error, nothing saved)
                             ↘ failed  (unexpected error, may be confirmed again)

Every submitted item is validated before anything is written. Valid items
are saved in one transaction together with the receipt status change;
invalid items are reported back and nothing is saved for them.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from home_inventory.categories.models import Category
from home_inventory.extracted_items.models import ExtractedItem, ExtractedItemStatus
from home_inventory.extracted_items.schemas import ExtractedItemUpdate
from home_inventory.extracted_items.services import ExtractedItemService
from home_inventory.inventory.models import InventoryItem
from home_inventory.inventory.schemas import InventoryItemResponse
from home_inventory.locations.models import Location
from home_inventory.receipts.exceptions import (
    AlreadyConfirmedError,
    ConfirmationInProgressError,
    ConfirmationTransactionError,
    EmptyConfirmationError,
    ReceiptNotEditableError,
    ReviewChangedError,
)
from home_inventory.receipts.models import Receipt, ReceiptStatus
from home_inventory.receipts.schemas import (
    ConfirmationFailure,
    ConfirmationResult,
    ConfirmItemInput,
    ConfirmReceiptRequest,
)
from home_inventory.receipts.services import EDITABLE_STATUSES, ReceiptService

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 1000


class ReceiptConfirmationService:
    """
    Orchestrates the review workflow:
    1. Editing and rejecting extracted items
    2. Validating the reviewed items
    3. Creating inventory items and confirming the receipt atomically
    """

    def __init__(
        self,
        session: AsyncSession,
        receipt_service: ReceiptService,
        extracted_item_service: ExtractedItemService
    ):
        self.session = session
        self.receipt_service = receipt_service
        self.extracted_item_service = extracted_item_service

    async def update_item(self, receipt_id: int, item_id: int, data: ExtractedItemUpdate) -> ExtractedItem:
        """
        Applies user corrections to one extracted item and marks it as edited.

        Raises:
            ResourceNotFoundError: If the receipt or the item does not exist
            ReceiptNotEditableError: If the receipt is no longer in review
        """
        await self._ensure_editable(receipt_id)
        item = await self.extracted_item_service.get_for_receipt(receipt_id, item_id)

        if self.extracted_item_service.apply_update(item, data):
            await self._commit()
            logger.info(f"Extracted item {item_id} of receipt {receipt_id} edited")

        return await self._reload_item(receipt_id, item_id)

    async def reject_item(self, receipt_id: int, item_id: int) -> ExtractedItem:
        """
        Marks an extracted item as rejected so it is never turned into an inventory item.

        Raises:
            ResourceNotFoundError: If the receipt or the item does not exist
            ReceiptNotEditableError: If the receipt is no longer in review
        """
        await self._ensure_editable(receipt_id)
        item = await self.extracted_item_service.get_for_receipt(receipt_id, item_id)

        if item.status != ExtractedItemStatus.REJECTED:
            item.status = ExtractedItemStatus.REJECTED
            await self._commit()
            logger.info(f"Extracted item {item_id} of receipt {receipt_id} rejected")

        return await self._reload_item(receipt_id, item_id)

    async def confirm(self, receipt_id: int, request: ConfirmReceiptRequest) -> ConfirmationResult:
        """
        Converts reviewed items into inventory items.

        Partial success: valid items are saved and the receipt is confirmed,
        invalid items are reported in failed_items. When no item is valid
        nothing is written and the receipt keeps its status.

        Raises:
            ResourceNotFoundError: If the receipt does not exist
            AlreadyConfirmedError: If the receipt was confirmed before
            ConfirmationInProgressError: If another request is confirming it
            ReviewChangedError: If a submitted item was rejected or confirmed after validation
            EmptyConfirmationError: If no items were submitted
            ConfirmationTransactionError: If saving failed; nothing was saved and the receipt is a draft again
        """
        receipt = await self.receipt_service.get_by_id(receipt_id)
        self._ensure_confirmable(receipt)

        if not request.items:
            raise EmptyConfirmationError("A receipt cannot be confirmed without at least one item.")

        extracted_items = await self.extracted_item_service.list_for_receipt(receipt_id)
        valid, failures = await self._validate_items(receipt_id, request.items, extracted_items)

        if not valid:
            logger.warning(
                f"Confirmation of receipt {receipt_id} rejected: no valid items",
                extra={"failed_items": len(failures)}
            )
            return ConfirmationResult(
                receipt_id=receipt_id,
                receipt_status=receipt.processing_status,
                failed_items=failures,
            )

        purchase_date = receipt.receipt_date

        if not await self._try_acquire_confirmation_lock(receipt_id):
            receipt = await self.receipt_service.get_receipt(receipt_id)
            if receipt.processing_status == ReceiptStatus.CONFIRMED:
                raise AlreadyConfirmedError(receipt_id)
            raise ConfirmationInProgressError(receipt_id)

        try:
            confirmed_ids = [extracted.id for _, extracted in valid]
            marked = await self.session.execute(
                update(ExtractedItem)
                .where(
                    ExtractedItem.id.in_(confirmed_ids),
                    ExtractedItem.status.in_([ExtractedItemStatus.PENDING, ExtractedItemStatus.EDITED])
                )
                .values(status=ExtractedItemStatus.CONFIRMED)
            )
            if marked.rowcount != len(confirmed_ids):
                # A review change committed after validation
                raise ReviewChangedError(receipt_id)

            created = [
                self._build_inventory_item(receipt_id, purchase_date, item_input, extracted)
                for item_input, extracted in valid
            ]
            self.session.add_all(created)
            await self.session.flush()

            rejected = await self.session.execute(
                update(ExtractedItem)
                .where(
                    ExtractedItem.receipt_id == receipt_id,
                    ExtractedItem.status.in_([ExtractedItemStatus.PENDING, ExtractedItemStatus.EDITED]),
                    ExtractedItem.id.not_in(confirmed_ids)
                )
                .values(status=ExtractedItemStatus.REJECTED)
            )
            await self.session.execute(
                update(Receipt)
                .where(Receipt.id == receipt_id)
                .values(
                    processing_status=ReceiptStatus.CONFIRMED,
                    confirmed_at=datetime.now(timezone.utc),
                    error_message=None
                )
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Confirmation of receipt {receipt_id} failed, rolling back: {e}", exc_info=True)
            await self.session.rollback()
            await self._release_lock(receipt_id)
            raise ConfirmationTransactionError(receipt_id) from e
        except ReviewChangedError:
            logger.warning(f"Items of receipt {receipt_id} changed during confirmation, rolling back")
            await self.session.rollback()
            await self._release_lock(receipt_id)
            raise
        except Exception as e:
            logger.error(f"Unexpected error confirming receipt {receipt_id}: {e}", exc_info=True)
            await self.session.rollback()
            await self._set_failed(receipt_id, str(e))
            raise

        created_ids = [item.id for item in created]
        logger.info(
            f"Receipt {receipt_id} confirmed",
            extra={
                "created_items": len(created_ids),
                "failed_items": len(failures),
                "rejected_items": rejected.rowcount,
            }
        )

        return ConfirmationResult(
            receipt_id=receipt_id,
            receipt_status=ReceiptStatus.CONFIRMED,
            created_items=await self._load_inventory_items(created_ids),
            failed_items=failures,
            rejected_items=max(rejected.rowcount or 0, 0),
        )

    def _ensure_confirmable(self, receipt: Receipt) -> None:
        if receipt.processing_status == ReceiptStatus.CONFIRMED:
            raise AlreadyConfirmedError(receipt.id)
        if receipt.processing_status == ReceiptStatus.PROCESSING:
            raise ConfirmationInProgressError(receipt.id)

    async def _ensure_editable(self, receipt_id: int) -> Receipt:
        receipt = await self.receipt_service.get_by_id(receipt_id)
        if receipt.processing_status not in EDITABLE_STATUSES:
            raise ReceiptNotEditableError(receipt_id, receipt.processing_status.value)
        return receipt

    async def _validate_items(
        self,
        receipt_id: int,
        inputs: list[ConfirmItemInput],
        extracted_items: Sequence[ExtractedItem]
    ) -> tuple[list[tuple[ConfirmItemInput, ExtractedItem]], list[ConfirmationFailure]]:
        """
        Checks every submitted item without writing anything.

        Returns:
            (valid (input, extracted item) pairs, failures with all their errors)
        """
        by_id = {item.id: item for item in extracted_items}
        existing_categories = await self._existing_ids(Category, {i.category_id for i in inputs})
        existing_locations = await self._existing_ids(Location, {i.location_id for i in inputs})

        valid: list[tuple[ConfirmItemInput, ExtractedItem]] = []
        failures: list[ConfirmationFailure] = []
        seen: set[int] = set()

        for item_input in inputs:
            errors: list[str] = []
            extracted = by_id.get(item_input.extracted_item_id)

            if item_input.extracted_item_id in seen:
                errors.append("Item submitted more than once")
            seen.add(item_input.extracted_item_id)

            if extracted is None:
                errors.append(f"Item does not belong to receipt {receipt_id}")
            elif extracted.status == ExtractedItemStatus.REJECTED:
                errors.append("Item was rejected during review")
            elif extracted.status == ExtractedItemStatus.CONFIRMED:
                errors.append("Item is already confirmed")

            if not item_input.name:
                errors.append("Name cannot be empty")
            if item_input.quantity <= 0:
                errors.append("Quantity must be positive")
            if item_input.category_id not in existing_categories:
                errors.append(f"Category {item_input.category_id} does not exist")
            if item_input.location_id not in existing_locations:
                errors.append(f"Location {item_input.location_id} does not exist")

            if errors:
                failures.append(ConfirmationFailure(extracted_item_id=item_input.extracted_item_id, errors=errors))
            else:
                valid.append((item_input, extracted))

        return valid, failures

    async def _existing_ids(self, model, ids: set[int]) -> set[int]:
        if not ids:
            return set()
        result = await self.session.execute(select(model.id).where(model.id.in_(ids)))
        return set(result.scalars().all())

    def _build_inventory_item(
        self,
        receipt_id: int,
        purchase_date: Optional[date],
        item_input: ConfirmItemInput,
        extracted: ExtractedItem
    ) -> InventoryItem:
        return InventoryItem(
            name=item_input.name,
            description=item_input.description,
            quantity=item_input.quantity,
            purchase_date=purchase_date,
            purchase_price=self._purchase_price(item_input, extracted),
            serial_number=item_input.serial_number,
            notes=item_input.notes,
            category_id=item_input.category_id,
            location_id=item_input.location_id,
            receipt_id=receipt_id,
            extracted_item_id=extracted.id,
        )

    def _purchase_price(self, item_input: ConfirmItemInput, extracted: ExtractedItem) -> Optional[Decimal]:
        """Price per unit: explicit input, else the extracted unit price, else the line total of a single unit."""
        if item_input.purchase_price is not None:
            return item_input.purchase_price
        if extracted.unit_price is not None:
            return extracted.unit_price
        if extracted.total_price is not None and extracted.quantity <= 1:
            return extracted.total_price
        return None

    async def _try_acquire_confirmation_lock(self, receipt_id: int) -> bool:
        """
        Atomically moves the receipt from draft/failed to processing.

        Returns:
            True if this request now owns the confirmation, False if another one got there first
        """
        stmt = (
            update(Receipt)
            .where(Receipt.id == receipt_id)
            .where(Receipt.processing_status.in_(EDITABLE_STATUSES))
            .values(processing_status=ReceiptStatus.PROCESSING)
        )

        result = await self.session.execute(stmt)
        await self.session.commit()

        if result.rowcount > 0:
            logger.info(f"Acquired confirmation lock for receipt_id={receipt_id}")
            return True

        logger.warning(f"Could not acquire confirmation lock for receipt_id={receipt_id}")
        return False

    async def _release_lock(self, receipt_id: int) -> None:
        """Returns a receipt stuck in processing back to draft after a rolled back confirmation."""
        try:
            await self.session.execute(
                update(Receipt)
                .where(Receipt.id == receipt_id, Receipt.processing_status == ReceiptStatus.PROCESSING)
                .values(processing_status=ReceiptStatus.DRAFT)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.critical(f"CRITICAL: Failed to release confirmation lock for receipt {receipt_id}: {e}", exc_info=True)

    async def _set_failed(self, receipt_id: int, error_message: str) -> None:
        """Set receipt status to failed and save error message."""
        truncated_error = error_message[:MAX_ERROR_LENGTH]

        try:
            await self.session.execute(
                update(Receipt)
                .where(Receipt.id == receipt_id)
                .values(processing_status=ReceiptStatus.FAILED, error_message=truncated_error)
            )
            await self.session.commit()
            logger.error(f"Receipt {receipt_id} marked as failed: {truncated_error}")
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.critical(f"CRITICAL: Failed to set failed status for receipt {receipt_id}: {e}", exc_info=True)

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def _reload_item(self, receipt_id: int, item_id: int) -> ExtractedItem:
        stmt = (
            select(ExtractedItem)
            .where(ExtractedItem.id == item_id, ExtractedItem.receipt_id == receipt_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def _load_inventory_items(self, ids: list[int]) -> list[InventoryItemResponse]:
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.id.in_(ids))
            .order_by(InventoryItem.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return [InventoryItemResponse.model_validate(item) for item in result.scalars().all()]
