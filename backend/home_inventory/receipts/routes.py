from typing import Optional

from fastapi import APIRouter, File, Query, Response, UploadFile, status

from home_inventory.extracted_items.schemas import ExtractedItemResponse, ExtractedItemUpdate
from home_inventory.preprocessing.schemas import PreprocessingLevel, RawImage
from home_inventory.processing.dependencies import ReceiptProcessorServiceDependency
from home_inventory.receipts.exceptions import FileValidationError
from home_inventory.receipts.dependencies import ConfirmationServiceDependency, ReceiptServiceDependency
from home_inventory.receipts.models import ReceiptStatus
from home_inventory.receipts.schemas import (
    ConfirmationResult,
    ConfirmReceiptRequest,
    ReceiptDetailResponse,
    ReceiptDraftResponse,
    ReceiptListResponse,
    ReceiptUpdate,
)

router = APIRouter()


@router.post("/process", response_model=ReceiptDraftResponse, status_code=status.HTTP_201_CREATED, summary="Process a receipt photo into a draft")
async def process_receipt(
    service: ReceiptProcessorServiceDependency,
    file: UploadFile = File(..., description="Receipt image (JPEG, PNG, WEBP)"),
    preprocessing_level: Optional[PreprocessingLevel] = Query(None, description="none (default), quick or full")
):
    """
    Reads a receipt photo and stores the result as a draft for review.

    **File Requirements:**
    - Formats: JPEG, PNG, WEBP
    - Max size: 10MB
    - Magic bytes validation is performed

    **Response:**
    - Success (201): Draft receipt with extracted items and a quality report.
      A photo without readable text still yields a draft; see quality.next_action
    - Error (400): Invalid file format or size
    - Error (415): Image could not be decoded
    - Error (503): OCR engine unavailable
    - Error (504): OCR timed out
    """
    content = await file.read()
    if not content:
        raise FileValidationError("File is empty or corrupted")

    image = RawImage(data=content, mime_type=file.content_type)
    return await service.process_receipt(image, level=preprocessing_level)


@router.get("/", response_model=ReceiptListResponse, status_code=status.HTTP_200_OK, summary="List receipts")
async def get_receipts(
    service: ReceiptServiceDependency,
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    limit: int = Query(100, ge=1, le=100, description="Max number of items to return"),
    receipt_status: Optional[ReceiptStatus] = Query(None, alias="status", description="Filter by processing status")
):
    return await service.get_all(skip=skip, limit=limit, status=receipt_status)


@router.get("/{receipt_id}", response_model=ReceiptDetailResponse, status_code=status.HTTP_200_OK, summary="Get receipt with extracted items")
async def get_receipt(receipt_id: int, service: ReceiptServiceDependency):
    receipt = await service.get_receipt(receipt_id)
    return ReceiptDetailResponse.from_model(receipt)


@router.patch("/{receipt_id}", response_model=ReceiptDetailResponse, status_code=status.HTTP_200_OK, summary="Correct receipt header fields")
async def update_receipt(receipt_id: int, data: ReceiptUpdate, service: ReceiptServiceDependency):
    receipt = await service.update(receipt_id, data)
    return ReceiptDetailResponse.from_model(receipt)


@router.patch("/{receipt_id}/items/{item_id}", response_model=ExtractedItemResponse, status_code=status.HTTP_200_OK, summary="Edit an extracted item")
async def update_item(receipt_id: int, item_id: int, data: ExtractedItemUpdate, service: ConfirmationServiceDependency):
    item = await service.update_item(receipt_id, item_id, data)
    return ExtractedItemResponse.from_model(item)


@router.delete("/{receipt_id}/items/{item_id}", response_model=ExtractedItemResponse, status_code=status.HTTP_200_OK, summary="Reject an extracted item")
async def reject_item(receipt_id: int, item_id: int, service: ConfirmationServiceDependency):
    item = await service.reject_item(receipt_id, item_id)
    return ExtractedItemResponse.from_model(item)


@router.post("/{receipt_id}/confirm", response_model=ConfirmationResult, status_code=status.HTTP_200_OK, summary="Confirm reviewed items into inventory")
async def confirm_receipt(receipt_id: int, data: ConfirmReceiptRequest, response: Response, service: ConfirmationServiceDependency):
    """
    **Response:**
    - 200: All submitted items were added to the inventory
    - 207: Some items were added; failed_items lists what was wrong with the rest
    - 422: No item was valid; nothing was saved and the receipt is still a draft
    """
    result = await service.confirm(receipt_id, data)
    if not result.created_items:
        response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif result.failed_items:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return result


@router.delete("/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a receipt")
async def delete_receipt(
    receipt_id: int,
    service: ReceiptServiceDependency,
    acknowledge_linked_items: bool = Query(False, description="Required to delete a confirmed receipt; inventory items are kept")
):
    await service.delete_receipt(receipt_id, acknowledge_linked_items=acknowledge_linked_items)
    return None
