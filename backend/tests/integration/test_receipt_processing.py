"""
Integration tests for the receipt processing pipeline.

Tests cover:
- photo -> draft receipt with extracted items and quality report (service and API)
- degraded outcomes (no text, near-zero confidence) returned as data
- upload validation and engine failures mapped to HTTP responses
- OCR timeout retry and image cleanup
- receipt listing, header corrections and image retention purge
"""
import time
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from home_inventory.common.exceptions import NextAction
from home_inventory.ocr.exceptions import EngineInitFailedError, OcrTimeoutError
from home_inventory.ocr.services import OcrService, get_ocr_engine
from home_inventory.parsing.services import lines_from_text
from home_inventory.preprocessing.schemas import PreprocessingLevel, RawImage
from home_inventory.processing.service import ReceiptProcessorService
from home_inventory.receipts.exceptions import FileValidationError
from home_inventory.receipts.models import ReceiptStatus
from home_inventory.receipts.services import ReceiptService
from home_inventory.scoring.schemas import ConfidenceBucket
from main import app

from conftest import FakeOcrEngine


class SlowOcrEngine(FakeOcrEngine):
    name = "slow"

    def recognize(self, image, options):
        self.calls += 1
        time.sleep(0.3)
        return list(self.lines)


def make_processor(session, storage, engine, timeout_seconds: float = 1.0) -> ReceiptProcessorService:
    return ReceiptProcessorService(
        receipt_service=ReceiptService(session, storage),
        ocr_service=OcrService(engine=engine, timeout_seconds=timeout_seconds),
        storage=storage,
    )


def stored_files(storage) -> list[Path]:
    return [path for path in Path(storage.base_path).rglob("*") if path.is_file()]


@pytest.fixture
def processor(test_db_session, receipt_storage, fake_ocr_engine) -> ReceiptProcessorService:
    return make_processor(test_db_session, receipt_storage, fake_ocr_engine)


class TestReceiptProcessorService:

    @pytest.mark.integration
    async def test_photo_becomes_draft_with_items(self, processor, receipt_storage, png_bytes):
        draft = await processor.process_receipt(RawImage(data=png_bytes, mime_type="image/png"))

        assert draft.processing_status == ReceiptStatus.DRAFT
        assert draft.merchant_name == "WALMART"
        assert draft.receipt_date == date(2024, 3, 14)
        assert draft.total_amount == Decimal("12.97")
        assert draft.preprocessing_level == "none"
        assert draft.confidence == pytest.approx(0.78)
        assert "TOTAL 12.97" in draft.raw_ocr_text

        wheat, coffee = draft.items
        assert (wheat.position, wheat.name, wheat.total_price) == (0, "GV BRD WHEAT", Decimal("2.99"))
        assert (coffee.position, coffee.name, coffee.quantity) == (1, "COFFEE", 2)
        assert coffee.unit_price == Decimal("4.99")
        assert wheat.confidence_bucket == ConfidenceBucket.HIGH
        assert wheat.bounding_box is not None

        assert draft.quality.next_action == NextAction.REVIEW
        assert draft.quality.items_found == 2
        assert draft.quality.bucket == ConfidenceBucket.MEDIUM

        image_path = Path(receipt_storage.base_path) / draft.image_url
        assert image_path.read_bytes() == png_bytes
        assert draft.image_status == "active"
        assert draft.image_expires_at is not None

    @pytest.mark.integration
    async def test_no_text_is_a_draft_not_an_error(self, test_db_session, receipt_storage, png_bytes):
        processor = make_processor(test_db_session, receipt_storage, FakeOcrEngine([]))

        draft = await processor.process_receipt(RawImage(data=png_bytes, mime_type="image/png"))

        assert draft.processing_status == ReceiptStatus.DRAFT
        assert draft.items == []
        assert draft.confidence == 0.0
        assert draft.raw_ocr_text is None
        assert draft.quality.text_detected is False
        assert draft.quality.next_action == NextAction.RETAKE

    @pytest.mark.integration
    async def test_zero_confidence_text_yields_no_items(self, test_db_session, receipt_storage, png_bytes):
        engine = FakeOcrEngine(lines_from_text("WALMART\nMILK 2.99\nBREAD 1.99\nTOTAL 4.98", confidence=0.0))
        processor = make_processor(test_db_session, receipt_storage, engine)

        draft = await processor.process_receipt(RawImage(data=png_bytes, mime_type="image/png"))

        assert draft.processing_status == ReceiptStatus.DRAFT
        assert draft.items == []
        assert draft.confidence == 0.0
        assert draft.merchant_name is None
        assert draft.total_amount is None
        # Raw text is kept for manual entry
        assert "MILK 2.99" in draft.raw_ocr_text
        assert draft.quality.text_detected is False
        assert draft.quality.next_action == NextAction.RETAKE

    @pytest.mark.integration
    async def test_preprocessing_level_is_recorded(self, processor, png_bytes):
        draft = await processor.process_receipt(
            RawImage(data=png_bytes, mime_type="image/png"), level=PreprocessingLevel.QUICK
        )
        assert draft.preprocessing_level == "quick"

    @pytest.mark.integration
    async def test_invalid_upload_stores_nothing(self, processor, receipt_storage):
        with pytest.raises(FileValidationError):
            await processor.process_receipt(RawImage(data=b"definitely not an image", mime_type="image/png"))

        assert stored_files(receipt_storage) == []

    @pytest.mark.integration
    async def test_timeout_is_retried_then_offers_manual_entry(self, test_db_session, receipt_storage, png_bytes):
        engine = SlowOcrEngine()
        processor = make_processor(test_db_session, receipt_storage, engine, timeout_seconds=0.05)

        with pytest.raises(OcrTimeoutError) as exc_info:
            await processor.process_receipt(RawImage(data=png_bytes, mime_type="image/png"))

        assert engine.calls == 2
        assert exc_info.value.next_action == NextAction.MANUAL_ENTRY
        # The photo of a failed run is not kept
        assert stored_files(receipt_storage) == []

    @pytest.mark.integration
    async def test_purge_expired_images_keeps_receipt_data(self, processor, test_db_session, receipt_storage, png_bytes):
        draft = await processor.process_receipt(RawImage(data=png_bytes, mime_type="image/png"))
        service = ReceiptService(test_db_session, receipt_storage)

        assert await service.purge_expired_images() == 0

        purged = await service.purge_expired_images(now=datetime.now(timezone.utc) + timedelta(days=31))

        assert purged == 1
        assert stored_files(receipt_storage) == []
        receipt = await service.get_receipt(draft.id)
        assert receipt.image_url is None
        assert receipt.image_status == "expired"
        assert receipt.merchant_name == "WALMART"
        assert len(receipt.extracted_items) == 2


class TestProcessReceiptApi:

    @pytest.mark.integration
    async def test_process_receipt(self, client, png_bytes):
        response = await client.post(
            "/api/receipts/process",
            files={"file": ("receipt.png", png_bytes, "image/png")},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["processing_status"] == "draft"
        assert body["merchant_name"] == "WALMART"
        assert body["receipt_date"] == "2024-03-14"
        assert Decimal(body["total_amount"]) == Decimal("12.97")
        assert [item["name"] for item in body["items"]] == ["GV BRD WHEAT", "COFFEE"]
        assert all(item["status"] == "pending" for item in body["items"])
        assert body["quality"]["next_action"] == "review"
        assert body["quality"]["bucket"] == "medium"

    @pytest.mark.integration
    async def test_process_receipt_with_preprocessing_level(self, client, png_bytes):
        response = await client.post(
            "/api/receipts/process",
            params={"preprocessing_level": "full"},
            files={"file": ("receipt.png", png_bytes, "image/png")},
        )

        assert response.status_code == 201
        assert response.json()["preprocessing_level"] == "full"

    @pytest.mark.parametrize(
        "filename,content,content_type",
        [
            ("notes.txt", b"hello, this is plain text and not a photo", "text/plain"),
            ("empty.jpg", b"", "image/jpeg"),
            ("receipt.jpg", b"\x89PNG\r\n\x1a\n" + b"\x00" * 64, "image/jpeg"),
        ],
    )
    @pytest.mark.integration
    async def test_invalid_upload(self, client, filename, content, content_type):
        response = await client.post(
            "/api/receipts/process",
            files={"file": (filename, content, content_type)},
        )

        assert response.status_code == 400
        assert response.json()["next_action"] == "retake"

    @pytest.mark.integration
    async def test_undecodable_image(self, client):
        response = await client.post(
            "/api/receipts/process",
            files={"file": ("receipt.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 64, "image/png")},
        )

        assert response.status_code == 415
        assert response.json()["next_action"] == "retake"

    @pytest.mark.integration
    async def test_engine_unavailable(self, client, png_bytes):
        def unavailable():
            raise EngineInitFailedError("Tesseract OCR is not installed")

        app.dependency_overrides[get_ocr_engine] = unavailable

        response = await client.post(
            "/api/receipts/process",
            files={"file": ("receipt.png", png_bytes, "image/png")},
        )

        assert response.status_code == 503
        assert response.json() == {"detail": "Tesseract OCR is not installed", "next_action": "manual_entry"}


class TestReceiptApi:

    async def create_draft(self, client, png_bytes) -> dict:
        response = await client.post(
            "/api/receipts/process",
            files={"file": ("receipt.png", png_bytes, "image/png")},
        )
        assert response.status_code == 201
        return response.json()

    @pytest.mark.integration
    async def test_get_receipt(self, client, png_bytes):
        draft = await self.create_draft(client, png_bytes)

        response = await client.get(f"/api/receipts/{draft['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == draft["id"]
        assert len(body["items"]) == 2
        assert "quality" not in body

    @pytest.mark.integration
    async def test_get_missing_receipt(self, client):
        response = await client.get("/api/receipts/999")

        assert response.status_code == 404
        assert response.json()["next_action"] == "none"

    @pytest.mark.integration
    async def test_list_receipts_with_status_filter(self, client, png_bytes):
        await self.create_draft(client, png_bytes)
        await self.create_draft(client, png_bytes)

        response = await client.get("/api/receipts/", params={"status": "draft"})
        assert response.status_code == 200
        assert response.json()["total"] == 2

        response = await client.get("/api/receipts/", params={"status": "confirmed"})
        assert response.json()["total"] == 0
        assert response.json()["items"] == []

    @pytest.mark.integration
    async def test_correct_header_fields(self, client, png_bytes):
        draft = await self.create_draft(client, png_bytes)

        response = await client.patch(
            f"/api/receipts/{draft['id']}",
            json={"merchant_name": "Walmart Supercenter", "receipt_date": "2024-03-15", "total_amount": "13.00"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["merchant_name"] == "Walmart Supercenter"
        assert body["receipt_date"] == "2024-03-15"
        assert Decimal(body["total_amount"]) == Decimal("13.00")
        assert body["processing_status"] == "draft"

    @pytest.mark.integration
    async def test_delete_draft_removes_image(self, client, png_bytes, receipt_storage):
        draft = await self.create_draft(client, png_bytes)
        image_path = Path(receipt_storage.base_path) / draft["image_url"]
        assert image_path.exists()

        response = await client.delete(f"/api/receipts/{draft['id']}")

        assert response.status_code == 204
        assert not image_path.exists()
        assert (await client.get(f"/api/receipts/{draft['id']}")).status_code == 404
