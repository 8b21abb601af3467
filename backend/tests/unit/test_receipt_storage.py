"""
Unit tests for ReceiptImageStorage.
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


class TestReceiptImageStorage:

    @pytest.mark.unit
    def test_save_writes_file_under_per_receipt_directory(self, receipt_storage):
        stored = receipt_storage.save("abc123", b"image-bytes", "png")

        assert stored.path == "receipts/abc123/original.png"
        assert (Path(receipt_storage.base_path) / stored.path).read_bytes() == b"image-bytes"
        assert stored.hash == receipt_storage.calculate_file_hash(b"image-bytes")
        assert len(stored.hash) == 64

    @pytest.mark.unit
    def test_expiration_uses_retention_days(self, receipt_storage):
        stored = receipt_storage.save("abc123", b"image-bytes", "png")

        expected = datetime.now(timezone.utc) + timedelta(days=30)
        assert abs(stored.expires_at - expected) < timedelta(minutes=1)

    @pytest.mark.unit
    def test_delete_removes_file_and_directory(self, receipt_storage):
        stored = receipt_storage.save("abc123", b"image-bytes", "png")
        full_path = Path(receipt_storage.base_path) / stored.path

        receipt_storage.delete(stored.path)

        assert not full_path.exists()
        assert not full_path.parent.exists()

    @pytest.mark.unit
    def test_delete_missing_file_is_ignored(self, receipt_storage):
        receipt_storage.delete("receipts/missing/original.jpg")
        receipt_storage.delete(None)
