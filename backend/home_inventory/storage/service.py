import hashlib
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from home_inventory.config import settings

logger = logging.getLogger(__name__)

EXTENSIONS_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class StoredImage:
    path: str
    hash: str
    expires_at: datetime


class ReceiptImageStorage:
    """
    Local storage for receipt photos.

    Each receipt gets its own directory keyed by a random storage key, so
    concurrent uploads never share a path: receipts/{key}/original.{ext}
    """

    def __init__(self, base_path: Optional[str] = None, retention_days: int = settings.RECEIPT_IMAGE_RETENTION_DAYS):
        self.base_path = Path(base_path or settings.RECEIPT_STORAGE_PATH)
        self.retention_days = retention_days
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Using local receipt storage at {self.base_path}")

    def calculate_file_hash(self, file_content: bytes) -> str:
        """
        Calculate SHA256 hash of file content.
        """
        return hashlib.sha256(file_content).hexdigest()

    def generate_file_path(self, key: str, extension: str) -> str:
        return f"receipts/{key}/original.{extension}"

    def save(self, key: str, content: bytes, extension: str = "jpg") -> StoredImage:
        """
        Writes the raw upload and returns where it lives and when it expires.
        Returns the storage path relative to base_path.
        """
        file_path = self.generate_file_path(key, extension)
        full_path = self.base_path / file_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, "wb") as f:
            f.write(content)

        stored = StoredImage(
            path=file_path,
            hash=self.calculate_file_hash(content),
            expires_at=self.calculate_expiration_date(self.retention_days),
        )
        logger.info(f"Receipt image stored: {full_path}")
        return stored

    def delete(self, file_path: Optional[str]) -> None:
        """Removes a stored image together with its per-receipt directory. Missing files are ignored."""
        if not file_path:
            return

        full_path = self.base_path / file_path
        try:
            full_path.unlink(missing_ok=True)
            if full_path.parent != self.base_path and not any(full_path.parent.iterdir()):
                shutil.rmtree(full_path.parent, ignore_errors=True)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to delete receipt image {full_path}: {e}")
            return
        logger.info(f"Receipt image deleted: {full_path}")

    def calculate_expiration_date(self, days: int = settings.RECEIPT_IMAGE_RETENTION_DAYS) -> datetime:
        return datetime.now(timezone.utc) + timedelta(days=days)


_storage: Optional[ReceiptImageStorage] = None

def get_receipt_image_storage() -> ReceiptImageStorage:
    global _storage
    if _storage is None:
        _storage = ReceiptImageStorage()
    return _storage
