"""
Pytest configuration and shared fixtures for backend tests.
"""
import pytest
from io import BytesIO
from typing import AsyncGenerator, Optional
from httpx import ASGITransport, AsyncClient
from PIL import Image, ImageDraw
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from home_inventory.config import Settings
from home_inventory.db.main import get_session, Base
from home_inventory.ocr.engines import BaseOcrEngine
from home_inventory.ocr.schemas import OcrLine, OcrOptions
from home_inventory.ocr.services import OcrService, get_ocr_engine
from home_inventory.parsing.services import lines_from_text
from home_inventory.preprocessing.schemas import PreprocessedImage
from home_inventory.storage.service import ReceiptImageStorage, get_receipt_image_storage
from main import app

# Import all models to ensure they are registered with Base
# This ensures Base.metadata contains all table definitions
from home_inventory.categories.models import Category  # noqa: F401
from home_inventory.locations.models import Location  # noqa: F401
from home_inventory.receipts.models import Receipt  # noqa: F401
from home_inventory.extracted_items.models import ExtractedItem  # noqa: F401
from home_inventory.inventory.models import InventoryItem  # noqa: F401


class FakeOcrEngine(BaseOcrEngine):
    """OCR engine returning preset lines, so tests do not need a Tesseract binary."""
    name = "fake"

    def __init__(self, lines: Optional[list[OcrLine]] = None):
        self.lines = lines or []
        self.calls = 0

    def recognize(self, image: PreprocessedImage, options: OcrOptions) -> list[OcrLine]:
        self.calls += 1
        return list(self.lines)


def make_image_bytes(width: int = 800, height: int = 600, fmt: str = "PNG", text: str = "RECEIPT") -> bytes:
    """Builds a small in-memory receipt-like image."""
    image = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(image)
    for row in range(5):
        draw.text((40, 40 + row * 60), f"{text} {row} 1.99", fill="black")
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with overridden values."""
    return Settings(
        ENV="test",
        PORT=8000,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        WEB_APP_URL="http://localhost:4321",
        OCR_TIMEOUT_SECONDS=1.0,
        OCR_RETRY_ATTEMPTS=2,
    )


@pytest.fixture
async def test_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session with in-memory SQLite database.
    Uses StaticPool for synchronous access in async context.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def receipt_storage(tmp_path) -> ReceiptImageStorage:
    return ReceiptImageStorage(base_path=str(tmp_path / "receipts"), retention_days=30)


@pytest.fixture
def fake_ocr_engine() -> FakeOcrEngine:
    """Engine reading the WALMART sample receipt."""
    return FakeOcrEngine(lines_from_text(
        "WALMART\n"
        "03/14/2024\n"
        "GV BRD WHEAT 2.99\n"
        "2 x COFFEE @ 4.99 = 9.98\n"
        "TOTAL 12.97",
        confidence=0.9,
    ))


@pytest.fixture
def ocr_service(fake_ocr_engine: FakeOcrEngine) -> OcrService:
    return OcrService(engine=fake_ocr_engine, timeout_seconds=1.0)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
async def client(
    test_db_session: AsyncSession,
    fake_ocr_engine: FakeOcrEngine,
    receipt_storage: ReceiptImageStorage
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client for FastAPI application.
    Overrides database, OCR engine and image storage dependencies.
    """
    async def override_get_session():
        yield test_db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_ocr_engine] = lambda: fake_ocr_engine
    app.dependency_overrides[get_receipt_image_storage] = lambda: receipt_storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
