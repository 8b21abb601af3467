from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App
    ENV: str = "development"
    PORT: int = 8000

    # Database (PostgreSQL via asyncpg, SQLite via aiosqlite for local runs)
    DATABASE_URL: str = "sqlite+aiosqlite:///./home_inventory.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # Frontend
    WEB_APP_URL: str = "http://localhost:3000"

    # Image preprocessing
    DEFAULT_PREPROCESSING_LEVEL: str = "none"  # none | quick | full

    # OCR (Tesseract)
    OCR_TIMEOUT_SECONDS: float = 30.0  # Hard wall-clock bound per invocation
    OCR_RETRY_ATTEMPTS: int = 2  # Attempt + one retry on timeout
    OCR_LANGUAGE: str = "eng"
    OCR_PAGE_SEGMENTATION_MODE: int = 11  # Sparse text: every line stands on its own
    OCR_ENGINE_MODE: int = 3  # Default LSTM/legacy selection
    TESSERACT_CMD: str | None = None  # Path to tesseract binary if not on PATH
    OCR_MAX_WORKERS: int = 2
    OCR_MIN_TEXT_CONFIDENCE: float = 0.1  # Below this the result counts as "no text"

    # Uploads and receipt image storage
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    RECEIPT_STORAGE_PATH: str = "uploads/receipts"
    RECEIPT_IMAGE_RETENTION_DAYS: int = 30

    model_config = {
        "env_file": ".env",
        "extra": "ignore"
    }

settings = Settings()
