from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from home_inventory.config import settings

# Convert postgresql:// to postgresql+asyncpg://
database_url = settings.DATABASE_URL.replace(
    "postgresql://", "postgresql+asyncpg://", 1
)

engine_options = {"echo": settings.ENV == "development"}
if database_url.startswith("postgresql+asyncpg://"):
    engine_options.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        connect_args={
            "statement_cache_size": 0,  # Disable prepared statements for pgbouncer compatibility
        },
    )

engine = create_async_engine(database_url, **engine_options)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()

# Dependency for FastAPI
async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

def import_models() -> None:
    """Registers every model with Base.metadata."""
    from home_inventory.categories.models import Category  # noqa: F401
    from home_inventory.locations.models import Location  # noqa: F401
    from home_inventory.receipts.models import Receipt  # noqa: F401
    from home_inventory.extracted_items.models import ExtractedItem  # noqa: F401
    from home_inventory.inventory.models import InventoryItem  # noqa: F401

async def init_db():
    """
    Initialize the database.
    """
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
