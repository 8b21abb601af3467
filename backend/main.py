import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from home_inventory.config import settings
from home_inventory.db.main import init_db
from home_inventory.health import router as health_router
from home_inventory.categories.routes import router as categories_router
from home_inventory.locations.routes import router as locations_router
from home_inventory.inventory.routes import router as inventory_router
from home_inventory.receipts.routes import router as receipts_router
from home_inventory.ocr.services import shutdown_ocr_executor
from home_inventory.error_handler import exception_handler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Set log level for application modules to INFO
logging.getLogger('home_inventory').setLevel(logging.INFO)

# Keep external libraries at WARNING to reduce noise
logging.getLogger('uvicorn').setLevel(logging.WARNING)
logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
logging.getLogger('PIL').setLevel(logging.WARNING)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure tables exist (local SQLite runs)
    await init_db()
    yield
    # Shutdown: stop OCR worker threads
    shutdown_ocr_executor()

app = FastAPI(
    title="Home Inventory API",
    version="1.0.0",
    docs_url="/docs" if settings.ENV == "development" else None,
    lifespan=lifespan
)

# CORS Configuration
if settings.ENV == "development":
    origins = ["http://localhost:3000", "http://localhost:4321"]
else:
    origins = [settings.WEB_APP_URL]  # Production domain

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

exception_handler(app)

app.include_router(health_router, tags=["health"])
app.include_router(receipts_router, prefix="/api/receipts", tags=["receipts"])
app.include_router(categories_router, prefix="/api/categories", tags=["categories"])
app.include_router(locations_router, prefix="/api/locations", tags=["locations"])
app.include_router(inventory_router, prefix="/api/inventory-items", tags=["inventory-items"])
