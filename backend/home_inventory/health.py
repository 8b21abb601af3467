import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from home_inventory.db.main import get_session

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/health")
async def health_check():
    """Basic health check without database"""
    return {
        "status": "ok",
        "service": "home-inventory-api"
    }

@router.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_session)):
    """Health check with database connection test"""
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()

        return {
            "status": "ok",
            "database": "connected"
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "error",
            "database": "disconnected",
            "error": str(e)
        }
