from fastapi import APIRouter
from sqlalchemy import text

from crosslist import __version__
from crosslist.database import get_session

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "crosslist-sync", "version": __version__}


@router.get("/health/db")
async def database_health():
    """Check database connectivity"""
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "database": "error", "error": str(e)}
