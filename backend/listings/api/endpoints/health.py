from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from listings.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "Listings Search"}


@router.get("/detailed")
async def detailed_health_check(request: Request):
    """Health check including database and cache connectivity."""
    logger.info("Detailed health check requested")
    state = request.app.state

    database = "healthy"
    try:
        async with state.database.session() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        database = "unhealthy"

    cache = "healthy" if await state.cache.ping() else "unhealthy"

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "service": "Listings Search",
        "components": {
            "database": database,
            "cache": cache,
        },
    }
