"""Health check endpoint.

Simple GET endpoint that verifies the server is running and the
credential store is reachable.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeep import __version__
from gatekeep.db.engine import get_db

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check server health and database connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
