"""Health check endpoints."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.dependencies import get_db
from database.engine import Database

API_VERSION = "0.1.0"

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness check; does not touch the database."""
    return HealthResponse(status="healthy", version=API_VERSION)


@router.get("/ready")
async def readiness_check(db: Database = Depends(get_db)):
    """Readiness check for load balancers."""
    if not await db.ping():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "database": "unreachable"},
        )
    return {"status": "ready", "database": "ok"}
