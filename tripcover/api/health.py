from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tripcover.config import get_settings
from tripcover.database import get_db
from tripcover.services.providers import get_token_manager
from tripcover.services.token_manager import TokenManager

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(
    db: Annotated[AsyncSession, Depends(get_db)],
    token_manager: Annotated[TokenManager, Depends(get_token_manager)],
) -> dict[str, Any]:
    """
    Database connectivity plus the state of the Assistcard gateway.

    A missing provider token does not make the service unready: the first
    request logs in on demand.
    """
    database = "unhealthy"
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError as e:
        database = f"unhealthy: {str(e)}"

    return {
        "status": "healthy" if database == "healthy" else "unhealthy",
        "checks": {"database": database},
        "gateway": {
            "mode": get_settings().get_gateway_mode(),
            "token_cached": token_manager.has_valid_token(),
        },
    }
