from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sellerbank.api import cur_version
from sellerbank.common.logging_setup import get_logger
from sellerbank.common.utils import build_error, json_error, success_response
from sellerbank.db.dependencies import get_session

logger = get_logger("sellerbank.health")

home_router = APIRouter()


@home_router.get("/health")
async def health(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health.db_unreachable", extra={"error": str(e)})
        return json_error(build_error(code="DB_UNAVAILABLE", details={"message": "database unreachable"}),
                          status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return success_response({"status": "healthy", "version": cur_version})
