import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.db.db import get_db
from listaescolar.schemas.schemas import CacheRefreshOut, CacheRefreshRequest
from listaescolar.services.popular_cache import refresh_popular_cache

logger = logging.getLogger(__name__)

router = APIRouter()

async def _read_options(request: Request) -> CacheRefreshRequest:
    # no body or an invalid one means "refresh everything"
    try:
        return CacheRefreshRequest.model_validate(await request.json())
    except ValueError:
        return CacheRefreshRequest()

@router.post("/refresh-popular-cache", response_model=CacheRefreshOut)
async def post_refresh_popular_cache(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Recompute the popular schools/lists aggregates.
    """
    options = await _read_options(request)
    try:
        return await refresh_popular_cache(db, schools=options.schools, lists=options.lists)
    except Exception as exc:
        logger.exception("[refresh-popular-cache] Fatal error")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": str(exc),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
