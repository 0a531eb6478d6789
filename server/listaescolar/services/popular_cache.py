import logging
import time
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.db import crud
from listaescolar.schemas.schemas import CacheRefreshOut

logger = logging.getLogger(__name__)

REFRESHERS = {
    "schools": crud.refresh_popular_schools,
    "lists": crud.refresh_popular_lists,
}


async def refresh_popular_cache(db: AsyncSession, *, schools: bool = True, lists: bool = True) -> CacheRefreshOut:
    """
    Rebuild the popular schools/lists aggregates.
    A failing target is reported in ``results`` and does not stop the other one.
    """
    start = time.monotonic()
    logger.info("[refresh-popular-cache] Starting cache refresh...")

    selected = {"schools": schools, "lists": lists}
    results: dict[str, str] = {}
    for target, refresher in REFRESHERS.items():
        if not selected[target]:
            continue
        try:
            rows = await refresher(db)
            results[target] = "Success"
            logger.info("[refresh-popular-cache] %s cache refreshed (%d rows)", target, rows)
        except SQLAlchemyError as exc:
            await db.rollback()
            results[target] = f"Error: {exc}"
            logger.exception("[refresh-popular-cache] Error refreshing %s", target)

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info("[refresh-popular-cache] Completed in %dms %s", duration_ms, results)
    return CacheRefreshOut(
        success=True,
        duration_ms=duration_ms,
        results=results,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
