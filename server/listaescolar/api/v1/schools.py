from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.config import settings
from listaescolar.db.db import get_db
from listaescolar.schemas.schemas import SchoolSearchOut
from listaescolar.services.geocoder import get_geocoder
from listaescolar.services.school_search import SchoolSearchParams, search_schools

router = APIRouter()

@router.get("/search", response_model=SchoolSearchOut)
async def get_school_search(
    q: str = "",
    state: Optional[str] = None,
    city: Optional[str] = None,
    network: Optional[str] = None,
    education: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    max_distance_km: float = Query(settings.SCHOOL_SEARCH_MAX_DISTANCE_KM, gt=0),
    db: AsyncSession = Depends(get_db),
    geocoder=Depends(get_geocoder)
):
    """
    Search schools by CEP proximity, by name, or by filters only.
    """
    params = SchoolSearchParams(
        query=q,
        state=state,
        city=city,
        network=network,
        education=education,
        page=page,
        page_size=page_size,
        max_distance_km=max_distance_km,
    )
    return await search_schools(db, params, geocoder)
