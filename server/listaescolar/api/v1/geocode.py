from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.db.db import get_db
from listaescolar.schemas.schemas import CepSuggestion, GeocodeRequest, GeocodeResult
from listaescolar.services.cep_suggestions import get_cep_suggestions
from listaescolar.services.geocode_cache import geocode_cep
from listaescolar.services.geocoder import get_geocoder

router = APIRouter()

@router.post("/geocode-cep", response_model=GeocodeResult)
async def post_geocode_cep(
    body: GeocodeRequest,
    db: AsyncSession = Depends(get_db),
    geocoder=Depends(get_geocoder)
):
    """
    Convert a CEP into coordinates, served from cache when already known.
    """
    return await geocode_cep(db, body.cep, geocoder)

@router.get("/ceps/suggestions", response_model=List[CepSuggestion])
async def get_suggestions(
    prefix: Optional[str] = None,
    max_results: Optional[int] = None,
    db: AsyncSession = Depends(get_db)
):
    return await get_cep_suggestions(db, prefix, max_results)
