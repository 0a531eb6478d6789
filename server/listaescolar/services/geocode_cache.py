"""CEP geocoding backed by the cep_coordinates cache table.

Cache rows never expire: a row for a CEP, once written, answers every later
lookup of that exact CEP. Misses go to Nominatim with the full CEP, then
with its 5-digit prefix; a prefix hit is cached under the full CEP.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.errors import GeocodeNotFound, InvalidRequest, ServiceError
from listaescolar.db import crud
from listaescolar.schemas.schemas import GeocodeResult
from listaescolar.services.geocoder import GeocodeMatch, GeocoderUnavailable
from listaescolar.services.text import CEP_PREFIX_LENGTH, normalize_cep

logger = logging.getLogger(__name__)

SOURCE_FULL = "nominatim"
SOURCE_PREFIX = "nominatim_prefix"


def validate_cep(raw_cep: Optional[str]) -> str:
    if not raw_cep:
        raise InvalidRequest("CEP is required")
    cep = normalize_cep(raw_cep)
    if len(cep) < CEP_PREFIX_LENGTH:
        raise InvalidRequest(f"CEP must have at least {CEP_PREFIX_LENGTH} digits")
    return cep


async def _try_lookup(geocoder, query: str) -> tuple[Optional[GeocodeMatch], bool]:
    """Returns (match, failed); a transport failure counts as no match."""
    try:
        return await geocoder.lookup(query), False
    except GeocoderUnavailable as exc:
        logger.warning("[geocode] Lookup failed for %s: %s", query, exc)
        return None, True


async def geocode_cep(db: AsyncSession, raw_cep: Optional[str], geocoder) -> GeocodeResult:
    cep = validate_cep(raw_cep)

    cached = await crud.get_cep_coordinate(db, cep)
    if cached is not None:
        logger.info("[geocode] Cache hit for %s", cep)
        # read before logging the search; a failed log rolls back and expires the row
        result = GeocodeResult(
            latitude=cached.latitude,
            longitude=cached.longitude,
            address=cached.address,
            city=cached.city,
            state=cached.state,
            cached=True,
            cep=cep,
        )
        await crud.record_cep_search(db, cep, result.city, result.state)
        return result

    logger.info("[geocode] Cache miss for %s", cep)
    source = SOURCE_FULL
    match, failed = await _try_lookup(geocoder, cep)

    prefix = cep[:CEP_PREFIX_LENGTH]
    if match is None and prefix != cep:
        logger.info("[geocode] Falling back to prefix %s", prefix)
        source = SOURCE_PREFIX
        match, failed = await _try_lookup(geocoder, prefix)

    if match is None:
        if failed:
            raise ServiceError("Geocoding service unavailable")
        raise GeocodeNotFound("Could not geocode CEP")

    # cache failures are logged inside crud and never fail the lookup
    await crud.upsert_cep_coordinate(
        db,
        cep=cep,
        latitude=match.latitude,
        longitude=match.longitude,
        address=match.address,
        city=match.city,
        state=match.state,
        source=source,
    )
    await crud.record_cep_search(db, cep, match.city, match.state)

    return GeocodeResult(
        latitude=match.latitude,
        longitude=match.longitude,
        address=match.address,
        city=match.city,
        state=match.state,
        cached=False,
        cep=cep,
    )
