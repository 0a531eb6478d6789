"""School search by CEP proximity, name or filters."""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.config import settings
from listaescolar.core.errors import AppError
from listaescolar.db import crud
from listaescolar.schemas.schemas import SchoolOut, SchoolSearchOut, UserLocation
from listaescolar.services.geocode_cache import geocode_cep
from listaescolar.services.text import is_cep_search, normalize_cep, to_state_code

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

PROXIMITY_LABELS = {
    1: "Same CEP",
    2: "Same region",
    3: "Nearby region",
    4: "Same city",
    5: "Same state",
}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


@dataclass
class SchoolSearchParams:
    query: str = ""
    state: Optional[str] = None
    city: Optional[str] = None
    network: Optional[str] = None
    education: Optional[str] = None
    page: int = 1
    page_size: int = 20
    max_distance_km: float = field(default_factory=lambda: settings.SCHOOL_SEARCH_MAX_DISTANCE_KM)

    @property
    def mode(self) -> str:
        if is_cep_search(self.query):
            return "cep"
        if len(self.query.strip()) >= 2:
            return "name"
        return "filters"


def proximity_rank(school, cep: str, city: Optional[str], state: Optional[str]) -> Optional[int]:
    school_cep = normalize_cep(school.cep)
    if school_cep == cep:
        return 1
    if school_cep[:5] == cep[:5]:
        return 2
    if school_cep[:4] == cep[:4]:
        return 3
    if city and school.city and school.city.lower() == city.lower():
        return 4
    state_code = to_state_code(state)
    if state_code and to_state_code(school.state) == state_code:
        return 5
    return None


def _distance(school, lat: Optional[float], lng: Optional[float]) -> Optional[float]:
    if lat is None or lng is None or school.latitude is None or school.longitude is None:
        return None
    return haversine_km(lat, lng, school.latitude, school.longitude)


def _to_out(school, distance=None, rank=None) -> SchoolOut:
    return SchoolOut(
        id=school.id,
        name=school.name,
        slug=school.slug,
        cep=school.cep,
        address=school.address,
        city=school.city,
        state=school.state,
        logo_url=school.logo_url,
        network_type=school.network_type,
        education_types=school.education_types,
        latitude=school.latitude,
        longitude=school.longitude,
        distance_km=round(distance, 1) if distance is not None else None,
        proximity_rank=rank,
        proximity_label=PROXIMITY_LABELS.get(rank) if rank else None,
    )


def rank_by_hierarchy(schools, cep, city, state, lat=None, lng=None) -> List[SchoolOut]:
    ranked = []
    for school in schools:
        rank = proximity_rank(school, cep, city, state)
        if rank is None:
            continue
        distance = _distance(school, lat, lng)
        ranked.append((rank, distance is None, distance or 0.0, school.name, school, distance))
    ranked.sort(key=lambda r: r[:4])
    return [_to_out(school, distance, rank) for rank, _, _, _, school, distance in ranked]


def rank_by_distance(schools, lat: float, lng: float, max_distance_km: float) -> List[SchoolOut]:
    ranked = []
    for school in schools:
        distance = _distance(school, lat, lng)
        if distance is None or distance > max_distance_km:
            continue
        ranked.append((distance, school.name, school))
    ranked.sort(key=lambda r: r[:2])
    return [_to_out(school, distance) for distance, _, school in ranked]


def _paginate(results: List[SchoolOut], page: int, page_size: int) -> List[SchoolOut]:
    start = (max(page, 1) - 1) * page_size
    return results[start:start + page_size]


async def search_schools(db: AsyncSession, params: SchoolSearchParams, geocoder=None) -> SchoolSearchOut:
    mode = params.mode
    location = None

    if mode == "cep":
        cep = normalize_cep(params.query)
        coords = None
        if geocoder is not None:
            try:
                coords = await geocode_cep(db, cep, geocoder)
            except AppError as exc:
                # the hierarchy still works on CEP digits alone
                logger.info("[school-search] Geocode unavailable for %s: %s", cep, exc.message)
        lat = coords.latitude if coords else None
        lng = coords.longitude if coords else None
        user_city = coords.city if coords else None
        user_state = params.state or (coords.state if coords else None)
        if coords:
            location = UserLocation(latitude=lat, longitude=lng, city=coords.city, state=coords.state)

        schools = await crud.get_active_schools(
            db, network=params.network, education=params.education
        )
        results = rank_by_hierarchy(schools, cep, user_city, user_state, lat, lng)
        if not results and lat is not None:
            candidates = await crud.get_active_schools(
                db,
                state=params.state,
                city=params.city,
                network=params.network,
                education=params.education,
            )
            results = rank_by_distance(candidates, lat, lng, params.max_distance_km)
    else:
        schools = await crud.get_active_schools(
            db,
            name=params.query.strip() if mode == "name" else None,
            state=params.state,
            city=params.city,
            network=params.network,
            education=params.education,
        )
        results = [_to_out(s) for s in schools]

    logger.info("[school-search] mode=%s matches=%d", mode, len(results))
    return SchoolSearchOut(
        schools=_paginate(results, params.page, params.page_size),
        total=len(results),
        search_mode=mode,
        user_location=location,
    )
