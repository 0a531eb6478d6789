import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.models import (
    CepCoordinate,
    CepSearchEvent,
    MaterialItem,
    MaterialList,
    PartnerStore,
    PopularList,
    PopularSchool,
    School,
    StoreClickEvent,
)

logger = logging.getLogger(__name__)


def to_float(val) -> Optional[float]:
    """Coerce a NUMERIC column value (Decimal, int, str) to float or None."""
    if val is None:
        return None
    if isinstance(val, float):
        return val
    try:
        return float(Decimal(str(val)))
    except (InvalidOperation, ValueError):
        return None


async def get_item(db: AsyncSession, item_id: str) -> Optional[MaterialItem]:
    return await db.get(MaterialItem, item_id)


async def get_store(db: AsyncSession, store_id: str) -> Optional[PartnerStore]:
    return await db.get(PartnerStore, store_id)


async def get_list(db: AsyncSession, list_id: str) -> Optional[MaterialList]:
    return await db.get(MaterialList, list_id)


async def get_list_items(db: AsyncSession, list_id: str) -> List[MaterialItem]:
    result = await db.execute(
        select(MaterialItem)
        .where(MaterialItem.list_id == list_id)
        .order_by(MaterialItem.position)
    )
    return list(result.scalars())


async def get_active_stores(db: AsyncSession) -> List[PartnerStore]:
    result = await db.execute(
        select(PartnerStore)
        .where(PartnerStore.is_active.is_(True))
        .order_by(PartnerStore.order_index)
    )
    return list(result.scalars())


async def record_click_event(
    db: AsyncSession,
    *,
    store_id: Optional[str] = None,
    item_id: Optional[str] = None,
    school_id: Optional[str] = None,
    list_id: Optional[str] = None,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
) -> bool:
    """Append a click event. Failures are logged and reported as False."""
    try:
        db.add(StoreClickEvent(
            store_id=store_id,
            item_id=item_id,
            school_id=school_id,
            list_id=list_id,
            session_id=session_id,
            user_agent=user_agent,
            referrer=referrer,
        ))
        await db.commit()
        return True
    except SQLAlchemyError:
        logger.exception("Failed to record click event store=%s item=%s list=%s", store_id, item_id, list_id)
        await db.rollback()
        return False


async def get_cep_coordinate(db: AsyncSession, cep: str) -> Optional[CepCoordinate]:
    return await db.get(CepCoordinate, cep)


async def upsert_cep_coordinate(
    db: AsyncSession,
    *,
    cep: str,
    latitude: float,
    longitude: float,
    address: Optional[str],
    city: Optional[str],
    state: Optional[str],
    source: str,
) -> bool:
    """Insert or overwrite the cache row for ``cep`` (last write wins)."""
    try:
        await db.merge(CepCoordinate(
            cep=cep,
            latitude=latitude,
            longitude=longitude,
            address=address,
            city=city,
            state=state,
            source=source,
            updated_at=datetime.now(timezone.utc),
        ))
        await db.commit()
        return True
    except SQLAlchemyError:
        logger.exception("Error writing CEP cache for %s", cep)
        await db.rollback()
        return False


async def record_cep_search(
    db: AsyncSession, cep: str, city: Optional[str], state: Optional[str]
) -> bool:
    try:
        db.add(CepSearchEvent(cep=cep, city=city, state=state))
        await db.commit()
        return True
    except SQLAlchemyError:
        logger.exception("Error logging CEP search for %s", cep)
        await db.rollback()
        return False


async def get_cep_suggestions(db: AsyncSession, prefix: str, max_results: int) -> List[dict]:
    """Rank known CEPs starting with ``prefix`` by school and search counts."""
    pattern = f"{prefix}%"

    school_rows = await db.execute(
        select(School.cep, func.count(School.id), func.max(School.city), func.max(School.state))
        .where(School.cep.like(pattern), School.is_active.is_(True))
        .group_by(School.cep)
    )
    search_rows = await db.execute(
        select(CepSearchEvent.cep, func.count(CepSearchEvent.id), func.max(CepSearchEvent.city), func.max(CepSearchEvent.state))
        .where(CepSearchEvent.cep.like(pattern))
        .group_by(CepSearchEvent.cep)
    )

    ranked: dict[str, dict] = {}
    for cep, count, city, state in school_rows:
        ranked[cep] = {"cep": cep, "city": city, "state": state, "school_count": count, "search_count": 0}
    for cep, count, city, state in search_rows:
        entry = ranked.setdefault(
            cep, {"cep": cep, "city": city, "state": state, "school_count": 0, "search_count": 0}
        )
        entry["search_count"] = count
        entry["city"] = entry["city"] or city
        entry["state"] = entry["state"] or state

    ordered = sorted(ranked.values(), key=lambda s: (-s["school_count"], -s["search_count"], s["cep"]))
    return ordered[:max_results]


async def get_active_schools(
    db: AsyncSession,
    *,
    name: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    network: Optional[str] = None,
    education: Optional[str] = None,
) -> List[School]:
    stmt = select(School).where(School.is_active.is_(True))
    if name:
        stmt = stmt.where(func.lower(School.name).contains(name.lower(), autoescape=True))
    if state:
        stmt = stmt.where(func.upper(School.state) == state.upper())
    if city:
        stmt = stmt.where(func.lower(School.city) == city.lower())
    if network:
        stmt = stmt.where(School.network_type == network)
    stmt = stmt.order_by(School.name)

    result = await db.execute(stmt)
    schools = list(result.scalars())

    # JSON array membership differs per backend, filter in Python
    if education:
        schools = [s for s in schools if education in (s.education_types or [])]
    return schools


async def get_store_click_counts(
    db: AsyncSession, list_id: str, school_id: Optional[str] = None
) -> List[dict]:
    """Per active store, count cart-level and item-level clicks for a list."""
    is_cart_click = StoreClickEvent.item_id.is_(None)
    stmt = (
        select(
            PartnerStore.id,
            PartnerStore.name,
            func.sum(case((is_cart_click, 1), else_=0)),
            func.sum(case((is_cart_click, 0), else_=1)),
        )
        .join(StoreClickEvent, StoreClickEvent.store_id == PartnerStore.id)
        .where(PartnerStore.is_active.is_(True), StoreClickEvent.list_id == list_id)
        .group_by(PartnerStore.id, PartnerStore.name, PartnerStore.order_index)
        .order_by(PartnerStore.order_index)
    )
    if school_id:
        stmt = stmt.where(StoreClickEvent.school_id == school_id)

    result = await db.execute(stmt)
    return [
        {"store_id": store_id, "store_name": name, "cart_clicks": cart_clicks, "item_clicks": item_clicks}
        for store_id, name, cart_clicks, item_clicks in result
    ]


async def refresh_popular_schools(db: AsyncSession) -> int:
    """Rebuild popular_schools_cache. Returns the number of rows written."""
    now = datetime.now(timezone.utc)
    list_counts = dict((await db.execute(
        select(MaterialList.school_id, func.count(MaterialList.id))
        .where(MaterialList.is_active.is_(True))
        .group_by(MaterialList.school_id)
    )).all())
    click_counts = dict((await db.execute(
        select(StoreClickEvent.school_id, func.count(StoreClickEvent.id))
        .where(StoreClickEvent.school_id.is_not(None))
        .group_by(StoreClickEvent.school_id)
    )).all())

    schools = (await db.execute(
        select(School).where(School.id.in_(set(list_counts) | set(click_counts)))
    )).scalars().all()

    await db.execute(delete(PopularSchool))
    written = 0
    for school in schools:
        db.add(PopularSchool(
            school_id=school.id,
            name=school.name,
            city=school.city,
            state=school.state,
            list_count=list_counts.get(school.id, 0),
            click_count=click_counts.get(school.id, 0),
            refreshed_at=now,
        ))
        written += 1
    await db.commit()
    return written


async def refresh_popular_lists(db: AsyncSession) -> int:
    """Rebuild popular_lists_cache from click events."""
    now = datetime.now(timezone.utc)
    rows = (await db.execute(
        select(
            StoreClickEvent.list_id,
            func.max(StoreClickEvent.school_id),
            func.count(StoreClickEvent.id),
            func.count(func.distinct(StoreClickEvent.session_id)),
        )
        .where(StoreClickEvent.list_id.is_not(None))
        .group_by(StoreClickEvent.list_id)
    )).all()

    await db.execute(delete(PopularList))
    for list_id, school_id, clicks, sessions in rows:
        db.add(PopularList(
            list_id=list_id,
            school_id=school_id,
            click_count=clicks,
            session_count=sessions,
            refreshed_at=now,
        ))
    await db.commit()
    return len(rows)
