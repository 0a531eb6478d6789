from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.errors import InvalidRequest
from listaescolar.db import crud
from listaescolar.db.db import get_db
from listaescolar.schemas.schemas import ClickEventIn, ResolvedLink
from listaescolar.services.link_resolver import resolve_link

router = APIRouter()

@router.get("/resolve-link", response_model=ResolvedLink)
async def get_resolved_link(
    item_id: Optional[str] = None,
    store_id: Optional[str] = None,
    school_id: Optional[str] = None,
    list_id: Optional[str] = None,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = Header(None),
    referer: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Resolve an item to a purchase URL at a partner store and log the click.
    """
    if not item_id or not store_id:
        raise InvalidRequest("item_id and store_id are required")

    return await resolve_link(
        db,
        item_id,
        store_id,
        school_id=school_id,
        list_id=list_id,
        session_id=session_id,
        user_agent=user_agent,
        referrer=referer,
    )

@router.post("/store-clicks", status_code=201)
async def track_store_click(
    event: ClickEventIn,
    user_agent: Optional[str] = Header(None),
    referer: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a store-level ("open all") or item-level click from the client.
    """
    if not event.store_id:
        raise InvalidRequest("store_id is required")

    recorded = await crud.record_click_event(
        db,
        user_agent=user_agent,
        referrer=referer,
        **event.model_dump(),
    )
    return {"recorded": recorded}
