from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.errors import InvalidRequest
from listaescolar.db import crud
from listaescolar.db.db import get_db
from listaescolar.schemas.schemas import PartnerStoreOut, StoreCartsOut, StoreRecommendation
from listaescolar.services.store_carts import build_store_carts, recommend_store

router = APIRouter()

@router.get("/store-carts", response_model=StoreCartsOut, response_model_exclude_unset=True)
async def get_store_carts(
    list_id: Optional[str] = None,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = Header(None),
    referer: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Build one virtual cart per active partner store for every item of a list.
    """
    if not list_id:
        raise InvalidRequest("list_id is required")

    return await build_store_carts(
        db,
        list_id,
        session_id=session_id,
        user_agent=user_agent,
        referrer=referer,
    )

@router.get("/store-carts/recommendation", response_model=Optional[StoreRecommendation])
async def get_store_recommendation(
    list_id: Optional[str] = None,
    school_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    if not list_id:
        raise InvalidRequest("list_id is required")
    return await recommend_store(db, list_id, school_id)

@router.get("/stores", response_model=List[PartnerStoreOut])
async def get_partner_stores(db: AsyncSession = Depends(get_db)):
    """
    Active partner stores in display order.
    """
    return await crud.get_active_stores(db)
