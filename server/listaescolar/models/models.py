from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, JSON
from sqlalchemy.types import NUMERIC
from sqlalchemy.sql import func
import uuid
from listaescolar.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class School(Base):
    __tablename__ = "schools"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    cep = Column(String(8), nullable=False, index=True)
    address = Column(String)
    city = Column(String)
    state = Column(String(2))
    logo_url = Column(String)
    network_type = Column(String)
    education_types = Column(JSON)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MaterialList(Base):
    __tablename__ = "material_lists"

    id = Column(String(36), primary_key=True, default=_uuid)
    school_id = Column(String(36), ForeignKey("schools.id"), nullable=False, index=True)
    grade = Column(String)
    year = Column(Integer)
    status = Column(String, default="published")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MaterialItem(Base):
    __tablename__ = "material_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    list_id = Column(String(36), ForeignKey("material_lists.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    search_query = Column(String, nullable=True)
    quantity = Column(Integer, nullable=True)
    unit = Column(String, nullable=True)
    price_estimate = Column(NUMERIC(12, 2), nullable=True)
    position = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PartnerStore(Base):
    __tablename__ = "partner_stores"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    logo_url = Column(String)
    base_url = Column(String, nullable=False)
    affiliate_tag = Column(String, nullable=True)
    search_template = Column(String, nullable=False)
    cart_strategy = Column(String, nullable=False, default="SEARCH")
    is_active = Column(Boolean, nullable=False, default=True)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class StoreClickEvent(Base):
    """Append-only attribution log for resolved links and cart views."""
    __tablename__ = "store_click_events"

    id = Column(String(36), primary_key=True, default=_uuid)
    item_id = Column(String(36), nullable=True, index=True)
    store_id = Column(String(36), nullable=True, index=True)
    school_id = Column(String(36), nullable=True, index=True)
    list_id = Column(String(36), nullable=True, index=True)
    session_id = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    clicked_at = Column(DateTime(timezone=True), server_default=func.now())


class CepCoordinate(Base):
    __tablename__ = "cep_coordinates"

    cep = Column(String(8), primary_key=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(Text)
    city = Column(String)
    state = Column(String)
    source = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True))


class CepSearchEvent(Base):
    __tablename__ = "cep_search_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cep = Column(String(8), nullable=False, index=True)
    city = Column(String)
    state = Column(String)
    searched_at = Column(DateTime(timezone=True), server_default=func.now())


class PopularSchool(Base):
    __tablename__ = "popular_schools_cache"

    school_id = Column(String(36), primary_key=True)
    name = Column(String)
    city = Column(String)
    state = Column(String)
    list_count = Column(Integer, default=0)
    click_count = Column(Integer, default=0)
    refreshed_at = Column(DateTime(timezone=True))


class PopularList(Base):
    __tablename__ = "popular_lists_cache"

    list_id = Column(String(36), primary_key=True)
    school_id = Column(String(36))
    click_count = Column(Integer, default=0)
    session_count = Column(Integer, default=0)
    refreshed_at = Column(DateTime(timezone=True))
