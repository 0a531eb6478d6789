"""Shared fixtures: a throwaway SQLite database, an HTTP client and a fake geocoder."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from listaescolar.db import init_db
from listaescolar.db.db import get_db
from listaescolar.main import app
from listaescolar.models import MaterialItem, MaterialList, PartnerStore, School
from listaescolar.services.geocoder import GeocodeMatch, GeocoderUnavailable, get_geocoder

TEMPLATE = "{{base_url}}?q={{query}}&tag={{affiliate_tag}}"


class FakeGeocoder:
    """Stands in for NominatimClient; answers from a dict and records calls."""

    def __init__(self, matches: dict[str, Any] | None = None) -> None:
        self.matches = matches or {}
        self.calls: list[str] = []

    async def lookup(self, cep: str) -> GeocodeMatch | None:
        self.calls.append(cep)
        answer = self.matches.get(cep)
        if isinstance(answer, Exception):
            raise answer
        return answer


def match(lat: float, lng: float, city: str = "São Paulo", state: str = "São Paulo") -> GeocodeMatch:
    return GeocodeMatch(latitude=lat, longitude=lng, address=f"{city}, Brasil", city=city, state=state)


UNAVAILABLE = GeocoderUnavailable("HTTP 503")


@pytest.fixture()
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    await init_db(engine)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture()
async def client(session_factory, geocoder):
    async def _get_db():
        async with session_factory() as session:
            yield session

    async def _get_geocoder():
        yield geocoder

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_geocoder] = _get_geocoder
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def seeded(db):
    """One school, one list with a priced and an unpriced item, two active stores and an inactive one."""
    db.add_all([
        School(id="sc1", name="Escola Municipal Centro", slug="em-centro", cep="01310100",
               city="São Paulo", state="SP", latitude=-23.5614, longitude=-46.6559,
               network_type="municipal", education_types=["fundamental"]),
        MaterialList(id="l1", school_id="sc1", grade="1º ano", year=2026),
        MaterialList(id="l-empty", school_id="sc1", grade="2º ano", year=2026),
        MaterialItem(id="i1", list_id="l1", name="Caderno 10 matérias", quantity=2,
                     unit="un", price_estimate=Decimal("10.00"), position=1),
        MaterialItem(id="i2", list_id="l1", name="Lápis de Cor nº 2!", search_query=None,
                     quantity=None, price_estimate=None, position=2),
        PartnerStore(id="s1", name="Shop", base_url="https://shop.example/search",
                     search_template=TEMPLATE, affiliate_tag=None, order_index=2),
        PartnerStore(id="s2", name="Tagged", base_url="https://tagged.example/s",
                     search_template=TEMPLATE, affiliate_tag="escola-20", order_index=1),
        PartnerStore(id="s3", name="Closed", base_url="https://closed.example",
                     search_template=TEMPLATE, is_active=False, order_index=0),
    ])
    await db.commit()
    return db
