"""Async client for the OpenStreetMap Nominatim search API.

Nominatim is free but rate-limited to about one request per second and
rejects requests without an identifying User-Agent.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from listaescolar.core.config import settings
from listaescolar.services.text import format_cep, normalize_cep

logger = logging.getLogger(__name__)


class GeocoderUnavailable(Exception):
    """Transport failure, timeout or non-2xx answer from the geocoder."""


@dataclass
class GeocodeMatch:
    latitude: float
    longitude: float
    address: str | None
    city: str | None
    state: str | None


def parse_match(result: dict[str, Any]) -> GeocodeMatch:
    address = result.get("address") or {}
    return GeocodeMatch(
        latitude=float(result["lat"]),
        longitude=float(result["lon"]),
        address=result.get("display_name"),
        city=address.get("city") or address.get("town") or address.get("municipality"),
        state=address.get("state"),
    )


class NominatimClient:
    """Looks up a CEP (full or 5-digit prefix) and returns the first match."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = base_url or settings.GEOCODER_URL
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.GEOCODE_TIMEOUT_SECONDS
        )
        self.session: aiohttp.ClientSession | None = None
        self._entered = False

    async def __aenter__(self) -> NominatimClient:
        self._entered = True
        return self

    async def __aexit__(self, *args: Any) -> None:
        self._entered = False
        if self.session:
            await self.session.close()
            self.session = None

    def _get_session(self) -> aiohttp.ClientSession:
        # opened on the first lookup, not on enter
        if self.session is None:
            if not self._entered:
                raise RuntimeError("Client not entered as context manager")
            self.session = aiohttp.ClientSession(
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                timeout=self.timeout,
            )
        return self.session

    async def lookup(self, cep: str) -> GeocodeMatch | None:
        """Return the best match for ``cep`` or None when there is none.

        Raises GeocoderUnavailable on network errors, timeouts and non-2xx
        answers. There is no retry.
        """
        session = self._get_session()
        formatted = format_cep(normalize_cep(cep))
        params = {
            "q": f"{formatted}, Brasil",
            "format": "json",
            "addressdetails": "1",
            "limit": "1",
            "countrycodes": settings.GEOCODER_COUNTRY,
        }
        logger.info("[geocode] Looking up %s", formatted)

        try:
            async with session.get(self.base_url, params=params) as resp:
                if resp.status >= 300:
                    raise GeocoderUnavailable(f"HTTP {resp.status} for {formatted}")
                results = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise GeocoderUnavailable(f"{type(exc).__name__} for {formatted}") from exc

        if not results:
            logger.info("[geocode] No result for %s", formatted)
            return None
        try:
            return parse_match(results[0])
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocoderUnavailable(f"Malformed result for {formatted}") from exc


async def get_geocoder():
    """FastAPI dependency yielding an entered NominatimClient."""
    async with NominatimClient() as client:
        yield client
