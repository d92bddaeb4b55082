import asyncio
from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from .. import config
from .exceptions import EnrichmentError
from .models import Coordinates


class Geocoder:
    """Reverse and forward lookups against a Nominatim-compatible service."""

    def __init__(self, session: ClientSession, endpoint: str | None = None):
        self.session = session
        self.endpoint = (endpoint or config.GEOCODER_ENDPOINT).rstrip("/")
        self.timeout = ClientTimeout(total=config.HTTP_TIMEOUT)

    async def _get(self, path: str, params: dict) -> Any:
        try:
            async with self.session.get(
                f"{self.endpoint}{path}",
                params=params,
                headers={"User-Agent": config.GEOCODER_USER_AGENT},
                timeout=self.timeout,
            ) as res:
                res.raise_for_status()
                return await res.json(content_type=None)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            raise EnrichmentError(str(e) or "Geocoding service unavailable")

    async def reverse(self, lat: float, lng: float) -> str | None:
        """Short place name for a point: the first two components of its description"""
        data = await self._get(
            "/reverse",
            {"format": "json", "lat": str(lat), "lon": str(lng), "zoom": "18", "addressdetails": "1"},
        )
        if not isinstance(data, dict) or not data.get("display_name"):
            return None
        parts = [part.strip() for part in str(data["display_name"]).split(",")]
        return ", ".join(part for part in parts[:2] if part) or None

    async def forward(self, address: str) -> Coordinates | None:
        data = await self._get("/search", {"format": "json", "q": address, "limit": "1"})
        if not isinstance(data, list) or not data:
            return None
        try:
            return Coordinates(lat=float(data[0]["lat"]), lng=float(data[0]["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise EnrichmentError(f"Malformed search result: {e}")
