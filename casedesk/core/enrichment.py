"""
Session-scoped cache of place names for stored coordinates.

Lookups are slow and best-effort: a failed lookup resolves to the
coordinates themselves, so no item stays unresolved from the caller's point
of view. At most one lookup per key is outstanding at any time.
"""

import asyncio
import logging
from dataclasses import dataclass

import sentry_sdk

from .exceptions import EnrichmentError
from .geocode import Geocoder
from .models import Coordinates, EnrichmentState

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentEntry:
    state: EnrichmentState
    text: str | None = None
    future: "asyncio.Future[str] | None" = None


class EnrichmentCache:
    def __init__(self, geocoder: Geocoder):
        self.geocoder = geocoder
        self.entries: dict[Coordinates, EnrichmentEntry] = {}
        self.lookups = 0

    def state(self, key: Coordinates) -> EnrichmentState | None:
        entry = self.entries.get(key.normalized())
        return entry.state if entry else None

    def resolve(self, key: Coordinates) -> "asyncio.Future[str]":
        """Future of the display text for `key`.

        Callers sharing a pending lookup get the very same future; wrap it in
        `asyncio.shield` before awaiting from a task that may be cancelled.
        """
        key = key.normalized()
        entry = self.entries.get(key)
        if entry is not None and entry.state is EnrichmentState.PENDING:
            return entry.future
        if entry is not None:
            future = asyncio.get_running_loop().create_future()
            future.set_result(entry.text)
            return future
        future = asyncio.ensure_future(self._lookup(key))
        self.entries[key] = EnrichmentEntry(EnrichmentState.PENDING, future=future)
        return future

    async def _lookup(self, key: Coordinates) -> str:
        self.lookups += 1
        try:
            text = await self.geocoder.reverse(key.lat, key.lng)
        except asyncio.CancelledError:
            # nothing cached, the next caller looks it up again
            self.entries.pop(key, None)
            raise
        except EnrichmentError as e:
            logger.info("Reverse geocoding failed for %s: %s", key, e)
            text = None
        except Exception as e:
            logger.exception("Unexpected error while reverse geocoding %s", key)
            if sentry_sdk.get_client().is_active():
                sentry_sdk.capture_exception(e)
            text = None
        if text:
            self.entries[key] = EnrichmentEntry(EnrichmentState.RESOLVED, text=text)
        else:
            text = key.fallback_text()
            self.entries[key] = EnrichmentEntry(EnrichmentState.FAILED, text=text)
        return text

    async def locate(self, address: str) -> Coordinates | None:
        """Forward lookup of a free-text address, None when not found or failed"""
        if not address.strip():
            return None
        try:
            return await self.geocoder.forward(address)
        except EnrichmentError as e:
            logger.info("Forward geocoding failed for %r: %s", address, e)
            return None

    async def close(self) -> None:
        pending = [
            entry.future
            for entry in self.entries.values()
            if entry.state is EnrichmentState.PENDING and entry.future is not None
        ]
        for future in pending:
            future.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
