"""
List resource controller.

One instance backs one list view: it keeps a remote, filterable, sortable,
paginated collection in sync with the view's query, runs role-gated
mutations and annotates visible items with place names.
"""

import asyncio
import logging
from typing import Coroutine

from aiohttp import ClientSession

from .capabilities import Action, can_perform
from .data_access import DataAccessor
from .enrichment import EnrichmentCache
from .exceptions import PermissionDenied
from .fetcher import PaginatedFetchExecutor
from .gateway import MutationGateway
from .geocode import Geocoder
from .models import (
    Create,
    MutationRequest,
    QueryDescriptor,
    Resource,
    ResourceSchema,
    Session,
    UpdateField,
    resource_id,
)
from .query_builder import DebouncedQueryBuilder
from .store import ResourceStore

logger = logging.getLogger(__name__)

LOCATION_MISSING = "Not provided"
LOCATION_LOADING = "Loading location..."


class ListResourceController:
    def __init__(
        self,
        schema: ResourceSchema,
        http_session: ClientSession,
        auth: Session | None,
        *,
        geocoder: Geocoder | None = None,
        initial: QueryDescriptor | None = None,
        delay_ms: int | None = None,
    ):
        self.schema = schema
        self.auth = auth
        self.accessor = DataAccessor(http_session, schema, auth)
        initial = initial or QueryDescriptor(page_size=schema.page_size)
        self.store = ResourceStore(page_size=initial.page_size)
        self.executor = PaginatedFetchExecutor(self.accessor, self.store)
        self.gateway = MutationGateway(self.accessor, self.store)
        self.enrichment = EnrichmentCache(geocoder or Geocoder(http_session))
        self.query = DebouncedQueryBuilder(initial, self._on_query, delay_ms=delay_ms)
        # resolved place names, by item id
        self.location_names: dict[str, str] = {}
        self._tasks: set[asyncio.Task] = set()

    # state read by the view

    @property
    def items(self) -> tuple[Resource, ...]:
        # a fetch error replaces the page content
        return () if self.executor.error else tuple(self.store.items)

    @property
    def pagination(self):
        return self.store.pagination

    @property
    def loading(self) -> bool:
        return self.executor.loading

    @property
    def error(self):
        return self.executor.error

    def location_for(self, item: Resource) -> str:
        if self.schema.coordinates(item) is None:
            return LOCATION_MISSING
        return self.location_names.get(resource_id(item), LOCATION_LOADING)

    # query edits

    def set_search(self, term: str) -> None:
        self.query.set_search(term)

    def set_status(self, status: str) -> None:
        self.query.set_status(status)

    def set_sort(self, field: str | None = None, direction: str | None = None) -> None:
        self.query.set_sort(field, direction)

    def toggle_sort_order(self) -> None:
        self.query.toggle_sort_direction()

    def set_filter(self, name: str, value: str) -> None:
        if name not in self.schema.filters:
            raise ValueError(f"{self.schema.name} cannot be filtered by '{name}'")
        self.query.set_filter(name, value)

    def go_to_page(self, page: int) -> None:
        if page < 1 or page > max(self.pagination.total_pages, 1):
            logger.debug("Page %s out of range, ignoring", page)
            return
        self.query.go_to_page(page)

    def next_page(self) -> None:
        if self.pagination.has_next:
            self.go_to_page(self.pagination.current + 1)

    def prev_page(self) -> None:
        if self.pagination.has_prev:
            self.go_to_page(self.pagination.current - 1)

    # fetching

    async def load(self, descriptor: QueryDescriptor | None = None) -> bool:
        applied = await self.executor.fetch(descriptor or self.query.current)
        if applied:
            self.enrich_visible()
        return applied

    async def refresh(self) -> bool:
        return await self.load(self.query.current)

    def _on_query(self, descriptor: QueryDescriptor) -> None:
        self._spawn(self.load(descriptor))

    # mutations

    async def perform(self, request: MutationRequest) -> Resource | None:
        result = await self.gateway.perform(request, self.auth)
        if isinstance(request, (Create, UpdateField)) and isinstance(result, dict):
            self.enrich(result)
        return result

    async def list_officers(self) -> list[dict]:
        role = self.auth.role if self.auth else None
        if not can_perform(role, Action.LIST_OFFICERS, session=self.auth):
            raise PermissionDenied("Only administrators can list officers")
        return await self.accessor.list_officers()

    # enrichment

    def enrich_visible(self) -> None:
        for item in self.store.items:
            self.enrich(item)

    def enrich(self, item: Resource) -> None:
        coordinates = self.schema.coordinates(item)
        rid = resource_id(item)
        if coordinates is None or rid is None:
            return
        self._spawn(self._enrich_one(rid, coordinates))

    async def _enrich_one(self, rid: str, coordinates) -> None:
        self.location_names[rid] = await asyncio.shield(self.enrichment.resolve(coordinates))

    # lifecycle

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def settle(self) -> None:
        """Wait for every scheduled fetch and enrichment to complete"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        self.query.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.enrichment.close()
