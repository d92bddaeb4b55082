"""
Query building logic for the core module.

Turns rapidly-changing user input into stable query descriptors, and query
descriptors into the parameters of the backend list endpoint.
"""

import asyncio
import logging
from typing import Callable

from .. import config
from .models import QueryDescriptor

logger = logging.getLogger(__name__)


def build_query_params(descriptor: QueryDescriptor) -> dict[str, str]:
    """
    Build the list endpoint query parameters from a descriptor.

    `page` and `limit` are always sent, the other parameters only when they
    carry a value.

    Args:
        descriptor: The query descriptor to translate

    Returns:
        Dictionary of query parameters
    """
    params = {
        "page": str(descriptor.page_number),
        "limit": str(descriptor.page_size),
    }
    if descriptor.search_term:
        params["search"] = descriptor.search_term
    if descriptor.status_filter:
        params["status"] = descriptor.status_filter
    if descriptor.sort_field:
        params["sortBy"] = descriptor.sort_field
    if descriptor.sort_direction:
        params["sortOrder"] = descriptor.sort_direction
    for name, value in descriptor.filters:
        if value:
            params[name] = value
    return params


class DebouncedQueryBuilder:
    """Coalesces filter, sort, search and page edits into query descriptors.

    Search edits are emitted once no other search edit arrived for
    `SEARCH_DEBOUNCE_MS`; every other edit is emitted immediately. Any
    emission except page navigation goes back to the first page.
    """

    def __init__(
        self,
        initial: QueryDescriptor,
        on_emit: Callable[[QueryDescriptor], None],
        delay_ms: int | None = None,
    ):
        self.current = initial
        self.on_emit = on_emit
        self.delay = (delay_ms if delay_ms is not None else config.SEARCH_DEBOUNCE_MS) / 1000
        self._pending_search: str | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def set_search(self, term: str) -> None:
        # a new keystroke restarts the quiet period
        self.cancel()
        self._pending_search = term
        self._timer = asyncio.get_running_loop().call_later(self.delay, self._flush_search)

    def set_status(self, status: str) -> None:
        self._emit(self.current.evolve(status_filter=status, page_number=1))

    def set_sort(self, field: str | None = None, direction: str | None = None) -> None:
        self._emit(
            self.current.evolve(
                sort_field=field or self.current.sort_field,
                sort_direction=direction or self.current.sort_direction,
                page_number=1,
            )
        )

    def toggle_sort_direction(self) -> None:
        self.set_sort(direction="asc" if self.current.sort_direction == "desc" else "desc")

    def set_filter(self, name: str, value: str) -> None:
        self._emit(self.current.with_filter(name, value).evolve(page_number=1))

    def go_to_page(self, page: int) -> None:
        self._emit(self.current.evolve(page_number=page))

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending_search = None

    def _flush_search(self) -> None:
        term, self._pending_search, self._timer = self._pending_search, None, None
        if term is None:
            return
        self._emit(self.current.evolve(search_term=term, page_number=1))

    def _emit(self, descriptor: QueryDescriptor) -> None:
        if descriptor == self.current:
            return
        logger.debug("Emitting query %s", descriptor)
        self.current = descriptor
        self.on_emit(descriptor)
