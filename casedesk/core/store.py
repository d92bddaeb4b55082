"""
Local copy of the current page of a resource.

Mutations acknowledged by the backend are reconciled in place rather than
by refetching the whole page. `total_count` is advisory until the next fetch.
"""

import logging
from dataclasses import replace
from typing import Callable

from .models import Page, Pagination, Resource, resource_id

logger = logging.getLogger(__name__)


class ResourceStore:
    def __init__(self, page: Page | None = None, page_size: int | None = None):
        self.page_size = page_size
        self.items: list[Resource] = []
        self.pagination = Pagination()
        if page is not None:
            self.replace_page(page)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, rid: str) -> bool:
        return self._index(rid) is not None

    def get(self, rid: str) -> Resource | None:
        index = self._index(rid)
        return self.items[index] if index is not None else None

    @property
    def page(self) -> Page:
        return Page(items=tuple(self.items), pagination=self.pagination)

    def replace_page(self, page: Page) -> None:
        items, seen = [], set()
        for item in page.items:
            rid = resource_id(item)
            # a page never holds the same record twice
            if rid is not None and rid in seen:
                continue
            seen.add(rid)
            items.append(item)
        self.items = items
        self.pagination = page.pagination

    def upsert_one(self, resource: Resource) -> None:
        rid = resource_id(resource)
        index = self._index(rid)
        if index is not None:
            self.items[index] = resource
            return
        self.items.insert(0, resource)
        # the last item now belongs to the next page
        if self.page_size and len(self.items) > self.page_size:
            self.items.pop()
        self._shift_total(1)

    def remove_one(self, rid: str) -> None:
        index = self._index(rid)
        if index is None:
            logger.debug("%s already removed from the current page", rid)
            return
        del self.items[index]
        self._shift_total(-1)

    def patch_one(self, rid: str, updater: Callable[[Resource], Resource] | dict) -> bool:
        """Apply `updater` to the item `rid`; returns False if it is not on this page.

        `updater` is either a dict of fields to overwrite or a function
        receiving the current item and returning the new one.
        """
        index = self._index(rid)
        if index is None:
            logger.debug("%s is not on the current page, skipping update", rid)
            return False
        current = self.items[index]
        if callable(updater):
            updated = updater(dict(current))
        else:
            updated = {**current, **updater}
        self.items[index] = updated
        return True

    def _index(self, rid: str | None) -> int | None:
        if rid is None:
            return None
        for index, item in enumerate(self.items):
            if resource_id(item) == str(rid):
                return index
        return None

    def _shift_total(self, delta: int) -> None:
        total = max(self.pagination.total_count + delta, 0)
        self.pagination = replace(self.pagination, total_count=total)
