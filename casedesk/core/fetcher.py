import logging

from .data_access import DataAccessor
from .exceptions import FetchError
from .models import QueryDescriptor
from .store import ResourceStore

logger = logging.getLogger(__name__)


class PaginatedFetchExecutor:
    """Runs list queries and applies only the response to the latest one.

    Every request is stamped with a generation token. In-flight requests are
    never cancelled at the transport level; when a superseded request
    completes, its response (or its error) is dropped.
    """

    def __init__(self, accessor: DataAccessor, store: ResourceStore):
        self.accessor = accessor
        self.store = store
        self.generation = 0
        self.latest: QueryDescriptor | None = None
        self.loading = False
        self.error: FetchError | None = None

    def is_current(self, token: tuple[int, QueryDescriptor]) -> bool:
        return token == (self.generation, self.latest)

    async def fetch(self, descriptor: QueryDescriptor) -> bool:
        """Query `descriptor` and apply the page if still current; returns whether it was applied"""
        self.generation += 1
        self.latest = descriptor
        token = (self.generation, descriptor)
        self.loading = True
        try:
            page = await self.accessor.find(descriptor)
        except FetchError as e:
            if not self.is_current(token):
                logger.debug("Dropping error of superseded query %s: %s", descriptor, e)
                return False
            self.error = e
            return False
        finally:
            if self.is_current(token):
                self.loading = False
        if not self.is_current(token):
            logger.debug("Dropping stale response for %s", descriptor)
            return False
        self.store.replace_page(page)
        self.error = None
        return True
