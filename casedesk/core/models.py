"""
Data models for the core module.

This module contains the value types shared by the list controller: query
descriptors, pages, sessions, mutation requests and coordinates.
"""

import enum
from dataclasses import dataclass, field, replace
from decimal import ROUND_DOWN, Decimal
from typing import Any

from .. import config

Resource = dict[str, Any]


def resource_id(resource: Resource) -> str | None:
    """Backend records expose their identifier as `_id`, some payloads as `id`"""
    value = resource.get("_id", resource.get("id"))
    return str(value) if value is not None else None


@dataclass(frozen=True)
class QueryDescriptor:
    """Full set of filter/sort/page parameters for one list request.

    Immutable: every user-driven change produces a new descriptor, and two
    equal descriptors never require two fetches.
    """

    search_term: str = ""
    status_filter: str = ""
    sort_field: str = ""
    sort_direction: str = ""
    page_number: int = 1
    page_size: int = 0
    # extra resource-specific filters, eg (("case", "abc"),)
    filters: tuple[tuple[str, str], ...] = ()

    def __post_init__(self):
        if not self.sort_field:
            object.__setattr__(self, "sort_field", config.DEFAULT_SORT_FIELD)
        if not self.sort_direction:
            object.__setattr__(self, "sort_direction", config.DEFAULT_SORT_ORDER)
        if not self.page_size:
            object.__setattr__(self, "page_size", config.PAGE_SIZE_DEFAULT)
        if self.sort_direction not in ("asc", "desc"):
            raise ValueError(f"sort direction must be 'asc' or 'desc', not '{self.sort_direction}'")
        if self.page_number < 1:
            raise ValueError("page number starts at 1")
        if self.page_size < 1 or self.page_size > config.PAGE_SIZE_MAX:
            raise ValueError(f"Page size must be between 1 and {config.PAGE_SIZE_MAX}")
        # normalize filter order so equality does not depend on edit order
        object.__setattr__(self, "filters", tuple(sorted(self.filters)))

    def evolve(self, **changes) -> "QueryDescriptor":
        return replace(self, **changes)

    def with_filter(self, name: str, value: str) -> "QueryDescriptor":
        filters = {k: v for k, v in self.filters if k != name}
        if value:
            filters[name] = value
        return replace(self, filters=tuple(filters.items()))


@dataclass(frozen=True)
class Pagination:
    current: int = 1
    total_pages: int = 1
    total_count: int = 0

    @property
    def has_next(self) -> bool:
        return self.current < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current > 1

    @classmethod
    def from_payload(cls, payload: dict) -> "Pagination":
        return cls(
            current=int(payload.get("current", 1)),
            total_pages=int(payload.get("pages", 1)),
            total_count=max(int(payload.get("total", 0)), 0),
        )


@dataclass(frozen=True)
class Page:
    items: tuple[Resource, ...] = ()
    pagination: Pagination = field(default_factory=Pagination)


@dataclass(frozen=True)
class Session:
    """Identity and role of the logged-in user, established at login"""

    identity: str
    role: str
    token: str | None = None
    name: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}


class SessionHolder:
    """Process-wide slot for the current session; set at login, cleared at logout"""

    def __init__(self):
        self._session: Session | None = None

    def login(self, session: Session) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None

    @property
    def current(self) -> Session | None:
        return self._session


@dataclass(frozen=True)
class Create:
    payload: dict[str, Any]


@dataclass(frozen=True)
class UpdateField:
    id: str
    field: str
    value: Any


@dataclass(frozen=True)
class Delete:
    id: str
    # current copy of the record, used to match its author on deletion
    resource: Resource | None = None


@dataclass(frozen=True)
class Assign:
    id: str
    target_id: str


MutationRequest = Create | UpdateField | Delete | Assign


def _truncate(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_DOWN)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def normalized(self) -> "Coordinates":
        return Coordinates(round(float(self.lat), 6), round(float(self.lng), 6))

    def fallback_text(self) -> str:
        return f"{_truncate(self.lat)}, {_truncate(self.lng)}"

    @classmethod
    def from_geojson(cls, coordinates) -> "Coordinates":
        # GeoJSON points are stored as [lng, lat]
        lng, lat = coordinates
        return cls(lat=float(lat), lng=float(lng))


class EnrichmentState(enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class ResourceSchema:
    """Endpoint layout and field names of one list-oriented resource"""

    name: str
    path: str
    # key holding the items in list responses, eg {"cases": [...], "pagination": {...}}
    items_key: str
    page_size: int
    status_field: str = "status"
    # extra filters accepted by the list endpoint
    filters: tuple[str, ...] = ()
    author_field: str | None = None
    location_field: str | None = None
    create_path: str | None = None
    # field updates go to `{path}/{id}` unless a dedicated path is given
    status_path: str | None = None
    assign_path: str | None = None
    assign_key: str = "assignee"

    def item_url(self, rid: str) -> str:
        return f"{self.path}/{rid}"

    def create_url(self) -> str:
        return self.create_path or self.path

    def status_url(self, rid: str) -> str:
        return self.status_path.format(id=rid) if self.status_path else self.item_url(rid)

    def assign_url(self, rid: str) -> str | None:
        return self.assign_path.format(id=rid) if self.assign_path else None

    def coordinates(self, item: Resource) -> Coordinates | None:
        if not self.location_field:
            return None
        value = item
        for key in self.location_field.split("."):
            if not isinstance(value, dict) or key not in value:
                return None
            value = value[key]
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            return None
        try:
            return Coordinates.from_geojson(value)
        except (TypeError, ValueError):
            return None
