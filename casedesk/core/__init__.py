"""
Core module for casedesk.

This module contains the list resource controller and its parts: query
building, fetching, the local store, mutations and location enrichment.
"""

from .controller import ListResourceController
from .data_access import DataAccessor
from .enrichment import EnrichmentCache
from .exceptions import (
    CasedeskException,
    EnrichmentError,
    FetchError,
    MutationError,
    PermissionDenied,
    RequestError,
    handle_exception,
)
from .models import (
    Assign,
    Coordinates,
    Create,
    Delete,
    Page,
    Pagination,
    QueryDescriptor,
    ResourceSchema,
    Session,
    SessionHolder,
    UpdateField,
)
from .query_builder import DebouncedQueryBuilder

__all__ = [
    "ListResourceController",
    "DataAccessor",
    "DebouncedQueryBuilder",
    "EnrichmentCache",
    "QueryDescriptor",
    "Page",
    "Pagination",
    "ResourceSchema",
    "Session",
    "SessionHolder",
    "Coordinates",
    "Create",
    "UpdateField",
    "Delete",
    "Assign",
    "CasedeskException",
    "FetchError",
    "MutationError",
    "PermissionDenied",
    "RequestError",
    "EnrichmentError",
    "handle_exception",
]
