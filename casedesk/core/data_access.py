"""
Data access layer for the core module.

This module contains the calls to the record-management backend: list
queries, mutations, authentication and the case timeline.
"""

import asyncio
import logging
from typing import Any

from aiohttp import ClientError, ClientResponse, ClientSession, ClientTimeout

from .. import config
from .exceptions import FetchError, RequestError, error_detail, handle_exception
from .models import Page, Pagination, QueryDescriptor, Resource, ResourceSchema, Session
from .query_builder import build_query_params

logger = logging.getLogger(__name__)


async def read_body(res: ClientResponse) -> Any:
    """Decode a JSON body, tolerating empty or non-JSON error pages"""
    try:
        return await res.json(content_type=None)
    except ValueError:
        return None


def parse_page(body: dict, items_key: str) -> Page:
    """Build a Page from `{<items_key>: [...], pagination: {...}}`"""
    items = body.get(items_key, body.get("items"))
    if not isinstance(items, list):
        raise ValueError(f"Missing '{items_key}' in list response")
    pagination = Pagination.from_payload(body.get("pagination") or {})
    return Page(items=tuple(items), pagination=pagination)


class DataAccessor:
    """Handles backend operations for one resource."""

    def __init__(
        self,
        session: ClientSession,
        schema: ResourceSchema | None = None,
        auth: Session | None = None,
    ):
        self.session = session
        self.schema = schema
        self.auth = auth
        self.timeout = ClientTimeout(total=config.HTTP_TIMEOUT)

    def url(self, path: str) -> str:
        return f"{config.API_ENDPOINT}{path}"

    @property
    def headers(self) -> dict[str, str]:
        return self.auth.headers if self.auth else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        title: str,
        exc_class=RequestError,
        resource_id: str | None = None,
        **kwargs,
    ) -> Any:
        try:
            async with self.session.request(
                method, self.url(path), headers=self.headers, timeout=self.timeout, **kwargs
            ) as res:
                body = await read_body(res)
                if not res.ok:
                    handle_exception(
                        res.status, title, error_detail(body, title), resource_id, exc_class
                    )
                return body
        except (ClientError, asyncio.TimeoutError) as e:
            handle_exception(None, title, str(e) or title, resource_id, exc_class)

    async def find(self, descriptor: QueryDescriptor) -> Page:
        """
        Get one page of the resource.

        Args:
            descriptor: Filters, sort and page to query

        Returns:
            The page of items with its pagination metadata

        Raises:
            FetchError: If the backend rejected the query or could not be reached
        """
        title = f"Failed to load {self.schema.name}"
        body = await self._request(
            "GET",
            self.schema.path,
            title=title,
            exc_class=FetchError,
            params=build_query_params(descriptor),
        )
        try:
            return parse_page(body or {}, self.schema.items_key)
        except (AttributeError, TypeError, ValueError) as e:
            handle_exception(None, title, str(e), None, FetchError)

    async def create(self, payload: dict) -> Resource:
        return await self._request(
            "POST", self.schema.create_url(), title=f"Failed to create {self.schema.name}", json=payload
        )

    async def update_fields(self, rid: str, fields: dict) -> Resource:
        if set(fields) == {self.schema.status_field}:
            path = self.schema.status_url(rid)
        else:
            path = self.schema.item_url(rid)
        return await self._request(
            "PATCH", path, title="Update failed", resource_id=rid, json=fields
        )

    async def delete(self, rid: str) -> None:
        await self._request(
            "DELETE", self.schema.item_url(rid), title="Delete failed", resource_id=rid
        )

    async def assign(self, rid: str, target_id: str) -> Resource:
        path = self.schema.assign_url(rid)
        if path is None:
            raise RequestError(f"{self.schema.name} cannot be assigned", title="Assignment failed")
        return await self._request(
            "PATCH",
            path,
            title="Assignment failed",
            resource_id=rid,
            json={self.schema.assign_key: target_id},
        )

    async def list_officers(self) -> list[dict]:
        return await self._request("GET", "/cases/officers", title="Failed to load officers")

    async def get_timeline(self, case_id: str) -> tuple[dict, list[dict]]:
        body = await self._request(
            "GET",
            f"/cases/{case_id}/timeline",
            title="Failed to load timeline",
            exc_class=FetchError,
            resource_id=case_id,
        )
        body = body or {}
        return body.get("case") or {}, body.get("timeline") or []

    async def login(self, email: str, password: str) -> Session:
        body = await self._request(
            "POST",
            "/auth/login",
            title="Login failed",
            json={"email": email, "password": password},
        )
        body = body or {}
        user = body.get("user") or {}
        identity = user.get("id", user.get("_id"))
        if not body.get("token") or identity is None or not user.get("role"):
            raise RequestError("Malformed login response", title="Login failed")
        return Session(
            identity=str(identity), role=user["role"], token=body["token"], name=user.get("name")
        )

    async def signup(self, name: str, email: str, password: str) -> None:
        # the backend picks the role of new accounts
        await self._request(
            "POST",
            "/auth/signup",
            title="Sign up failed",
            json={"name": name, "email": email, "password": password},
        )
