#!/usr/bin/env python3
"""
Command-line console over the record-management backend.
"""

import argparse
import asyncio
import logging
import sys

import sentry_sdk
from aiohttp import ClientSession

from casedesk import config
from casedesk.core import (
    Assign,
    CasedeskException,
    DataAccessor,
    Delete,
    ListResourceController,
    QueryDescriptor,
    Session,
    SessionHolder,
    UpdateField,
)
from casedesk.core.enrichment import EnrichmentCache
from casedesk.core.geocode import Geocoder
from casedesk.core.models import resource_id
from casedesk.core.sentry import get_sentry_kwargs
from casedesk.core.version import get_app_version
from casedesk.resources import CASES, SCHEMAS, get_schema

logger = logging.getLogger("casedesk")

sessions = SessionHolder()

TITLE_FIELDS = ("title", "personName", "originalName", "filename", "name")


def describe(item: dict) -> str:
    for field in TITLE_FIELDS:
        if item.get(field):
            return str(item[field])
    return ""


def parse_filters(values: list[str]) -> tuple[tuple[str, str], ...]:
    filters = []
    for value in values or []:
        name, sep, content = value.partition("=")
        if not sep:
            raise ValueError(f"filter '{value}' should look like name=value")
        filters.append((name, content))
    return tuple(filters)


async def cmd_login(http: ClientSession, args) -> int:
    session = await DataAccessor(http).login(args.email, args.password)
    sessions.login(session)
    print(f"token: {session.token}")
    print(f"identity: {session.identity}")
    print(f"role: {session.role}")
    return 0


async def cmd_list(http: ClientSession, args) -> int:
    schema = get_schema(args.resource)
    filters = parse_filters(args.filter)
    for name, _ in filters:
        if name not in schema.filters:
            raise ValueError(f"{schema.name} cannot be filtered by '{name}'")
    descriptor = QueryDescriptor(
        search_term=args.search,
        status_filter=args.status,
        sort_field=args.sort_by,
        sort_direction=args.order,
        page_number=args.page,
        page_size=args.limit or schema.page_size,
        filters=filters,
    )
    controller = ListResourceController(schema, http, sessions.current, initial=descriptor)
    try:
        await controller.load()
        await controller.settle()
        if controller.error:
            print(f"error: {controller.error.message}", file=sys.stderr)
            return 1
        pagination = controller.pagination
        print(f"Showing {len(controller.items)} of {pagination.total_count} {schema.name}")
        for item in controller.items:
            row = [resource_id(item) or "", describe(item), str(item.get(schema.status_field, ""))]
            if schema.location_field:
                row.append(controller.location_for(item))
            print("\t".join(row))
        print(f"Page {pagination.current} of {pagination.total_pages}")
    finally:
        await controller.close()
    return 0


async def cmd_mutate(http: ClientSession, args) -> int:
    schema = get_schema(args.resource)
    controller = ListResourceController(schema, http, sessions.current)
    try:
        if args.command == "update":
            request = UpdateField(args.id, args.field, args.value)
        elif args.command == "assign":
            request = Assign(args.id, args.officer)
        else:
            request = Delete(args.id)
        result = await controller.perform(request)
    finally:
        await controller.close()
    print("deleted" if result is None else f"{resource_id(result) or args.id} updated")
    return 0


async def cmd_timeline(http: ClientSession, args) -> int:
    case, events = await DataAccessor(http, CASES, sessions.current).get_timeline(args.case_id)
    print(f"{describe(case)} [{case.get('status', '')}]")
    for event in events:
        print(f"{event.get('date', '')}\t{event.get('type', '')}\t{event.get('description', '')}")
    return 0


async def cmd_geocode(http: ClientSession, args) -> int:
    coordinates = await EnrichmentCache(Geocoder(http)).locate(args.address)
    if coordinates is None:
        print("Location not found", file=sys.stderr)
        return 1
    print(f"{coordinates.lat}, {coordinates.lng}")
    return 0


COMMANDS = {
    "login": cmd_login,
    "list": cmd_list,
    "update": cmd_mutate,
    "assign": cmd_mutate,
    "delete": cmd_mutate,
    "timeline": cmd_timeline,
    "geocode": cmd_geocode,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="casedesk", description=__doc__)
    parser.add_argument("--version", action="version", version=get_app_version())
    parser.add_argument("--token", help="Bearer token of an existing session")
    parser.add_argument("--identity", help="User id of the session")
    parser.add_argument("--role", help="Role of the session, eg admin or officer")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and print the session token")
    login.add_argument("email")
    login.add_argument("password")

    list_ = sub.add_parser("list", help="Print one page of a resource")
    list_.add_argument("resource", choices=list(SCHEMAS))
    list_.add_argument("--search", default="")
    list_.add_argument("--status", default="")
    list_.add_argument("--sort-by", default="")
    list_.add_argument("--order", choices=["asc", "desc"], default="")
    list_.add_argument("--page", type=int, default=1)
    list_.add_argument("--limit", type=int, default=0)
    list_.add_argument("--filter", action="append", help="name=value, may be repeated")

    update = sub.add_parser("update", help="Change one field of a record")
    update.add_argument("resource", choices=list(SCHEMAS))
    update.add_argument("id")
    update.add_argument("field")
    update.add_argument("value")

    assign = sub.add_parser("assign", help="Assign a case to an officer")
    assign.add_argument("id")
    assign.add_argument("officer")
    assign.set_defaults(resource=CASES.name)

    delete = sub.add_parser("delete", help="Delete a record")
    delete.add_argument("resource", choices=list(SCHEMAS))
    delete.add_argument("id")

    timeline = sub.add_parser("timeline", help="Print the timeline of a case")
    timeline.add_argument("case_id")

    geocode = sub.add_parser("geocode", help="Find the coordinates of an address")
    geocode.add_argument("address")
    return parser


async def run(args) -> int:
    if args.token and args.identity and args.role:
        sessions.login(Session(identity=args.identity, role=args.role, token=args.token))
    try:
        async with ClientSession() as http:
            return await COMMANDS[args.command](http, args)
    except (CasedeskException, KeyError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        sessions.clear()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL)
    if config.SENTRY_DSN:
        sentry_sdk.init(**get_sentry_kwargs())
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
