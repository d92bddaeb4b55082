import re

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses

from casedesk import config
from casedesk.core.models import Session

API_ENDPOINT = "https://example.com/api"
GEOCODER_ENDPOINT = "https://geo.example.com"
CASES_PATTERN = re.compile(r"^https://example\.com/api/cases\?.*$")
REVERSE_PATTERN = re.compile(r"^https://geo\.example\.com/reverse\?.*$")
SEARCH_PATTERN = re.compile(r"^https://geo\.example\.com/search\?.*$")

ADMIN = Session(identity="u-admin", role="admin", token="admin-token", name="Ada")
OFFICER = Session(identity="u-officer", role="officer", token="officer-token", name="Otto")


@pytest.fixture(autouse=True)
def setup():
    config.override(
        API_ENDPOINT=API_ENDPOINT,
        GEOCODER_ENDPOINT=GEOCODER_ENDPOINT,
        PAGE_SIZE_DEFAULT=10,
        SEARCH_DEBOUNCE_MS=500,
    )


@pytest.fixture
def rmock():
    with aioresponses() as m:
        yield m


@pytest_asyncio.fixture
async def client():
    async with aiohttp.ClientSession() as session:
        yield session


def make_case(number: int, **fields) -> dict:
    case = {
        "_id": f"case-{number}",
        "title": f"Case {number}",
        "status": "open",
        "createdBy": "u-officer",
    }
    case.update(fields)
    return case


def list_payload(items: list, current: int = 1, pages: int = 1, total: int | None = None) -> dict:
    return {
        "cases": items,
        "pagination": {
            "current": current,
            "pages": pages,
            "total": len(items) if total is None else total,
            "hasNext": current < pages,
            "hasPrev": current > 1,
        },
    }


def calls(rmock, method: str, prefix: str = "") -> list:
    """Recorded requests for `method` whose URL starts with `prefix`"""
    return [
        call
        for (call_method, url), recorded in rmock.requests.items()
        if call_method == method and str(url).startswith(prefix)
        for call in recorded
    ]
