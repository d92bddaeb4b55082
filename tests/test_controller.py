import asyncio
import re

import pytest
import pytest_asyncio

from casedesk import config
from casedesk.core.controller import LOCATION_LOADING, LOCATION_MISSING, ListResourceController
from casedesk.core.exceptions import PermissionDenied
from casedesk.core.models import Create, Delete, QueryDescriptor, UpdateField
from casedesk.resources import CASES, EVIDENCE

from .conftest import (
    ADMIN,
    API_ENDPOINT,
    CASES_PATTERN,
    OFFICER,
    REVERSE_PATTERN,
    calls,
    list_payload,
    make_case,
)

pytestmark = pytest.mark.asyncio

DELAY_MS = 50
KAMPALA = {"type": "Point", "coordinates": [32.5825, 0.3476]}


@pytest_asyncio.fixture
async def controller(client):
    controller = ListResourceController(CASES, client, ADMIN, delay_ms=DELAY_MS)
    yield controller
    await controller.close()


def controller_for(client, auth, schema=CASES):
    return ListResourceController(schema, client, auth, delay_ms=DELAY_MS)


async def wait_for_debounce(controller):
    await asyncio.sleep(DELAY_MS / 1000 * 2)
    await controller.settle()


async def test_initial_load(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(1), make_case(2)], pages=3, total=25))
    controller = controller_for(client, ADMIN)
    assert await controller.load()
    assert [c["_id"] for c in controller.items] == ["case-1", "case-2"]
    assert controller.pagination.total_count == 25
    assert controller.pagination.has_next
    assert not controller.loading
    [call] = calls(rmock, "GET")
    assert call.kwargs["params"] == {
        "page": "1",
        "limit": "10",
        "sortBy": "createdAt",
        "sortOrder": "desc",
    }
    await controller.close()


async def test_typing_burst_issues_one_fetch(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(7, title="theft case")]), repeat=True)
    controller = controller_for(client, ADMIN)
    controller.set_search("theft")
    await asyncio.sleep(DELAY_MS / 1000 / 3)
    controller.set_search("theft case")
    await wait_for_debounce(controller)

    [call] = calls(rmock, "GET")
    assert call.kwargs["params"]["search"] == "theft case"
    assert call.kwargs["params"]["page"] == "1"
    assert [c["_id"] for c in controller.items] == ["case-7"]
    await controller.close()


async def test_next_page_until_last(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(11)], current=2, pages=3, total=25))
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(21)], current=3, pages=3, total=25))
    controller = controller_for(client, ADMIN)
    await controller.load(QueryDescriptor(page_number=2))
    assert controller.pagination.current == 2

    controller.next_page()
    await controller.settle()
    assert controller.pagination.current == 3
    assert not controller.pagination.has_next
    assert controller.pagination.has_prev

    controller.next_page()
    await controller.settle()
    assert len(calls(rmock, "GET")) == 2
    assert controller.pagination.current == 3
    await controller.close()


async def test_prev_page_on_first_page_is_noop(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(1)], current=1, pages=1))
    controller = controller_for(client, ADMIN)
    await controller.load()
    controller.prev_page()
    controller.go_to_page(5)
    await controller.settle()
    assert len(calls(rmock, "GET")) == 1
    await controller.close()


async def test_status_filter_resets_page(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(11)], current=2, pages=3, total=25))
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(3, status="closed")], total=1))
    controller = controller_for(client, ADMIN)
    await controller.load(QueryDescriptor(page_number=2))
    controller.set_status("closed")
    await controller.settle()
    second = calls(rmock, "GET")[-1]
    assert second.kwargs["params"]["status"] == "closed"
    assert second.kwargs["params"]["page"] == "1"
    await controller.close()


async def test_admin_status_change(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(1), make_case(2)], total=2))
    rmock.patch(f"{API_ENDPOINT}/cases/case-1/status", payload=make_case(1, status="closed"))
    controller = controller_for(client, ADMIN)
    await controller.load()
    await controller.perform(UpdateField("case-1", "status", "closed"))
    assert [c["_id"] for c in controller.items] == ["case-1", "case-2"]
    assert controller.items[0]["status"] == "closed"
    assert controller.pagination.total_count == 2
    await controller.close()


async def test_officer_status_change_is_denied(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(1)]))
    controller = controller_for(client, OFFICER)
    await controller.load()
    with pytest.raises(PermissionDenied):
        await controller.perform(UpdateField("case-1", "status", "closed"))
    assert calls(rmock, "PATCH") == []
    assert controller.items[0]["status"] == "open"
    await controller.close()


async def test_officer_creates_case_with_location(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(1)], total=1))
    rmock.post(f"{API_ENDPOINT}/cases", payload=make_case(2, location=KAMPALA))
    rmock.get(REVERSE_PATTERN, payload={"display_name": "Nakasero, Kampala, Uganda"})
    controller = controller_for(client, OFFICER)
    await controller.load()
    await controller.perform(Create({"title": "Case 2", "location": {"lat": 0.3476, "lng": 32.5825}}))
    await controller.settle()
    assert [c["_id"] for c in controller.items] == ["case-2", "case-1"]
    assert controller.pagination.total_count == 2
    assert controller.location_for(controller.items[0]) == "Nakasero, Kampala"
    assert controller.location_for(controller.items[1]) == LOCATION_MISSING
    await controller.close()


async def test_shared_coordinates_enriched_once(client, rmock):
    items = [make_case(1, location=KAMPALA), make_case(2, location=KAMPALA)]
    rmock.get(CASES_PATTERN, payload=list_payload(items))
    rmock.get(REVERSE_PATTERN, payload={"display_name": "Nakasero Market, Kampala Central, Kampala"})
    controller = controller_for(client, ADMIN)
    await controller.load()
    assert controller.location_for(controller.items[0]) == LOCATION_LOADING
    await controller.settle()

    assert len(calls(rmock, "GET", config.GEOCODER_ENDPOINT)) == 1
    assert controller.location_names == {
        "case-1": "Nakasero Market, Kampala Central",
        "case-2": "Nakasero Market, Kampala Central",
    }
    await controller.close()


async def test_failed_enrichment_shows_coordinates(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(1, location=KAMPALA)]))
    rmock.get(REVERSE_PATTERN, status=500)
    controller = controller_for(client, ADMIN)
    await controller.load()
    await controller.settle()
    assert controller.location_for(controller.items[0]) == "0.34, 32.58"
    assert controller.error is None
    await controller.close()


async def test_fetch_error_replaces_content(client, rmock):
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(1)]))
    rmock.get(CASES_PATTERN, status=500, payload={"msg": "Database unavailable"})
    rmock.get(CASES_PATTERN, payload=list_payload([make_case(2)]))
    controller = controller_for(client, ADMIN)
    await controller.load()

    assert not await controller.refresh()
    assert controller.items == ()
    assert controller.error.message == "Database unavailable"

    assert await controller.refresh()
    assert controller.error is None
    assert [c["_id"] for c in controller.items] == ["case-2"]
    await controller.close()


async def test_author_deletes_own_evidence(client, rmock):
    evidence = [{"_id": "ev-1", "uploadedBy": {"_id": OFFICER.identity}}]
    rmock.get(
        re.compile(r"^https://example\.com/api/evidence\?.*$"),
        payload={"evidence": evidence, "pagination": {"current": 1, "pages": 1, "total": 1}},
    )
    rmock.delete(f"{API_ENDPOINT}/evidence/ev-1", payload={"msg": "Evidence deleted"})
    controller = controller_for(client, OFFICER, schema=EVIDENCE)
    await controller.load()
    await controller.perform(Delete("ev-1"))
    assert controller.items == ()
    assert controller.pagination.total_count == 0
    await controller.close()


async def test_set_filter_validates_name(controller):
    with pytest.raises(ValueError):
        controller.set_filter("case", "case-1")


async def test_list_officers(client, rmock):
    rmock.get(f"{API_ENDPOINT}/cases/officers", payload=[{"_id": "off-7", "name": "Olga"}])
    admin = controller_for(client, ADMIN)
    assert await admin.list_officers() == [{"_id": "off-7", "name": "Olga"}]
    with pytest.raises(PermissionDenied):
        await controller_for(client, OFFICER).list_officers()
    assert len(calls(rmock, "GET")) == 1
    await admin.close()
