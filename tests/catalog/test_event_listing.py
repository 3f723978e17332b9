"""Tests for the public, cursor-paginated event listing."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

BASE = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=10)


def _at(hours: int) -> dict[str, str]:
    start = BASE + timedelta(hours=hours)
    return {"start_at": start.isoformat(), "end_at": (start + timedelta(hours=2)).isoformat()}


async def _walk(client, limit, **params):
    """Follow next_cursor until exhausted; returns the pages' id lists."""
    pages = []
    cursor = None
    while True:
        query = {"limit": limit, **params}
        if cursor:
            query["cursor"] = cursor
        response = await client.get("/api/v1/events", params=query)
        assert response.status_code == 200, response.text
        data = response.json()
        pages.append([item["id"] for item in data["items"]])
        cursor = data["next_cursor"]
        if cursor is None:
            return pages
        assert len(pages) < 50, "pagination does not terminate"


@pytest_asyncio.fixture
async def catalog(organizer, make_event):
    """Seven public events (two sharing a start time) plus hidden ones."""
    ids = {}
    for name, hours in [("e5", 5), ("e1", 1), ("e3a", 3), ("e3b", 3), ("e7", 7), ("e2", 2), ("e6", 6)]:
        ids[name] = (await make_event(organizer, title=name, **_at(hours))).id
    ids["private"] = (await make_event(organizer, title="private", is_public=False, **_at(4))).id
    return ids


class TestPagination:
    async def test_start_time_order_is_complete_without_overlap(self, client, catalog):
        pages = await _walk(client, 3)
        flat = [i for page in pages for i in page]
        assert [len(p) for p in pages] == [3, 3, 1]
        assert flat == [
            catalog["e1"],
            catalog["e2"],
            catalog["e3a"],
            catalog["e3b"],
            catalog["e5"],
            catalog["e6"],
            catalog["e7"],
        ]

    async def test_created_order_is_newest_first(self, client, catalog):
        pages = await _walk(client, 2, sortBy="createdAt")
        flat = [i for page in pages for i in page]
        public = [v for k, v in catalog.items() if k != "private"]
        assert flat == sorted(public, reverse=True)
        assert len(flat) == len(set(flat))

    async def test_unknown_sort_falls_back_to_start_time(self, client, catalog):
        data = (await client.get("/api/v1/events", params={"sortBy": "popularity", "limit": 1})).json()
        assert data["items"][0]["id"] == catalog["e1"]

    async def test_exact_page_size_has_no_dangling_cursor(self, client, catalog):
        data = (await client.get("/api/v1/events", params={"limit": 7})).json()
        assert len(data["items"]) == 7
        assert data["next_cursor"] is None

    async def test_hidden_events_not_listed(self, client, catalog, admin):
        await client.patch(f"/api/v1/admin/events/{catalog['e2']}/block", headers=admin.headers)
        flat = [i for page in await _walk(client, 100) for i in page]
        assert catalog["private"] not in flat
        assert catalog["e2"] not in flat
        assert len(flat) == 6

    async def test_cancelled_events_still_listed(self, client, catalog, organizer):
        await client.post(f"/api/v1/events/{catalog['e3a']}/cancel", headers=organizer.headers)
        items = (await client.get("/api/v1/events", params={"limit": 100})).json()["items"]
        statuses = {item["id"]: item["status"] for item in items}
        assert statuses[catalog["e3a"]] == "cancelled"

    async def test_listing_item_fields(self, client, catalog):
        item = (await client.get("/api/v1/events", params={"limit": 1})).json()["items"][0]
        assert item["title"] == "e1"
        assert item["organizer_name"] == "PyCon Team"
        assert item["category_ids"] == []


class TestParameters:
    async def test_malformed_cursor(self, client, catalog):
        response = await client.get("/api/v1/events", params={"cursor": "garbage"})
        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_input"

    @pytest.mark.parametrize(("limit", "expected"), [(0, 1), (-3, 1), (500, 7)])
    async def test_limit_is_clamped(self, client, catalog, limit, expected):
        data = (await client.get("/api/v1/events", params={"limit": limit})).json()
        assert len(data["items"]) == expected

    async def test_default_page(self, client, catalog):
        data = (await client.get("/api/v1/events")).json()
        assert len(data["items"]) == 7
        assert data["next_cursor"] is None

    async def test_category_filter(self, client, catalog, organizer, admin, make_event):
        python = (await client.post("/api/v1/admin/categories", json={"name": "Python"}, headers=admin.headers)).json()
        data_cat = (await client.post("/api/v1/admin/categories", json={"name": "Data"}, headers=admin.headers)).json()
        py_event = await make_event(organizer, title="py", category_ids=[python["id"]], **_at(8))
        both = await make_event(organizer, title="both", category_ids=[python["id"], data_cat["id"]], **_at(9))

        only_data = (await client.get("/api/v1/events", params={"categoryIds": str(data_cat["id"])})).json()
        assert [i["id"] for i in only_data["items"]] == [both.id]

        either = await client.get("/api/v1/events", params={"categoryIds": f"{python['id']},{data_cat['id']},x"})
        assert [i["id"] for i in either.json()["items"]] == [py_event.id, both.id]

    async def test_empty_catalog(self, client):
        data = (await client.get("/api/v1/events")).json()
        assert data == {"items": [], "next_cursor": None}
