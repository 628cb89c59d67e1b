from __future__ import annotations

from typing import Any

import pytest

from conftest import TASKS_DB_ID, wire_page
from notiontyped.core.client import IncompletePageError, TypedClient, ValidationError
from notiontyped.core.schema import UnknownDatabaseError


class _Transport:
    """In-memory transport that records every call."""

    def __init__(self, pages: list[dict] | None = None):
        self.pages = pages or []
        self.calls: list[tuple[str, Any]] = []

    async def retrieve_database(self, database_id):
        self.calls.append(("retrieve_database", database_id))
        return {"id": database_id}

    async def query_database(
        self, database_id, *, filter=None, sorts=None, start_cursor=None, page_size=None
    ):
        self.calls.append(
            ("query_database", {"filter": filter, "sorts": sorts, "cursor": start_cursor})
        )
        start = int(start_cursor) if start_cursor else 0
        end = min(start + page_size, len(self.pages))
        has_more = end < len(self.pages)
        return {
            "object": "list",
            "results": self.pages[start:end],
            "has_more": has_more,
            "next_cursor": str(end) if has_more else None,
        }

    async def create_page(self, database_id, properties):
        self.calls.append(("create_page", (database_id, properties)))
        page = wire_page("new-page", "x")
        page["properties"] = properties
        return page

    async def retrieve_page(self, page_id):
        self.calls.append(("retrieve_page", page_id))
        return wire_page(page_id, "Fetched", "Blocked")

    async def update_page(self, page_id, *, properties=None, archived=None):
        self.calls.append(("update_page", {"id": page_id, "properties": properties, "archived": archived}))
        if archived:
            return {"object": "page", "id": page_id, "archived": True}
        page = wire_page(page_id, "x")
        page["properties"] = properties
        return page


@pytest.mark.asyncio
async def test_create_page_encodes_and_decodes(registry):
    transport = _Transport()
    client = TypedClient(transport, registry)

    page = await client.create_page("tasks", {"title": "Write docs", "priority": "High"})

    name, (database_id, properties) = transport.calls[0]
    assert name == "create_page"
    assert database_id == TASKS_DB_ID
    assert set(properties) == {"Name", "Priority"}
    assert page.properties == {"title": "Write docs", "priority": "High"}


@pytest.mark.asyncio
async def test_invalid_payload_never_reaches_transport(registry):
    transport = _Transport()
    client = TypedClient(transport, registry)

    with pytest.raises(ValidationError) as excinfo:
        await client.create_page("tasks", {"priority": "Urgent"})
    with pytest.raises(ValidationError):
        await client.update_page("p1", "tasks", {"ghost": True})

    assert transport.calls == []
    assert excinfo.value.database == "tasks"
    assert excinfo.value.errors


@pytest.mark.asyncio
async def test_update_page_sends_only_given_fields(registry):
    transport = _Transport()
    client = TypedClient(transport, registry)

    page = await client.update_page("p1", "tasks", {"done": True, "estimate": None})

    assert transport.calls == [
        ("update_page", {"id": "p1", "properties": {"Done?": {"checkbox": True}}, "archived": None})
    ]
    assert page.properties == {"done": True}


@pytest.mark.asyncio
async def test_get_page_decodes_status_group(registry):
    client = TypedClient(_Transport(), registry)

    page = await client.get_page("p9", "tasks")

    assert page.id == "p9"
    assert page.properties["title"] == "Fetched"
    assert page.properties["state"]["group"] == "In progress"
    assert page.url == "https://www.notion.so/p9"


@pytest.mark.asyncio
async def test_get_page_without_properties_raises(registry):
    transport = _Transport()

    async def partial(page_id):
        return {"object": "page", "id": page_id}

    transport.retrieve_page = partial
    client = TypedClient(transport, registry)

    with pytest.raises(IncompletePageError):
        await client.get_page("p1", "tasks")


@pytest.mark.asyncio
async def test_delete_page_archives(registry):
    transport = _Transport()
    client = TypedClient(transport, registry)

    result = await client.delete_page("p1")

    assert result["archived"] is True
    assert transport.calls == [
        ("update_page", {"id": "p1", "properties": None, "archived": True})
    ]


@pytest.mark.asyncio
async def test_query_translates_filter_and_sorts(registry):
    transport = _Transport([wire_page("a", "A", "Done")])
    client = TypedClient(transport, registry)

    result = await client.query_database(
        "tasks",
        filter={"property": "state", "status_group": {"equals": "To-do"}},
        sorts=[{"property": "due", "direction": "ascending"}],
    )

    _, sent = transport.calls[0]
    assert sent["filter"] == {"property": "Status", "status": {"equals": "Not started"}}
    assert sent["sorts"] == [{"property": "Due date", "direction": "ascending"}]
    assert [p.properties["title"] for p in result.results] == ["A"]
    assert result.has_more is False


@pytest.mark.asyncio
async def test_query_all_and_iterator_agree(registry):
    pages = [wire_page(f"p{i}", f"T{i}") for i in range(5)]
    client = TypedClient(_Transport(pages), registry)

    everything = await client.query_database_all("tasks", page_size=2)
    iterated = [p async for p in client.query_database_iterator("tasks", page_size=2)]

    assert [p.id for p in everything] == [p.id for p in iterated] == [f"p{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_query_skips_partial_pages(registry):
    transport = _Transport([wire_page("a", "A"), {"object": "page", "id": "partial"}])
    client = TypedClient(transport, registry)

    result = await client.query_database_all("tasks")

    assert [p.id for p in result] == ["a"]


@pytest.mark.asyncio
async def test_unknown_database_fails_before_any_request(registry):
    transport = _Transport()
    client = TypedClient(transport, registry)

    with pytest.raises(UnknownDatabaseError):
        await client.query_database("projects")
    with pytest.raises(UnknownDatabaseError):
        await client.get_page("p1", "projects")
    assert transport.calls == []


def test_status_helpers_delegate_to_registry(registry):
    client = TypedClient(_Transport(), registry)

    assert client.get_database_id("tasks") == TASKS_DB_ID
    assert client.get_status_groups("tasks", "state") == ["To-do", "In progress", "Complete"]
    assert client.get_status_options_for_group("tasks", "state", "Complete") == ["Done", "Archived"]
    assert client.get_group_for_status_option("tasks", "state", "Not started") == "To-do"
    assert client.is_option_in_group("tasks", "state", "Done", "Complete")
