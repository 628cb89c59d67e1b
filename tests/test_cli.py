from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from conftest import wire_page
from notiontyped.cli.cli import app
from notiontyped.cli.common.context import AppContext
from notiontyped.core.schema import SchemaRegistry

runner = CliRunner()


class _StubTransport:
    def __init__(self, database: dict | None = None, pages: list[dict] | None = None):
        self.database = database
        self.pages = pages or []
        self.calls: list[tuple[str, object]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def retrieve_database(self, database_id):
        self.calls.append(("retrieve_database", database_id))
        return self.database

    async def search_databases(self, query):
        self.calls.append(("search_databases", query))
        return [self.database]

    async def query_database(self, database_id, *, filter=None, sorts=None, start_cursor=None, page_size=None):
        self.calls.append(("query_database", {"filter": filter, "sorts": sorts, "page_size": page_size}))
        return {"results": self.pages, "has_more": False, "next_cursor": None}

    async def retrieve_page(self, page_id):
        self.calls.append(("retrieve_page", page_id))
        return wire_page(page_id, "One", "Done")

    async def update_page(self, page_id, *, properties=None, archived=None):
        self.calls.append(("update_page", {"id": page_id, "archived": archived}))
        return {"object": "page", "id": page_id, "archived": True}


@pytest.fixture
def resolved_file(tmp_path, registry: SchemaRegistry):
    path = tmp_path / "resolved.json"
    registry.dump(path)
    return path


@pytest.fixture
def stub(monkeypatch):
    transport = _StubTransport(pages=[wire_page("p1", "First", "Blocked")])
    monkeypatch.setattr(AppContext, "transport", lambda self: transport)
    return transport


def test_schema_show_prints_resolved_properties(resolved_file):
    result = runner.invoke(app, ["schema", "show", "tasks", "--resolved", str(resolved_file), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["id"] == "db-tasks"
    assert [p["notion_name"] for p in data["properties"]][:2] == ["Name", "Status"]


def test_schema_show_unknown_database(resolved_file):
    result = runner.invoke(app, ["schema", "show", "projects", "--resolved", str(resolved_file)])

    assert result.exit_code == 2
    assert "Unknown database" in result.output


def test_schema_show_without_resolved_file(tmp_path):
    result = runner.invoke(
        app, ["schema", "show", "tasks", "--resolved", str(tmp_path / "missing.json")]
    )

    assert result.exit_code == 2
    assert "Resolved schema not found" in result.output


def test_pages_query_translates_filter(resolved_file, stub):
    result = runner.invoke(
        app,
        [
            "pages", "query", "tasks",
            "--resolved", str(resolved_file),
            "--filter", json.dumps({"property": "state", "status_group": {"equals": "In progress"}}),
            "--sort", json.dumps({"property": "due", "direction": "ascending"}),
            "--page-size", "10",
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    (name, sent) = stub.calls[0]
    assert name == "query_database"
    assert sent["filter"] == {
        "or": [
            {"property": "Status", "status": {"equals": "In progress"}},
            {"property": "Status", "status": {"equals": "Blocked"}},
        ]
    }
    assert sent["sorts"] == [{"property": "Due date", "direction": "ascending"}]
    assert sent["page_size"] == 10
    (page,) = json.loads(result.output)
    assert page["properties"]["state"]["group"] == "In progress"


def test_pages_query_rejects_invalid_json(resolved_file, stub):
    result = runner.invoke(
        app, ["pages", "query", "tasks", "--resolved", str(resolved_file), "--filter", "{nope"]
    )

    assert result.exit_code == 2
    assert "Invalid JSON for --filter" in result.output
    assert stub.calls == []


def test_pages_query_all_and_limit_are_exclusive(resolved_file, stub):
    result = runner.invoke(
        app, ["pages", "query", "tasks", "--resolved", str(resolved_file), "--all", "--limit", "3"]
    )

    assert result.exit_code == 2


def test_pages_get_decodes_page(resolved_file, stub):
    result = runner.invoke(app, ["pages", "get", "p7", "tasks", "--resolved", str(resolved_file), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["id"] == "p7"
    assert data["properties"]["title"] == "One"


def test_pages_archive_with_yes(stub):
    result = runner.invoke(app, ["pages", "archive", "p1", "--yes"])

    assert result.exit_code == 0, result.output
    assert stub.calls == [("update_page", {"id": "p1", "archived": True})]
    assert "Archived page p1" in result.output


def test_missing_token_exits_with_hint(monkeypatch):
    monkeypatch.delenv("NOTION_API_KEY", raising=False)

    result = runner.invoke(app, ["pages", "archive", "p1", "--yes"])

    assert result.exit_code == 1
    assert "NOTION_API_KEY" in result.output


def test_fetch_writes_resolved_schema_and_config_updates(tmp_path, monkeypatch):
    database = {
        "object": "database",
        "id": "db-remote",
        "title": [{"plain_text": "Tasks DB"}],
        "properties": {
            "Name": {"id": "title", "name": "Name", "type": "title", "title": {}},
            "Estimate": {"id": "est", "name": "Estimate", "type": "number", "number": {}},
        },
    }
    transport = _StubTransport(database=database)
    monkeypatch.setattr(AppContext, "transport", lambda self: transport)

    output = tmp_path / "resolved.json"
    config_path = tmp_path / "notion-typed.json"
    config_path.write_text(
        json.dumps(
            {
                "databases": [
                    {
                        "id": None,
                        "name": "tasks",
                        "display_name": "Tasks",
                        "notion_name": "Tasks DB",
                        "properties": [
                            {"id": None, "name": "title", "display_name": "Title",
                             "notion_name": "Name", "type": None},
                            {"id": None, "name": "estimate", "display_name": "Estimate",
                             "notion_name": "Estimate", "type": "number"},
                        ],
                    }
                ],
                "output": {"path": str(output)},
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["fetch", "--config", str(config_path), "--yes"])

    assert result.exit_code == 0, result.output
    registry = SchemaRegistry.load(output)
    assert registry.database_id("tasks") == "db-remote"
    assert registry.lookup_by_logical_name("tasks", "title").type.value == "title"

    updated = json.loads(config_path.read_text(encoding="utf-8"))["databases"][0]
    assert updated["id"] == "db-remote"
    assert updated["properties"][0]["type"] == "title"
    assert updated["properties"][1]["id"] == "est"


def test_fetch_dry_run_writes_nothing(tmp_path, monkeypatch):
    database = {
        "object": "database",
        "id": "db-remote",
        "title": [{"plain_text": "Tasks DB"}],
        "properties": {"Name": {"id": "title", "name": "Name", "type": "title", "title": {}}},
    }
    monkeypatch.setattr(AppContext, "transport", lambda self: _StubTransport(database=database))
    config_path = tmp_path / "notion-typed.json"
    before = json.dumps(
        {
            "databases": [
                {"name": "tasks", "display_name": "Tasks", "notion_name": "Tasks DB",
                 "properties": [{"name": "title", "display_name": "Title", "notion_name": "Name"}]}
            ],
            "output": {"path": str(tmp_path / "resolved.json")},
        }
    )
    config_path.write_text(before, encoding="utf-8")

    result = runner.invoke(app, ["fetch", "--config", str(config_path), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert not (tmp_path / "resolved.json").exists()
    assert config_path.read_text(encoding="utf-8") == before
