from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from notiontyped.core.schema import (  # noqa: E402
    PropertyOption,
    PropertyType,
    ResolvedDatabaseSchema,
    ResolvedPropertyConfig,
    SchemaRegistry,
    StatusGroup,
)

TASKS_DB_ID = "db-tasks"

STATUS_OPTIONS = (
    PropertyOption(id="o1", name="Not started", color="default"),
    PropertyOption(id="o2", name="In progress", color="blue"),
    PropertyOption(id="o3", name="Blocked", color="red"),
    PropertyOption(id="o4", name="Done", color="green"),
    PropertyOption(id="o5", name="Archived", color="gray"),
)

STATUS_GROUPS = (
    StatusGroup(id="g1", name="To-do", color="gray", option_ids=("o1",)),
    StatusGroup(id="g2", name="In progress", color="blue", option_ids=("o2", "o3")),
    StatusGroup(id="g3", name="Complete", color="green", option_ids=("o4", "o5")),
)


def _prop(name, notion_name, type_, **kwargs) -> ResolvedPropertyConfig:
    return ResolvedPropertyConfig(
        id=kwargs.pop("id", f"id-{name}"),
        name=name,
        display_name=name.title(),
        notion_name=notion_name,
        type=type_,
        **kwargs,
    )


def make_tasks_schema() -> ResolvedDatabaseSchema:
    return ResolvedDatabaseSchema(
        id=TASKS_DB_ID,
        name="tasks",
        display_name="Tasks",
        notion_name="Tasks DB",
        properties=(
            _prop("title", "Name", PropertyType.TITLE, id="title"),
            _prop(
                "state",
                "Status",
                PropertyType.STATUS,
                options=STATUS_OPTIONS,
                groups=STATUS_GROUPS,
            ),
            _prop(
                "priority",
                "Priority",
                PropertyType.SELECT,
                options=(PropertyOption(id="p1", name="High"), PropertyOption(id="p2", name="Low")),
            ),
            _prop(
                "tags",
                "Tags",
                PropertyType.MULTI_SELECT,
                options=(PropertyOption(id="t1", name="bug"), PropertyOption(id="t2", name="ui")),
            ),
            _prop("estimate", "Estimate", PropertyType.NUMBER),
            _prop("due", "Due date", PropertyType.DATE),
            _prop("done", "Done?", PropertyType.CHECKBOX),
            _prop("owners", "Assignee", PropertyType.PEOPLE),
            _prop("link", "Link", PropertyType.URL),
            _prop("attachments", "Files", PropertyType.FILES),
            _prop("notes", "Notes", PropertyType.RICH_TEXT),
            _prop("related", "Related", PropertyType.RELATION),
            _prop("contact", "Email", PropertyType.EMAIL),
            _prop("phone", "Phone", PropertyType.PHONE_NUMBER),
            _prop("created", "Created", PropertyType.CREATED_TIME),
        ),
    )


@pytest.fixture
def tasks_schema() -> ResolvedDatabaseSchema:
    return make_tasks_schema()


@pytest.fixture
def registry(tasks_schema: ResolvedDatabaseSchema) -> SchemaRegistry:
    return SchemaRegistry([tasks_schema])


def wire_page(page_id: str, title: str, status: str | None = None, **extra) -> dict:
    """Build a page object the way the Notion API returns it."""
    properties: dict = {
        "Name": {"id": "title", "type": "title", "title": [{"plain_text": title}]},
    }
    if status is not None:
        option = next(o for o in STATUS_OPTIONS if o.name == status)
        properties["Status"] = {
            "type": "status",
            "status": {"id": option.id, "name": option.name, "color": option.color},
        }
    properties.update(extra)
    return {
        "object": "page",
        "id": page_id,
        "created_time": "2024-01-01T00:00:00.000Z",
        "last_edited_time": "2024-01-02T00:00:00.000Z",
        "archived": False,
        "url": f"https://www.notion.so/{page_id}",
        "properties": properties,
    }
