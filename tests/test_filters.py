from __future__ import annotations

import pytest

from notiontyped.core.filters import (
    NO_MATCH_VALUE,
    FilterError,
    MatchNothing,
    PropertyFilter,
    and_,
    expand_status_group,
    or_,
    parse_filter,
    translate_filter,
)
from notiontyped.core.schema import (
    PropertyOption,
    PropertyType,
    ResolvedDatabaseSchema,
    ResolvedPropertyConfig,
    SchemaRegistry,
    StatusGroup,
)


def _status_group(condition: dict) -> dict:
    return {"property": "state", "status_group": condition}


def test_plain_property_filter_is_renamed(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", {"property": "priority", "select": {"equals": "High"}})

    assert wire == {"property": "Priority", "select": {"equals": "High"}}


def test_unmapped_property_is_left_alone(registry: SchemaRegistry):
    raw = {"property": "Whatever", "number": {"greater_than": 1}}

    assert translate_filter(registry, "tasks", raw) == raw


def test_timestamp_filter_passes_through(registry: SchemaRegistry):
    raw = {"timestamp": "created_time", "created_time": {"after": "2024-01-01"}}

    assert translate_filter(registry, "tasks", raw) == raw


def test_compound_filters_are_translated_recursively(registry: SchemaRegistry):
    wire = translate_filter(
        registry,
        "tasks",
        and_(
            {"property": "done", "checkbox": {"equals": False}},
            or_(
                {"property": "priority", "select": {"equals": "High"}},
                {"property": "tags", "multi_select": {"contains": "bug"}},
            ),
        ),
    )

    assert wire == {
        "and": [
            {"property": "Done?", "checkbox": {"equals": False}},
            {
                "or": [
                    {"property": "Priority", "select": {"equals": "High"}},
                    {"property": "Tags", "multi_select": {"contains": "bug"}},
                ]
            },
        ]
    }


def test_group_equals_with_single_option_is_a_leaf(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", _status_group({"equals": "To-do"}))

    assert wire == {"property": "Status", "status": {"equals": "Not started"}}


def test_group_equals_with_many_options_is_an_or(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", _status_group({"equals": "In progress"}))

    assert wire == {
        "or": [
            {"property": "Status", "status": {"equals": "In progress"}},
            {"property": "Status", "status": {"equals": "Blocked"}},
        ]
    }


def test_group_does_not_equal_is_an_and(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", _status_group({"does_not_equal": "Complete"}))

    assert wire == {
        "and": [
            {"property": "Status", "status": {"does_not_equal": "Done"}},
            {"property": "Status", "status": {"does_not_equal": "Archived"}},
        ]
    }


def test_unknown_group_equals_matches_nothing(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", _status_group({"equals": "Nope"}))

    assert wire == {"property": "Status", "status": {"equals": NO_MATCH_VALUE}}


def test_unknown_group_does_not_equal_matches_any_set_status(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", _status_group({"does_not_equal": "Nope"}))

    assert wire == {"property": "Status", "status": {"is_not_empty": True}}


def test_in_any_takes_the_union_in_catalog_order(registry: SchemaRegistry):
    wire = translate_filter(
        registry, "tasks", _status_group({"in_any": ["Complete", "To-do"]})
    )

    assert wire == {
        "or": [
            {"property": "Status", "status": {"equals": "Not started"}},
            {"property": "Status", "status": {"equals": "Done"}},
            {"property": "Status", "status": {"equals": "Archived"}},
        ]
    }


def test_not_in_any_selects_the_complement(registry: SchemaRegistry):
    wire = translate_filter(
        registry, "tasks", _status_group({"not_in_any": ["Complete", "In progress"]})
    )

    assert wire == {"property": "Status", "status": {"equals": "Not started"}}


def test_not_in_any_of_one_group_selects_every_other_option(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", _status_group({"not_in_any": ["Complete"]}))

    assert wire == {
        "or": [
            {"property": "Status", "status": {"equals": "Not started"}},
            {"property": "Status", "status": {"equals": "In progress"}},
            {"property": "Status", "status": {"equals": "Blocked"}},
        ]
    }


def test_not_in_any_of_every_group_only_matches_empty(registry: SchemaRegistry):
    wire = translate_filter(
        registry,
        "tasks",
        _status_group({"not_in_any": ["To-do", "In progress", "Complete"]}),
    )

    assert wire == {"property": "Status", "status": {"is_empty": True}}


def test_group_emptiness_checks_become_status_checks(registry: SchemaRegistry):
    assert translate_filter(registry, "tasks", _status_group({"is_empty": True})) == {
        "property": "Status",
        "status": {"is_empty": True},
    }


def test_unknown_group_operator_is_passed_through_renamed(registry: SchemaRegistry):
    wire = translate_filter(registry, "tasks", _status_group({"starts_with": "In"}))

    assert wire == {"property": "Status", "status_group": {"starts_with": "In"}}


def test_status_group_on_property_without_groups_is_only_renamed():
    prop = ResolvedPropertyConfig(
        id="s",
        name="state",
        display_name="State",
        notion_name="Stage",
        type=PropertyType.STATUS,
        options=(PropertyOption(id="a", name="A"),),
    )
    registry = SchemaRegistry(
        [ResolvedDatabaseSchema(id="d", name="d", display_name="D", notion_name="D", properties=(prop,))]
    )

    wire = translate_filter(registry, "d", _status_group({"equals": "Whatever"}))

    assert wire == {"property": "Stage", "status_group": {"equals": "Whatever"}}


def test_expansion_never_contains_status_group_when_groups_exist(registry: SchemaRegistry):
    prop = registry.lookup_by_logical_name("tasks", "state")
    for condition in (
        {"equals": "Complete"},
        {"does_not_equal": "To-do"},
        {"in_any": []},
        {"not_in_any": []},
    ):
        assert "status_group" not in str(expand_status_group(prop, condition).to_wire())


def test_in_any_with_no_groups_matches_nothing(registry: SchemaRegistry):
    prop = registry.lookup_by_logical_name("tasks", "state")

    assert expand_status_group(prop, {"in_any": []}) == MatchNothing("Status")


def test_empty_group_matches_nothing():
    prop = ResolvedPropertyConfig(
        id="s",
        name="state",
        display_name="State",
        notion_name="Status",
        type=PropertyType.STATUS,
        options=(PropertyOption(id="a", name="A"),),
        groups=(StatusGroup(id="g", name="Empty", color=None, option_ids=()),),
    )

    node = expand_status_group(prop, {"equals": "Empty"})

    assert isinstance(node, MatchNothing)
    assert node.to_wire()["status"] == {"equals": NO_MATCH_VALUE}


def test_parse_filter_keeps_built_nodes():
    node = PropertyFilter("priority", {"select": {"equals": "Low"}})

    assert parse_filter(node) is node
    assert parse_filter({"or": [node]}).children == (node,)


@pytest.mark.parametrize(
    "raw",
    [
        {"foo": 1},
        {"and": "x"},
        ["a"],
        {"property": "state", "status_group": "Complete"},
    ],
)
def test_parse_filter_rejects_unknown_shapes(raw):
    with pytest.raises(FilterError):
        parse_filter(raw)
