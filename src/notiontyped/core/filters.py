"""Filter tree model and translation to Notion query filters.

Callers describe filters with logical property names, in the same loose
mapping shape the Notion API uses (`{"and": [...]}`, `{"property": ...,
"select": {...}}`, `{"timestamp": ...}`). The tree is parsed once into
explicit node classes and then translated:

- compound nodes keep their AND / OR shape,
- timestamp nodes pass through unchanged,
- property nodes get their logical name rewritten to the Notion name,
- `status_group` conditions on status properties are expanded into plain
  `status` conditions, because Notion cannot filter on groups.

Status-group expansion always simplifies on arity: an empty option set
becomes a `MatchNothing` node (or a trivially true/empty test for the
negated forms), a single option becomes a direct condition, and only two
or more options produce an OR / AND compound.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union

from notiontyped.core.schema import (
    PropertyType,
    ResolvedPropertyConfig,
    SchemaRegistry,
)

# No status option can be named like this, so `equals` on it matches nothing.
NO_MATCH_VALUE = "__notion_typed_no_match__"

STATUS_GROUP_KEY = "status_group"


class FilterError(ValueError):
    """Raised when a caller-supplied filter has an unrecognized shape."""


class CompoundKind(str, Enum):
    """Boolean combinator of a compound filter."""

    AND = "and"
    OR = "or"


class FilterNode(ABC):
    """Base class of every node in a filter tree."""

    @abstractmethod
    def to_wire(self) -> dict[str, Any]:
        """Render the node as a Notion API filter object."""
        ...


@dataclass(frozen=True)
class CompoundFilter(FilterNode):
    """AND / OR combination of child filters."""

    kind: CompoundKind
    children: tuple[FilterNode, ...]

    def to_wire(self) -> dict[str, Any]:
        return {self.kind.value: [child.to_wire() for child in self.children]}


@dataclass(frozen=True)
class PropertyFilter(FilterNode):
    """
    A condition on one property.

    `condition` holds every key of the filter object except `property`,
    e.g. `{"select": {"equals": "todo"}}`.
    """

    property: str
    condition: Mapping[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {"property": self.property, **self.condition}


@dataclass(frozen=True)
class StatusGroupFilter(FilterNode):
    """
    A condition on the group of a status property.

    `condition` is one of `{"equals": g}`, `{"does_not_equal": g}`,
    `{"in_any": [g, ...]}`, `{"not_in_any": [g, ...]}`, `{"is_empty": True}`
    or `{"is_not_empty": True}`.
    """

    property: str
    condition: Mapping[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {"property": self.property, STATUS_GROUP_KEY: dict(self.condition)}


@dataclass(frozen=True)
class TimestampFilter(FilterNode):
    """A condition on `created_time` / `last_edited_time` of the page."""

    timestamp: str
    condition: Mapping[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, **self.condition}


@dataclass(frozen=True)
class MatchNothing(FilterNode):
    """Always-false filter on a status property."""

    property: str

    def to_wire(self) -> dict[str, Any]:
        return {"property": self.property, "status": {"equals": NO_MATCH_VALUE}}


FilterInput = Union[FilterNode, Mapping[str, Any]]


def parse_filter(raw: FilterInput) -> FilterNode:
    """
    Build a filter node tree from a loosely-typed mapping.

    Already-built nodes are returned as-is, so trees may mix both forms.

    Raises:
        FilterError: If a node is neither compound, property nor timestamp.
    """
    if isinstance(raw, FilterNode):
        return raw
    if not isinstance(raw, Mapping):
        raise FilterError(f"Filter must be a mapping, got {type(raw).__name__}.")

    for kind in CompoundKind:
        if kind.value in raw:
            children = raw[kind.value]
            if not isinstance(children, (list, tuple)):
                raise FilterError(f"'{kind.value}' filter expects a list of filters.")
            return CompoundFilter(kind, tuple(parse_filter(c) for c in children))

    if "property" in raw:
        name = raw["property"]
        condition = {k: v for k, v in raw.items() if k != "property"}
        if STATUS_GROUP_KEY in condition:
            group_condition = condition[STATUS_GROUP_KEY]
            if not isinstance(group_condition, Mapping):
                raise FilterError("'status_group' expects an object.")
            return StatusGroupFilter(name, dict(group_condition))
        return PropertyFilter(name, condition)

    if "timestamp" in raw:
        condition = {k: v for k, v in raw.items() if k != "timestamp"}
        return TimestampFilter(raw["timestamp"], condition)

    raise FilterError(f"Unrecognized filter shape with keys {sorted(raw)}.")


def and_(*filters: FilterInput) -> CompoundFilter:
    return CompoundFilter(CompoundKind.AND, tuple(parse_filter(f) for f in filters))


def or_(*filters: FilterInput) -> CompoundFilter:
    return CompoundFilter(CompoundKind.OR, tuple(parse_filter(f) for f in filters))


def _status(wire_name: str, operator: str, value: Any) -> PropertyFilter:
    return PropertyFilter(wire_name, {"status": {operator: value}})


def _any_of(wire_name: str, options: list[str]) -> FilterNode:
    """OR of `equals` over options, simplified on arity."""
    if not options:
        return MatchNothing(wire_name)
    if len(options) == 1:
        return _status(wire_name, "equals", options[0])
    return CompoundFilter(
        CompoundKind.OR, tuple(_status(wire_name, "equals", o) for o in options)
    )


def _none_of(wire_name: str, options: list[str]) -> FilterNode:
    """AND of `does_not_equal` over options, simplified on arity."""
    if not options:
        return _status(wire_name, "is_not_empty", True)
    if len(options) == 1:
        return _status(wire_name, "does_not_equal", options[0])
    return CompoundFilter(
        CompoundKind.AND,
        tuple(_status(wire_name, "does_not_equal", o) for o in options),
    )


def _options_in_groups(prop: ResolvedPropertyConfig, group_names: Any) -> list[str]:
    """Union of the option names of several groups, in catalog order."""
    if isinstance(group_names, str):
        group_names = [group_names]
    wanted: set[str] = set()
    for group_name in group_names or ():
        wanted.update(prop.options_for_group(group_name))
    return [name for name in prop.option_names() if name in wanted]


def expand_status_group(
    prop: ResolvedPropertyConfig, condition: Mapping[str, Any]
) -> FilterNode:
    """
    Expand a `status_group` condition into plain `status` conditions.

    Args:
        prop: Resolved status property carrying groups.
        condition: The caller's `status_group` condition.

    Returns:
        An equivalent filter tree that Notion understands. Unknown
        operators are passed through untouched (with the Notion name).
    """
    wire_name = prop.notion_name

    if "equals" in condition:
        return _any_of(wire_name, prop.options_for_group(condition["equals"]))

    if "does_not_equal" in condition:
        return _none_of(wire_name, prop.options_for_group(condition["does_not_equal"]))

    if "in_any" in condition:
        return _any_of(wire_name, _options_in_groups(prop, condition["in_any"]))

    if "not_in_any" in condition:
        excluded = set(_options_in_groups(prop, condition["not_in_any"]))
        remaining = [name for name in prop.option_names() if name not in excluded]
        if not remaining:
            return _status(wire_name, "is_empty", True)
        return _any_of(wire_name, remaining)

    for operator in ("is_empty", "is_not_empty"):
        if operator in condition:
            return _status(wire_name, operator, condition[operator])

    return StatusGroupFilter(wire_name, condition)


def _translate(registry: SchemaRegistry, db_name: str, node: FilterNode) -> FilterNode:
    if isinstance(node, CompoundFilter):
        return CompoundFilter(
            node.kind, tuple(_translate(registry, db_name, c) for c in node.children)
        )

    if isinstance(node, (TimestampFilter, MatchNothing)):
        return node

    if isinstance(node, StatusGroupFilter):
        prop = registry.lookup_by_logical_name(db_name, node.property)
        if prop is None:
            return node
        if prop.type is PropertyType.STATUS and prop.groups:
            return expand_status_group(prop, node.condition)
        return StatusGroupFilter(prop.notion_name, node.condition)

    if isinstance(node, PropertyFilter):
        prop = registry.lookup_by_logical_name(db_name, node.property)
        if prop is None:
            return node
        return PropertyFilter(prop.notion_name, node.condition)

    raise FilterError(f"Unsupported filter node {type(node).__name__}.")


def translate_filter(
    registry: SchemaRegistry, db_name: str, node: FilterInput
) -> dict[str, Any]:
    """
    Translate a logical filter into a Notion API filter object.

    Names without a resolved mapping are left as they are; this never
    raises for a well-formed tree.
    """
    return _translate(registry, db_name, parse_filter(node)).to_wire()
