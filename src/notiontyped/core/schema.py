"""Resolved schema model for typed Notion databases.

This module defines the immutable description of every configured database:
which logical (caller-facing) property names map to which Notion property
names and ids, what type each property has, and which options and status
groups a choice-like property offers.

A `SchemaRegistry` is built once (usually from the resolved-schema JSON file
written by `notion-typed fetch`) and then shared by reference. Nothing in
this module mutates after construction.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping


class SchemaError(ValueError):
    """Raised when a resolved schema violates its invariants."""


class UnknownDatabaseError(KeyError):
    """Raised when a logical database name is not part of the registry."""


class PropertyType(str, Enum):
    """
    Notion property type tags.

    The values are the literal `type` strings used by the Notion API.
    """

    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    STATUS = "status"
    DATE = "date"
    PEOPLE = "people"
    FILES = "files"
    CHECKBOX = "checkbox"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    RELATION = "relation"
    FORMULA = "formula"
    ROLLUP = "rollup"
    CREATED_TIME = "created_time"
    CREATED_BY = "created_by"
    LAST_EDITED_TIME = "last_edited_time"
    LAST_EDITED_BY = "last_edited_by"
    UNIQUE_ID = "unique_id"


CHOICE_TYPES = frozenset(
    {PropertyType.SELECT, PropertyType.MULTI_SELECT, PropertyType.STATUS}
)

READ_ONLY_TYPES = frozenset(
    {
        PropertyType.CREATED_TIME,
        PropertyType.CREATED_BY,
        PropertyType.LAST_EDITED_TIME,
        PropertyType.LAST_EDITED_BY,
        PropertyType.FORMULA,
        PropertyType.ROLLUP,
        PropertyType.UNIQUE_ID,
    }
)


@dataclass(frozen=True)
class PropertyOption:
    """
    One option of a select, multi-select or status property.

    Attributes:
        id: Stable Notion option id.
        name: Human-editable label; this is what filters and values use.
        color: Optional Notion color name.
        description: Optional option description.
    """

    id: str
    name: str
    color: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PropertyOption:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            color=data.get("color"),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.color is not None:
            out["color"] = self.color
        if self.description is not None:
            out["description"] = self.description
        return out


@dataclass(frozen=True)
class StatusGroup:
    """A named bucket of status options (e.g. "To-do", "In progress")."""

    id: str
    name: str
    color: str | None
    option_ids: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatusGroup:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            color=data.get("color"),
            option_ids=tuple(str(o) for o in data.get("option_ids") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "option_ids": list(self.option_ids),
        }


@dataclass(frozen=True)
class ResolvedPropertyConfig:
    """
    A property whose Notion identity has been resolved.

    Attributes:
        id: Notion property id.
        name: Logical name used by callers.
        display_name: Label used in logs and CLI output.
        notion_name: Property name as it currently appears in Notion.
        type: Property type tag.
        options: Option catalog (choice-like types only).
        groups: Status groups (status type only).
    """

    id: str
    name: str
    display_name: str
    notion_name: str
    type: PropertyType
    options: tuple[PropertyOption, ...] | None = None
    groups: tuple[StatusGroup, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", PropertyType(self.type))
        if self.type not in CHOICE_TYPES and (self.options or self.groups):
            raise SchemaError(
                f"Property '{self.name}' of type {self.type.value} cannot carry options."
            )
        if self.groups and self.type is not PropertyType.STATUS:
            raise SchemaError(f"Only status properties carry groups ('{self.name}').")
        if self.groups:
            known = {o.id for o in self.options or ()}
            for group in self.groups:
                unknown = set(group.option_ids) - known
                if unknown:
                    raise SchemaError(
                        f"Status group '{group.name}' of '{self.name}' references "
                        f"unknown option ids: {sorted(unknown)}"
                    )

    @property
    def read_only(self) -> bool:
        return self.type in READ_ONLY_TYPES

    def option_names(self) -> list[str]:
        """Return all option names in catalog order."""
        return [o.name for o in self.options or ()]

    def group(self, group_name: str) -> StatusGroup | None:
        for group in self.groups or ():
            if group.name == group_name:
                return group
        return None

    def options_for_group(self, group_name: str) -> list[str]:
        """Return the option names in a status group (empty if unknown)."""
        group = self.group(group_name)
        if group is None:
            return []
        names_by_id = {o.id: o.name for o in self.options or ()}
        return [names_by_id[i] for i in group.option_ids if i in names_by_id]

    def group_for_option_id(self, option_id: str | None) -> StatusGroup | None:
        if option_id is None:
            return None
        for group in self.groups or ():
            if option_id in group.option_ids:
                return group
        return None

    def group_for_option_name(self, option_name: str) -> StatusGroup | None:
        for option in self.options or ():
            if option.name == option_name:
                return self.group_for_option_id(option.id)
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResolvedPropertyConfig:
        options = data.get("options")
        groups = data.get("groups")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data["name"]),
            display_name=str(data.get("display_name") or data["name"]),
            notion_name=str(data["notion_name"]),
            type=PropertyType(data["type"]),
            options=tuple(PropertyOption.from_dict(o) for o in options)
            if options is not None
            else None,
            groups=tuple(StatusGroup.from_dict(g) for g in groups)
            if groups is not None
            else None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "notion_name": self.notion_name,
            "type": self.type.value,
        }
        if self.options is not None:
            out["options"] = [o.to_dict() for o in self.options]
        if self.groups is not None:
            out["groups"] = [g.to_dict() for g in self.groups]
        return out


@dataclass(frozen=True)
class ResolvedDatabaseSchema:
    """A database with all of its configured properties resolved."""

    id: str
    name: str
    display_name: str
    notion_name: str
    properties: tuple[ResolvedPropertyConfig, ...] = ()
    _by_name: Mapping[str, ResolvedPropertyConfig] = field(
        init=False, repr=False, compare=False
    )
    _by_notion_name: Mapping[str, ResolvedPropertyConfig] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", tuple(self.properties))
        by_name: dict[str, ResolvedPropertyConfig] = {}
        by_notion_name: dict[str, ResolvedPropertyConfig] = {}
        for prop in self.properties:
            if prop.name in by_name:
                raise SchemaError(
                    f"Duplicate property name '{prop.name}' in database '{self.name}'."
                )
            if prop.notion_name in by_notion_name:
                raise SchemaError(
                    f"Duplicate Notion property name '{prop.notion_name}' "
                    f"in database '{self.name}'."
                )
            by_name[prop.name] = prop
            by_notion_name[prop.notion_name] = prop
        object.__setattr__(self, "_by_name", MappingProxyType(by_name))
        object.__setattr__(self, "_by_notion_name", MappingProxyType(by_notion_name))

    def property_by_name(self, name: str) -> ResolvedPropertyConfig | None:
        return self._by_name.get(name)

    def property_by_notion_name(self, notion_name: str) -> ResolvedPropertyConfig | None:
        return self._by_notion_name.get(notion_name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResolvedDatabaseSchema:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            display_name=str(data.get("display_name") or data["name"]),
            notion_name=str(data.get("notion_name") or ""),
            properties=tuple(
                ResolvedPropertyConfig.from_dict(p) for p in data.get("properties") or ()
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "notion_name": self.notion_name,
            "properties": [p.to_dict() for p in self.properties],
        }


class SchemaRegistry:
    """
    Read-only registry of resolved database schemas keyed by logical name.

    Unknown databases raise `UnknownDatabaseError`. Unknown properties are
    an expected state (not yet resolved) and are reported as `None`.
    """

    def __init__(self, databases: Iterable[ResolvedDatabaseSchema]):
        by_name: dict[str, ResolvedDatabaseSchema] = {}
        for db in databases:
            if db.name in by_name:
                raise SchemaError(f"Duplicate database name '{db.name}'.")
            by_name[db.name] = db
        self._databases: Mapping[str, ResolvedDatabaseSchema] = MappingProxyType(by_name)

    def __contains__(self, db_name: object) -> bool:
        return db_name in self._databases

    def __len__(self) -> int:
        return len(self._databases)

    def database_names(self) -> list[str]:
        return list(self._databases)

    def databases(self) -> list[ResolvedDatabaseSchema]:
        return list(self._databases.values())

    def database(self, db_name: str) -> ResolvedDatabaseSchema:
        try:
            return self._databases[db_name]
        except KeyError:
            raise UnknownDatabaseError(db_name) from None

    def database_id(self, db_name: str) -> str:
        return self.database(db_name).id

    def lookup_by_logical_name(
        self, db_name: str, logical_name: str
    ) -> ResolvedPropertyConfig | None:
        return self.database(db_name).property_by_name(logical_name)

    def lookup_by_wire_name(
        self, db_name: str, wire_name: str
    ) -> ResolvedPropertyConfig | None:
        return self.database(db_name).property_by_notion_name(wire_name)

    def _status_property(
        self, db_name: str, property_name: str
    ) -> ResolvedPropertyConfig | None:
        prop = self.lookup_by_logical_name(db_name, property_name)
        if prop is None or prop.type is not PropertyType.STATUS:
            return None
        return prop

    def status_groups(self, db_name: str, property_name: str) -> list[str] | None:
        """Return the group names of a status property, or None if it has none."""
        prop = self._status_property(db_name, property_name)
        if prop is None or not prop.groups:
            return None
        return [g.name for g in prop.groups]

    def status_options_for_group(
        self, db_name: str, property_name: str, group_name: str
    ) -> list[str]:
        prop = self._status_property(db_name, property_name)
        if prop is None:
            return []
        return prop.options_for_group(group_name)

    def group_for_status_option(
        self, db_name: str, property_name: str, option_name: str
    ) -> str | None:
        prop = self._status_property(db_name, property_name)
        if prop is None:
            return None
        group = prop.group_for_option_name(option_name)
        return group.name if group else None

    def is_option_in_group(
        self, db_name: str, property_name: str, option_name: str, group_name: str
    ) -> bool:
        return self.group_for_status_option(db_name, property_name, option_name) == group_name

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SchemaRegistry:
        return cls(ResolvedDatabaseSchema.from_dict(d) for d in data.get("databases") or ())

    def to_dict(self) -> dict[str, Any]:
        return {"databases": [db.to_dict() for db in self._databases.values()]}

    @classmethod
    def load(cls, path: str | Path) -> SchemaRegistry:
        """Load a registry from a resolved-schema JSON file."""
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SchemaError(f"Cannot read resolved schema file {path}: {exc}") from exc
        try:
            return cls.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            if isinstance(exc, SchemaError):
                raise
            raise SchemaError(f"Malformed resolved schema file {path}: {exc}") from exc

    def dump(self, path: str | Path) -> None:
        """Write the registry as a resolved-schema JSON file."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
