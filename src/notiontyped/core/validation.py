"""JSON Schema validation of create / update payloads.

For every resolved database two JSON Schemas are derived from its property
catalog:

- `create`: the title property is required,
- `update`: every property is optional.

Read-only property types (formulas, rollups, created/edited metadata,
unique ids) are left out of both, and `additionalProperties` is false, so a
payload naming them is rejected before anything is sent to Notion.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from jsonschema import Draft7Validator

from notiontyped.core.schema import (
    PropertyType,
    ResolvedDatabaseSchema,
    ResolvedPropertyConfig,
    SchemaRegistry,
)

JSON_SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"


class Mode(str, Enum):
    """Kind of write a payload is validated for."""

    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class ValidationIssue:
    """
    One field-level violation.

    Attributes:
        path: Dotted path into the payload ("" for the payload itself).
        message: Human-readable description.
        validator: The JSON Schema keyword that failed (e.g. "required").
    """

    path: str
    message: str
    validator: str


def _name_enum(prop: ResolvedPropertyConfig) -> dict[str, Any]:
    names = prop.option_names()
    if names:
        return {"type": "string", "enum": names}
    return {"type": "string"}


def property_schema(prop: ResolvedPropertyConfig) -> dict[str, Any] | None:
    """
    Return the JSON Schema for a writable property value.

    Returns None for read-only types.
    """
    t = prop.type
    if t in (PropertyType.TITLE, PropertyType.RICH_TEXT):
        return {"type": "string"}
    if t is PropertyType.NUMBER:
        return {"type": "number"}
    if t is PropertyType.SELECT:
        return _name_enum(prop)
    if t is PropertyType.STATUS:
        name = _name_enum(prop)
        return {
            "anyOf": [
                name,
                {"type": "object", "properties": {"name": name}, "required": ["name"]},
            ]
        }
    if t is PropertyType.MULTI_SELECT:
        return {"type": "array", "items": _name_enum(prop)}
    if t is PropertyType.DATE:
        return {
            "type": "object",
            "properties": {
                "start": {"type": "string", "format": "date-time"},
                "end": {"type": ["string", "null"], "format": "date-time"},
                "time_zone": {"type": ["string", "null"]},
            },
            "required": ["start"],
        }
    if t in (PropertyType.PEOPLE, PropertyType.RELATION):
        return {"type": "array", "items": {"type": "string"}}
    if t is PropertyType.FILES:
        return {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "url": {"type": "string", "format": "uri"},
                },
                "required": ["name", "url"],
            },
        }
    if t is PropertyType.CHECKBOX:
        return {"type": "boolean"}
    if t in (PropertyType.URL, PropertyType.EMAIL, PropertyType.PHONE_NUMBER):
        return {"type": "string"}
    return None


def _nullable(schema: dict[str, Any]) -> dict[str, Any]:
    return {"anyOf": [schema, {"type": "null"}]}


def build_payload_schema(database: ResolvedDatabaseSchema, mode: Mode) -> dict[str, Any]:
    """Build the create or update JSON Schema of a database."""
    mode = Mode(mode)
    properties: dict[str, Any] = {}
    required: list[str] = []
    for prop in database.properties:
        schema = property_schema(prop)
        if schema is None:
            continue
        if mode is Mode.CREATE and prop.type is PropertyType.TITLE:
            properties[prop.name] = schema
            required.append(prop.name)
        else:
            properties[prop.name] = _nullable(schema)

    prefix = "Create" if mode is Mode.CREATE else "Update"
    return {
        "$schema": JSON_SCHEMA_DRAFT,
        "type": "object",
        "title": f"{prefix}{database.name}",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def _issue_path(error: Any) -> str:
    return ".".join(str(p) for p in error.absolute_path)


class JsonSchemaValidator:
    """
    Payload validator backed by `jsonschema`.

    Validators are compiled lazily per (database, mode). The errors of the
    last failed call for a (database, mode) pair stay available through
    `errors()`.
    """

    def __init__(self, registry: SchemaRegistry) -> None:
        self._registry = registry
        self._validators: dict[tuple[str, Mode], Draft7Validator] = {}
        self._errors: dict[tuple[str, Mode], list[ValidationIssue]] = {}

    def schema(self, db_name: str, mode: Mode | str) -> dict[str, Any]:
        return build_payload_schema(self._registry.database(db_name), Mode(mode))

    def _validator(self, db_name: str, mode: Mode) -> Draft7Validator:
        key = (db_name, mode)
        if key not in self._validators:
            self._validators[key] = Draft7Validator(self.schema(db_name, mode))
        return self._validators[key]

    def validate(self, db_name: str, mode: Mode | str, payload: Mapping[str, Any]) -> bool:
        mode = Mode(mode)
        validator = self._validator(db_name, mode)
        errors = sorted(
            validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path]
        )
        issues = [
            ValidationIssue(
                path=_issue_path(error), message=error.message, validator=str(error.validator)
            )
            for error in errors
        ]
        self._errors[(db_name, mode)] = issues
        return not issues

    def errors(self, db_name: str, mode: Mode | str) -> list[ValidationIssue]:
        return list(self._errors.get((db_name, Mode(mode)), []))
