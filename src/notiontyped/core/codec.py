"""Bidirectional property codec.

Notion encodes every property value as a type-tagged object
(`{"title": [{"text": {"content": "..."}}]}`, `{"select": {"name": "..."}}`,
...). Callers of the typed client work with plain domain values instead
(`"..."`, `"todo"`, `["a", "b"]`). This module converts between the two,
one property at a time, dispatching on the property's type tag.

`encode_value` returns `OMIT` for `None` so that the field is left out of
the outgoing payload entirely, which is not the same as sending an
explicit null.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from notiontyped.core.schema import (
    PropertyType,
    ResolvedDatabaseSchema,
    ResolvedPropertyConfig,
)

logger = logging.getLogger(__name__)


class UnsupportedPropertyError(ValueError):
    """Raised when a value cannot be encoded for its property type."""


class _Omit:
    """Marker for "leave this field out of the payload"."""

    _instance: _Omit | None = None

    def __new__(cls) -> _Omit:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "OMIT"

    def __bool__(self) -> bool:
        return False


OMIT = _Omit()

_LIST_TYPES = frozenset(
    {
        PropertyType.MULTI_SELECT,
        PropertyType.PEOPLE,
        PropertyType.RELATION,
        PropertyType.FILES,
    }
)


def _text_runs(value: Any) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": str(value)}}]


def _plain_text(runs: Any) -> str:
    if not runs:
        return ""
    parts: list[str] = []
    for run in runs:
        text = run.get("plain_text")
        if text is None:
            text = (run.get("text") or {}).get("content", "")
        parts.append(text)
    return "".join(parts)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _encode_status(value: Any) -> dict[str, Any]:
    # group (and id/color) are read-side fields; only the name is written.
    if isinstance(value, Mapping):
        return {"name": value["name"]}
    return {"name": value}


def _encode_file(entry: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "name": entry["name"],
        "type": "external",
        "external": {"url": entry["url"]},
    }


_ENCODERS: dict[PropertyType, Callable[[Any], Any]] = {
    PropertyType.TITLE: lambda v: {"title": _text_runs(v)},
    PropertyType.RICH_TEXT: lambda v: {"rich_text": _text_runs(v)},
    PropertyType.NUMBER: lambda v: {"number": v},
    PropertyType.SELECT: lambda v: {"select": {"name": v}},
    PropertyType.STATUS: lambda v: {"status": _encode_status(v)},
    PropertyType.MULTI_SELECT: lambda v: {
        "multi_select": [{"name": str(n)} for n in _as_list(v)]
    },
    PropertyType.DATE: lambda v: {"date": dict(v)},
    PropertyType.PEOPLE: lambda v: {"people": [{"id": i} for i in _as_list(v)]},
    PropertyType.RELATION: lambda v: {"relation": [{"id": i} for i in _as_list(v)]},
    PropertyType.FILES: lambda v: {"files": [_encode_file(f) for f in _as_list(v)]},
    PropertyType.CHECKBOX: lambda v: {"checkbox": bool(v)},
    PropertyType.URL: lambda v: {"url": v},
    PropertyType.EMAIL: lambda v: {"email": v},
    PropertyType.PHONE_NUMBER: lambda v: {"phone_number": v},
}


def encode_value(prop: ResolvedPropertyConfig, value: Any) -> Any:
    """
    Encode one domain value into its Notion property payload.

    Args:
        prop: Resolved configuration of the target property.
        value: Domain value. `None` means "do not write this field".

    Returns:
        The wire payload for the property, or `OMIT`.

    Raises:
        UnsupportedPropertyError: If the property type is read-only, or a
            date value is not an object.
    """
    if value is None:
        return OMIT
    encoder = _ENCODERS.get(prop.type)
    if encoder is None:
        raise UnsupportedPropertyError(
            f"Property '{prop.name}' ({prop.type.value}) is read-only and cannot be written."
        )
    if prop.type is PropertyType.DATE and not isinstance(value, Mapping):
        raise UnsupportedPropertyError(
            f"Property '{prop.name}' (date) expects an object with 'start', "
            f"got {type(value).__name__}."
        )
    return encoder(value)


def _decode_status(prop: ResolvedPropertyConfig, raw: Any) -> Any:
    if not raw:
        return None
    decoded = dict(raw)
    if prop.groups:
        group = prop.group_for_option_id(raw.get("id"))
        if group is not None:
            decoded["group"] = group.name
    return decoded


def _decode_file(entry: Mapping[str, Any]) -> dict[str, Any]:
    kind = entry.get("type") or ("external" if "external" in entry else "file")
    url = (entry.get(kind) or {}).get("url")
    return {"name": entry.get("name"), "url": url}


def _empty_value(prop_type: PropertyType) -> Any:
    if prop_type in _LIST_TYPES:
        return []
    if prop_type is PropertyType.CHECKBOX:
        return False
    return None


def decode_value(prop: ResolvedPropertyConfig, wire: Mapping[str, Any] | None) -> Any:
    """
    Decode one Notion property payload into its domain value.

    Absent payloads decode to the type's empty value: `None` for scalars,
    `[]` for list types and `False` for checkboxes.
    """
    if not wire:
        return _empty_value(prop.type)

    t = prop.type
    raw = wire.get(t.value)

    if t in (PropertyType.TITLE, PropertyType.RICH_TEXT):
        return _plain_text(raw)
    if t is PropertyType.SELECT:
        return raw.get("name") if raw else None
    if t is PropertyType.STATUS:
        return _decode_status(prop, raw)
    if t is PropertyType.MULTI_SELECT:
        return [o.get("name") for o in raw or ()]
    if t in (PropertyType.PEOPLE, PropertyType.RELATION):
        return [o.get("id") for o in raw or ()]
    if t is PropertyType.FILES:
        return [_decode_file(f) for f in raw or ()]
    if t is PropertyType.CHECKBOX:
        return bool(raw)
    if t is PropertyType.DATE:
        return dict(raw) if raw else None
    # number, url, email, phone_number and all read-only types
    return raw


def encode_properties(
    schema: ResolvedDatabaseSchema, payload: Mapping[str, Any]
) -> dict[str, Any]:
    """
    Encode a logical-name payload into a Notion `properties` object.

    Fields without a resolved mapping are skipped and reported on this
    module's logger; fields whose value is `None` are omitted.
    """
    properties: dict[str, Any] = {}
    for name, value in payload.items():
        prop = schema.property_by_name(name)
        if prop is None:
            logger.warning(
                "Skipping unmapped property '%s' for database '%s'", name, schema.name
            )
            continue
        encoded = encode_value(prop, value)
        if encoded is OMIT:
            continue
        properties[prop.notion_name] = encoded
    return properties


def decode_properties(
    schema: ResolvedDatabaseSchema, wire_properties: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Decode a Notion `properties` object into logical names and values."""
    decoded: dict[str, Any] = {}
    for notion_name, wire in (wire_properties or {}).items():
        prop = schema.property_by_notion_name(notion_name)
        if prop is None:
            logger.debug(
                "Ignoring unmapped Notion property '%s' for database '%s'",
                notion_name,
                schema.name,
            )
            continue
        decoded[prop.name] = decode_value(prop, wire)
    return decoded
