"""Sort translation: logical property names to Notion names."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from notiontyped.core.schema import SchemaRegistry


def translate_sorts(
    registry: SchemaRegistry,
    db_name: str,
    sorts: Iterable[Mapping[str, Any]] | None,
) -> list[dict[str, Any]] | None:
    """
    Rewrite the `property` of each sort entry to its Notion name.

    Timestamp sorts and entries whose property has no resolved mapping are
    passed through unchanged.
    """
    if sorts is None:
        return None

    translated: list[dict[str, Any]] = []
    for sort in sorts:
        entry = dict(sort)
        name = entry.get("property")
        if name is not None:
            prop = registry.lookup_by_logical_name(db_name, name)
            if prop is not None:
                entry["property"] = prop.notion_name
        translated.append(entry)
    return translated
