"""Schema resolution against a live Notion workspace.

For every configured database this module locates the database (by id,
falling back to a title search), reads its property catalog and resolves
each configured property to its current Notion id, name, type, options and
status groups. Differences worth writing back into the config file (newly
discovered ids, renamed properties, auto-detected types) are collected as
`ConfigUpdate`s.

One failing database does not stop the others; failures are collected in
the `ResolutionResult`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from notiontyped.core.config import (
    ConfigUpdate,
    DatabaseConfig,
    PropertyConfig,
    PropertyUpdate,
)
from notiontyped.core.schema import (
    CHOICE_TYPES,
    PropertyOption,
    PropertyType,
    ResolvedDatabaseSchema,
    ResolvedPropertyConfig,
    SchemaRegistry,
    StatusGroup,
)

logger = logging.getLogger(__name__)


class DatabaseNotFoundError(LookupError):
    """Raised when a configured database cannot be located in Notion."""


class SchemaSource(Protocol):
    """Read access to database objects, as offered by the HTTP transport."""

    async def retrieve_database(self, database_id: str) -> Mapping[str, Any]:
        ...

    async def search_databases(self, query: str) -> list[Mapping[str, Any]]:
        ...


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of resolving a set of configured databases.

    Attributes:
        registry: Registry of every database that resolved.
        updates: Config changes discovered along the way.
        failures: Error message per database name that failed.
    """

    registry: SchemaRegistry
    updates: list[ConfigUpdate] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


def plain_title(rich_text: Iterable[Mapping[str, Any]] | None) -> str:
    """Join the plain text of a rich-text array (database titles)."""
    parts: list[str] = []
    for run in rich_text or ():
        text = run.get("plain_text")
        if text is None and run.get("type") == "text":
            text = (run.get("text") or {}).get("content")
        parts.append(text or "")
    return "".join(parts)


async def find_database(source: SchemaSource, config: DatabaseConfig) -> Mapping[str, Any]:
    """
    Locate a configured database.

    The configured id is tried first; if it is missing or cannot be
    retrieved, databases whose title equals `notion_name` are searched.
    """
    if config.id:
        try:
            return await source.retrieve_database(config.id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Database with ID %s not found (%s), trying search by name", config.id, exc
            )

    for candidate in await source.search_databases(config.notion_name):
        if candidate.get("object", "database") != "database":
            continue
        if plain_title(candidate.get("title")) == config.notion_name:
            return await source.retrieve_database(str(candidate["id"]))

    raise DatabaseNotFoundError(f"Database not found: {config.notion_name}")


def _options(prop_type: PropertyType, remote: Mapping[str, Any]) -> tuple[PropertyOption, ...] | None:
    if prop_type not in CHOICE_TYPES:
        return None
    section = remote.get(prop_type.value) or {}
    return tuple(PropertyOption.from_dict(o) for o in section.get("options") or ())


def _groups(
    prop_type: PropertyType,
    remote: Mapping[str, Any],
    options: tuple[PropertyOption, ...] | None,
) -> tuple[StatusGroup, ...] | None:
    if prop_type is not PropertyType.STATUS:
        return None
    known = {o.id for o in options or ()}
    groups = []
    for raw in (remote.get("status") or {}).get("groups") or ():
        group = StatusGroup.from_dict(raw)
        groups.append(
            StatusGroup(
                id=group.id,
                name=group.name,
                color=group.color,
                option_ids=tuple(i for i in group.option_ids if i in known),
            )
        )
    return tuple(groups)


def _match_remote(
    config: PropertyConfig, remote_properties: Mapping[str, Mapping[str, Any]]
) -> tuple[str, Mapping[str, Any]] | None:
    if config.id:
        for notion_name, remote in remote_properties.items():
            if remote.get("id") == config.id:
                return notion_name, remote
    remote = remote_properties.get(config.notion_name)
    if remote is not None:
        return config.notion_name, remote
    return None


def resolve_property(
    config: PropertyConfig,
    remote_properties: Mapping[str, Mapping[str, Any]],
    *,
    db_name: str = "",
) -> ResolvedPropertyConfig | None:
    """
    Resolve one configured property against the remote catalog.

    Returns None when the property is missing remotely and its type is not
    configured either (nothing usable can be produced).
    """
    match = _match_remote(config, remote_properties)
    if match is None:
        logger.warning("Property not found in Notion: %s (%s)", config.notion_name, db_name)
        if config.type is None:
            return None
        return ResolvedPropertyConfig(
            id=config.id or "",
            name=config.name,
            display_name=config.display_name,
            notion_name=config.notion_name,
            type=config.type,
        )

    notion_name, remote = match
    try:
        remote_type = PropertyType(remote.get("type"))
    except ValueError:
        logger.warning(
            "Skipping property %s (%s): unsupported Notion type '%s'",
            config.name,
            db_name,
            remote.get("type"),
        )
        return None
    if config.type is None:
        logger.info("Auto-detected type for %s: %s", config.name, remote_type.value)
    elif config.type is not remote_type:
        logger.warning(
            "Type mismatch for %s: config says %s, Notion says %s",
            config.name,
            config.type.value,
            remote_type.value,
        )

    options = _options(remote_type, remote)
    return ResolvedPropertyConfig(
        id=str(remote.get("id") or config.id or ""),
        name=config.name,
        display_name=config.display_name,
        notion_name=notion_name,
        type=remote_type,
        options=options,
        groups=_groups(remote_type, remote, options),
    )


def collect_config_update(
    config: DatabaseConfig, resolved: ResolvedDatabaseSchema
) -> ConfigUpdate | None:
    """Return the changes to write back into the config, or None."""
    prop_updates: list[PropertyUpdate] = []
    for prop in resolved.properties:
        configured = config.get_property(prop.name)
        if configured is None:
            continue
        update = PropertyUpdate(
            name=prop.name,
            id=prop.id if not configured.id and prop.id else None,
            notion_name=prop.notion_name if configured.notion_name != prop.notion_name else None,
            type=prop.type if configured.type is None else None,
        )
        if update.id or update.notion_name or update.type:
            prop_updates.append(update)

    result = ConfigUpdate(
        database=config.name,
        id=resolved.id if not config.id and resolved.id else None,
        notion_name=resolved.notion_name
        if resolved.notion_name and config.notion_name != resolved.notion_name
        else None,
        properties=tuple(prop_updates),
    )
    return None if result.empty else result


async def resolve_database(
    source: SchemaSource, config: DatabaseConfig
) -> tuple[ResolvedDatabaseSchema, ConfigUpdate | None]:
    """Resolve one configured database and the config changes it implies."""
    database = await find_database(source, config)
    remote_properties = database.get("properties") or {}

    properties = []
    for prop_config in config.properties:
        resolved = resolve_property(prop_config, remote_properties, db_name=config.name)
        if resolved is not None:
            properties.append(resolved)

    schema = ResolvedDatabaseSchema(
        id=str(database["id"]),
        name=config.name,
        display_name=config.display_name,
        notion_name=plain_title(database.get("title")) or config.notion_name,
        properties=tuple(properties),
    )
    return schema, collect_config_update(config, schema)


async def resolve_schemas(
    source: SchemaSource, configs: Iterable[DatabaseConfig]
) -> ResolutionResult:
    """
    Resolve every configured database, one after the other.

    Per-database errors are logged and collected instead of raised.
    """
    databases: list[ResolvedDatabaseSchema] = []
    updates: list[ConfigUpdate] = []
    failures: dict[str, str] = {}

    for config in configs:
        logger.info("Fetching schema for database: %s", config.display_name)
        try:
            schema, update = await resolve_database(source, config)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to fetch schema for %s: %s", config.display_name, exc)
            failures[config.name] = str(exc)
            continue
        databases.append(schema)
        if update is not None:
            updates.append(update)

    return ResolutionResult(
        registry=SchemaRegistry(databases), updates=updates, failures=failures
    )


def find_drift(configs: Iterable[DatabaseConfig], result: ResolutionResult) -> list[str]:
    """
    Describe where the config and the workspace disagree.

    An empty list means the config is in sync.
    """
    issues: list[str] = [
        f"Database {name} could not be resolved: {error}"
        for name, error in result.failures.items()
    ]
    for config in configs:
        if config.name not in result.registry:
            continue
        resolved = result.registry.database(config.name)
        if config.id and config.id != resolved.id:
            issues.append(f"Database ID mismatch for {config.name}")
        for prop in config.properties:
            current = resolved.property_by_name(prop.name)
            if current is None:
                issues.append(f"Property {prop.name} not found in database {config.name}")
            elif current.notion_name != prop.notion_name:
                issues.append(
                    f"Property {prop.name} in database {config.name} was renamed "
                    f"to '{current.notion_name}'"
                )
    return issues
