"""Configuration: the databases file and environment settings.

The databases file (`notion-typed.json` by default) lists every database
and property the typed client should know about, under logical names:

    {
      "databases": [
        {
          "id": "22add72d...",
          "name": "tasks",
          "display_name": "Tasks",
          "notion_name": "Tasks DB",
          "properties": [
            {"id": "title", "name": "title", "display_name": "Title",
             "notion_name": "Name", "type": "title"},
            {"id": null, "name": "state", "display_name": "State",
             "notion_name": "Status", "type": null}
          ]
        }
      ],
      "output": {"path": "notion-typed.resolved.json"}
    }

Ids and types may be null; `notion-typed fetch` discovers them and can
write them back with `apply_config_updates`.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from notiontyped.core.schema import PropertyType

DEFAULT_CONFIG_FILE = "notion-typed.json"
DEFAULT_OUTPUT_FILE = "notion-typed.resolved.json"
DEFAULT_NOTION_VERSION = "2022-06-28"
DEFAULT_TIMEOUT_SECONDS = 30.0


class ConfigError(ValueError):
    """Raised when the configuration file is missing or malformed."""


@dataclass(frozen=True)
class PropertyConfig:
    """A configured property; `id` and `type` may still be unresolved."""

    name: str
    display_name: str
    notion_name: str
    id: str | None = None
    type: PropertyType | None = None


@dataclass(frozen=True)
class DatabaseConfig:
    """A configured database and its properties."""

    name: str
    display_name: str
    notion_name: str
    id: str | None = None
    properties: tuple[PropertyConfig, ...] = ()

    def get_property(self, name: str) -> PropertyConfig | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None


@dataclass(frozen=True)
class OutputConfig:
    path: str = DEFAULT_OUTPUT_FILE


@dataclass(frozen=True)
class NotionTypedConfig:
    databases: tuple[DatabaseConfig, ...] = ()
    output: OutputConfig = field(default_factory=OutputConfig)


@dataclass(frozen=True)
class PropertyUpdate:
    """Discovered changes for one configured property."""

    name: str
    id: str | None = None
    notion_name: str | None = None
    type: PropertyType | None = None


@dataclass(frozen=True)
class ConfigUpdate:
    """Discovered changes for one configured database."""

    database: str
    id: str | None = None
    notion_name: str | None = None
    properties: tuple[PropertyUpdate, ...] = ()

    @property
    def empty(self) -> bool:
        return self.id is None and self.notion_name is None and not self.properties


def _require_str(obj: Mapping[str, Any], key: str, where: str) -> str:
    value = obj.get(key)
    if not value or not isinstance(value, str):
        raise ConfigError(f"{where} must have a {key} string")
    return value


def _parse_type(value: Any, where: str) -> PropertyType | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{where} must have a type string or null")
    try:
        return PropertyType(value)
    except ValueError as exc:
        raise ConfigError(f"{where} has unknown type '{value}'") from exc


def _parse_property(raw: Any, db_name: str) -> PropertyConfig:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Property in database {db_name} must be an object")
    name = _require_str(raw, "name", f"Property in database {db_name}")
    where = f"Property {name} in database {db_name}"
    return PropertyConfig(
        name=name,
        display_name=_require_str(raw, "display_name", where),
        notion_name=_require_str(raw, "notion_name", where),
        id=raw.get("id") or None,
        type=_parse_type(raw.get("type"), where),
    )


def _parse_database(raw: Any) -> DatabaseConfig:
    if not isinstance(raw, Mapping):
        raise ConfigError("Database config must be an object")
    name = _require_str(raw, "name", "Database")
    where = f"Database {name}"
    properties = raw.get("properties")
    if not isinstance(properties, list):
        raise ConfigError(f"{where} must have a properties array")
    return DatabaseConfig(
        name=name,
        display_name=_require_str(raw, "display_name", where),
        notion_name=_require_str(raw, "notion_name", where),
        id=raw.get("id") or None,
        properties=tuple(_parse_property(p, name) for p in properties),
    )


def parse_config(raw: Any) -> NotionTypedConfig:
    """Validate and convert a decoded config document."""
    if not isinstance(raw, Mapping):
        raise ConfigError("Config must be an object")
    databases = raw.get("databases")
    if not isinstance(databases, list):
        raise ConfigError("Config must have a databases array")

    output_raw = raw.get("output") or {}
    if not isinstance(output_raw, Mapping):
        raise ConfigError("Config output must be an object")
    output = OutputConfig(path=str(output_raw.get("path") or DEFAULT_OUTPUT_FILE))

    parsed = tuple(_parse_database(db) for db in databases)
    names = [db.name for db in parsed]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate database names: {', '.join(duplicates)}")
    return NotionTypedConfig(databases=parsed, output=output)


def load_config(path: str | Path) -> NotionTypedConfig:
    """
    Load and validate a databases config file.

    Raises:
        ConfigError: If the file does not exist, is not JSON, or does not
            match the expected structure.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Failed to load config: {exc}") from exc
    return parse_config(raw)


def _apply_property_update(raw_prop: dict[str, Any], update: PropertyUpdate) -> None:
    if update.id is not None:
        raw_prop["id"] = update.id
    if update.notion_name is not None:
        raw_prop["notion_name"] = update.notion_name
    if update.type is not None and raw_prop.get("type") is None:
        raw_prop["type"] = update.type.value


def apply_config_updates(path: str | Path, updates: Iterable[ConfigUpdate]) -> int:
    """
    Write discovered ids, names and types back into the config file.

    Only the touched keys change; everything else in the file is kept.

    Returns:
        The number of databases that were updated.
    """
    config_path = Path(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Failed to load config: {exc}") from exc

    by_name = {db.get("name"): db for db in raw.get("databases") or []}
    changed = 0
    for update in updates:
        raw_db = by_name.get(update.database)
        if raw_db is None or update.empty:
            continue
        if update.id is not None:
            raw_db["id"] = update.id
        if update.notion_name is not None:
            raw_db["notion_name"] = update.notion_name
        props = {p.get("name"): p for p in raw_db.get("properties") or []}
        for prop_update in update.properties:
            raw_prop = props.get(prop_update.name)
            if raw_prop is not None:
                _apply_property_update(raw_prop, prop_update)
        changed += 1

    config_path.write_text(
        json.dumps(raw, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    return changed


@dataclass(frozen=True)
class Settings:
    """Environment-driven settings for the HTTP transport and the CLI."""

    api_key: str | None = None
    config_path: str = DEFAULT_CONFIG_FILE
    notion_version: str = DEFAULT_NOTION_VERSION
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    API_KEY_ENV = "NOTION_API_KEY"
    CONFIG_ENV = "NOTION_TYPED_CONFIG"
    VERSION_ENV = "NOTION_VERSION"
    TIMEOUT_ENV = "NOTION_TYPED_TIMEOUT"

    @classmethod
    def _timeout_from_env(cls) -> float:
        raw = os.getenv(cls.TIMEOUT_ENV)
        if raw is None:
            return DEFAULT_TIMEOUT_SECONDS
        try:
            value = float(raw)
        except ValueError:
            return DEFAULT_TIMEOUT_SECONDS
        return value if value > 0 else DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            api_key=os.getenv(cls.API_KEY_ENV) or None,
            config_path=os.getenv(cls.CONFIG_ENV) or DEFAULT_CONFIG_FILE,
            notion_version=os.getenv(cls.VERSION_ENV) or DEFAULT_NOTION_VERSION,
            timeout=cls._timeout_from_env(),
        )
