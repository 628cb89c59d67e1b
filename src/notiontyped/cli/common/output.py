"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from notiontyped.cli.common.tui_style import QUESTIONARY_STYLE_CONFIRM
from notiontyped.core.config import ConfigUpdate
from notiontyped.core.schema import ResolvedDatabaseSchema

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


def format_value(value: Any) -> str:
    """Render a decoded property value for a table cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "✓" if value else ""
    if isinstance(value, list):
        return ", ".join(format_value(v) for v in value)
    if isinstance(value, Mapping):
        if "name" in value:
            group = value.get("group")
            return f"{value['name']} ({group})" if group else str(value["name"])
        if "start" in value:
            end = value.get("end")
            return f"{value['start']} → {end}" if end else str(value["start"])
        return json.dumps(value, ensure_ascii=False)
    return str(value)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        return f"[notion-typed] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def json(self, data: Any) -> None:
        """Print data as highlighted JSON."""
        console.print_json(json.dumps(data, ensure_ascii=False, default=str))

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Returns:
            True if the user confirms, False otherwise (including Ctrl-C).
        """
        console.print("[meta]Use y/n then Enter[/]")
        prompt = self._q_try(
            questionary.confirm,
            self._q(message),
            default=default,
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
            auto_enter=False,
            pointer="❯",
        )
        return bool(prompt.ask())

    def properties_table(self, schema: ResolvedDatabaseSchema) -> None:
        """Render the resolved properties of one database."""
        t = Table(title=f"{schema.display_name} ({schema.id})", show_lines=False)
        t.add_column("Name", style="ok", no_wrap=True)
        t.add_column("Notion name")
        t.add_column("Type", style="meta")
        t.add_column("Options / groups", style="meta")

        for prop in schema.properties:
            if prop.groups:
                detail = "; ".join(
                    f"{g.name}: {', '.join(prop.options_for_group(g.name))}"
                    for g in prop.groups
                )
            else:
                detail = ", ".join(prop.option_names())
            t.add_row(prop.name, prop.notion_name, prop.type.value, detail)

        console.print(t)

    def pages_table(
        self, pages: Iterable[Any], columns: list[str], title: str = "Pages"
    ) -> None:
        """
        Expects objects with .id and .properties (like notiontyped.core.client.TypedPage)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Page ID", style="meta", no_wrap=True)
        for column in columns:
            t.add_column(column)

        for page in pages:
            t.add_row(page.id, *(format_value(page.properties.get(c)) for c in columns))

        console.print(t)

    def config_updates_table(
        self, updates: Iterable[ConfigUpdate], title: str = "Config updates"
    ) -> None:
        """Render one row per discovered change."""
        t = Table(title=title, show_lines=False)
        t.add_column("Database", style="ok", no_wrap=True)
        t.add_column("Property")
        t.add_column("Field", style="meta")
        t.add_column("New value")

        for update in updates:
            if update.id is not None:
                t.add_row(update.database, "", "id", update.id)
            if update.notion_name is not None:
                t.add_row(update.database, "", "notion_name", update.notion_name)
            for prop in update.properties:
                if prop.id is not None:
                    t.add_row(update.database, prop.name, "id", prop.id)
                if prop.notion_name is not None:
                    t.add_row(update.database, prop.name, "notion_name", prop.notion_name)
                if prop.type is not None:
                    t.add_row(update.database, prop.name, "type", prop.type.value)

        console.print(t)


out = Out()
