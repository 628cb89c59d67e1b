from __future__ import annotations

import asyncio
from typing import Iterable

import typer
from rich.markup import escape

from notiontyped.cli.common.context import build_context
from notiontyped.cli.common.exits import die, exit_from_exc
from notiontyped.cli.common.options import ConfigOpt, DryRunOpt, ResolvedOpt, YesOpt
from notiontyped.cli.common.output import out
from notiontyped.core.adapters.notionhttp import NotionHttpTransport
from notiontyped.core.config import ConfigError, DatabaseConfig, apply_config_updates
from notiontyped.core.resolver import ResolutionResult, find_drift, resolve_schemas

schema_app = typer.Typer(help="Inspect the resolved schema.", no_args_is_help=True)


async def _resolve(
    transport: NotionHttpTransport, databases: Iterable[DatabaseConfig]
) -> ResolutionResult:
    async with transport:
        return await resolve_schemas(transport, databases)


def fetch(
    config: str | None = ConfigOpt,
    resolved: str | None = ResolvedOpt,
    dry_run: bool = DryRunOpt,
    yes: bool = YesOpt,
):
    """Resolve every configured database and write the resolved schema."""
    appctx = build_context(config, resolved)
    cfg = appctx.load_config()
    if not cfg.databases:
        die("No databases configured.", code=2)
    transport = appctx.transport()

    with out.status(f"Fetching {len(cfg.databases)} database schema(s)..."):
        result = asyncio.run(_resolve(transport, cfg.databases))

    for name, error in result.failures.items():
        out.error(f"{name}: {escape(error)}")

    for schema in result.registry.databases():
        out.properties_table(schema)

    output_path = appctx.output_path()
    if result.updates:
        out.header("Config updates")
        out.config_updates_table(result.updates)

    if dry_run:
        out.warn("DRY RUN: no files will be written.")
        raise typer.Exit(1 if result.failures else 0)

    if len(result.registry):
        result.registry.dump(output_path)
        out.success(f"Wrote {len(result.registry)} database schema(s) to {output_path}")

    if result.updates and (yes or out.confirm("Write these updates back to the config?")):
        try:
            changed = apply_config_updates(appctx.config_path, result.updates)
        except ConfigError as exc:
            exit_from_exc(exc, code=1)
        out.success(f"Updated {changed} database(s) in {appctx.config_path}")

    if result.failures:
        out.error(f"Failed to resolve {len(result.failures)} database(s).")
        raise typer.Exit(1)


def validate(config: str | None = ConfigOpt):
    """Report where the config no longer matches the workspace."""
    appctx = build_context(config)
    cfg = appctx.load_config()
    transport = appctx.transport()

    with out.status("Comparing config with Notion..."):
        result = asyncio.run(_resolve(transport, cfg.databases))

    issues = find_drift(cfg.databases, result)
    if not issues:
        out.success("Config is in sync with Notion.")
        raise typer.Exit(0)

    out.header("Config drift")
    for issue in issues:
        out.warn(issue)
    out.info("Run `notion-typed fetch` to update the config.")
    raise typer.Exit(1)


@schema_app.command("show")
def show(
    database: str = typer.Argument(..., help="Logical database name"),
    resolved: str | None = ResolvedOpt,
    config: str | None = ConfigOpt,
    as_json: bool = typer.Option(False, "--json", help="Print the schema as JSON"),
):
    """Show the resolved properties of one database."""
    appctx = build_context(config, resolved)
    registry = appctx.load_registry()
    if database not in registry:
        known = ", ".join(registry.database_names()) or "none"
        die(f"Unknown database '{database}'. Known databases: {known}", code=2)

    schema = registry.database(database)
    if as_json:
        out.json(schema.to_dict())
        return
    out.properties_table(schema)

