from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, TypeVar

import httpx
import typer

from notiontyped.cli.common.context import AppContext, build_context
from notiontyped.cli.common.exits import die, exit_from_exc
from notiontyped.cli.common.options import ConfigOpt, ResolvedOpt, YesOpt
from notiontyped.cli.common.output import out
from notiontyped.core.adapters.notionhttp import NotionAPIError
from notiontyped.core.client import IncompletePageError, TypedClient, TypedPage
from notiontyped.core.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from notiontyped.core.schema import SchemaRegistry, UnknownDatabaseError

T = TypeVar("T")

pages_app = typer.Typer(help="Query, read and archive pages.", no_args_is_help=True)


def _parse_json_or_exit(raw: str | None, *, option_name: str) -> Any:
    """Decode a JSON option and convert invalid syntax into CLI input errors."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        out.error(f"Invalid JSON for {option_name}: {exc}")
        raise typer.Exit(2) from exc


def _run(
    appctx: AppContext,
    registry: SchemaRegistry,
    action: Callable[[TypedClient], Awaitable[T]],
) -> T:
    """Run one client action against a fresh transport, mapping errors to exit codes."""
    transport = appctx.transport()

    async def main() -> T:
        async with transport:
            return await action(TypedClient(transport, registry))

    try:
        return asyncio.run(main())
    except (UnknownDatabaseError, ValueError) as exc:
        exit_from_exc(exc, code=2)
    except (NotionAPIError, IncompletePageError, httpx.HTTPError) as exc:
        exit_from_exc(exc, code=1)


def _check_database(registry: SchemaRegistry, database: str) -> list[str]:
    if database not in registry:
        known = ", ".join(registry.database_names()) or "none"
        die(f"Unknown database '{database}'. Known databases: {known}", code=2)
    return [p.name for p in registry.database(database).properties]


def _page_dict(page: TypedPage) -> dict[str, Any]:
    return {"id": page.id, "url": page.url, "archived": page.archived, "properties": page.properties}


@pages_app.command("query")
def query(
    database: str = typer.Argument(..., help="Logical database name"),
    filter_: str | None = typer.Option(
        None, "--filter", help="Filter as JSON, using logical property names"
    ),
    sort: str | None = typer.Option(
        None, "--sort", help="Sort (object or list of objects) as JSON"
    ),
    page_size: int = typer.Option(
        DEFAULT_PAGE_SIZE,
        "--page-size",
        min=1,
        max=MAX_PAGE_SIZE,
        help="Results per request",
    ),
    all_: bool = typer.Option(False, "--all", help="Follow cursors until every page is read"),
    limit: int | None = typer.Option(
        None, "--limit", min=1, help="Stop after this many results"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
    resolved: str | None = ResolvedOpt,
    config: str | None = ConfigOpt,
):
    """Query a database with logical property names."""
    if all_ and limit is not None:
        die("Use either --all or --limit, not both.", code=2)

    appctx = build_context(config, resolved)
    registry = appctx.load_registry()
    columns = _check_database(registry, database)
    filter_value = _parse_json_or_exit(filter_, option_name="--filter")
    sort_value = _parse_json_or_exit(sort, option_name="--sort")
    if isinstance(sort_value, dict):
        sort_value = [sort_value]

    async def action(client: TypedClient) -> tuple[list[TypedPage], bool]:
        if not all_ and limit is None:
            result = await client.query_database(
                database, filter=filter_value, sorts=sort_value, page_size=page_size
            )
            return result.results, result.has_more

        pages: list[TypedPage] = []
        async for page in client.query_database_iterator(
            database, filter=filter_value, sorts=sort_value, page_size=page_size
        ):
            pages.append(page)
            if limit is not None and len(pages) >= limit:
                return pages, True
        return pages, False

    with out.status("Querying pages..."):
        pages, more = _run(appctx, registry, action)

    if as_json:
        out.json([_page_dict(p) for p in pages])
        return

    if not pages:
        out.warn("No pages found.")
        raise typer.Exit(0)

    out.pages_table(pages, columns, title=registry.database(database).display_name)
    out.info(f"Pages: {len(pages)}" + (" (more available)" if more else ""))


@pages_app.command("get")
def get(
    page_id: str = typer.Argument(..., help="Notion page id"),
    database: str = typer.Argument(..., help="Logical database name of the page"),
    as_json: bool = typer.Option(False, "--json", help="Print the page as JSON"),
    resolved: str | None = ResolvedOpt,
    config: str | None = ConfigOpt,
):
    """Retrieve one page and decode its properties."""
    appctx = build_context(config, resolved)
    registry = appctx.load_registry()
    _check_database(registry, database)

    with out.status("Loading page..."):
        page = _run(appctx, registry, lambda client: client.get_page(page_id, database))

    if as_json:
        out.json(_page_dict(page))
        return
    out.header(page.url or page.id)
    out.kv({name: json.dumps(value, ensure_ascii=False) for name, value in page.properties.items()})


@pages_app.command("archive")
def archive(
    page_id: str = typer.Argument(..., help="Notion page id"),
    yes: bool = YesOpt,
    config: str | None = ConfigOpt,
):
    """Archive a page (Notion has no hard delete)."""
    appctx = build_context(config)
    if not yes and not out.confirm(f"Archive page {page_id}?"):
        out.warn("Cancelled.")
        raise typer.Exit(0)

    with out.status("Archiving page..."):
        _run(appctx, SchemaRegistry([]), lambda client: client.delete_page(page_id))
    out.success(f"Archived page {page_id}")
