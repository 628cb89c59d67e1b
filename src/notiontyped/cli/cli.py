"""CLI application for the notion-typed client."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from notiontyped.cli.commands.pages import pages_app
from notiontyped.cli.commands.schema import fetch, schema_app, validate

app = typer.Typer(
    help="notion-typed - typed access to Notion databases",
    no_args_is_help=True,
)


@app.callback()
def _init(
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Log more (-v info, -vv debug)"
    ),
):
    """Configure logging for the core library."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    logging.getLogger("notiontyped").setLevel(level)


app.command("fetch")(fetch)
app.command("validate")(validate)
app.add_typer(schema_app, name="schema")
app.add_typer(pages_app, name="pages")


if __name__ == "__main__":
    app()
