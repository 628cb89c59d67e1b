"""Common CLI options for the CLI."""

import typer

ConfigOpt = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to the databases config (default: $NOTION_TYPED_CONFIG or notion-typed.json)",
)

ResolvedOpt = typer.Option(
    None,
    "--resolved",
    "-r",
    help="Path to the resolved schema file (default: output.path from the config)",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Show what would change, but don't write anything",
)

YesOpt = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt")
