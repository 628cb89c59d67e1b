"""Exit handling utilities for the CLI."""

from typing import NoReturn

import typer
from rich.markup import escape

from notiontyped.cli.common.output import out


def die(msg: str, code: int = 1) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str | None = None, code: int = 1) -> NoReturn:
    """
    Print an error message and exit, chaining `exc`.

    Without `message` the exception text is printed, escaped so that
    brackets in it are not read as Rich markup.
    """
    out.error(message or escape(str(exc)))
    raise typer.Exit(code) from exc
