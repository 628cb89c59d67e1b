"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from notiontyped.cli.common.exits import die, exit_from_exc
from notiontyped.core.adapters.notionhttp import NotionHttpTransport
from notiontyped.core.auth import AuthError, get_transport
from notiontyped.core.config import (
    DEFAULT_OUTPUT_FILE,
    ConfigError,
    NotionTypedConfig,
    Settings,
    load_config,
)
from notiontyped.core.schema import SchemaError, SchemaRegistry


@dataclass
class AppContext:
    """Settings plus the file locations every command works from."""

    settings: Settings
    config_path: Path
    resolved_path: Path | None = None

    def load_config(self) -> NotionTypedConfig:
        """Load the databases config or exit with its error."""
        try:
            return load_config(self.config_path)
        except ConfigError as exc:
            exit_from_exc(exc, code=2)

    def output_path(self) -> Path:
        """
        Return where the resolved schema lives.

        --resolved wins; otherwise `output.path` of the config is used, and
        the default file name when there is no config to read it from.
        """
        if self.resolved_path is not None:
            return self.resolved_path
        if self.config_path.exists():
            return Path(self.load_config().output.path)
        return Path(DEFAULT_OUTPUT_FILE)

    def load_registry(self) -> SchemaRegistry:
        """Load the resolved schema or exit with a hint to run `fetch`."""
        path = self.output_path()
        if not path.exists():
            die(f"Resolved schema not found: {path}. Run `notion-typed fetch` first.", code=2)
        try:
            return SchemaRegistry.load(path)
        except SchemaError as exc:
            exit_from_exc(exc, code=2)

    def transport(self) -> NotionHttpTransport:
        """Build the HTTP transport or exit when no token is configured."""
        try:
            return get_transport(settings=self.settings)
        except AuthError as exc:
            exit_from_exc(exc, code=1)


def build_context(config: str | None, resolved: str | None = None) -> AppContext:
    """Build the application context from options and the environment."""
    settings = Settings.from_env()
    return AppContext(
        settings=settings,
        config_path=Path(config or settings.config_path),
        resolved_path=Path(resolved) if resolved else None,
    )
