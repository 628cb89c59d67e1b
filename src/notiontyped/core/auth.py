"""Authentication helpers for the Notion API.

This module centralizes creation of the HTTP transport and applies small
normalization rules to the integration token (surrounding whitespace and a
pasted "Bearer " prefix) so a copied token works as-is.
"""

from notiontyped.core.adapters.notionhttp import NotionHttpTransport
from notiontyped.core.config import Settings


class AuthError(RuntimeError):
    """Raised when no usable Notion integration token is available."""


def _format_auth_error(reason: str) -> str:
    """Return a user-friendly auth error message."""
    return (
        f"Notion authentication failed: {reason}.\n"
        f"Create an internal integration and export its token:\n"
        f"  $ export {Settings.API_KEY_ENV}=secret_..."
    )


def _sanitize_token(token: str | None) -> str | None:
    """
    Normalize an integration token.

    - Strips surrounding whitespace
    - Removes a leading 'Bearer ' copied from request headers
    """
    if not token:
        return None
    token = token.strip()
    if token.lower().startswith("bearer "):
        token = token[len("bearer "):].strip()
    return token or None


def get_transport(
    api_key: str | None = None, settings: Settings | None = None
) -> NotionHttpTransport:
    """
    Create and return a configured Notion HTTP transport.

    An explicit `api_key` wins over the environment; otherwise the token is
    read from NOTION_API_KEY.
    """
    settings = settings or Settings.from_env()
    token = _sanitize_token(api_key or settings.api_key)
    if token is None:
        raise AuthError(_format_auth_error(f"{Settings.API_KEY_ENV} is not set"))
    return NotionHttpTransport(
        token,
        notion_version=settings.notion_version,
        timeout=settings.timeout,
    )
