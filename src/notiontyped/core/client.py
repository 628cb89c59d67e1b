"""Typed client facade over the Notion page and database endpoints.

The client lets callers work with logical database and property names and
plain domain values. Every write goes through the same steps:

1. validate the payload (create / update) and fail fast with
   `ValidationError`; nothing is sent to Notion in that case,
2. encode the payload with the property codec,
3. call the transport,
4. decode the returned properties back into domain values.

Queries translate filters and sorts before calling the transport and decode
every returned page. Transport errors are never caught here; they reach the
caller unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterable, Mapping, Protocol

from notiontyped.core.codec import decode_properties, encode_properties
from notiontyped.core.filters import FilterInput, translate_filter
from notiontyped.core.pagination import (
    DEFAULT_PAGE_SIZE,
    Page,
    Paginator,
    QueryResult,
)
from notiontyped.core.schema import SchemaRegistry
from notiontyped.core.sorts import translate_sorts
from notiontyped.core.validation import JsonSchemaValidator, Mode, ValidationIssue

logger = logging.getLogger(__name__)


class NotionTransport(Protocol):
    """The five Notion API primitives the typed client relies on."""

    async def retrieve_database(self, database_id: str) -> Mapping[str, Any]:
        """Return the database object, including its property catalog."""
        ...

    async def query_database(
        self,
        database_id: str,
        *,
        filter: Mapping[str, Any] | None = None,
        sorts: list[Mapping[str, Any]] | None = None,
        start_cursor: str | None = None,
        page_size: int | None = None,
    ) -> Mapping[str, Any]:
        """Return one page of query results (`results`, `has_more`, `next_cursor`)."""
        ...

    async def create_page(
        self, database_id: str, properties: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        """Create a page in a database and return it."""
        ...

    async def retrieve_page(self, page_id: str) -> Mapping[str, Any]:
        """Return a page object."""
        ...

    async def update_page(
        self,
        page_id: str,
        *,
        properties: Mapping[str, Any] | None = None,
        archived: bool | None = None,
    ) -> Mapping[str, Any]:
        """Update page properties and/or the archived flag and return the page."""
        ...


class PayloadValidator(Protocol):
    """Validates create / update payloads before they are encoded."""

    def validate(self, db_name: str, mode: Mode | str, payload: Mapping[str, Any]) -> bool:
        ...

    def errors(self, db_name: str, mode: Mode | str) -> list[ValidationIssue]:
        ...


class ValidationError(ValueError):
    """Raised when a payload is rejected by the validator."""

    def __init__(self, database: str, mode: Mode, errors: Iterable[ValidationIssue]):
        self.database = database
        self.mode = Mode(mode)
        self.errors = list(errors)
        details = "; ".join(
            f"{e.path}: {e.message}" if e.path else e.message for e in self.errors
        )
        super().__init__(
            f"Validation failed for {self.mode.value} in '{database}': {details or 'invalid payload'}"
        )


class IncompletePageError(RuntimeError):
    """Raised when Notion returns a page object without properties."""


@dataclass(frozen=True)
class TypedPage:
    """
    A Notion page with its properties decoded to logical names.

    Attributes:
        id: Page id.
        properties: Decoded property values keyed by logical name.
        created_time: ISO timestamp of creation, if present.
        last_edited_time: ISO timestamp of last edit, if present.
        archived: Whether the page is archived.
        url: Notion URL of the page.
        raw: The page object exactly as returned by Notion.
    """

    id: str
    properties: dict[str, Any]
    created_time: str | None = None
    last_edited_time: str | None = None
    archived: bool = False
    url: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_wire(cls, page: Mapping[str, Any], properties: dict[str, Any]) -> TypedPage:
        return cls(
            id=str(page.get("id")),
            properties=properties,
            created_time=page.get("created_time"),
            last_edited_time=page.get("last_edited_time"),
            archived=bool(page.get("archived") or page.get("in_trash")),
            url=page.get("url"),
            raw=page,
        )


class TypedClient:
    """
    Schema-aware facade over a `NotionTransport`.

    The registry is fixed at construction and only ever read, so a client
    can serve any number of concurrent calls.
    """

    def __init__(
        self,
        transport: NotionTransport,
        registry: SchemaRegistry,
        validator: PayloadValidator | None = None,
    ) -> None:
        self.transport = transport
        self.registry = registry
        self.validator = validator if validator is not None else JsonSchemaValidator(registry)

    def get_database_id(self, db_name: str) -> str:
        """Return the Notion id of a configured database."""
        return self.registry.database_id(db_name)

    def _validate(self, db_name: str, mode: Mode, payload: Mapping[str, Any]) -> None:
        if not self.validator.validate(db_name, mode, payload):
            errors = self.validator.errors(db_name, mode)
            logger.debug("Rejected %s payload for '%s': %s", mode.value, db_name, errors)
            raise ValidationError(db_name, mode, errors)

    def _decode_page(self, db_name: str, page: Mapping[str, Any]) -> TypedPage:
        if "properties" not in page:
            raise IncompletePageError(f"Page {page.get('id')} was returned without properties.")
        schema = self.registry.database(db_name)
        return TypedPage.from_wire(page, decode_properties(schema, page["properties"]))

    async def create_page(self, db_name: str, properties: Mapping[str, Any]) -> TypedPage:
        """Validate, encode and create a page in a database."""
        self._validate(db_name, Mode.CREATE, properties)
        schema = self.registry.database(db_name)
        payload = encode_properties(schema, properties)
        logger.debug("Creating page in '%s' with %d properties", db_name, len(payload))
        page = await self.transport.create_page(schema.id, payload)
        return self._decode_page(db_name, page)

    async def update_page(
        self, page_id: str, db_name: str, properties: Mapping[str, Any]
    ) -> TypedPage:
        """Validate, encode and apply a partial update to a page."""
        self._validate(db_name, Mode.UPDATE, properties)
        payload = encode_properties(self.registry.database(db_name), properties)
        logger.debug("Updating page %s in '%s' with %d properties", page_id, db_name, len(payload))
        page = await self.transport.update_page(page_id, properties=payload)
        return self._decode_page(db_name, page)

    async def get_page(self, page_id: str, db_name: str) -> TypedPage:
        """Retrieve one page and decode it with the schema of `db_name`."""
        self.registry.database(db_name)
        page = await self.transport.retrieve_page(page_id)
        return self._decode_page(db_name, page)

    async def delete_page(self, page_id: str) -> Mapping[str, Any]:
        """
        Archive a page.

        Notion has no hard delete; archiving is the only deletion it offers.
        """
        logger.debug("Archiving page %s", page_id)
        return await self.transport.update_page(page_id, archived=True)

    def _paginator(
        self,
        db_name: str,
        filter: FilterInput | None,
        sorts: Iterable[Mapping[str, Any]] | None,
    ) -> Paginator:
        database_id = self.get_database_id(db_name)
        wire_filter = (
            translate_filter(self.registry, db_name, filter) if filter is not None else None
        )
        wire_sorts = translate_sorts(self.registry, db_name, sorts)

        async def fetch_page(cursor: str | None, page_size: int) -> Page:
            response = await self.transport.query_database(
                database_id,
                filter=wire_filter,
                sorts=wire_sorts,
                start_cursor=cursor,
                page_size=page_size,
            )
            page = Page.from_wire(response)
            # partial page objects carry no properties and are skipped
            full = [item for item in page.results if "properties" in item]
            return Page(results=full, has_more=page.has_more, next_cursor=page.next_cursor)

        return Paginator(fetch_page, lambda item: self._decode_page(db_name, item))

    async def query_database(
        self,
        db_name: str,
        *,
        filter: FilterInput | None = None,
        sorts: Iterable[Mapping[str, Any]] | None = None,
        start_cursor: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> QueryResult:
        """Run one query request; the caller follows `next_cursor` manually."""
        return await self._paginator(db_name, filter, sorts).page(start_cursor, page_size)

    async def query_database_all(
        self,
        db_name: str,
        *,
        filter: FilterInput | None = None,
        sorts: Iterable[Mapping[str, Any]] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[TypedPage]:
        """
        Fetch every matching page.

        All results are loaded into memory; use `query_database_iterator`
        for large databases.
        """
        return await self._paginator(db_name, filter, sorts).collect_all(page_size)

    def query_database_iterator(
        self,
        db_name: str,
        *,
        filter: FilterInput | None = None,
        sorts: Iterable[Mapping[str, Any]] | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[TypedPage]:
        """
        Lazily iterate over matching pages.

        Pages are fetched one request at a time as the iteration advances.
        Each iterator is single-pass; call again to restart.
        """
        return self._paginator(db_name, filter, sorts).iterate(page_size)

    def get_status_groups(self, db_name: str, property_name: str) -> list[str] | None:
        return self.registry.status_groups(db_name, property_name)

    def get_status_options_for_group(
        self, db_name: str, property_name: str, group_name: str
    ) -> list[str]:
        return self.registry.status_options_for_group(db_name, property_name, group_name)

    def get_group_for_status_option(
        self, db_name: str, property_name: str, option_name: str
    ) -> str | None:
        return self.registry.group_for_status_option(db_name, property_name, option_name)

    def is_option_in_group(
        self, db_name: str, property_name: str, option_name: str, group_name: str
    ) -> bool:
        return self.registry.is_option_in_group(db_name, property_name, option_name, group_name)
