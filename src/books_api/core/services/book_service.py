"""Book resource orchestration: validation, look-aside cache, store, events.

Every mutation deletes the cache entries it may have made stale before
returning; nothing is ever rewritten in place. The delete is not part of
the store transaction, so a crash between the two leaves a stale entry
until the next invalidation.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable
from typing import TypeVar

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from books_api.core.exceptions import BookNotFoundError, CacheError, StoreError
from books_api.core.services.database.db_session import DbSessionService
from books_api.core.services.events.notifier import EventNotifier
from books_api.core.storage.cache_storage import CacheStorage
from books_api.entities.service.book import Book, BookPayload, BookRepository
from books_api.entities.service.book.entity import BookList
from books_api.runtime.config.config_data import ConfigData

T = TypeVar("T")

DEFAULT_LIMIT = 10
DEFAULT_OFFSET = 0
COLLECTION_KEY = "books"
COLLECTION_PATTERN = "books:*"


# Decimal integers only, with an optional sign
_INTEGER = re.compile(r"[+-]?[0-9]+")

# Signed 64-bit range of SQL BIGINT and of books.id
MAX_INT64 = 2**63 - 1
MIN_INT64 = -(2**63)


def book_key(book_id: int) -> str:
    return f"book:{book_id}"


def page_key(limit: int, offset: int) -> str:
    return f"books:limit={limit}:offset={offset}"


def _parse_int(raw: str | int | None) -> int | None:
    """Parse a 64-bit decimal integer, or return None."""
    if isinstance(raw, str):
        if not _INTEGER.fullmatch(raw):
            return None
        raw = int(raw)
    if raw is None or not MIN_INT64 <= raw <= MAX_INT64:
        return None
    return raw


def parse_pagination(limit: str | None, offset: str | None) -> tuple[int, int]:
    """Coerce raw query values; anything unusable falls back to the default."""
    parsed_limit = _parse_int(limit)
    if parsed_limit is None or parsed_limit <= 0:
        parsed_limit = DEFAULT_LIMIT

    parsed_offset = _parse_int(offset)
    if parsed_offset is None or parsed_offset < 0:
        parsed_offset = DEFAULT_OFFSET

    return parsed_limit, parsed_offset


def parse_book_id(raw: str | int) -> int:
    """Path ids that are not 64-bit integers cannot match a row."""
    book_id = _parse_int(raw)
    if book_id is None:
        raise BookNotFoundError()
    return book_id


class BookService:
    """Runs the five book operations against injected store, cache and notifier."""

    def __init__(
        self,
        database_service: DbSessionService,
        cache: CacheStorage,
        notifier: EventNotifier,
        *,
        topic: str = "book_events",
        cache_ttl_seconds: int = 0,
        store_timeout_seconds: float = 5.0,
    ):
        self._db = database_service
        self._cache = cache
        self._notifier = notifier
        self._topic = topic
        self._cache_ttl = cache_ttl_seconds
        self._store_timeout = store_timeout_seconds

    @classmethod
    def create(
        cls,
        database_service: DbSessionService,
        cache: CacheStorage,
        notifier: EventNotifier,
        config: ConfigData,
    ) -> BookService:
        return cls(
            database_service,
            cache,
            notifier,
            topic=config.kafka.topic,
            cache_ttl_seconds=config.cache.ttl_seconds,
            store_timeout_seconds=config.app.outbound_timeout_seconds,
        )

    # --- Operations ---

    async def list_books(
        self, limit: str | None = None, offset: str | None = None
    ) -> list[Book]:
        page_limit, page_offset = parse_pagination(limit, offset)
        key = page_key(page_limit, page_offset)

        cached = await self._cache_get(key)
        if cached is not None:
            try:
                return BookList.validate_json(cached)
            except ValidationError:
                logger.bind(cache_key=key).warning("Discarding unreadable cache entry")

        books = await self._run_store(
            lambda repo: repo.list_page(page_limit, page_offset),
            "Failed to fetch books",
        )
        await self._cache_set(key, BookList.dump_json(books).decode("utf-8"))
        return books

    async def get_book(self, raw_id: str | int) -> Book:
        book_id = parse_book_id(raw_id)
        key = book_key(book_id)

        cached = await self._cache_get(key)
        if cached is not None:
            try:
                return Book.model_validate_json(cached)
            except ValidationError:
                logger.bind(cache_key=key).warning("Discarding unreadable cache entry")

        book = await self._run_store(lambda repo: repo.get(book_id), "Failed to fetch book")
        await self._cache_set(key, book.model_dump_json())
        return book

    async def create_book(self, body: bytes | str) -> Book:
        payload = BookPayload.parse(body)
        payload.check_fields()

        book = await self._run_write(lambda repo: repo.create(payload), "Failed to create book")
        logger.bind(book_id=book.id).info("Book created")

        await self._invalidate()
        self._publish(f"New book added: {book.title}")
        return book

    async def update_book(self, raw_id: str | int, body: bytes | str) -> Book:
        book_id = parse_book_id(raw_id)
        existing = await self._run_store(lambda repo: repo.get(book_id), "Failed to fetch book")

        payload = BookPayload.parse(body)
        payload.check_fields()

        # Only validated fields are copied; the id always comes from the stored row
        changes = existing.model_copy(update=payload.model_dump())
        book = await self._run_write(
            lambda repo: repo.save(changes), "Failed to update book", book_key(book_id)
        )
        logger.bind(book_id=book.id).info("Book updated")

        await self._invalidate(book_key(book_id))
        self._publish(f"Book updated: {book.title}")
        return book

    async def delete_book(self, raw_id: str | int) -> None:
        book_id = parse_book_id(raw_id)
        existing = await self._run_store(lambda repo: repo.get(book_id), "Failed to fetch book")

        await self._run_write(
            lambda repo: repo.delete(existing), "Failed to delete book", book_key(book_id)
        )
        logger.bind(book_id=book_id).info("Book deleted")

        await self._invalidate(book_key(book_id))
        self._publish(f"Book deleted: {existing.id}")

    # --- Collaborator helpers ---

    async def _run_store(self, operation: Callable[[BookRepository], T], failure: str) -> T:
        """Run one repository call in its own transaction, off the event loop."""

        def _work() -> T:
            with self._db.session_scope() as session:
                return operation(BookRepository(session))

        try:
            return await asyncio.wait_for(
                run_in_threadpool(_work), timeout=self._store_timeout
            )
        except (BookNotFoundError, StoreError):
            raise
        except asyncio.TimeoutError:
            logger.bind(timeout_seconds=self._store_timeout).error("Store call timed out")
            raise StoreError(failure) from None
        except SQLAlchemyError as e:
            logger.bind(error_type=type(e).__name__).error(failure)
            raise StoreError(failure) from e

    async def _run_write(
        self, operation: Callable[[BookRepository], T], failure: str, *keys: str
    ) -> T:
        """Run a mutating store call.

        A timed out write may still commit in its worker thread, so a failed
        write invalidates the same keys a successful one would.
        """
        try:
            return await self._run_store(operation, failure)
        except StoreError:
            await self._invalidate(*keys)
            raise

    async def _cache_get(self, key: str) -> str | None:
        try:
            return await self._cache.get(key)
        except CacheError as e:
            logger.bind(cache_key=key, error_message=str(e)).warning(
                "Cache read failed, falling back to store"
            )
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        try:
            await self._cache.set(key, value, self._cache_ttl)
        except CacheError as e:
            logger.bind(cache_key=key, error_message=str(e)).warning("Cache write failed")

    async def _invalidate(self, *keys: str) -> None:
        """Delete the given keys plus every collection snapshot."""
        try:
            await self._cache.delete(COLLECTION_KEY, *keys)
        except CacheError as e:
            logger.bind(cache_keys=[COLLECTION_KEY, *keys], error_message=str(e)).warning(
                "Cache invalidation failed"
            )
        try:
            await self._cache.delete_pattern(COLLECTION_PATTERN)
        except CacheError as e:
            logger.bind(cache_pattern=COLLECTION_PATTERN, error_message=str(e)).warning(
                "Cache invalidation failed"
            )

    def _publish(self, message: str) -> None:
        try:
            self._notifier.publish(self._topic, message)
        except Exception as e:
            logger.bind(topic=self._topic, error_type=type(e).__name__).warning(
                "Event notifier rejected message"
            )
