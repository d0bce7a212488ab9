"""Book repository for data access operations."""

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from books_api.core.exceptions import BookNotFoundError, StoreError

from .entity import Book, BookPayload
from .table import BookTable


class BookRepository:
    """Data-access layer for books.

    Missing rows raise ``BookNotFoundError``; every SQLAlchemy failure is
    re-raised as ``StoreError``. Commits are left to the caller's session
    scope.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_page(self, limit: int, offset: int) -> list[Book]:
        statement = select(BookTable).order_by(BookTable.id).offset(offset).limit(limit)
        try:
            rows = self._session.exec(statement).all()
        except SQLAlchemyError as e:
            raise StoreError("Failed to fetch books") from e
        return [Book.model_validate(row) for row in rows]

    def get(self, book_id: int) -> Book:
        return Book.model_validate(self._get_row(book_id))

    def create(self, payload: BookPayload) -> Book:
        row = BookTable(title=payload.title, author=payload.author, year=payload.year)
        try:
            self._session.add(row)
            self._session.flush()
            self._session.refresh(row)
        except SQLAlchemyError as e:
            raise StoreError("Failed to create book") from e
        return Book.model_validate(row)

    def save(self, book: Book) -> Book:
        """Write every mutable field of ``book`` onto its existing row."""
        row = self._get_row(book.id)
        row.title = book.title
        row.author = book.author
        row.year = book.year
        try:
            self._session.add(row)
            self._session.flush()
            self._session.refresh(row)
        except SQLAlchemyError as e:
            raise StoreError("Failed to update book") from e
        return Book.model_validate(row)

    def delete(self, book: Book) -> None:
        """Physically remove the row for ``book``."""
        row = self._get_row(book.id)
        try:
            self._session.delete(row)
            self._session.flush()
        except SQLAlchemyError as e:
            raise StoreError("Failed to delete book") from e

    def _get_row(self, book_id: int) -> BookTable:
        try:
            row = self._session.get(BookTable, book_id)
        except SQLAlchemyError as e:
            raise StoreError("Failed to fetch book") from e
        if row is None:
            raise BookNotFoundError()
        return row
