"""Book API router with CRUD operations.

Request bodies are read raw and handed to the service so that an unknown id
is reported before a malformed body on update.
"""

from fastapi import APIRouter, Depends, Request, status

from books_api.api.http.deps import get_book_service
from books_api.core.services import BookService
from books_api.entities.service.book import Book

router = APIRouter(prefix="/books", tags=["books"])


@router.get("", response_model=list[Book])
async def list_books(
    limit: str | None = None,
    offset: str | None = None,
    service: BookService = Depends(get_book_service),
) -> list[Book]:
    """List books, paginated by ``limit`` (default 10) and ``offset`` (default 0)."""
    return await service.list_books(limit, offset)


@router.get("/{book_id}", response_model=Book)
async def get_book(
    book_id: str,
    service: BookService = Depends(get_book_service),
) -> Book:
    """Get a book by ID."""
    return await service.get_book(book_id)


@router.post("", response_model=Book, status_code=status.HTTP_201_CREATED)
async def create_book(
    request: Request,
    service: BookService = Depends(get_book_service),
) -> Book:
    """Create a new book."""
    return await service.create_book(await request.body())


@router.put("/{book_id}", response_model=Book)
async def update_book(
    book_id: str,
    request: Request,
    service: BookService = Depends(get_book_service),
) -> Book:
    """Replace title, author and year of an existing book."""
    return await service.update_book(book_id, await request.body())


@router.delete("/{book_id}")
async def delete_book(
    book_id: str,
    service: BookService = Depends(get_book_service),
) -> dict[str, str]:
    """Delete a book."""
    await service.delete_book(book_id)
    return {"message": "Book deleted successfully"}
