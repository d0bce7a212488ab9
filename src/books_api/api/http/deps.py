"""FastAPI dependency implementations."""

from fastapi import Request

from books_api.api.http.app_data import ApplicationDependencies
from books_api.core.services import BookService


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    """Get the dependencies built during application startup."""
    deps = getattr(request.app.state, "app_dependencies", None)
    if deps is None:
        raise RuntimeError("Application dependencies not initialized. Check lifespan setup.")
    return deps


def get_book_service(request: Request) -> BookService:
    """Get the Book service instance."""
    return get_app_dependencies(request).book_service
