"""Entity: Book."""

from __future__ import annotations

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from books_api.core.exceptions import BookValidationError

INVALID_JSON_MESSAGE = "Invalid JSON data"


class Book(BaseModel):
    """Book entity as stored and as returned by the API.

    ``id`` is assigned by the store on insert and never changes afterwards.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Store-assigned identifier")
    title: str = Field(description="Title")
    author: str = Field(description="Author")
    year: int = Field(description="Publication year")


BookList = TypeAdapter(list[Book])


class BookPayload(BaseModel):
    """Client-supplied fields for create and update.

    Missing fields take their zero value, so a partial body is treated as a
    full replacement and is then rejected by ``check_fields``. A JSON ``null``
    counts as missing. Unknown keys, ``id`` included, are ignored.
    """

    model_config = ConfigDict(strict=True, extra="ignore")

    title: str = ""
    author: str = ""
    year: int = 0

    @field_validator("title", "author", "year", mode="before")
    @classmethod
    def null_as_zero(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @classmethod
    def parse(cls, body: bytes | str) -> BookPayload:
        """Deserialize a JSON request body.

        Raises:
            BookValidationError: If the body is not a JSON object of the
                expected field types.
        """
        try:
            return cls.model_validate_json(body)
        except ValidationError as e:
            raise BookValidationError(INVALID_JSON_MESSAGE) from e

    def check_fields(self) -> None:
        """Apply the Book invariants in order, stopping at the first failure."""
        if self.title == "":
            raise BookValidationError("Title cannot be empty")
        if self.author == "":
            raise BookValidationError("Author cannot be empty")
        if self.year <= 0:
            raise BookValidationError("Year must be a valid positive number")
