"""
Book model for the Campus Library circulation server.

A book is a single physical item identified by a scannable unique code such
as ``D0001``. Its circulation fields are modelled as a tagged variant so the
borrower and due date can only exist while the book is borrowed:

- ``Available``
- ``Borrowed(borrower_id, due_date)``
- ``Lost``

The flat ``status`` / ``borrower_id`` / ``due_date`` triple that the store
and the front end use is derived from the variant, never stored on the model.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


CODE_MAX_LENGTH = 50
TITLE_MAX_LENGTH = 500
AUTHOR_MAX_LENGTH = 200
CATEGORY_MAX_LENGTH = 100


class BookStatus(str, Enum):
    """Flattened circulation status."""

    AVAILABLE = "available"
    BORROWED = "borrowed"
    LOST = "lost"


class Available(BaseModel):
    """The book is on the shelf."""

    model_config = ConfigDict(frozen=True)

    status: Literal["available"] = "available"


class Borrowed(BaseModel):
    """The book is out with a borrower until ``due_date``."""

    model_config = ConfigDict(frozen=True)

    status: Literal["borrowed"] = "borrowed"
    borrower_id: int = Field(..., ge=1)
    due_date: datetime


class Lost(BaseModel):
    """The book has been written off. Set outside the circulation engine."""

    model_config = ConfigDict(frozen=True)

    status: Literal["lost"] = "lost"


CirculationState = Annotated[Available | Borrowed | Lost, Field(discriminator="status")]


def state_from_columns(
    status: str, borrower_id: int | None, due_date: datetime | None
) -> Available | Borrowed | Lost:
    """Rebuild the variant from the flat columns stored in the database."""
    status = BookStatus(status)
    if status == BookStatus.BORROWED:
        if borrower_id is None or due_date is None:
            raise ValueError("Borrowed book is missing its borrower or due date")
        return Borrowed(borrower_id=borrower_id, due_date=due_date)
    if borrower_id is not None or due_date is not None:
        raise ValueError(f"A {status.value} book cannot have a borrower or due date")
    if status == BookStatus.LOST:
        return Lost()
    return Available()


class Book(BaseModel):
    """
    Represents a circulating book.

    ``borrower_name`` is a display join filled in by listings; it is ``None``
    whenever nobody holds the book.
    """

    id: int = Field(..., description="Internal identifier", ge=1)

    unique_code: str = Field(
        ...,
        description="Human-scannable code, unique and immutable",
        min_length=1,
        max_length=CODE_MAX_LENGTH,
        examples=["D0001", "HS0042"],
    )

    title: str = Field(
        ..., description="Title of the book", min_length=1, max_length=TITLE_MAX_LENGTH
    )

    author: str | None = Field(
        None, description="Author, if known", max_length=AUTHOR_MAX_LENGTH
    )

    category: str | None = Field(
        None, description="Shelf category", max_length=CATEGORY_MAX_LENGTH
    )

    state: CirculationState = Field(default_factory=Available, exclude=True)

    borrower_name: str | None = Field(None, description="Display name of the current borrower")

    @computed_field
    @property
    def status(self) -> BookStatus:
        return BookStatus(self.state.status)

    @computed_field
    @property
    def borrower_id(self) -> int | None:
        return self.state.borrower_id if isinstance(self.state, Borrowed) else None

    @computed_field
    @property
    def due_date(self) -> datetime | None:
        return self.state.due_date if isinstance(self.state, Borrowed) else None

    @property
    def is_available(self) -> bool:
        return isinstance(self.state, Available)

    @property
    def is_borrowed(self) -> bool:
        return isinstance(self.state, Borrowed)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "unique_code": "D0001",
                "title": "Atlas of the World",
                "author": "National Geographic",
                "category": "Reference",
                "status": "borrowed",
                "borrower_id": 7,
                "borrower_name": "Jane Wanjiku",
                "due_date": "2026-11-01T09:30:00",
            }
        }
    )


class BookCreate(BaseModel):
    """Fields accepted when cataloguing a single book."""

    unique_code: str = Field(..., min_length=1, max_length=CODE_MAX_LENGTH)
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    author: str | None = Field(None, max_length=AUTHOR_MAX_LENGTH)
    category: str | None = Field(None, max_length=CATEGORY_MAX_LENGTH)

    # Runs before the length checks so whitespace-only codes fail min_length
    @field_validator("unique_code", "title", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("author", "category", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v
