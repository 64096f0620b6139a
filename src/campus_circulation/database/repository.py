"""
Shared repository plumbing for the Campus Library circulation server.

Repositories keep SQLAlchemy out of the service and API layers: they take a
session, run queries, and hand back Pydantic models. This module holds what
they share:

1. The error taxonomy (re-exported from ``campus_circulation.errors``)
2. Pagination parameters and the paginated response shape
3. ``BaseRepository`` with the common query helpers
"""

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from ..errors import (
    DuplicateError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    RepositoryException,
)
from .session import safe_query

ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise InvalidInputError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise InvalidInputError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """Standard paginated response for list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BaseRepository:
    """
    Base class for repositories.

    Subclasses convert rows to models themselves; the base class only knows
    how to run a select, count it and slice it.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    def _all(self, query: Select, error_msg: str) -> list[Any]:
        return list(
            safe_query(self.session, lambda s: s.execute(query).all(), error_msg)
        )

    def _paginate(
        self,
        query: Select,
        pagination: PaginationParams,
        to_model: Callable[[Any], ResponseSchemaType],
    ) -> PaginatedResponse[ResponseSchemaType]:
        """Count ``query``, fetch one page of rows and convert them."""
        pagination.validate_params()

        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (
            safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                "Failed to count in pagination",
            )
            or 0
        )

        page_query = query.offset(pagination.offset).limit(pagination.page_size)
        rows = self._all(page_query, "Failed to get paginated results")

        return PaginatedResponse(
            items=[to_model(row) for row in rows],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )


__all__ = [
    "BaseRepository",
    "DuplicateError",
    "ForbiddenError",
    "InvalidInputError",
    "InvalidStateError",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
]
