"""
Access policy for the Campus Library circulation server.

All role-based decisions live here, as pure functions over the caller's
identity and the current state of a book. Nothing in this module touches the
database or any global state, so every rule can be tested on its own.

Rules:
- Admins see the whole catalog; staff see only books they currently hold.
- Admins may issue a book to another user; staff always borrow for themselves.
- Admins may take back any book; staff may return only their own.
- User management, bulk creation, import/export and reports are admin-only.
"""

from pydantic import BaseModel, ConfigDict, Field

from .errors import ForbiddenError
from .models.book import Book, BookStatus, Borrowed
from .models.user import Role


class Caller(BaseModel):
    """Verified identity of whoever issued the request."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1)
    role: Role
    campus: str
    name: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class BookScope(BaseModel):
    """
    The set of books a listing may return.

    ``borrower_id`` pins the listing to one borrower; ``status`` and
    ``search`` narrow it further. An empty scope means the whole catalog.
    """

    model_config = ConfigDict(frozen=True)

    borrower_id: int | None = None
    status: BookStatus | None = None
    search: str | None = None


def book_scope(
    caller: Caller, status: BookStatus | None = None, search: str | None = None
) -> BookScope:
    """Build the listing scope for ``caller``.

    A staff caller is always pinned to their own borrowed books and any
    status filter is dropped. The search filter applies to both roles.
    """
    search = search.strip() if search else None
    if not search:
        search = None

    if caller.is_admin:
        return BookScope(status=status, search=search)

    return BookScope(borrower_id=caller.id, search=search)


def authorize_borrow(caller: Caller, requested_borrower_id: int | None = None) -> int:
    """Return the effective borrower for a borrow request."""
    if caller.is_admin and requested_borrower_id is not None:
        return requested_borrower_id
    return caller.id


def authorize_return(caller: Caller, book: Book) -> None:
    """Raise ``ForbiddenError`` unless ``caller`` may return ``book``."""
    if caller.is_admin:
        return
    if not isinstance(book.state, Borrowed) or book.state.borrower_id != caller.id:
        raise ForbiddenError("not the borrower")


def authorize_admin_only(caller: Caller) -> None:
    """Raise ``ForbiddenError`` unless ``caller`` is an admin."""
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")
