"""
Application services for the Campus Library circulation server.

A service binds one session to one verified ``Caller`` and applies the access
policy before delegating to the repositories. The REST API and the MCP tools
both call these classes, so every role rule is enforced in exactly one place.

- ``AuthService``: public registration, login and password reset
- ``UserService``: profile lookup and admin user management
- ``CatalogService``: scoped listings and admin catalog maintenance
- ``CirculationService``: borrow, return and book history
- ``ReportService``: the unreturned-by-grade report
"""

import logging

from sqlalchemy.orm import Session

from .auth import issue_token
from .config import get_config
from .database.book_repository import BookRepository
from .database.circulation_repository import CirculationRepository
from .database.repository import PaginatedResponse, PaginationParams
from .database.user_repository import UserRepository
from .errors import ForbiddenError, NotFoundError
from .models import Book, BookCreate, BookStatus, GradeCount, Role, Transaction, User, UserCreate
from .observability import record_circulation_event, traced
from .policy import (
    Caller,
    authorize_admin_only,
    authorize_borrow,
    book_scope,
)

logger = logging.getLogger(__name__)


class AuthService:
    """Operations that run before a caller identity exists."""

    def __init__(self, session: Session):
        self.users = UserRepository(session)

    @traced("auth.register")
    def register(self, data: UserCreate, admin_code: str | None = None) -> tuple[User, str]:
        """
        Self-register and log in.

        Registering as an admin requires the configured registration code.

        Raises:
            ForbiddenError: If the admin code is wrong
            DuplicateError: If the email is taken
        """
        if data.role == Role.ADMIN and admin_code != get_config().admin_registration_code:
            raise ForbiddenError("Invalid admin code")

        user = self.users.create(data)
        return user, issue_token(user)

    @traced("auth.login")
    def login(self, email: str, password: str, campus: str) -> tuple[User, str]:
        user = self.users.authenticate(email, password, campus)
        logger.info("User %s logged in at %s", user.id, campus)
        return user, issue_token(user)

    @traced("auth.reset_password")
    def reset_password(self, email: str, new_password: str) -> None:
        self.users.reset_password(email, new_password)


class UserService:
    """Profile and user management for an authenticated caller."""

    def __init__(self, session: Session, caller: Caller):
        self.caller = caller
        self.users = UserRepository(session)

    def me(self) -> User:
        user = self.users.get_by_id(self.caller.id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @traced("users.list")
    def list_users(self) -> list[User]:
        authorize_admin_only(self.caller)
        return self.users.list_all()

    @traced("users.create")
    def create_user(self, data: UserCreate) -> User:
        authorize_admin_only(self.caller)
        user = self.users.create(data)
        logger.info("Admin %s created user %s", self.caller.id, user.id)
        return user


class CatalogService:
    """Book listings and catalog maintenance."""

    def __init__(self, session: Session, caller: Caller):
        self.caller = caller
        self.books = BookRepository(session)

    @traced("books.list")
    def list_books(
        self,
        search: str | None = None,
        status: BookStatus | None = None,
        pagination: PaginationParams | None = None,
    ) -> list[Book] | PaginatedResponse[Book]:
        """List the books the caller may see. Staff only ever see their own loans."""
        scope = book_scope(self.caller, status=status, search=search)
        return self.books.list_books(scope, pagination)

    @traced("books.create")
    def create_book(self, data: BookCreate) -> Book:
        authorize_admin_only(self.caller)
        return self.books.create(data)

    @traced("books.bulk_create")
    def bulk_create(
        self,
        prefix: str,
        start: int | str,
        end: int | str,
        title: str,
        author: str | None = None,
        category: str | None = None,
    ) -> tuple[int, int]:
        authorize_admin_only(self.caller)
        return self.books.bulk_create(prefix, start, end, title, author, category)

    @traced("books.import")
    def import_csv(self, text: str) -> tuple[int, int, int]:
        authorize_admin_only(self.caller)
        return self.books.import_csv(text)

    @traced("books.export")
    def export_csv(self) -> str:
        authorize_admin_only(self.caller)
        return self.books.export_csv()


class CirculationService:
    """Borrow and return on behalf of the caller."""

    def __init__(self, session: Session, caller: Caller):
        self.caller = caller
        self.circulation = CirculationRepository(session)

    @traced("circulation.borrow")
    def borrow(self, unique_code: str, borrower_id: int | None = None) -> Book:
        """
        Borrow a book.

        Admins may name another borrower; staff always borrow for themselves,
        whatever ``borrower_id`` says.
        """
        effective_borrower = authorize_borrow(self.caller, borrower_id)
        book, _ = self.circulation.borrow(unique_code.strip(), effective_borrower)
        record_circulation_event("borrow", self.caller.campus)
        return book

    @traced("circulation.return")
    def return_book(self, unique_code: str) -> Book:
        book, _ = self.circulation.return_book(unique_code.strip(), self.caller)
        record_circulation_event("return", self.caller.campus)
        return book

    @traced("circulation.history")
    def history(self, unique_code: str) -> list[Transaction]:
        authorize_admin_only(self.caller)
        return self.circulation.history(unique_code.strip())


class ReportService:
    """Admin reports."""

    def __init__(self, session: Session, caller: Caller):
        self.caller = caller
        self.books = BookRepository(session)

    @traced("reports.unreturned")
    def unreturned_by_grade(self) -> list[GradeCount]:
        authorize_admin_only(self.caller)
        return self.books.unreturned_by_grade()
