"""
Database package for the Campus Library circulation server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Repositories for users, books and circulation
- Demo data generation (seed.py)

Both the REST API and the MCP tools reach the store only through these
repositories, one session per request.
"""

from .book_repository import BookRepository
from .circulation_repository import LOAN_PERIOD_DAYS, CirculationRepository
from .repository import (
    BaseRepository,
    DuplicateError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PaginatedResponse,
    PaginationParams,
    RepositoryException,
)
from .schema import (
    Base,
    Book,
    BookStatusEnum,
    RoleEnum,
    Transaction,
    TransactionTypeEnum,
    User,
)
from .session import (
    DatabaseManager,
    get_db_manager,
    safe_commit,
    safe_query,
    session_scope,
    set_db_manager,
)
from .user_repository import UserRepository

__all__ = [
    "LOAN_PERIOD_DAYS",
    "Base",
    "BaseRepository",
    "Book",
    "BookRepository",
    "BookStatusEnum",
    "CirculationRepository",
    "DatabaseManager",
    "DuplicateError",
    "ForbiddenError",
    "InvalidInputError",
    "InvalidStateError",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "RoleEnum",
    "Transaction",
    "TransactionTypeEnum",
    "User",
    "UserRepository",
    "get_db_manager",
    "safe_commit",
    "safe_query",
    "session_scope",
    "set_db_manager",
]
