"""
Campus Library Models.

Pydantic models for the entities of the circulation system:

- User: staff and admins, scoped to a campus
- Book: a circulating item whose circulation fields form a tagged variant
- Transaction: append-only borrow/return audit rows
"""

from .book import (
    AUTHOR_MAX_LENGTH,
    CATEGORY_MAX_LENGTH,
    CODE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Available,
    Book,
    BookCreate,
    BookStatus,
    Borrowed,
    CirculationState,
    Lost,
    state_from_columns,
)
from .transaction import GradeCount, Transaction, TransactionType
from .user import CAMPUSES, GRADES, Role, User, UserCreate

__all__ = [
    "AUTHOR_MAX_LENGTH",
    "CATEGORY_MAX_LENGTH",
    "CODE_MAX_LENGTH",
    "TITLE_MAX_LENGTH",
    "CAMPUSES",
    "GRADES",
    "Available",
    "Book",
    "BookCreate",
    "BookStatus",
    "Borrowed",
    "CirculationState",
    "GradeCount",
    "Lost",
    "Role",
    "Transaction",
    "TransactionType",
    "User",
    "UserCreate",
    "state_from_columns",
]
