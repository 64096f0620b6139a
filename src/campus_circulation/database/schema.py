"""
SQLAlchemy database schema for the Campus Library circulation server.

Three tables back the whole system:

1. users - staff and admins with a hashed credential
2. books - one row per physical item, with its circulation columns
3. transactions - append-only borrow/return audit trail

The ``books`` table carries a CHECK constraint that keeps the circulation
columns consistent: a borrower and a due date exist exactly when the status
is ``borrowed``.
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    event,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

Base = declarative_base()


class RoleEnum(str, enum.Enum):
    """Database enum for user role."""

    ADMIN = "admin"
    STAFF = "staff"


class BookStatusEnum(str, enum.Enum):
    """Database enum for book circulation status."""

    AVAILABLE = "available"
    BORROWED = "borrowed"
    LOST = "lost"


class TransactionTypeEnum(str, enum.Enum):
    """Database enum for transaction type."""

    BORROW = "borrow"
    RETURN = "return"


class User(Base):
    """
    Users table - staff and administrators.

    The password hash is only ever read by the authentication path; every
    other query maps rows to the public ``User`` model.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(RoleEnum, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
    )
    campus = Column(String(100), nullable=False)
    grade = Column(String(50), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())

    borrowed_books = relationship("Book", back_populates="borrower")
    transactions = relationship("Transaction", back_populates="user")

    __table_args__ = (
        Index("idx_user_email", "email"),
        Index("idx_user_grade", "grade"),
    )

    @validates("email")
    def normalize_email(self, key, value):  # noqa: ARG002
        return value.strip().lower()


class Book(Base):
    """
    Books table - one row per physical item.

    status, borrower_id and due_date are written only by the circulation
    repository.
    """

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unique_code = Column(String(50), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    author = Column(String(200), nullable=True)
    category = Column(String(100), nullable=True)
    status = Column(
        Enum(BookStatusEnum, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        default=BookStatusEnum.AVAILABLE,
    )
    borrower_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    borrower = relationship("User", back_populates="borrowed_books")
    transactions = relationship("Transaction", back_populates="book")

    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_status", "status"),
        Index("idx_book_borrower", "borrower_id"),
        CheckConstraint(
            "(status = 'borrowed' AND borrower_id IS NOT NULL AND due_date IS NOT NULL)"
            " OR (status IN ('available', 'lost') AND borrower_id IS NULL AND due_date IS NULL)",
            name="check_circulation_fields_consistent",
        ),
    )


class Transaction(Base):
    """
    Transactions table - append-only circulation audit trail.

    Rows are inserted by borrow and return and never updated or deleted.
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(
        Enum(
            TransactionTypeEnum,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
        ),
        nullable=False,
    )
    date = Column(DateTime, nullable=False)

    book = relationship("Book", back_populates="transactions")
    user = relationship("User", back_populates="transactions")

    __table_args__ = (
        Index("idx_transaction_book", "book_id", "date"),
        Index("idx_transaction_user", "user_id"),
    )


@event.listens_for(Transaction, "before_update")
def transaction_is_append_only(mapper, connection, target):  # noqa: ARG001
    """Reject ORM updates to audit rows."""
    raise ValueError(f"Transaction {target.id} is immutable")
