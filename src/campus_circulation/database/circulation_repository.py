"""
Circulation repository for the Campus Library circulation server.

This is the circulation engine: the only code that moves a book between
``available`` and ``borrowed``.

1. **Borrow**: available → borrowed, due in 14 days, one ``borrow`` audit row
2. **Return**: borrowed → available, one ``return`` audit row naming the
   prior borrower
3. **History**: a book's audit trail in order

Each transition is a conditional UPDATE guarded by the expected status,
committed together with its audit row. If the guard matches nothing, another
request got there first and the whole unit of work is rolled back. The
database arbitrates concurrent requests; this class holds no locks and no
state beyond its session.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..database.schema import Book as BookDB
from ..database.schema import BookStatusEnum, TransactionTypeEnum
from ..database.schema import Transaction as TransactionDB
from ..database.schema import User as UserDB
from ..models.book import Book as BookModel
from ..models.transaction import Transaction as TransactionModel
from ..models.transaction import TransactionType
from ..policy import Caller, authorize_return
from .book_repository import BookRepository
from .repository import (
    BaseRepository,
    InvalidStateError,
    NotFoundError,
    RepositoryException,
)
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

LOAN_PERIOD_DAYS = 14


class CirculationRepository(BaseRepository):
    """
    Repository for borrow and return transitions.

    Preconditions are checked before anything is written, so a failed call
    leaves books and transactions untouched.
    """

    def __init__(self, session):
        """Initialize with database session and the book repository."""
        super().__init__(session)
        self.book_repo = BookRepository(session)

    def borrow(
        self, unique_code: str, borrower_id: int, now: datetime | None = None
    ) -> tuple[BookModel, TransactionModel]:
        """
        Lend the book ``unique_code`` to ``borrower_id``.

        Args:
            unique_code: Scannable code of the book
            borrower_id: Effective borrower, already resolved by the access policy
            now: Operation time; defaults to the current time

        Returns:
            The updated book and the ``borrow`` transaction

        Raises:
            NotFoundError: If the book or the borrower does not exist
            InvalidStateError: If the book is not available
        """
        now = now or datetime.now()
        book = self._get_row(unique_code)

        if book is None:
            raise NotFoundError("Book not found")

        if book.status != BookStatusEnum.AVAILABLE:
            raise InvalidStateError("Book is not available")

        borrower = safe_query(
            self.session,
            lambda s: s.get(UserDB, borrower_id),
            "Failed to get borrower",
        )
        if borrower is None:
            raise NotFoundError(f"User {borrower_id} not found")

        due_date = now + timedelta(days=LOAN_PERIOD_DAYS)

        try:
            result = self.session.execute(
                update(BookDB)
                .where(BookDB.id == book.id, BookDB.status == BookStatusEnum.AVAILABLE)
                .values(
                    status=BookStatusEnum.BORROWED,
                    borrower_id=borrower_id,
                    due_date=due_date,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.rollback()
                raise InvalidStateError("Book is not available")

            record = TransactionDB(
                book_id=book.id,
                user_id=borrower_id,
                type=TransactionTypeEnum.BORROW,
                date=now,
            )
            self.session.add(record)
            safe_commit(self.session, "borrow book")

        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryException(f"Borrow failed: {e!s}") from e

        logger.info(
            "Borrow: book=%s borrower=%s due=%s", unique_code, borrower_id, due_date.isoformat()
        )
        return self._reload(unique_code), self._transaction_to_model(record)

    def return_book(
        self, unique_code: str, caller: Caller, now: datetime | None = None
    ) -> tuple[BookModel, TransactionModel]:
        """
        Take back the book ``unique_code``.

        The audit row references the borrower who held the book, not the
        caller, so an admin return still records whose loan ended.

        Raises:
            NotFoundError: If the book does not exist
            InvalidStateError: If the book is not borrowed
            ForbiddenError: If a staff caller is not the borrower
        """
        now = now or datetime.now()
        book = self._get_row(unique_code)

        if book is None:
            raise NotFoundError("Book not found")

        if book.status != BookStatusEnum.BORROWED:
            raise InvalidStateError("Book is not currently borrowed")

        authorize_return(caller, self.book_repo._row_to_model((book, None)))
        prior_borrower_id = book.borrower_id

        try:
            result = self.session.execute(
                update(BookDB)
                .where(
                    BookDB.id == book.id,
                    BookDB.status == BookStatusEnum.BORROWED,
                    BookDB.borrower_id == prior_borrower_id,
                )
                .values(
                    status=BookStatusEnum.AVAILABLE,
                    borrower_id=None,
                    due_date=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.rollback()
                raise InvalidStateError("Book is not currently borrowed")

            record = TransactionDB(
                book_id=book.id,
                user_id=prior_borrower_id,
                type=TransactionTypeEnum.RETURN,
                date=now,
            )
            self.session.add(record)
            safe_commit(self.session, "return book")

        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryException(f"Return failed: {e!s}") from e

        logger.info(
            "Return: book=%s borrower=%s by=%s", unique_code, prior_borrower_id, caller.id
        )
        return self._reload(unique_code), self._transaction_to_model(record)

    def history(self, unique_code: str) -> list[TransactionModel]:
        """
        The book's transactions, oldest first.

        Raises:
            NotFoundError: If the book does not exist
        """
        book = self._get_row(unique_code)
        if book is None:
            raise NotFoundError("Book not found")

        query = (
            select(TransactionDB)
            .where(TransactionDB.book_id == book.id)
            .order_by(TransactionDB.date.asc(), TransactionDB.id.asc())
        )
        rows = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get book history",
        )
        return [self._transaction_to_model(row) for row in rows]

    def _get_row(self, unique_code: str) -> BookDB | None:
        query = (
            select(BookDB)
            .where(BookDB.unique_code == unique_code)
            .execution_options(populate_existing=True)
        )
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get book for circulation",
        )

    def _reload(self, unique_code: str) -> BookModel:
        book = self.book_repo.get_by_code(unique_code)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    def _transaction_to_model(self, record: TransactionDB) -> TransactionModel:
        return TransactionModel(
            id=record.id,
            book_id=record.book_id,
            user_id=record.user_id,
            type=TransactionType(record.type.value),
            date=record.date,
        )
