"""
Tests for the circulation engine.

1. Borrow and return transitions with their audit rows
2. Failed preconditions leave books and transactions untouched
3. The circulation invariant holds after every operation
4. Concurrent borrows of one book: exactly one wins
"""

import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError

from campus_circulation.database import (
    LOAN_PERIOD_DAYS,
    CirculationRepository,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from campus_circulation.database.schema import Book as BookDB
from campus_circulation.database.schema import BookStatusEnum
from campus_circulation.database.schema import Transaction as TransactionDB
from campus_circulation.models import BookStatus, TransactionType

NOW = datetime(2026, 10, 18, 9, 0)


def transaction_count(session) -> int:
    return session.execute(select(func.count()).select_from(TransactionDB)).scalar()


def assert_invariant(session) -> None:
    for status, borrower_id, due_date in session.execute(
        select(BookDB.status, BookDB.borrower_id, BookDB.due_date)
    ):
        borrowed = status == BookStatusEnum.BORROWED
        assert borrowed == (borrower_id is not None) == (due_date is not None)


class TestBorrow:
    def test_borrow_available_book(self, test_db_session, dictionaries, staff):
        book, record = CirculationRepository(test_db_session).borrow("D0001", staff.id, now=NOW)

        assert book.status == BookStatus.BORROWED
        assert book.borrower_id == staff.id
        assert book.borrower_name == "Jane Wanjiku"
        assert book.due_date == NOW + timedelta(days=LOAN_PERIOD_DAYS)
        assert record.type == TransactionType.BORROW
        assert record.user_id == staff.id
        assert record.date == NOW
        assert transaction_count(test_db_session) == 1
        assert_invariant(test_db_session)

    def test_loan_period_is_fourteen_days(self):
        assert LOAN_PERIOD_DAYS == 14

    def test_borrow_unknown_code(self, test_db_session, dictionaries, staff):
        with pytest.raises(NotFoundError, match="Book not found"):
            CirculationRepository(test_db_session).borrow("Z9999", staff.id)
        assert transaction_count(test_db_session) == 0

    def test_borrow_unknown_borrower(self, test_db_session, dictionaries):
        repo = CirculationRepository(test_db_session)

        with pytest.raises(NotFoundError):
            repo.borrow("D0001", 999)

        assert repo.book_repo.get_by_code("D0001").status == BookStatus.AVAILABLE
        assert transaction_count(test_db_session) == 0

    def test_borrow_borrowed_book(self, test_db_session, dictionaries, staff, other_staff):
        repo = CirculationRepository(test_db_session)
        repo.borrow("D0001", staff.id, now=NOW)

        with pytest.raises(InvalidStateError, match="not available"):
            repo.borrow("D0001", other_staff.id)

        book = repo.book_repo.get_by_code("D0001")
        assert book.borrower_id == staff.id
        assert book.due_date == NOW + timedelta(days=14)
        assert transaction_count(test_db_session) == 1

    def test_borrow_lost_book(self, test_db_session, dictionaries, staff):
        test_db_session.execute(
            update(BookDB).where(BookDB.unique_code == "D0002").values(status=BookStatusEnum.LOST)
        )
        test_db_session.commit()

        with pytest.raises(InvalidStateError):
            CirculationRepository(test_db_session).borrow("D0002", staff.id)
        assert transaction_count(test_db_session) == 0


class TestReturn:
    def test_d0001_scenario(self, test_db_session, dictionaries, staff, admin_caller):
        repo = CirculationRepository(test_db_session)

        borrowed, _ = repo.borrow("D0001", staff.id, now=NOW)
        assert borrowed.status == BookStatus.BORROWED
        assert borrowed.borrower_id == staff.id
        assert borrowed.due_date == NOW + timedelta(days=14)

        returned, record = repo.return_book("D0001", admin_caller, now=NOW + timedelta(days=3))
        assert returned.status == BookStatus.AVAILABLE
        assert returned.borrower_id is None
        assert returned.due_date is None
        assert returned.borrower_name is None
        # The return row names the borrower, not the admin who took it back
        assert record.user_id == staff.id

        history = repo.history("D0001")
        assert [(t.type, t.user_id) for t in history] == [
            (TransactionType.BORROW, staff.id),
            (TransactionType.RETURN, staff.id),
        ]
        assert_invariant(test_db_session)

    def test_staff_returns_own_book(self, test_db_session, dictionaries, staff, staff_caller):
        repo = CirculationRepository(test_db_session)
        repo.borrow("D0001", staff.id)

        book, record = repo.return_book("D0001", staff_caller)

        assert book.is_available
        assert record.type == TransactionType.RETURN

    def test_staff_cannot_return_other_book(
        self, test_db_session, dictionaries, staff, other_caller
    ):
        repo = CirculationRepository(test_db_session)
        repo.borrow("D0001", staff.id, now=NOW)

        with pytest.raises(ForbiddenError):
            repo.return_book("D0001", other_caller)

        book = repo.book_repo.get_by_code("D0001")
        assert book.borrower_id == staff.id
        assert transaction_count(test_db_session) == 1

    def test_return_available_book(self, test_db_session, dictionaries, admin_caller):
        with pytest.raises(InvalidStateError, match="not currently borrowed"):
            CirculationRepository(test_db_session).return_book("D0001", admin_caller)
        assert transaction_count(test_db_session) == 0

    def test_return_unknown_code(self, test_db_session, admin_caller):
        with pytest.raises(NotFoundError):
            CirculationRepository(test_db_session).return_book("Z9999", admin_caller)

    def test_book_can_circulate_again(self, test_db_session, dictionaries, staff, other_staff, admin_caller):
        repo = CirculationRepository(test_db_session)
        repo.borrow("D0001", staff.id)
        repo.return_book("D0001", admin_caller)

        book, _ = repo.borrow("D0001", other_staff.id)

        assert book.borrower_id == other_staff.id
        assert len(repo.history("D0001")) == 3


class TestHistory:
    def test_history_of_unknown_book(self, test_db_session):
        with pytest.raises(NotFoundError):
            CirculationRepository(test_db_session).history("Z9999")

    def test_history_of_new_book_is_empty(self, test_db_session, dictionaries):
        assert CirculationRepository(test_db_session).history("D0003") == []


class TestStoreInvariant:
    def test_check_constraint_rejects_half_borrowed_book(self, test_db_session, dictionaries):
        with pytest.raises(IntegrityError):
            test_db_session.execute(
                text("UPDATE books SET status = 'borrowed' WHERE unique_code = 'D0001'")
            )
        test_db_session.rollback()

    def test_transactions_are_append_only(self, test_db_session, dictionaries, staff):
        CirculationRepository(test_db_session).borrow("D0001", staff.id)
        row = test_db_session.execute(select(TransactionDB)).scalar_one()

        row.user_id = 999
        with pytest.raises(ValueError, match="immutable"):
            test_db_session.flush()
        test_db_session.rollback()


class TestConcurrentBorrow:
    def test_exactly_one_concurrent_borrow_wins(self, db_manager, dictionaries, staff, other_staff):
        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt(borrower_id: int) -> None:
            session = db_manager.create_session()
            try:
                barrier.wait()
                CirculationRepository(session).borrow("D0001", borrower_id)
                outcome = "borrowed"
            except InvalidStateError:
                outcome = "invalid_state"
            except Exception as e:  # noqa: BLE001
                outcome = f"error: {e!r}"
            finally:
                session.close()
            with lock:
                outcomes.append(outcome)

        threads = [
            threading.Thread(target=attempt, args=(staff.id,)),
            threading.Thread(target=attempt, args=(other_staff.id,)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(outcomes) == ["borrowed", "invalid_state"]

        with db_manager.session_scope() as session:
            assert transaction_count(session) == 1
            assert_invariant(session)
