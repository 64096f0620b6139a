"""Tests for the Pydantic domain models.

The circulation state of a book is a tagged variant; the flat
status/borrower_id/due_date view is derived from it and can never disagree.
"""

from datetime import datetime

import pytest
from pydantic import TypeAdapter, ValidationError

from campus_circulation.models import (
    Available,
    Book,
    BookCreate,
    BookStatus,
    Borrowed,
    CirculationState,
    Lost,
    Role,
    User,
    UserCreate,
    state_from_columns,
)

DUE = datetime(2026, 11, 1, 9, 30)


class TestCirculationState:
    def test_state_from_available_columns(self):
        assert state_from_columns("available", None, None) == Available()

    def test_state_from_borrowed_columns(self):
        state = state_from_columns("borrowed", 7, DUE)
        assert state == Borrowed(borrower_id=7, due_date=DUE)

    def test_state_from_lost_columns(self):
        assert isinstance(state_from_columns("lost", None, None), Lost)

    @pytest.mark.parametrize(
        ("status", "borrower_id", "due_date"),
        [
            ("borrowed", None, DUE),
            ("borrowed", 7, None),
            ("available", 7, None),
            ("available", None, DUE),
            ("lost", 7, DUE),
        ],
    )
    def test_inconsistent_columns_rejected(self, status, borrower_id, due_date):
        with pytest.raises(ValueError):
            state_from_columns(status, borrower_id, due_date)

    def test_discriminated_union_parsing(self):
        adapter = TypeAdapter(CirculationState)

        state = adapter.validate_python(
            {"status": "borrowed", "borrower_id": 3, "due_date": "2026-11-01T09:30:00"}
        )
        assert state == Borrowed(borrower_id=3, due_date=DUE)
        assert adapter.validate_python({"status": "lost"}) == Lost()

    def test_borrowed_requires_borrower_and_due_date(self):
        with pytest.raises(ValidationError):
            TypeAdapter(CirculationState).validate_python({"status": "borrowed"})


class TestBook:
    def test_new_book_is_available(self):
        book = Book(id=1, unique_code="D0001", title="Atlas")

        assert book.is_available
        assert book.status == BookStatus.AVAILABLE
        assert book.borrower_id is None
        assert book.due_date is None

    def test_flat_view_of_borrowed_book(self):
        book = Book(
            id=1,
            unique_code="D0001",
            title="Atlas",
            state=Borrowed(borrower_id=7, due_date=DUE),
            borrower_name="Jane Wanjiku",
        )

        data = book.model_dump(mode="json")

        assert "state" not in data
        assert data["status"] == "borrowed"
        assert data["borrower_id"] == 7
        assert data["due_date"] == "2026-11-01T09:30:00"
        assert data["borrower_name"] == "Jane Wanjiku"
        assert book.is_borrowed

    def test_lost_book_has_no_borrower(self):
        book = Book(id=2, unique_code="D0002", title="Atlas", state=Lost())

        assert book.status == BookStatus.LOST
        assert book.borrower_id is None
        assert not book.is_available

    def test_states_are_immutable(self):
        state = Borrowed(borrower_id=7, due_date=DUE)
        with pytest.raises(ValidationError):
            state.borrower_id = 8


class TestBookCreate:
    def test_fields_are_stripped(self):
        data = BookCreate(unique_code=" HS0001 ", title=" Atlas ", author="  ", category=" Maps ")

        assert data.unique_code == "HS0001"
        assert data.title == "Atlas"
        assert data.author is None
        assert data.category == "Maps"

    @pytest.mark.parametrize("code", ["", "   "])
    def test_blank_code_rejected(self, code):
        with pytest.raises(ValidationError):
            BookCreate(unique_code=code, title="Atlas")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"unique_code": "C" * 51},
            {"title": "T" * 501},
            {"author": "A" * 201},
            {"category": "K" * 101},
        ],
    )
    def test_overlong_fields_rejected(self, overrides):
        with pytest.raises(ValidationError):
            BookCreate(**{"unique_code": "HS0001", "title": "Atlas", **overrides})


class TestUserModels:
    def test_user_create_normalizes_email_and_grade(self):
        data = UserCreate(
            name="Jane",
            email="  Jane@School.AC.KE ",
            password="pw",
            campus="Kamulu",
            grade="   ",
        )

        assert data.email == "jane@school.ac.ke"
        assert data.grade is None
        assert data.role == Role.STAFF

    def test_unknown_campus_rejected(self):
        with pytest.raises(ValidationError, match="Unknown campus"):
            UserCreate(name="X", email="x@school.ac.ke", password="pw", campus="Mombasa")

    def test_invalid_email_rejected(self):
        with pytest.raises(ValidationError):
            UserCreate(name="X", email="not-an-email", password="pw", campus="Diani")

    def test_public_user_has_no_credential_field(self):
        user = User(id=1, name="A", email="a@school.ac.ke", role=Role.ADMIN, campus="Diani")

        assert user.is_admin
        assert "password" not in user.model_dump()
        assert "password_hash" not in user.model_dump()
