"""
Tests for the MCP circulation tools.

1. Input validation
2. Authentication through the token argument
3. Success responses with structured data
4. Domain errors reported as isError results
"""

import pytest

from campus_circulation.auth import issue_token
from campus_circulation.database import BookRepository
from campus_circulation.tools import all_tools
from campus_circulation.tools.circulation import (
    borrow_book_handler,
    list_books_handler,
    return_book_handler,
    unreturned_report_handler,
)


@pytest.fixture
def admin_token(admin) -> str:
    return issue_token(admin)


@pytest.fixture
def staff_token(staff) -> str:
    return issue_token(staff)


@pytest.fixture
def other_token(other_staff) -> str:
    return issue_token(other_staff)


def text_of(result) -> str:
    return result["content"][0]["text"]


class TestToolRegistry:
    def test_all_tools_described(self):
        names = [tool["name"] for tool in all_tools]

        assert names == ["list_books", "borrow_book", "return_book", "unreturned_report"]
        for tool in all_tools:
            assert "token" in tool["inputSchema"]["properties"]
            assert callable(tool["handler"])


class TestBorrowBookTool:
    async def test_borrow_success(self, dictionaries, staff, staff_token):
        result = await borrow_book_handler({"token": staff_token, "unique_code": "D0001"})

        assert not result.get("isError")
        assert "Successfully borrowed" in text_of(result)
        assert "Due date:" in text_of(result)
        assert result["data"]["book"]["status"] == "borrowed"
        assert result["data"]["book"]["borrower_id"] == staff.id

    async def test_admin_issues_to_user(self, dictionaries, staff, admin_token):
        result = await borrow_book_handler(
            {"token": admin_token, "unique_code": "D0002", "user_id": staff.id}
        )

        assert result["data"]["book"]["borrower_id"] == staff.id

    async def test_unavailable_book(self, dictionaries, staff_token, other_token):
        await borrow_book_handler({"token": staff_token, "unique_code": "D0001"})

        result = await borrow_book_handler({"token": other_token, "unique_code": "D0001"})

        assert result["isError"] is True
        assert text_of(result) == "InvalidState: Book is not available"

    async def test_unknown_book(self, dictionaries, staff_token):
        result = await borrow_book_handler({"token": staff_token, "unique_code": "Z9999"})

        assert result["isError"] is True
        assert text_of(result).startswith("Not found")

    async def test_missing_token(self, dictionaries):
        result = await borrow_book_handler({"unique_code": "D0001"})

        assert result["isError"] is True
        assert text_of(result).startswith("Invalid parameters")

    async def test_invalid_token(self, db_manager):
        result = await borrow_book_handler({"token": "forged", "unique_code": "D0001"})

        assert result["isError"] is True
        assert text_of(result).startswith("Unauthenticated")


class TestReturnBookTool:
    async def test_return_own_book(self, dictionaries, staff_token, test_db_session):
        await borrow_book_handler({"token": staff_token, "unique_code": "D0001"})

        result = await return_book_handler({"token": staff_token, "unique_code": "D0001"})

        assert not result.get("isError")
        assert result["data"]["book"]["status"] == "available"
        assert BookRepository(test_db_session).get_by_code("D0001").is_available

    async def test_return_someone_elses_book(self, dictionaries, staff_token, other_token):
        await borrow_book_handler({"token": staff_token, "unique_code": "D0001"})

        result = await return_book_handler({"token": other_token, "unique_code": "D0001"})

        assert result["isError"] is True
        assert text_of(result) == "Forbidden: not the borrower"


class TestListBooksTool:
    async def test_admin_listing(self, dictionaries, admin_token):
        result = await list_books_handler({"token": admin_token})

        assert [b["unique_code"] for b in result["data"]["books"]] == dictionaries
        assert text_of(result).startswith("Found 3 book(s)")

    async def test_staff_listing_is_scoped(self, dictionaries, staff_token):
        await borrow_book_handler({"token": staff_token, "unique_code": "D0002"})

        result = await list_books_handler({"token": staff_token, "status": "available"})

        assert [b["unique_code"] for b in result["data"]["books"]] == ["D0002"]
        assert "with Jane Wanjiku" in text_of(result)

    async def test_empty_listing(self, dictionaries, staff_token):
        result = await list_books_handler({"token": staff_token})
        assert text_of(result) == "No books found."

    async def test_invalid_status(self, dictionaries, admin_token):
        result = await list_books_handler({"token": admin_token, "status": "missing"})
        assert result["isError"] is True


class TestUnreturnedReportTool:
    async def test_report(self, dictionaries, staff_token, admin_token):
        await borrow_book_handler({"token": staff_token, "unique_code": "D0001"})

        result = await unreturned_report_handler({"token": admin_token})

        assert result["data"]["report"] == [{"grade": "Grade 5", "count": 1}]
        assert "Grade 5: 1" in text_of(result)

    async def test_staff_forbidden(self, dictionaries, staff_token):
        result = await unreturned_report_handler({"token": staff_token})

        assert result["isError"] is True
        assert text_of(result).startswith("Forbidden")
