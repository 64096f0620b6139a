"""Circulation Tools - Campus Library over MCP

Lets an MCP client drive the same circulation workflow as the REST API.
Every tool takes the caller's session ``token``; the access policy applies
exactly as it does for browser requests.

Tools:
- list_books: Role-scoped book listing with search and status filters
- borrow_book: Lend a book (admins may name the borrower)
- return_book: Take a book back
- unreturned_report: Borrowed books per grade (admin)
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..auth import AuthenticationError, decode_token
from ..database.session import session_scope
from ..errors import NotFoundError, RepositoryException
from ..models import BookStatus
from ..observability import trace_tool
from ..services import CatalogService, CirculationService, ReportService

logger = logging.getLogger(__name__)


def _format_error_response(error_type: str, details: str) -> dict[str, Any]:
    """Format error responses consistently across all tools."""
    return {"isError": True, "content": [{"type": "text", "text": f"{error_type}: {details}"}]}


def _log_operation(operation: str, **kwargs) -> None:
    """Log operation details for audit trail."""
    logger.info(
        "Operation: %s | Details: %s", operation, " | ".join(f"{k}={v}" for k, v in kwargs.items())
    )


class TokenInput(BaseModel):
    """Every tool call carries the caller's session token."""

    token: str = Field(..., description="Session token issued by /api/auth/login", min_length=1)


class ListBooksInput(TokenInput):
    """Input schema for book listings."""

    search: str | None = Field(
        default=None,
        description="Case-insensitive match on title or unique code",
        examples=["atlas", "D00"],
    )

    status: BookStatus | None = Field(
        default=None,
        description="Only books in this status (admins only; ignored for staff)",
    )


class BorrowBookInput(TokenInput):
    """Input schema for borrowing."""

    unique_code: str = Field(
        ...,
        description="Scannable code of the book",
        min_length=1,
        examples=["D0001", "HS0042"],
    )

    user_id: int | None = Field(
        default=None,
        description="Borrower to issue the book to (admins only)",
        ge=1,
    )


class ReturnBookInput(TokenInput):
    """Input schema for returns."""

    unique_code: str = Field(..., description="Scannable code of the book", min_length=1)


def _run(operation: str, params: TokenInput, action) -> dict[str, Any]:
    """Authenticate, run ``action(session, caller)`` and map domain errors."""
    try:
        caller = decode_token(params.token)
    except AuthenticationError as e:
        return _format_error_response("Unauthenticated", e.reason)

    try:
        with session_scope() as session:
            return action(session, caller)
    except NotFoundError as e:
        _log_operation(f"{operation}_failed", caller=caller.id, error_type="not_found")
        return _format_error_response("Not found", e.reason)
    except RepositoryException as e:
        _log_operation(f"{operation}_failed", caller=caller.id, error_type=e.kind)
        return _format_error_response(e.kind, e.reason)


@trace_tool("list_books")
async def list_books_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """List the books visible to the caller.

    Client calls: tool.call("list_books", {"token": "...", "search": "atlas"})
    """
    try:
        params = ListBooksInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid list_books parameters: %s", e)
        return _format_error_response("Invalid parameters", str(e))

    def action(session, caller):
        books = CatalogService(session, caller).list_books(
            search=params.search, status=params.status
        )
        if books:
            lines = [
                f"- {b.unique_code}: {b.title} [{b.status.value}]"
                + (f" with {b.borrower_name}, due {b.due_date:%B %d, %Y}" if b.is_borrowed else "")
                for b in books
            ]
            text = f"Found {len(books)} book(s):\n" + "\n".join(lines)
        else:
            text = "No books found."
        return {
            "content": [{"type": "text", "text": text}],
            "data": {"books": [b.model_dump(mode="json") for b in books]},
        }

    return _run("list_books", params, action)


@trace_tool("borrow_book")
async def borrow_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Borrow a book for the caller, or for ``user_id`` when the caller is an admin.

    Client calls: tool.call("borrow_book", {"token": "...", "unique_code": "D0001"})
    """
    try:
        params = BorrowBookInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid borrow parameters: %s", e)
        return _format_error_response("Invalid parameters", str(e))

    def action(session, caller):
        book = CirculationService(session, caller).borrow(params.unique_code, params.user_id)
        _log_operation(
            "borrow_book_success",
            unique_code=book.unique_code,
            borrower_id=book.borrower_id,
            caller=caller.id,
        )
        message = (
            f"Successfully borrowed '{book.title}' ({book.unique_code}) "
            f"for {book.borrower_name}. Due date: {book.due_date:%B %d, %Y}"
        )
        return {
            "content": [{"type": "text", "text": message}],
            "data": {"book": book.model_dump(mode="json")},
        }

    return _run("borrow_book", params, action)


@trace_tool("return_book")
async def return_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a book. Staff may only return books they hold.

    Client calls: tool.call("return_book", {"token": "...", "unique_code": "D0001"})
    """
    try:
        params = ReturnBookInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid return parameters: %s", e)
        return _format_error_response("Invalid parameters", str(e))

    def action(session, caller):
        book = CirculationService(session, caller).return_book(params.unique_code)
        _log_operation("return_book_success", unique_code=book.unique_code, caller=caller.id)
        return {
            "content": [
                {
                    "type": "text",
                    "text": f"Successfully returned '{book.title}' ({book.unique_code}).",
                }
            ],
            "data": {"book": book.model_dump(mode="json")},
        }

    return _run("return_book", params, action)


@trace_tool("unreturned_report")
async def unreturned_report_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Count currently borrowed books per borrower grade.

    Client calls: tool.call("unreturned_report", {"token": "..."})
    """
    try:
        params = TokenInput.model_validate(arguments)
    except ValidationError as e:
        return _format_error_response("Invalid parameters", str(e))

    def action(session, caller):
        report = ReportService(session, caller).unreturned_by_grade()
        if report:
            text = "Unreturned books by grade:\n" + "\n".join(
                f"- {row.grade}: {row.count}" for row in report
            )
        else:
            text = "No unreturned books."
        return {
            "content": [{"type": "text", "text": text}],
            "data": {"report": [row.model_dump() for row in report]},
        }

    return _run("unreturned_report", params, action)


list_books = {
    "name": "list_books",
    "description": (
        "List library books. Admins see the whole catalog and may filter by status; "
        "staff see only the books they currently hold. Optional search matches title "
        "or unique code."
    ),
    "inputSchema": ListBooksInput.model_json_schema(),
    "handler": list_books_handler,
}

borrow_book = {
    "name": "borrow_book",
    "description": (
        "Borrow an available book by its unique code. The loan is due in 14 days. "
        "Admins may issue the book to another user with user_id."
    ),
    "inputSchema": BorrowBookInput.model_json_schema(),
    "handler": borrow_book_handler,
}

return_book = {
    "name": "return_book",
    "description": (
        "Return a borrowed book by its unique code. Staff may only return books they "
        "borrowed; admins may return any book."
    ),
    "inputSchema": ReturnBookInput.model_json_schema(),
    "handler": return_book_handler,
}

unreturned_report = {
    "name": "unreturned_report",
    "description": "Admin report: number of currently borrowed books per borrower grade.",
    "inputSchema": TokenInput.model_json_schema(),
    "handler": unreturned_report_handler,
}
