"""
MCP Tools for the Campus Library circulation server.

Each tool is a dictionary with its name, description, JSON Schema and async
handler. The server registers every entry of ``all_tools`` with FastMCP.
"""

from .circulation import borrow_book, list_books, return_book, unreturned_report

all_tools = [
    list_books,
    borrow_book,
    return_book,
    unreturned_report,
]

__all__ = [
    "all_tools",
    "borrow_book",
    "list_books",
    "return_book",
    "unreturned_report",
]
