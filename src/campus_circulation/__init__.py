"""
Campus Library circulation server.

Tracks books, staff and borrow/return transactions for a multi-campus
school library, served as a REST API and as MCP tools.
"""

__version__ = "0.1.0"
