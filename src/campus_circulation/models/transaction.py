"""
Transaction model for the Campus Library circulation server.

A transaction is the append-only audit row written by every successful
borrow or return. ``user_id`` is always the borrower, even when an admin
issued or took back the book on their behalf.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TransactionType(str, Enum):
    """Kind of circulation event."""

    BORROW = "borrow"
    RETURN = "return"


class Transaction(BaseModel):
    """An immutable circulation event."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int = Field(..., ge=1)
    book_id: int = Field(..., ge=1)
    user_id: int = Field(..., ge=1, description="The borrower, not necessarily the actor")
    type: TransactionType
    date: datetime = Field(..., description="When the event was recorded")


class GradeCount(BaseModel):
    """One row of the unreturned-by-grade report."""

    grade: str
    count: int = Field(..., ge=1)
