"""
User models for the Campus Library circulation server.

Users are the staff and administrators who borrow and issue books. A user
belongs to exactly one campus; staff usually carry a grade, which is only
used for reporting.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

CAMPUSES = (
    "Main School",
    "Kamulu",
    "Kindergarden",
    "Diani",
    "International",
)

GRADES = (
    "Grade 1",
    "Grade 2",
    "Grade 3",
    "Grade 4",
    "Grade 5",
    "Grade 6",
    "Grade 7",
    "Grade 8",
    "High School",
)


class Role(str, Enum):
    """Role of a user. Immutable once the user exists."""

    ADMIN = "admin"
    STAFF = "staff"


def _validate_campus(v: str) -> str:
    if v not in CAMPUSES:
        raise ValueError(f"Unknown campus '{v}'. Expected one of: {', '.join(CAMPUSES)}")
    return v


class User(BaseModel):
    """
    Public view of a user.

    The password hash never leaves the database layer, so this model is safe
    to serialize into any response.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Stable user identifier", ge=1)

    name: str = Field(..., description="Display name", min_length=1, max_length=200)

    email: EmailStr = Field(..., description="Login email, unique across all campuses")

    role: Role = Field(..., description="admin or staff")

    campus: str = Field(..., description="Campus the user belongs to")

    grade: str | None = Field(
        None,
        description="Grade taught by a staff member; used by the unreturned report",
        examples=["Grade 5", "High School"],
    )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserCreate(BaseModel):
    """Fields accepted when creating a user, by registration or by an admin."""

    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=200)
    role: Role = Role.STAFF
    campus: str
    grade: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("campus")
    @classmethod
    def validate_campus(cls, v: str) -> str:
        return _validate_campus(v)

    @field_validator("grade")
    @classmethod
    def blank_grade_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()
