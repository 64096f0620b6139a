"""
User repository for the Campus Library circulation server.

Handles account creation, credential checks and password resets. Only the
methods here ever read ``password_hash``; everything returned is the public
``User`` model.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..auth import hash_password, verify_password
from ..database.schema import RoleEnum
from ..database.schema import User as UserDB
from ..models.user import User as UserModel
from ..models.user import UserCreate
from .repository import (
    BaseRepository,
    DuplicateError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository):
    """Repository for user data access."""

    def create(self, data: UserCreate) -> UserModel:
        """
        Create a user with a freshly hashed password.

        Raises:
            DuplicateError: If the email is already registered
        """
        if self._get_row_by_email(data.email) is not None:
            raise DuplicateError("Email already exists")

        user = UserDB(
            name=data.name,
            email=data.email,
            password_hash=hash_password(data.password),
            role=RoleEnum(data.role.value),
            campus=data.campus,
            grade=data.grade,
        )
        self.session.add(user)

        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateError("Email already exists") from e

        safe_commit(self.session, "create user")
        logger.info("Created %s user %s (%s)", data.role.value, user.id, data.campus)
        return self._to_model(user)

    def get_by_id(self, user_id: int) -> UserModel | None:
        user = safe_query(
            self.session,
            lambda s: s.get(UserDB, user_id),
            "Failed to get user by ID",
        )
        return self._to_model(user) if user is not None else None

    def get_by_email(self, email: str) -> UserModel | None:
        user = self._get_row_by_email(email)
        return self._to_model(user) if user is not None else None

    def list_all(self) -> list[UserModel]:
        """All users ordered by id, without credential fields."""
        rows = safe_query(
            self.session,
            lambda s: s.execute(select(UserDB).order_by(UserDB.id)).scalars().all(),
            "Failed to list users",
        )
        return [self._to_model(row) for row in rows]

    def authenticate(self, email: str, password: str, campus: str) -> UserModel:
        """
        Check a login attempt.

        Raises:
            NotFoundError: If no user has this email
            ForbiddenError: If the account belongs to another campus
            InvalidInputError: If the password does not match
        """
        user = self._get_row_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        if user.campus != campus:
            raise ForbiddenError(f"This account belongs to {user.campus} campus, not {campus}.")

        if not verify_password(user.password_hash, password):
            logger.info("Failed login for user %s", user.id)
            raise InvalidInputError("Invalid password")

        return self._to_model(user)

    def reset_password(self, email: str, new_password: str) -> None:
        """
        Replace the stored credential.

        Raises:
            NotFoundError: If no user has this email
        """
        user = self._get_row_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        user.password_hash = hash_password(new_password)
        safe_commit(self.session, "reset password")
        logger.info("Password reset for user %s", user.id)

    def _get_row_by_email(self, email: str) -> UserDB | None:
        normalized = email.strip().lower()
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(UserDB).where(UserDB.email == normalized)
            ).scalar_one_or_none(),
            "Failed to get user by email",
        )

    def _to_model(self, user: UserDB) -> UserModel:
        return UserModel(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role.value,
            campus=user.campus,
            grade=user.grade,
        )
