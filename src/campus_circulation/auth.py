"""
Authentication for the Campus Library circulation server.

Credentials are hashed with Werkzeug; sessions are HS256 JSON Web Tokens
carrying the caller identity ``{id, role, name, campus}``. The rest of the
system only ever sees the resulting ``Caller`` and trusts it completely.
"""

import logging
from datetime import UTC, datetime, timedelta

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .config import ServerConfig, get_config
from .models.user import Role, User
from .policy import Caller

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
TOKEN_COOKIE = "token"


class AuthenticationError(Exception):
    """The request carries no usable session token."""

    def __init__(self, reason: str, missing: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.missing = missing


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def issue_token(user: User, config: ServerConfig | None = None) -> str:
    """Sign a session token for ``user``."""
    config = config or get_config()
    now = datetime.now(UTC)
    claims = {
        "id": user.id,
        "role": user.role.value,
        "name": user.name,
        "campus": user.campus,
        "iat": now,
        "exp": now + timedelta(hours=config.token_ttl_hours),
    }
    return jwt.encode(claims, config.jwt_secret, algorithm=TOKEN_ALGORITHM)


def decode_token(token: str | None, config: ServerConfig | None = None) -> Caller:
    """
    Verify ``token`` and return the caller it identifies.

    Raises:
        AuthenticationError: if the token is missing, expired, forged or
            does not carry a complete identity
    """
    if not token:
        raise AuthenticationError("Authentication required", missing=True)

    config = config or get_config()
    try:
        claims = jwt.decode(token, config.jwt_secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Session expired") from e
    except jwt.InvalidTokenError as e:
        logger.info("Rejected session token: %s", e)
        raise AuthenticationError("Invalid session token") from e

    try:
        return Caller(
            id=claims["id"],
            role=Role(claims["role"]),
            name=claims["name"],
            campus=claims["campus"],
        )
    except (KeyError, ValueError) as e:
        raise AuthenticationError("Invalid session token") from e
