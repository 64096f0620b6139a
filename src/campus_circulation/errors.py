"""
Error taxonomy for the Campus Library circulation server.

Every failure a caller can see carries a stable ``kind`` and a human-readable
``reason``. The REST layer maps ``kind`` to an HTTP status and the MCP tools
report it in an error result; nothing is retried.
"""


class RepositoryException(Exception):
    """Base exception for store and circulation failures."""

    kind = "Internal"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict[str, str]:
        return {"error": self.reason, "kind": self.kind}


class NotFoundError(RepositoryException):
    """A unique_code, email or id lookup found nothing."""

    kind = "NotFound"


class InvalidStateError(RepositoryException):
    """The book is not in the status the action requires."""

    kind = "InvalidState"


class ForbiddenError(RepositoryException):
    """The caller is authenticated but the policy denies the action."""

    kind = "Forbidden"


class DuplicateError(RepositoryException):
    """A uniqueness constraint (email, unique_code) would be violated."""

    kind = "Conflict"


class InvalidInputError(RepositoryException):
    """Malformed bulk range or request field."""

    kind = "InvalidInput"
