"""Domain errors and best-effort results.

Services raise ``DomainError`` subclasses; the HTTP layer maps each
``ErrorCode`` to a status code. Messages are safe to show to callers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_USED = "ALREADY_USED"
    STORAGE_ERROR = "STORAGE_ERROR"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Raised when input is missing or malformed."""

    def __init__(self, message: str, fields: Iterable[str] = ()) -> None:
        super().__init__(code=ErrorCode.VALIDATION_ERROR, message=message)
        self.fields = tuple(fields)

    @classmethod
    def missing(cls, fields: Iterable[str]) -> "ValidationError":
        fields = list(fields)
        return cls(f"Missing required fields: {', '.join(fields)}", fields)


class ConflictError(DomainError):
    """Raised when an event slug is already taken."""

    def __init__(self, slug: str) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT,
            message="Slug already exists. Please use a different slug.",
        )
        self.slug = slug


class NotFoundError(DomainError):
    """Raised when an event, ticket or token does not exist."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message=message)


class AlreadyUsedError(DomainError):
    """Raised when a ticket has already been claimed."""

    def __init__(self, token: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_USED,
            message="This ticket has already been used",
        )
        self.token = token


class StorageError(DomainError):
    """Raised on database or filesystem failure. Detail is logged, never returned."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.STORAGE_ERROR, message="Internal server error")


@dataclass(frozen=True)
class Result:
    """Outcome of a best-effort side effect. Callers log it and move on."""

    ok: bool
    detail: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, detail: str = "") -> "Result":
        return cls(ok=True, detail=detail)

    @classmethod
    def failure(cls, error: BaseException, detail: str = "") -> "Result":
        return cls(ok=False, detail=detail or str(error), error=error)
