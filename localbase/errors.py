"""
Error types for Localbase.

This module defines every exception raised inside the engine:
- LocalbaseError: Base exception
- NotFoundError: Referenced row, account or order is absent
- ConflictError: Duplicate registration or already-terminal state
- UnsupportedError: Unknown RPC name
- AuthError: Invalid credentials or missing session
- RowValidationError: Row rejected by table schema validation
- StorageError: Key-value backend failure
- QueryError: Malformed projection or query argument

Invariants:
    - All errors inherit from LocalbaseError
    - Errors never cross the engine boundary as exceptions; builders, auth
      methods and RPC calls convert them with to_descriptor()
    - status mirrors the HTTP status the simulated backend would answer with
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ErrorDescriptor:
    """Error payload carried by a failed APIResponse.

    Attributes:
        message: Human-readable error message
        details: Extra context (empty string when there is none)
        hint: Suggested fix (empty string when there is none)
        code: Error code for programmatic handling
    """

    message: str
    details: str = ""
    hint: str = ""
    code: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary representation."""
        return {
            "message": self.message,
            "details": self.details,
            "hint": self.hint,
            "code": self.code,
        }


class LocalbaseError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        status: HTTP-like status code
        details: Additional error context
        hint: Suggested fix
    """

    status = 500
    status_text = "Internal Server Error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or str(self.status)
        self.details = details or {}
        self.hint = hint

    def to_descriptor(self) -> ErrorDescriptor:
        """Convert to the error payload returned to callers."""
        details = ", ".join(f"{k}={v}" for k, v in self.details.items() if v is not None)
        return ErrorDescriptor(
            message=self.message,
            details=details,
            hint=self.hint,
            code=self.code,
        )


class NotFoundError(LocalbaseError):
    """Referenced resource not found.

    Raised when:
    - Order doesn't exist
    - Account (profile) doesn't exist
    """

    status = 404
    status_text = "Not Found"

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: Any = None,
    ) -> None:
        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(LocalbaseError):
    """State conflict.

    Raised when:
    - Email is already registered
    - Order is already in a cancelled terminal state
    """

    status = 409
    status_text = "Conflict"


class UnsupportedError(LocalbaseError):
    """Operation is not supported (unknown RPC name)."""

    status = 404
    status_text = "Not Found"

    def __init__(self, message: str, function_name: str) -> None:
        super().__init__(message, details={"function": function_name})
        self.function_name = function_name


class AuthError(LocalbaseError):
    """Authentication failed or no session is present."""

    status = 400
    status_text = "Bad Request"

    def __init__(self, message: str, status: int | None = None) -> None:
        if status is not None:
            self.status = status
            self.status_text = "Unauthorized" if status == 401 else self.status_text
        super().__init__(message)


class RowValidationError(LocalbaseError):
    """Row failed table schema validation.

    Attributes:
        table: Table the row was written to
        errors: Individual validation messages
    """

    status = 400
    status_text = "Bad Request"

    def __init__(self, table: str, errors: list[str]) -> None:
        super().__init__(
            f"Invalid row for table '{table}': {'; '.join(errors)}",
            code="22P02",
            details={"table": table},
        )
        self.table = table
        self.errors = errors


class StorageError(LocalbaseError):
    """Key-value storage backend failed."""

    status = 500
    status_text = "Internal Server Error"

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, details={"key": key})
        self.key = key


class QueryError(LocalbaseError):
    """Malformed query (unparseable projection or bad argument)."""

    status = 400
    status_text = "Bad Request"

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(message, code="PGRST100", hint=hint)
