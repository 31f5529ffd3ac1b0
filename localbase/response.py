"""
Result envelope returned by every terminal engine operation.

Invariants:
    - error is None on success
    - data is None whenever error is set
    - Exceptions are converted here, never re-raised to the caller
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .errors import ErrorDescriptor, LocalbaseError

logger = logging.getLogger(__name__)


@dataclass
class APIResponse:
    """Envelope of a query, auth or RPC result.

    Attributes:
        data: Result payload (row, list of rows, dict or scalar)
        error: Error descriptor if the operation failed
        count: Affected or returned row count, when meaningful
        status: HTTP-like status code
        status_text: Reason phrase for status
    """

    data: Any = None
    error: ErrorDescriptor | None = None
    count: int | None = None
    status: int = 200
    status_text: str = "OK"

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @classmethod
    def failure(cls, exc: Exception) -> APIResponse:
        """Build an error envelope from an exception.

        Engine errors keep their own status and descriptor; anything else is
        logged and reported as an internal error.
        """
        if not isinstance(exc, LocalbaseError):
            logger.error(f"Unexpected engine error: {exc}", exc_info=exc)
            exc = LocalbaseError(str(exc) or type(exc).__name__)
        return cls(
            data=None,
            error=exc.to_descriptor(),
            count=None,
            status=exc.status,
            status_text=exc.status_text,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "data": self.data,
            "error": self.error.to_dict() if self.error else None,
            "count": self.count,
            "status": self.status,
            "statusText": self.status_text,
        }
