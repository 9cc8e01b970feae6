"""Service result base type.

Application services return results instead of raising: expected
domain failures travel back to the caller as data with an error code.
"""

from dataclasses import dataclass, field
from typing import Any, Self

from fulfillment.domain.exceptions import DomainError


@dataclass
class ServiceResult:
    """Common success/error fields shared by every service result."""

    success: bool = True
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: DomainError) -> Self:
        """Build a failed result from a domain error.

        Args:
            error: The domain error that stopped the operation.

        Returns:
            Result with ``success=False`` and the error's code and details.
        """
        return cls(
            success=False,
            error=error.message,
            error_code=error.error_code,
            details=error.details,
        )
