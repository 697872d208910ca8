"""
Convenience factory methods for common Result failures.

Usage:
    from railway.result_failures import ResultFailures

    # Instead of:
    Result.failure(ErrorCode.VALIDATION_ERROR, "crls parameter must contain at least one CRL")

    # Write:
    ResultFailures.validation_error("crls parameter must contain at least one CRL")
"""

from __future__ import annotations

from railway.failure import ErrorCode
from railway.result import Result


class ResultFailures:
    """Factory methods for the failure types the resign pipeline produces."""

    @staticmethod
    def validation_error(message: str) -> Result:
        """Caller error — bad field, malformed CRL, foreign signature."""
        return Result.failure(ErrorCode.VALIDATION_ERROR, message)

    @staticmethod
    def not_found(resource_type: str, identifier: str) -> Result:
        """Resource doesn't exist."""
        return Result.failure(
            ErrorCode.NOT_FOUND,
            f"{resource_type} not found with identifier: {identifier}",
        )

    @staticmethod
    def technical_error(message: str, exception: BaseException | None = None) -> Result:
        """Internal fault — extension encoding or signing failed."""
        return Result.failure(ErrorCode.TECHNICAL_ERROR, message, exception)

    @staticmethod
    def configuration_error(message: str, exception: BaseException | None = None) -> Result:
        """Issuer store or key material misconfigured."""
        return Result.failure(ErrorCode.CONFIGURATION_ERROR, message, exception)

    @staticmethod
    def timeout_error(message: str) -> Result:
        """Operation cancelled or exceeded its deadline."""
        return Result.failure(ErrorCode.TIMEOUT_ERROR, message)
