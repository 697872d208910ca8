"""
Failure description — structured error information for the failure track.

Every failure carries an ErrorCode, a caller-readable message, an optional
exception and a timestamp. The codes are split in two families:

  - caller errors: the request was wrong (bad field, bad CRL, wrong issuer)
  - internal errors: the environment or key material is broken

The HTTP surface uses `ErrorCode.is_internal` to decide whether a message may
be shown to the caller or must be masked and only logged.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Caller errors (4xx): VALIDATION_ERROR, NOT_FOUND
    Internal errors (5xx): TECHNICAL_ERROR, CONFIGURATION_ERROR, UNKNOWN_ERROR
    TIMEOUT_ERROR is neither: the caller went away or the deadline expired.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Invalid field, malformed CRL, CRL not signed by the issuer (→ 400)."""

    NOT_FOUND = "NOT_FOUND"
    """Issuer reference does not resolve (→ 404)."""

    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    """Operation cancelled or deadline exceeded (→ 504)."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Extension encoding or signing failure (→ 500)."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Issuer store misconfigured or key material unreadable (→ 500)."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures (→ 500)."""

    @property
    def is_internal(self) -> bool:
        """True for errors whose detail must not be exposed to the caller."""
        return self in _INTERNAL_CODES


_INTERNAL_CODES = frozenset(
    {ErrorCode.TECHNICAL_ERROR, ErrorCode.CONFIGURATION_ERROR, ErrorCode.UNKNOWN_ERROR}
)


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "crl_number parameter must be 0 or greater")
    >>> desc.code
    <ErrorCode.VALIDATION_ERROR: 'VALIDATION_ERROR'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__)
        )
        return f"{self.message}\n{tb}"
