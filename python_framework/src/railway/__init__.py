"""
Railway-Oriented Programming (ROP) Framework for Python.

Explicit, composable, functional error handling — no exceptions in business logic.

    from railway import Result, ErrorCode

    def validate_crl_number(value: int) -> Result[int]:
        if value < 0:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "crl_number parameter must be 0 or greater")
        return Result.success(value)

    result = validate_crl_number(5).map(lambda n: f"CRL #{n}")
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.result_failures import ResultFailures
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ResultFailures",
    "ResultAssertions",
]

__version__ = "1.1.0"
