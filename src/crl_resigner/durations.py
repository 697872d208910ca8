"""
Duration strings — "72h", "1h30m", "90s", "1.5h".

Accepts the same grammar as Go's time.ParseDuration, which is the format
operators already use for CRL expiry settings: an optional sign followed by
one or more `<decimal><unit>` pairs, with units ns, us (µs), ms, s, m, h.
The bare string "0" is also accepted.
"""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from railway import ErrorCode
from railway.result import Result

_UNIT_MICROSECONDS: dict[str, Decimal] = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),  # U+00B5 micro sign
    "μs": Decimal(1),  # U+03BC greek mu
    "ms": Decimal(1_000),
    "s": Decimal(1_000_000),
    "m": Decimal(60_000_000),
    "h": Decimal(3_600_000_000),
}

# int64 nanoseconds, in microseconds
_MAX_MICROSECONDS = Decimal("9223372036854775.807")
_MIN_MICROSECONDS = Decimal("-9223372036854775.808")

_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> Result[timedelta]:
    """Parse a Go-style duration string into a timedelta (microsecond resolution)."""
    value = text.strip()
    sign = 1
    if value[:1] in ("-", "+"):
        sign = -1 if value[0] == "-" else 1
        value = value[1:]

    if value == "0":
        return Result.success(timedelta(0))
    if not value:
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"invalid duration {text!r}")

    total = Decimal(0)
    position = 0
    while position < len(value):
        match = _COMPONENT.match(value, position)
        if match is None:
            if re.match(r"[\d.]+$", value[position:]):
                return Result.failure(ErrorCode.VALIDATION_ERROR, f"missing unit in duration {text!r}")
            return Result.failure(ErrorCode.VALIDATION_ERROR, f"invalid duration {text!r}")
        try:
            total += Decimal(match.group(1)) * _UNIT_MICROSECONDS[match.group(2)]
        except InvalidOperation:
            return Result.failure(ErrorCode.VALIDATION_ERROR, f"invalid duration {text!r}")
        position = match.end()

    signed_total = sign * total
    if not _MIN_MICROSECONDS <= signed_total <= _MAX_MICROSECONDS:
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"invalid duration {text!r}")
    return Result.success(timedelta(microseconds=int(signed_total)))
