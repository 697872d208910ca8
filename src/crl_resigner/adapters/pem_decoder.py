"""
PEM CRL decoder adapter — request strings → InputRevocationList objects.

Adapter layer, built on:
  - asn1crypto: PEM unarmoring (block type, headers, DER payload)
  - cryptography (PyCA): X.509 CRL parsing

Each string must hold exactly one PEM block and nothing else except
surrounding whitespace. Anything appended or prepended (a second CRL,
trailing garbage) rejects the whole request, so a caller cannot smuggle
extra revocation state past the one-CRL-per-string contract.

Failures carry the index of the offending string.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog
from asn1crypto import pem
from cryptography import x509
from railway import ErrorCode, FailureDescription
from railway.result import Result

from crl_resigner.domain.cancellation import Cancellation
from crl_resigner.domain.models import InputRevocationList

log = structlog.get_logger()

_SINGLE_BLOCK_ONLY = "invalid crl; should be one PEM block only"
_BEGIN_LINE = re.compile(r"-----BEGIN ([A-Z0-9 ]+)-----\r?\n")


def _extract_single_block(raw_crl: str) -> bytes:
    """
    Return the DER payload of the only PEM block in `raw_crl`.

    Raises ValueError when the text has no block, several blocks, or bytes
    outside the block. The first END line must close the BEGIN line's type
    and must be the last thing in the text.
    """
    text = raw_crl.strip()
    begin = _BEGIN_LINE.match(text)
    if begin is None:
        raise ValueError(_SINGLE_BLOCK_ONLY)

    end_at = text.find("-----END ")
    if end_at == -1 or text[end_at:] != f"-----END {begin.group(1)}-----":
        raise ValueError(_SINGLE_BLOCK_ONLY)
    if text.find("-----BEGIN ", begin.end()) != -1:
        raise ValueError(_SINGLE_BLOCK_ONLY)

    blocks = list(pem.unarmor(text.encode("ascii"), multiple=True))
    if len(blocks) != 1:
        raise ValueError(_SINGLE_BLOCK_ONLY)

    _, _, der_bytes = blocks[0]
    return der_bytes


def _decode_one(index: int, raw_crl: str) -> Result[InputRevocationList]:
    def _prefix(err: FailureDescription) -> FailureDescription:
        return FailureDescription(err.code, f"failed decoding crl {index}: {err.message}", err.exception)

    der = Result.from_computation(
        lambda: _extract_single_block(raw_crl),
        ErrorCode.VALIDATION_ERROR,
        "PEM decode error",
    )
    return (
        der.flat_map(
            lambda der_bytes: Result.from_computation(
                lambda: x509.load_der_x509_crl(der_bytes),
                ErrorCode.VALIDATION_ERROR,
                "CRL parse error",
            )
        )
        .map(lambda crl: InputRevocationList(index=index, crl=crl))
        .map_failure(_prefix)
    )


def decode_pem_crls(
    raw_crls: Sequence[str],
    cancellation: Cancellation | None = None,
) -> Result[list[InputRevocationList]]:
    """
    Decode every string into an InputRevocationList, preserving order.

    Stops at the first failure. Cancellation is polled before each CRL.
    """
    cancellation = cancellation or Cancellation.never()
    decoded: list[InputRevocationList] = []

    for index, raw_crl in enumerate(raw_crls):
        result = cancellation.check(f"decoding crl {index}").flat_map(
            lambda _, i=index, raw=raw_crl: _decode_one(i, raw)
        )
        if result.is_failure():
            log.info("decoder.rejected", index=index, error=result.error().message)
            return Result.failure_from(result.error())
        decoded.append(result.value())

    log.debug("decoder.complete", crls=len(decoded))
    return Result.success(decoded)
