"""
Response encoder — signed CRL bytes → caller-requested wire text.

  pem → a single "X509 CRL" PEM block (asn1crypto armor)
  der → standard padded base64 of the raw DER bytes

The format token is parsed up front, before any cryptographic work, so an
unknown token fails the request without touching issuer key material.
"""

from __future__ import annotations

import base64

from asn1crypto import pem
from railway import ErrorCode
from railway.result import Result

from crl_resigner.domain.models import CrlFormat

PEM_CRL_TYPE = "X509 CRL"


def parse_crl_format(requested: str) -> Result[CrlFormat]:
    """Case-insensitive "pem" / "der"; anything else is a validation error."""
    try:
        return Result.success(CrlFormat(requested.lower()))
    except ValueError:
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"unknown format value of {requested}")


def encode_crl(crl_der: bytes, crl_format: CrlFormat) -> str:
    if crl_format is CrlFormat.DER:
        return base64.b64encode(crl_der).decode("ascii")
    return pem.armor(PEM_CRL_TYPE, crl_der).decode("ascii")
