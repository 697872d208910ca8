"""
Unit tests for the response encoder: format parsing and wire encoding.
"""

from __future__ import annotations

import base64

import pytest
from asn1crypto import pem
from railway import ErrorCode, ResultAssertions

from crl_resigner.domain.models import CrlFormat
from crl_resigner.encoder import encode_crl, parse_crl_format

SAMPLE_DER = bytes(range(200))


class TestParseCrlFormat:
    @pytest.mark.parametrize(
        ("token", "expected"),
        [("pem", CrlFormat.PEM), ("PEM", CrlFormat.PEM), ("der", CrlFormat.DER), ("DeR", CrlFormat.DER)],
    )
    def test_accepts_case_insensitive_tokens(self, token: str, expected: CrlFormat) -> None:
        assert ResultAssertions.assert_success(parse_crl_format(token)) is expected

    @pytest.mark.parametrize("token", ["xml", "", "pem ", "base64"])
    def test_rejects_unknown_tokens(self, token: str) -> None:
        """
        GIVEN a token other than pem/der
        WHEN parsed
        THEN VALIDATION_ERROR "unknown format value of <token>".
        """
        result = parse_crl_format(token)

        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        assert result.error().message == f"unknown format value of {token}"


class TestEncodeCrl:
    def test_der_is_padded_base64(self) -> None:
        encoded = encode_crl(SAMPLE_DER, CrlFormat.DER)

        assert encoded == base64.b64encode(SAMPLE_DER).decode("ascii")
        assert base64.b64decode(encoded, validate=True) == SAMPLE_DER

    def test_pem_is_single_x509_crl_block(self) -> None:
        """
        GIVEN DER bytes
        WHEN encoded as PEM
        THEN the text is one "X509 CRL" block wrapping exactly those bytes.
        """
        encoded = encode_crl(SAMPLE_DER, CrlFormat.PEM)

        assert encoded.startswith("-----BEGIN X509 CRL-----\n")
        assert encoded.rstrip().endswith("-----END X509 CRL-----")
        blocks = list(pem.unarmor(encoded.encode("ascii"), multiple=True))
        assert len(blocks) == 1
        assert blocks[0][0] == "X509 CRL"
        assert blocks[0][2] == SAMPLE_DER
