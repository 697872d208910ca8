"""
Unit tests for the ROP pipeline that resigns a set of CRLs.

Uses a static IssuerResolver double (or a MagicMock where only call
tracking matters) and a fixed clock, so the pipeline runs in isolation
from the issuer store and wall time.

Stages:
  1. validate_resign_request(fields) → ResignRequest
  2. decode_pem_crls(crls) → [InputRevocationList]
  3. issuer_resolver.resolve(ref, CRL_SIGNING) → IssuerMaterial
  4. verify_crls_from_issuer(cert, crls) → all-or-nothing
  5. reconcile → sign → encode → OutputCRL

Test categories:
  - Request validation: every field rule, format checked before anything else
  - Success track: merged entries, CRL Number, validity window, warnings
  - Failure at each stage with short-circuit of later stages
  - Delta CRL Indicator boundary
"""

from __future__ import annotations

import base64
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from asn1crypto import pem
from cryptography import x509
from railway import ErrorCode, Result, ResultAssertions

from crl_resigner.domain.cancellation import Cancellation
from crl_resigner.domain.models import CrlFormat, KeyUsage, OutputCRL, ResignRequest
from crl_resigner.pipeline import run_resign_pipeline, validate_resign_request
from tests.conftest import T0, StaticIssuerResolver, TestIssuer, fixed_clock, make_crl_pem

SIGNED_AT = T0 + timedelta(days=2)


def _request(crls: list[str], **overrides) -> ResignRequest:
    fields = {
        "issuer_ref": "default",
        "crl_number": 5,
        "crls": crls,
        "next_update": "1h",
        "format": "pem",
    }
    fields.update(overrides)
    return ResultAssertions.assert_success(validate_resign_request(**fields))


def _run(request: ResignRequest, resolver, **kwargs) -> Result[OutputCRL]:
    return run_resign_pipeline(request, resolver, clock=fixed_clock(SIGNED_AT), **kwargs)


def _decode_output(output: OutputCRL, crl_format: CrlFormat = CrlFormat.PEM) -> x509.CertificateRevocationList:
    if crl_format is CrlFormat.DER:
        return x509.load_der_x509_crl(base64.b64decode(output.crl, validate=True))
    _, _, der = pem.unarmor(output.crl.encode("ascii"))
    return x509.load_der_x509_crl(der)


# ─────────────────────── Request Validation ───────────────────────


class TestValidateResignRequest:
    """Field-level checks performed before any CRL is decoded."""

    def test_valid_request_uses_defaults(self) -> None:
        request = ResultAssertions.assert_success(
            validate_resign_request(issuer_ref="default", crl_number=0, crls=["x"])
        )

        assert request.next_update == timedelta(hours=72)
        assert request.delta_crl_base_number == -1
        assert request.format is CrlFormat.PEM
        assert request.is_delta is False

    def test_unknown_format_rejected_first(self) -> None:
        """
        GIVEN format "xml" together with other invalid fields
        WHEN validated
        THEN the format error is the one reported.
        """
        result = validate_resign_request(
            issuer_ref="",
            crl_number=-1,
            crls=[],
            next_update="bogus",
            format="xml",
        )

        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        assert result.error().message == "unknown format value of xml"

    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            ({"crl_number": -1}, "crl_number parameter must be 0 or greater"),
            ({"delta_crl_base_number": -2}, "delta_crl_base_number parameter must be -1 or greater"),
            ({"next_update": "0s"}, "next_update parameter must be greater than 0"),
            ({"next_update": "-1h"}, "next_update parameter must be greater than 0"),
            ({"next_update": "soon"}, "invalid value for next_update"),
            ({"next_update": "100000000h"}, "invalid value for next_update"),
            ({"next_update": ""}, "invalid value for next_update"),
            ({"issuer_ref": "   "}, "issuer_ref parameter cannot be blank"),
            ({"crls": []}, "crls parameter must contain at least one CRL"),
        ],
    )
    def test_field_rules(self, overrides: dict, expected: str) -> None:
        fields = {"issuer_ref": "default", "crl_number": 1, "crls": ["x"], "next_update": "72h"}
        fields.update(overrides)

        result = validate_resign_request(**fields)

        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, expected)

    def test_delta_base_zero_is_delta(self) -> None:
        request = ResultAssertions.assert_success(
            validate_resign_request(issuer_ref="default", crl_number=1, crls=["x"], delta_crl_base_number=0)
        )

        assert request.is_delta is True


# ─────────────────────── Success Track ───────────────────────


class TestPipelineSuccess:
    def test_two_crls_merge_into_one(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        """
        GIVEN CRL-A revoking 100 at T and CRL-B revoking 100 at T and 200 at T+1h
        WHEN resigned with crl_number=5, next_update=1h, format=pem
        THEN one PEM CRL with serials {100, 200}, Number 5, a 1h window and no warnings.
        """
        crl_a = make_crl_pem(issuer, [(100, T0)])
        crl_b = make_crl_pem(issuer, [(100, T0), (200, T0 + timedelta(hours=1))], crl_number=2)

        output = ResultAssertions.assert_success(_run(_request([crl_a, crl_b]), resolver))
        crl = _decode_output(output)

        assert {r.serial_number for r in crl} == {100, 200}
        assert crl.get_revoked_certificate_by_serial_number(100).revocation_date_utc == T0
        assert crl.extensions.get_extension_for_class(x509.CRLNumber).value.crl_number == 5
        assert crl.last_update_utc == SIGNED_AT
        assert crl.next_update_utc == SIGNED_AT + timedelta(hours=1)
        assert crl.is_signature_valid(issuer.certificate.public_key())
        assert output.warnings == ()

    def test_resolver_asked_for_crl_signing(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        ResultAssertions.assert_success(_run(_request([make_crl_pem(issuer, [(1, T0)])]), resolver))

        assert resolver.calls == [("default", KeyUsage.CRL_SIGNING)]

    def test_conflicting_times_produce_warning(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        """
        GIVEN serial 12345 revoked at T in one CRL and at T+1h in another
        WHEN resigned
        THEN the earliest time wins and exactly one warning names the serial.
        """
        crls = [
            make_crl_pem(issuer, [(12345, T0 + timedelta(hours=1))]),
            make_crl_pem(issuer, [(12345, T0)]),
        ]

        output = ResultAssertions.assert_success(_run(_request(crls), resolver))

        assert output.warnings == (
            "Duplicate serial 12345 with different revocation times detected, using oldest revocation time",
        )
        crl = _decode_output(output)
        assert crl.get_revoked_certificate_by_serial_number(12345).revocation_date_utc == T0

    def test_tolerance_suppresses_warning(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        crls = [
            make_crl_pem(issuer, [(7, T0 + timedelta(seconds=30))]),
            make_crl_pem(issuer, [(7, T0)]),
        ]

        output = ResultAssertions.assert_success(_run(_request(crls), resolver, tolerance=timedelta(minutes=1)))

        assert output.warnings == ()

    def test_der_output_is_base64(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        request = _request([make_crl_pem(issuer, [(9, T0)])], format="DER")

        output = ResultAssertions.assert_success(_run(request, resolver))
        crl = _decode_output(output, CrlFormat.DER)

        assert [r.serial_number for r in crl] == [9]

    def test_output_feeds_back_as_input(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        """
        GIVEN the PEM output of a previous resign
        WHEN resigned again with a new CRL Number
        THEN the revoked set is unchanged.
        """
        first = ResultAssertions.assert_success(
            _run(_request([make_crl_pem(issuer, [(1, T0), (2, T0)])]), resolver)
        )

        second = ResultAssertions.assert_success(_run(_request([first.crl], crl_number=6), resolver))
        crl = _decode_output(second)

        assert sorted(r.serial_number for r in crl) == [1, 2]
        assert crl.extensions.get_extension_for_class(x509.CRLNumber).value.crl_number == 6


# ─────────────────────── Delta CRL Indicator ───────────────────────


class TestDeltaIndicator:
    @pytest.mark.parametrize(("base", "expected_count"), [(-1, 0), (0, 1), (3, 1)])
    def test_indicator_boundary(
        self,
        issuer: TestIssuer,
        resolver: StaticIssuerResolver,
        base: int,
        expected_count: int,
    ) -> None:
        request = _request([make_crl_pem(issuer, [(1, T0)])], delta_crl_base_number=base)

        crl = _decode_output(ResultAssertions.assert_success(_run(request, resolver)))

        indicators = [e for e in crl.extensions if isinstance(e.value, x509.DeltaCRLIndicator)]
        assert len(indicators) == expected_count
        if expected_count:
            assert indicators[0].value.crl_number == base


# ─────────────────────── Failure Track ───────────────────────


class TestPipelineFailures:
    def test_unknown_format_never_reaches_resolver(self) -> None:
        """
        GIVEN format "xml"
        WHEN the request is validated
        THEN it fails and the issuer resolver is never consulted.
        """
        resolver = MagicMock()

        result = validate_resign_request(issuer_ref="default", crl_number=5, crls=["x"], format="xml")
        outcome = result.flat_map(lambda request: run_resign_pipeline(request, resolver))

        ResultAssertions.assert_failure(outcome, ErrorCode.VALIDATION_ERROR)
        resolver.resolve.assert_not_called()

    def test_decode_failure_short_circuits(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        crls = [make_crl_pem(issuer, [(1, T0)]), "not a pem block"]

        result = _run(_request(crls), resolver)

        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        ResultAssertions.assert_failure_message_contains(result, "failed decoding crl 1")
        assert resolver.calls == []

    def test_unknown_issuer_is_not_found(self, issuer: TestIssuer) -> None:
        result = _run(_request([make_crl_pem(issuer, [(1, T0)])]), StaticIssuerResolver(None))

        ResultAssertions.assert_failure(result, ErrorCode.NOT_FOUND)

    def test_foreign_crl_rejects_whole_request(
        self,
        issuer: TestIssuer,
        other_issuer: TestIssuer,
        resolver: StaticIssuerResolver,
    ) -> None:
        """
        GIVEN one CRL by the issuer and one by a different authority
        WHEN resigned
        THEN the request fails naming index 1 and no CRL is produced.
        """
        crls = [make_crl_pem(issuer, [(1, T0)]), make_crl_pem(other_issuer, [(2, T0)])]

        result = _run(_request(crls), resolver)

        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        assert result.error().message == "CRL index: 1 was not signed by requested issuer"

    def test_cancelled_request_stops(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        token = Cancellation()
        token.cancel()

        result = _run(_request([make_crl_pem(issuer, [(1, T0)])]), resolver, cancellation=token)

        ResultAssertions.assert_failure(result, ErrorCode.TIMEOUT_ERROR)
        assert resolver.calls == []

    def test_expired_deadline_is_timeout(self, issuer: TestIssuer, resolver: StaticIssuerResolver) -> None:
        result = _run(
            _request([make_crl_pem(issuer, [(1, T0)])]),
            resolver,
            cancellation=Cancellation.with_timeout(-1.0),
        )

        ResultAssertions.assert_failure(result, ErrorCode.TIMEOUT_ERROR)
