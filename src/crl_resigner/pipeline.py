"""
Pipeline — the core ROP pipeline that resigns a set of CRLs.

Domain layer — PURE BUSINESS LOGIC. All I/O (issuer key material, time) is
injected via ports.

The pipeline connects stages via flat_map, forming a railway:

  validate_resign_request(fields)        format checked first, no crypto yet
    → decode_pem_crls(request.crls)      one PEM block per string
      → issuer_resolver.resolve(ref)     CRL_SIGNING usage
        → verify_crls_from_issuer()      all-or-nothing
          → reconcile_revocations()      earliest revocation wins
            → build_and_sign_crl()       fresh thisUpdate/nextUpdate
              → encode_crl()             pem / base64 der

Each stage returns Result[T]. Failures short-circuit through the railway;
no partial CRL is ever produced.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta

import structlog
from railway import ErrorCode, FailureDescription, ResultFailures
from railway.result import Result

from crl_resigner.adapters.crl_signer import build_and_sign_crl
from crl_resigner.adapters.pem_decoder import decode_pem_crls
from crl_resigner.adapters.signature_verifier import verify_crls_from_issuer
from crl_resigner.domain.cancellation import Cancellation
from crl_resigner.domain.models import (
    CrlFormat,
    InputRevocationList,
    IssuerMaterial,
    KeyUsage,
    OutputCRL,
    ReconciliationOutcome,
    ResignRequest,
)
from crl_resigner.domain.ports import Clock, IssuerResolver, system_clock
from crl_resigner.durations import parse_duration
from crl_resigner.encoder import encode_crl, parse_crl_format
from crl_resigner.reconciler import reconcile_revocations

log = structlog.get_logger()

CRL_NUMBER_PARAM = "crl_number"
DELTA_CRL_BASE_NUMBER_PARAM = "delta_crl_base_number"
NEXT_UPDATE_PARAM = "next_update"
CRLS_PARAM = "crls"
ISSUER_REF_PARAM = "issuer_ref"


# ─────────────────────── Request validation ───────────────────────


def _parse_next_update(value: str) -> Result[timedelta]:
    return (
        parse_duration(value)
        .map_failure(
            lambda err: FailureDescription(err.code, f"invalid value for {NEXT_UPDATE_PARAM}: {err.message}")
        )
        .ensure(
            lambda offset: offset > timedelta(0),
            ErrorCode.VALIDATION_ERROR,
            f"{NEXT_UPDATE_PARAM} parameter must be greater than 0",
        )
    )


def validate_resign_request(
    issuer_ref: str,
    crl_number: int,
    crls: Sequence[str],
    delta_crl_base_number: int = -1,
    next_update: str = "72h",
    format: str = "pem",
) -> Result[ResignRequest]:
    """
    Check every request field and build a ResignRequest.

    The format token is validated first so an unknown format never reaches
    any cryptographic stage.
    """

    def _build(crl_format: CrlFormat, offset: timedelta) -> Result[ResignRequest]:
        if crl_number < 0:
            return ResultFailures.validation_error(f"{CRL_NUMBER_PARAM} parameter must be 0 or greater")
        if delta_crl_base_number < -1:
            return ResultFailures.validation_error(
                f"{DELTA_CRL_BASE_NUMBER_PARAM} parameter must be -1 or greater"
            )
        if not issuer_ref or not issuer_ref.strip():
            return ResultFailures.validation_error(f"{ISSUER_REF_PARAM} parameter cannot be blank")
        if not crls:
            return ResultFailures.validation_error(f"{CRLS_PARAM} parameter must contain at least one CRL")
        return Result.success(
            ResignRequest(
                issuer_ref=issuer_ref,
                crl_number=crl_number,
                next_update=offset,
                crls=tuple(crls),
                delta_crl_base_number=delta_crl_base_number,
                format=crl_format,
            )
        )

    return parse_crl_format(format).flat_map(
        lambda crl_format: _parse_next_update(next_update).flat_map(
            lambda offset: _build(crl_format, offset)
        )
    )


# ─────────────────────── Pipeline ───────────────────────


@dataclass(frozen=True, slots=True)
class _Authenticated:
    """Decoded CRLs that verified under the resolved issuer."""

    issuer: IssuerMaterial
    crls: list[InputRevocationList]


def _resolve_and_verify(
    request: ResignRequest,
    crls: list[InputRevocationList],
    issuer_resolver: IssuerResolver,
    cancellation: Cancellation,
) -> Result[_Authenticated]:
    return (
        cancellation.check("resolving issuer")
        .flat_map(lambda _: issuer_resolver.resolve(request.issuer_ref, KeyUsage.CRL_SIGNING))
        .flat_map(
            lambda issuer: verify_crls_from_issuer(issuer.certificate, crls).map(
                lambda verified: _Authenticated(issuer=issuer, crls=verified)
            )
        )
    )


def _sign_and_encode(
    request: ResignRequest,
    authenticated: _Authenticated,
    outcome: ReconciliationOutcome,
    clock: Clock,
    cancellation: Cancellation,
) -> Result[OutputCRL]:
    return build_and_sign_crl(
        outcome.revocations,
        authenticated.issuer,
        crl_number=request.crl_number,
        delta_crl_base_number=request.delta_crl_base_number,
        next_update=request.next_update,
        clock=clock,
        cancellation=cancellation,
    ).map(
        lambda signed: OutputCRL(
            crl=encode_crl(signed.der, request.format),
            warnings=outcome.warnings,
        )
    )


def run_resign_pipeline(
    request: ResignRequest,
    issuer_resolver: IssuerResolver,
    clock: Clock = system_clock,
    cancellation: Cancellation | None = None,
    tolerance: timedelta = timedelta(0),
) -> Result[OutputCRL]:
    """
    Execute the full resign operation for one validated request.

    Flow:
      1. Decode every PEM CRL (cancellation polled per CRL)
      2. Resolve the issuer for CRL signing
      3. Verify every CRL signature against the issuer certificate
      4. Reconcile revoked entries (warnings for conflicting times)
      5. Build and sign the new CRL (cancellation polled before signing)
      6. Encode as PEM or base64 DER

    Returns Result[OutputCRL] on success, or the failure of the first
    stage that failed.
    """
    cancellation = cancellation or Cancellation.never()

    def _reconcile_then_sign(authenticated: _Authenticated) -> Result[OutputCRL]:
        outcome = reconcile_revocations(authenticated.crls, tolerance)
        return _sign_and_encode(request, authenticated, outcome, clock, cancellation)

    return (
        decode_pem_crls(request.crls, cancellation)
        .peek(lambda crls: log.debug("pipeline.decoded", crls=len(crls), issuer_ref=request.issuer_ref))
        .flat_map(lambda crls: _resolve_and_verify(request, crls, issuer_resolver, cancellation))
        .flat_map(_reconcile_then_sign)
        .peek(
            lambda output: log.info(
                "pipeline.complete",
                issuer_ref=request.issuer_ref,
                crl_number=request.crl_number,
                inputs=len(request.crls),
                warnings=len(output.warnings),
                format=request.format.value,
            )
        )
        .peek_failure(
            lambda err: log.warning(
                "pipeline.failed",
                issuer_ref=request.issuer_ref,
                error_code=err.code.value,
                error=err.message,
            )
        )
    )
