"""
CRL builder & signer adapter — reconciled revocations → signed DER CRL.

Adapter layer, built on cryptography's CertificateRevocationListBuilder.

The new CRL carries:
  - issuer name      = issuer certificate subject
  - thisUpdate       = clock() at build time
  - nextUpdate       = thisUpdate + requested offset
  - CRL Number       = requested crl_number
  - Authority Key Identifier of the issuer
  - Delta CRL Indicator (critical) only when a base number ≥ 0 is given
  - one entry (serial + revocation date) per reconciled revocation

Failures here are INTERNAL (TECHNICAL_ERROR): by the time we sign, the
request has been validated and the CRLs authenticated, so a failure points
at the environment or the key material, not at the caller.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from railway import ErrorCode
from railway.result import Result

from crl_resigner.domain.cancellation import Cancellation
from crl_resigner.domain.models import IssuerMaterial, ReconciledRevocationSet, SignedCrl
from crl_resigner.domain.ports import Clock, system_clock

log = structlog.get_logger()


def create_delta_crl_indicator(base_crl_number: int) -> x509.Extension[x509.DeltaCRLIndicator]:
    """Delta CRL Indicator extension pointing at `base_crl_number` (RFC 5280 §5.2.4: critical)."""
    indicator = x509.DeltaCRLIndicator(base_crl_number)
    return x509.Extension(indicator.oid, True, indicator)


def _authority_key_identifier(issuer_certificate: x509.Certificate) -> x509.AuthorityKeyIdentifier:
    try:
        ski = issuer_certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        return x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski.value)
    except x509.ExtensionNotFound:
        return x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_certificate.public_key())


def _revoked_entry(serial_number: int, revocation_time: datetime) -> x509.RevokedCertificate:
    return (
        x509.RevokedCertificateBuilder()
        .serial_number(serial_number)
        .revocation_date(revocation_time)
        .build()
    )


def _build_template(
    revocations: ReconciledRevocationSet,
    issuer: IssuerMaterial,
    crl_number: int,
    this_update: datetime,
    next_update: datetime,
) -> x509.CertificateRevocationListBuilder:
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(issuer.certificate.subject)
        .last_update(this_update)
        .next_update(next_update)
        .add_extension(x509.CRLNumber(crl_number), critical=False)
        .add_extension(_authority_key_identifier(issuer.certificate), critical=False)
    )
    for entry in revocations.entries():
        builder = builder.add_revoked_certificate(_revoked_entry(entry.serial_number, entry.revocation_time))
    return builder


def _add_delta_indicator(
    builder: x509.CertificateRevocationListBuilder,
    delta_crl_base_number: int,
) -> Result[x509.CertificateRevocationListBuilder]:
    if delta_crl_base_number < 0:
        return Result.success(builder)

    def _attach() -> x509.CertificateRevocationListBuilder:
        extension = create_delta_crl_indicator(delta_crl_base_number)
        return builder.add_extension(extension.value, critical=extension.critical)

    return Result.from_computation(
        _attach,
        ErrorCode.TECHNICAL_ERROR,
        "could not create crl delta indicator extension",
    )


def _sign(builder: x509.CertificateRevocationListBuilder, issuer: IssuerMaterial) -> bytes:
    algorithm = issuer.signature_algorithm
    if not algorithm.accepts_key(issuer.private_key):
        raise TypeError(
            f"signature algorithm {algorithm.value} does not match "
            f"{type(issuer.private_key).__name__} issuer key"
        )
    crl = builder.sign(
        issuer.private_key,
        algorithm.hash_algorithm(),
        rsa_padding=algorithm.rsa_padding(),
    )
    return crl.public_bytes(Encoding.DER)


def _validity_window(clock: Clock, next_update: timedelta) -> tuple[datetime, datetime]:
    """thisUpdate from the clock, nextUpdate offset from it."""
    this_update = clock()
    return this_update, this_update + next_update


def build_and_sign_crl(
    revocations: ReconciledRevocationSet,
    issuer: IssuerMaterial,
    crl_number: int,
    delta_crl_base_number: int,
    next_update: timedelta,
    clock: Clock = system_clock,
    cancellation: Cancellation | None = None,
) -> Result[SignedCrl]:
    """
    Build the CRL template and sign it with the issuer's private key.

    Returns Result[SignedCrl] on success, TECHNICAL_ERROR on extension or
    signing failure, TIMEOUT_ERROR if cancelled before signing.
    """
    cancellation = cancellation or Cancellation.never()

    def _sign_window(window: tuple[datetime, datetime]) -> Result[SignedCrl]:
        this_update, expires = window
        return (
            Result.from_computation(
                lambda: _build_template(revocations, issuer, crl_number, this_update, expires),
                ErrorCode.TECHNICAL_ERROR,
                "error creating new CRL",
            )
            .flat_map(lambda builder: _add_delta_indicator(builder, delta_crl_base_number))
            .flat_map(lambda builder: cancellation.check("signing").map(lambda _: builder))
            .flat_map(
                lambda builder: Result.from_computation(
                    lambda: _sign(builder, issuer),
                    ErrorCode.TECHNICAL_ERROR,
                    "error creating new CRL",
                )
            )
            .map(
                lambda der: SignedCrl(
                    der=der,
                    this_update=this_update,
                    next_update=expires,
                    revoked_count=len(revocations),
                )
            )
        )

    return (
        Result.from_computation(
            lambda: _validity_window(clock, next_update),
            ErrorCode.TECHNICAL_ERROR,
            "error creating new CRL",
        )
        .flat_map(_sign_window)
        .peek(
            lambda signed: log.info(
                "signer.signed",
                issuer=issuer.name,
                crl_number=crl_number,
                delta_base=delta_crl_base_number,
                revoked=signed.revoked_count,
                algorithm=issuer.signature_algorithm.value,
            )
        )
    )
