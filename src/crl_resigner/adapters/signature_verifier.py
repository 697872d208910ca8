"""
Issuer signature verifier — all-or-nothing authentication gate.

Every decoded CRL must carry a signature that verifies under the issuer
certificate's public key, using the algorithm the CRL itself declares. The
first CRL that fails aborts the request: no entry from any CRL is merged
unless all of them are authentic.

If the issuer's key signed a CRL, that is taken as proof the CRL was
produced by this issuer; the CRL's issuer name is not compared.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from railway import ErrorCode
from railway.result import Result

from crl_resigner.domain.models import InputRevocationList

log = structlog.get_logger()


def _check_issuer_can_sign_crls(issuer_certificate: x509.Certificate) -> Result[x509.Certificate]:
    """
    Reject issuer certificates that cannot legitimately sign CRLs.

    Mirrors the usual X.509 constraints: a BasicConstraints extension, when
    present, must mark a CA; a KeyUsage extension, when present, must assert
    cRLSign.
    """
    subject = issuer_certificate.subject.rfc4514_string()
    try:
        constraints = issuer_certificate.extensions.get_extension_for_class(x509.BasicConstraints)
        if not constraints.value.ca:
            return Result.failure(
                ErrorCode.VALIDATION_ERROR,
                f"issuer {subject} is not a certificate authority",
            )
    except x509.ExtensionNotFound:
        pass

    try:
        key_usage = issuer_certificate.extensions.get_extension_for_class(x509.KeyUsage)
        if not key_usage.value.crl_sign:
            return Result.failure(
                ErrorCode.VALIDATION_ERROR,
                f"issuer {subject} key usage does not permit CRL signing",
            )
    except x509.ExtensionNotFound:
        pass

    return Result.success(issuer_certificate)


def _signature_is_valid(crl: InputRevocationList, issuer_certificate: x509.Certificate) -> bool:
    try:
        return crl.crl.is_signature_valid(issuer_certificate.public_key())
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        # unsupported key/algorithm pairing counts as "not signed by this issuer"
        log.info("verifier.unverifiable", index=crl.index, error=str(e))
        return False


def verify_crls_from_issuer(
    issuer_certificate: x509.Certificate,
    crls: Sequence[InputRevocationList],
) -> Result[list[InputRevocationList]]:
    """Return `crls` unchanged if every signature verifies, else the first failure."""

    def _verify_all(certificate: x509.Certificate) -> Result[list[InputRevocationList]]:
        for crl in crls:
            if not _signature_is_valid(crl, certificate):
                log.warning("verifier.signature_mismatch", index=crl.index, crl_issuer=crl.issuer)
                return Result.failure(
                    ErrorCode.VALIDATION_ERROR,
                    f"CRL index: {crl.index} was not signed by requested issuer",
                )
        return Result.success(list(crls))

    return _check_issuer_can_sign_crls(issuer_certificate).flat_map(_verify_all)
