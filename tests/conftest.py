"""
Shared test fixtures and helpers for the crl-resigner test suite.

Provides synthetic issuer certificates/keys and PEM CRLs built with
cryptography, plus a static IssuerResolver test double.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519
from cryptography.x509.oid import NameOID
from railway import ErrorCode
from railway.result import Result

from crl_resigner.adapters.issuer_store import issuer_id_for
from crl_resigner.domain.models import IssuerMaterial, KeyUsage, RevocationSignatureAlgorithm

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@dataclass(frozen=True)
class TestIssuer:
    """An issuer certificate with its private key."""

    __test__ = False

    name: str
    certificate: x509.Certificate
    private_key: object

    def material(self, algorithm: RevocationSignatureAlgorithm | None = None) -> IssuerMaterial:
        return IssuerMaterial(
            name=self.name,
            issuer_id=issuer_id_for(self.certificate),
            certificate=self.certificate,
            private_key=self.private_key,  # type: ignore[arg-type]
            signature_algorithm=algorithm or RevocationSignatureAlgorithm.default_for_key(self.private_key),  # type: ignore[arg-type]
        )

    def write_to(self, directory: Path) -> Path:
        """Write certificate.pem / private_key.pem under directory/<name>/."""
        issuer_dir = directory / self.name
        issuer_dir.mkdir(parents=True, exist_ok=True)
        (issuer_dir / "certificate.pem").write_bytes(self.certificate.public_bytes(serialization.Encoding.PEM))
        (issuer_dir / "private_key.pem").write_bytes(
            self.private_key.private_bytes(  # type: ignore[attr-defined]
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
        return issuer_dir


def _signing_hash(key: object) -> hashes.HashAlgorithm | None:
    if isinstance(key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    return hashes.SHA256()


def make_issuer(
    name: str = "test-issuer",
    private_key: object | None = None,
    crl_sign: bool = True,
    is_ca: bool = True,
) -> TestIssuer:
    """Create a self-signed CA certificate (EC P-256 unless a key is given)."""
    key = private_key or ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())  # type: ignore[attr-defined]
        .serial_number(x509.random_serial_number())
        .not_valid_before(T0 - timedelta(days=1))
        .not_valid_after(T0 + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=is_ca,
                crl_sign=crl_sign,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)  # type: ignore[attr-defined]
        .sign(key, _signing_hash(key))  # type: ignore[arg-type]
    )
    return TestIssuer(name=name, certificate=certificate, private_key=key)


def make_crl(
    issuer: TestIssuer,
    revoked: Iterable[tuple[int, datetime]] = (),
    crl_number: int = 1,
    this_update: datetime = T0,
    with_reason: bool = False,
) -> x509.CertificateRevocationList:
    """Build a CRL signed by `issuer`, optionally tagging entries with a CRL reason."""
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(issuer.certificate.subject)
        .last_update(this_update)
        .next_update(this_update + timedelta(hours=72))
        .add_extension(x509.CRLNumber(crl_number), critical=False)
    )
    for serial, revoked_at in revoked:
        entry = x509.RevokedCertificateBuilder().serial_number(serial).revocation_date(revoked_at)
        if with_reason:
            entry = entry.add_extension(x509.CRLReason(x509.ReasonFlags.key_compromise), critical=False)
        builder = builder.add_revoked_certificate(entry.build())
    return builder.sign(issuer.private_key, _signing_hash(issuer.private_key))  # type: ignore[arg-type]


def make_crl_pem(
    issuer: TestIssuer,
    revoked: Iterable[tuple[int, datetime]] = (),
    crl_number: int = 1,
    with_reason: bool = False,
) -> str:
    crl = make_crl(issuer, revoked, crl_number=crl_number, with_reason=with_reason)
    return crl.public_bytes(serialization.Encoding.PEM).decode("ascii")


@dataclass
class StaticIssuerResolver:
    """IssuerResolver test double returning a fixed issuer and recording calls."""

    material: IssuerMaterial | None
    calls: list[tuple[str, KeyUsage]] = field(default_factory=list)

    def resolve(self, issuer_ref: str, usage: KeyUsage) -> Result[IssuerMaterial]:
        self.calls.append((issuer_ref, usage))
        if self.material is None:
            return Result.failure(ErrorCode.NOT_FOUND, f"unable to find issuer {issuer_ref!r}")
        return Result.success(self.material)


def fixed_clock(moment: datetime = T0):
    return lambda: moment


# ─────────────────────── Fixtures ───────────────────────


@pytest.fixture(scope="session")
def issuer() -> TestIssuer:
    return make_issuer("test-issuer")


@pytest.fixture(scope="session")
def other_issuer() -> TestIssuer:
    return make_issuer("other-issuer")


@pytest.fixture()
def resolver(issuer: TestIssuer) -> StaticIssuerResolver:
    return StaticIssuerResolver(issuer.material())
