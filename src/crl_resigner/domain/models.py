"""
Domain models — immutable data structures for CRLs, issuers and requests.

These are pure value objects with no behavior beyond simple derived
properties. Everything here lives for the duration of one resign request;
only the issuer key material is owned by someone else (the issuer store)
and merely borrowed.

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, unique
from types import MappingProxyType
from typing import Mapping

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes

# ─────────────────────── Issuer ───────────────────────


@unique
class KeyUsage(Enum):
    """What the caller intends to do with resolved issuer material."""

    CRL_SIGNING = "crl-signing"


@unique
class RevocationSignatureAlgorithm(Enum):
    """
    Signature algorithm an issuer declares for the CRLs it signs.

    Values follow the common `<hash>With<scheme>` naming used by X.509
    tooling. `hash_algorithm()` and `rsa_padding()` give the arguments
    `CertificateRevocationListBuilder.sign` expects.
    """

    SHA256_WITH_RSA = "SHA256WithRSA"
    SHA384_WITH_RSA = "SHA384WithRSA"
    SHA512_WITH_RSA = "SHA512WithRSA"
    SHA256_WITH_RSA_PSS = "SHA256WithRSAPSS"
    SHA384_WITH_RSA_PSS = "SHA384WithRSAPSS"
    SHA512_WITH_RSA_PSS = "SHA512WithRSAPSS"
    ECDSA_WITH_SHA256 = "ECDSAWithSHA256"
    ECDSA_WITH_SHA384 = "ECDSAWithSHA384"
    ECDSA_WITH_SHA512 = "ECDSAWithSHA512"
    PURE_ED25519 = "PureEd25519"
    PURE_ED448 = "PureEd448"

    def hash_algorithm(self) -> hashes.HashAlgorithm | None:
        """Digest to sign with; None for the pure EdDSA schemes."""
        if self.name.startswith("PURE_"):
            return None
        if "SHA384" in self.name:
            return hashes.SHA384()
        if "SHA512" in self.name:
            return hashes.SHA512()
        return hashes.SHA256()

    def rsa_padding(self) -> padding.AsymmetricPadding | None:
        """PSS padding for the RSASSA-PSS variants, None otherwise."""
        digest = self.hash_algorithm()
        if digest is None or not self.name.endswith("_PSS"):
            return None
        return padding.PSS(mgf=padding.MGF1(digest), salt_length=padding.PSS.DIGEST_LENGTH)

    def accepts_key(self, private_key: CertificateIssuerPrivateKeyTypes) -> bool:
        """Whether this algorithm can be produced by the given private key."""
        if self.name.endswith(("_RSA", "_RSA_PSS")):
            return isinstance(private_key, rsa.RSAPrivateKey)
        if self.name.startswith("ECDSA"):
            return isinstance(private_key, ec.EllipticCurvePrivateKey)
        if self is RevocationSignatureAlgorithm.PURE_ED25519:
            return isinstance(private_key, ed25519.Ed25519PrivateKey)
        return isinstance(private_key, ed448.Ed448PrivateKey)

    @classmethod
    def default_for_key(cls, private_key: CertificateIssuerPrivateKeyTypes) -> RevocationSignatureAlgorithm:
        """Pick the conventional algorithm for a key type (curve size drives the ECDSA digest)."""
        if isinstance(private_key, rsa.RSAPrivateKey):
            return cls.SHA256_WITH_RSA
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            if isinstance(private_key.curve, ec.SECP521R1):
                return cls.ECDSA_WITH_SHA512
            if isinstance(private_key.curve, ec.SECP384R1):
                return cls.ECDSA_WITH_SHA384
            return cls.ECDSA_WITH_SHA256
        if isinstance(private_key, ed25519.Ed25519PrivateKey):
            return cls.PURE_ED25519
        if isinstance(private_key, ed448.Ed448PrivateKey):
            return cls.PURE_ED448
        raise TypeError(f"unsupported issuer key type: {type(private_key).__name__}")


@dataclass(frozen=True, slots=True)
class IssuerMaterial:
    """
    The authority's certificate, private signing key and declared CRL
    signature algorithm.

    Supplied by an IssuerResolver; the pipeline only reads it.
    """

    name: str
    issuer_id: str
    certificate: x509.Certificate = field(repr=False)
    private_key: CertificateIssuerPrivateKeyTypes = field(repr=False)
    signature_algorithm: RevocationSignatureAlgorithm


# ─────────────────────── Revocation lists ───────────────────────


@dataclass(frozen=True, slots=True)
class RevokedCertificateEntry:
    """
    One revoked certificate: serial number, revocation time, and the opaque
    per-entry extensions it arrived with.

    The serial number is the identity; extensions describe the original
    issuance and are not carried into a resigned CRL.
    """

    serial_number: int
    revocation_time: datetime
    extensions: tuple[x509.Extension, ...] = field(default=(), repr=False, compare=False)

    @property
    def serial_key(self) -> str:
        """Canonical decimal form of the serial, used as the merge key."""
        return str(self.serial_number)

    def without_extensions(self) -> RevokedCertificateEntry:
        return RevokedCertificateEntry(self.serial_number, self.revocation_time)


@dataclass(frozen=True, slots=True)
class InputRevocationList:
    """A decoded CRL together with its position in the request."""

    index: int
    crl: x509.CertificateRevocationList = field(repr=False)

    @property
    def issuer(self) -> str:
        return self.crl.issuer.rfc4514_string()

    @property
    def this_update(self) -> datetime:
        return self.crl.last_update_utc

    @property
    def next_update(self) -> datetime | None:
        return self.crl.next_update_utc

    @property
    def crl_number(self) -> int | None:
        try:
            return self.crl.extensions.get_extension_for_class(x509.CRLNumber).value.crl_number
        except x509.ExtensionNotFound:
            return None

    @property
    def entries(self) -> list[RevokedCertificateEntry]:
        return [
            RevokedCertificateEntry(
                serial_number=revoked.serial_number,
                revocation_time=revoked.revocation_date_utc,
                extensions=tuple(revoked.extensions),
            )
            for revoked in self.crl
        ]


@dataclass(frozen=True, slots=True)
class ReconciledRevocationSet:
    """
    Deduplicated revocations keyed by canonical serial string.

    Iteration yields entries in ascending serial-number order.
    """

    by_serial: Mapping[str, RevokedCertificateEntry] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __len__(self) -> int:
        return len(self.by_serial)

    def __contains__(self, serial: object) -> bool:
        return str(serial) in self.by_serial

    def __getitem__(self, serial: str | int) -> RevokedCertificateEntry:
        return self.by_serial[str(serial)]

    def entries(self) -> list[RevokedCertificateEntry]:
        return sorted(self.by_serial.values(), key=lambda entry: entry.serial_number)


@dataclass(frozen=True, slots=True)
class ReconciliationOutcome:
    """The merged revocations plus the serial-conflict warnings raised on the way."""

    revocations: ReconciledRevocationSet
    warnings: tuple[str, ...] = ()


# ─────────────────────── Request / Response ───────────────────────


@unique
class CrlFormat(Enum):
    """Wire format of the resigned CRL."""

    PEM = "pem"
    DER = "der"


@dataclass(frozen=True, slots=True)
class ResignRequest:
    """
    A validated resign request.

    `delta_crl_base_number` of -1 means "no Delta CRL Indicator".
    """

    issuer_ref: str
    crl_number: int
    next_update: timedelta
    crls: tuple[str, ...] = field(repr=False)
    delta_crl_base_number: int = -1
    format: CrlFormat = CrlFormat.PEM

    @property
    def is_delta(self) -> bool:
        return self.delta_crl_base_number >= 0


@dataclass(frozen=True, slots=True)
class SignedCrl:
    """DER bytes of a freshly signed CRL, before wire encoding."""

    der: bytes = field(repr=False)
    this_update: datetime
    next_update: datetime
    revoked_count: int


@dataclass(frozen=True, slots=True)
class OutputCRL:
    """The encoded CRL handed back to the caller, with any reconciliation warnings."""

    crl: str = field(repr=False)
    warnings: tuple[str, ...] = ()
