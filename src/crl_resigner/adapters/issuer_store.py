"""
File-backed issuer store — implements the IssuerResolver port.

Layout on disk, one directory per issuer:

  <issuers_dir>/
    <issuer-name>/
      certificate.pem   issuer certificate (PEM)
      private_key.pem   unencrypted private key (PKCS#8 or traditional PEM)

An issuer is addressed by its directory name, by its id (lowercase hex
SHA-256 fingerprint of the certificate DER), or by "default", which maps to
the configured default issuer name.

Everything is read fresh on every call; the store holds no key material
between requests.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from railway import ErrorCode
from railway.result import Result

from crl_resigner.domain.models import IssuerMaterial, KeyUsage, RevocationSignatureAlgorithm

log = structlog.get_logger()

DEFAULT_REF = "default"
CERTIFICATE_FILE = "certificate.pem"
PRIVATE_KEY_FILE = "private_key.pem"


def issuer_id_for(certificate: x509.Certificate) -> str:
    """Stable issuer identifier: hex SHA-256 fingerprint of the certificate."""
    return certificate.fingerprint(hashes.SHA256()).hex()


def _public_keys_match(certificate: x509.Certificate, private_key) -> bool:
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    der = serialization.Encoding.DER
    return certificate.public_key().public_bytes(der, spki) == private_key.public_key().public_bytes(der, spki)


class FileIssuerStore:
    """
    Resolve issuer references against a directory of PEM files.

    Implements the IssuerResolver port.
    """

    def __init__(
        self,
        directory: Path,
        default_issuer: str,
        signature_algorithm: RevocationSignatureAlgorithm | None = None,
    ) -> None:
        self._directory = directory
        self._default_issuer = default_issuer
        self._signature_algorithm = signature_algorithm

    def resolve(self, issuer_ref: str, usage: KeyUsage) -> Result[IssuerMaterial]:
        """
        Load IssuerMaterial for `issuer_ref` and check it may be used for `usage`.

        NOT_FOUND for unknown references, CONFIGURATION_ERROR for unreadable
        or inconsistent key material, VALIDATION_ERROR when the certificate's
        key usage forbids CRL signing.
        """
        return (
            self._locate(issuer_ref)
            .flat_map(self._load)
            .flat_map(lambda material: _check_usage(material, usage))
            .peek(
                lambda material: log.info(
                    "issuer_store.resolved",
                    ref=issuer_ref,
                    issuer=material.name,
                    issuer_id=material.issuer_id,
                    algorithm=material.signature_algorithm.value,
                )
            )
        )

    # ─────────────────────── Lookup ───────────────────────

    def _issuer_dirs(self) -> list[Path]:
        if not self._directory.is_dir():
            return []
        return sorted(p for p in self._directory.iterdir() if (p / CERTIFICATE_FILE).is_file())

    def _locate(self, issuer_ref: str) -> Result[Path]:
        name = self._default_issuer if issuer_ref == DEFAULT_REF else issuer_ref
        not_found = Result.failure(
            ErrorCode.NOT_FOUND,
            f"failed to resolve issuer issuer_ref: unable to find issuer {issuer_ref!r}",
        )
        if not self._directory.is_dir():
            log.error("issuer_store.missing_directory", directory=str(self._directory))
            return Result.failure(
                ErrorCode.CONFIGURATION_ERROR,
                f"issuer directory {self._directory} does not exist",
            )

        candidates = self._issuer_dirs()
        for path in candidates:
            if path.name == name:
                return Result.success(path)

        # not a name: try it as an issuer id
        wanted = name.lower().replace(":", "")
        for path in candidates:
            certificate = Result.from_computation(
                lambda p=path: x509.load_pem_x509_certificate((p / CERTIFICATE_FILE).read_bytes()),
                ErrorCode.CONFIGURATION_ERROR,
                f"unreadable issuer certificate in {path.name}",
            )
            if certificate.is_success() and issuer_id_for(certificate.value()) == wanted:
                return Result.success(path)

        return not_found

    # ─────────────────────── Loading ───────────────────────

    def _load(self, path: Path) -> Result[IssuerMaterial]:
        return Result.from_computation(
            lambda: self._read_material(path),
            ErrorCode.CONFIGURATION_ERROR,
            f"failed to load key material for issuer {path.name}",
        ).peek_failure(
            lambda err: log.error("issuer_store.load_failed", issuer=path.name, error=err.message)
        )

    def _read_material(self, path: Path) -> IssuerMaterial:
        certificate = x509.load_pem_x509_certificate((path / CERTIFICATE_FILE).read_bytes())
        private_key = serialization.load_pem_private_key(
            (path / PRIVATE_KEY_FILE).read_bytes(), password=None
        )
        if not _public_keys_match(certificate, private_key):
            raise ValueError("private key does not match issuer certificate")

        algorithm = self._signature_algorithm or RevocationSignatureAlgorithm.default_for_key(private_key)
        return IssuerMaterial(
            name=path.name,
            issuer_id=issuer_id_for(certificate),
            certificate=certificate,
            private_key=private_key,  # type: ignore[arg-type]
            signature_algorithm=algorithm,
        )


def _check_usage(material: IssuerMaterial, usage: KeyUsage) -> Result[IssuerMaterial]:
    if usage is not KeyUsage.CRL_SIGNING:
        return Result.success(material)
    try:
        key_usage = material.certificate.extensions.get_extension_for_class(x509.KeyUsage)
    except x509.ExtensionNotFound:
        return Result.success(material)
    if not key_usage.value.crl_sign:
        return Result.failure(
            ErrorCode.VALIDATION_ERROR,
            f"issuer {material.name} is not permitted for CRL signing",
        )
    return Result.success(material)
