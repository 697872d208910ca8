"""
Revocation reconciler — merge revoked entries from several CRLs into one set.

Entries are keyed by the canonical decimal string of their serial number.
Per-entry extensions are dropped: they describe the original issuance and
do not survive a resign.

Duplicate policy, applied in input order:
  - first sighting of a serial seeds the set
  - same revocation time (within `tolerance`) → silent, earlier instant kept
  - different revocation time → earliest wins, one warning per conflict

Pure function: no I/O, no failure track. Every input CRL has already been
authenticated by the signature verifier.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta
from types import MappingProxyType

import structlog

from crl_resigner.domain.models import (
    InputRevocationList,
    ReconciledRevocationSet,
    ReconciliationOutcome,
    RevokedCertificateEntry,
)

log = structlog.get_logger()


def _conflict_warning(serial: str) -> str:
    return (
        f"Duplicate serial {serial} with different revocation "
        "times detected, using oldest revocation time"
    )


def reconcile_revocations(
    crls: Sequence[InputRevocationList],
    tolerance: timedelta = timedelta(0),
) -> ReconciliationOutcome:
    """
    Merge every revoked entry of `crls` into a ReconciledRevocationSet.

    `tolerance` is the largest revocation-time difference still treated as
    the same revocation claim. The default of zero means exact equality at
    the one-second resolution CRL timestamps carry.
    """
    unique: dict[str, RevokedCertificateEntry] = {}
    warnings: list[str] = []

    for crl in crls:
        for entry in crl.entries:
            current = entry.without_extensions()
            serial = current.serial_key
            existing = unique.get(serial)

            if existing is None:
                unique[serial] = current
                continue

            earliest = min(existing, current, key=lambda e: e.revocation_time)
            if abs(existing.revocation_time - current.revocation_time) > tolerance:
                log.warning(
                    "reconciler.conflict",
                    serial=serial,
                    crl_index=crl.index,
                    kept=earliest.revocation_time.isoformat(),
                )
                warnings.append(_conflict_warning(serial))
            unique[serial] = earliest

    log.debug("reconciler.complete", crls=len(crls), unique_serials=len(unique), conflicts=len(warnings))

    return ReconciliationOutcome(
        revocations=ReconciledRevocationSet(MappingProxyType(unique)),
        warnings=tuple(warnings),
    )
