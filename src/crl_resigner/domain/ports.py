"""
Ports — Protocol-based interfaces for infrastructure adapters.

The resign pipeline needs exactly two things from the outside world:

  IssuerResolver → key material for an issuer reference
  Clock          → the current time, stamped into thisUpdate

Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters and test doubles
satisfy the contract simply by implementing the method, without inheritance.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from railway.result import Result

from crl_resigner.domain.models import IssuerMaterial, KeyUsage


@runtime_checkable
class IssuerResolver(Protocol):
    """
    Port: map an issuer reference to IssuerMaterial for a stated key usage.

    The reference is either "default" (the configured default issuer), an
    issuer id, or an issuer name. Implementations return:
      - NOT_FOUND when the reference matches nothing
      - VALIDATION_ERROR when the issuer may not be used for `usage`
      - CONFIGURATION_ERROR when stored key material is unusable
    """

    def resolve(self, issuer_ref: str, usage: KeyUsage) -> Result[IssuerMaterial]: ...


@runtime_checkable
class Clock(Protocol):
    """Port: current time as an aware UTC datetime."""

    def __call__(self) -> datetime: ...


def system_clock() -> datetime:
    return datetime.now(UTC)
