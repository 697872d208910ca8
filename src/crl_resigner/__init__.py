"""
crl_resigner — combine and resign Certificate Revocation Lists.

Takes several CRLs signed by the same issuer key (for example by separate
cluster partitions), authenticates them, merges their revoked entries and
signs a single fresh CRL under the issuer's key.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
