"""
Request authentication core.

Dual-credential authentication (bearer user tokens and Ed25519-signed device
requests) with replay protection and clock-skew tolerance.
"""
from webtracker.core.auth.authenticator import AuthRequest, Authenticator, parse_bearer
from webtracker.core.auth.collaborators import (
    BearerIdentityVerifier,
    ClaimResult,
    CollaboratorUnavailable,
    DeviceKeyRegistry,
    DeviceRecord,
    NonceStore,
)
from webtracker.core.auth.principal import (
    AuthResult,
    Authenticated,
    DevicePrincipal,
    Principal,
    Rejected,
    RejectionCode,
    UserPrincipal,
)
from webtracker.core.auth.replay import ReplayGuard

__all__ = [
    "AuthRequest",
    "Authenticator",
    "parse_bearer",
    "BearerIdentityVerifier",
    "ClaimResult",
    "CollaboratorUnavailable",
    "DeviceKeyRegistry",
    "DeviceRecord",
    "NonceStore",
    "AuthResult",
    "Authenticated",
    "DevicePrincipal",
    "Principal",
    "Rejected",
    "RejectionCode",
    "UserPrincipal",
    "ReplayGuard",
]
