"""
Contracts the authentication core requires from its collaborators.

Implementations live elsewhere (SQL storage, identity-provider clients); the
core only depends on these protocols.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol


class CollaboratorUnavailable(Exception):
    """A collaborator could not answer (outage, connection error)."""


@dataclass(frozen=True)
class DeviceRecord:
    """
    Device key record as stored by the registry.

    Attributes:
        device_id: Unique, immutable device identifier
        public_key: Base64 raw Ed25519 public key (may be empty if never provided)
        user_id: Owning user
        revoked: Monotonic false -> true
    """
    device_id: str
    public_key: Optional[str]
    user_id: str
    revoked: bool = False

    @property
    def usable(self) -> bool:
        return not self.revoked and bool(self.public_key)


class ClaimResult(Enum):
    CLAIMED = "claimed"
    ALREADY_USED = "already_used"


class DeviceKeyRegistry(Protocol):
    async def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        """
        Resolve a device. Returns None when unknown.

        Must reflect revocation as soon as the registry itself does.
        Raises CollaboratorUnavailable on outage.
        """
        ...


class NonceStore(Protocol):
    async def claim_nonce(self, nonce: str, device_id: str, timestamp: int) -> ClaimResult:
        """
        Claim (nonce, device_id) exactly once.

        Precondition: this MUST be a single atomic insert against a uniqueness
        constraint on (nonce, device_id), not a read followed by a write. Of
        any number of concurrent claims for the same pair exactly one returns
        CLAIMED. Raises CollaboratorUnavailable on outage.
        """
        ...


class BearerIdentityVerifier(Protocol):
    async def verify_bearer(self, token: str) -> Optional[str]:
        """
        Validate an opaque bearer token.

        Returns the stable user identity, or None if the token is invalid.
        Raises CollaboratorUnavailable if the issuer cannot be reached.
        """
        ...
