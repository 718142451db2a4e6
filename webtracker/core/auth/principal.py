"""
Authentication outcomes.

A request either authenticates as exactly one principal (user or device) or
is rejected with a stable error code and HTTP status.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True)
class UserPrincipal:
    """Interactively logged-in user, identified by the bearer-token issuer."""
    user_id: str

    kind = "user"

    @property
    def device_id(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class DevicePrincipal:
    """Unattended device that signed the request with its registered key."""
    device_id: str
    user_id: str

    kind = "device"


Principal = Union[UserPrincipal, DevicePrincipal]


class RejectionCode(str, Enum):
    """Externally visible rejection codes."""
    MISSING_CREDENTIALS = "missing_credentials"
    BAD_DEVICE_ID = "bad_device_id"
    CLOCK_SKEW = "clock_skew"
    UNKNOWN_DEVICE = "unknown_device"
    REPLAY_DETECTED = "replay_detected"
    BAD_SIGNATURE = "bad_signature"
    BAD_REQUEST_PATH = "bad_request_path"
    STORAGE_UNAVAILABLE = "storage_unavailable"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self, 401)

    @property
    def retryable(self) -> bool:
        return self is RejectionCode.STORAGE_UNAVAILABLE


_HTTP_STATUS = {
    RejectionCode.BAD_REQUEST_PATH: 400,
    RejectionCode.STORAGE_UNAVAILABLE: 503,
}

# Every authentication failure proper gets the same text, so a caller
# cannot tell "no such device" from "wrong signature" by the message.
_PUBLIC_MESSAGES = {
    RejectionCode.BAD_REQUEST_PATH: "Bad request path",
    RejectionCode.STORAGE_UNAVAILABLE: "Authentication temporarily unavailable",
}
UNAUTHORIZED_MESSAGE = "Unauthorized"


@dataclass(frozen=True)
class Authenticated:
    principal: Principal

    ok = True


@dataclass(frozen=True)
class Rejected:
    """
    Authentication rejection.

    Attributes:
        code: Stable error code returned to the caller
        reason: Internal detail for logs only, never sent to the caller
    """
    code: RejectionCode
    reason: str = ""

    ok = False

    @property
    def http_status(self) -> int:
        return self.code.http_status

    @property
    def message(self) -> str:
        return _PUBLIC_MESSAGES.get(self.code, UNAUTHORIZED_MESSAGE)


AuthResult = Union[Authenticated, Rejected]
