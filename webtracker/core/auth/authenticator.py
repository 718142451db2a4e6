"""
Request Authenticator

Merges the two credential schemes into one decision per request:

    START -> TRY_BEARER -> AUTHENTICATED[user]
                        -> TRY_SIGNED -> AUTHENTICATED[device]
                                      -> REJECTED(code)

Bearer is tried first. A request carrying a valid bearer token authenticates
as that user and the signed-device headers are ignored entirely (no nonce is
claimed). A missing or invalid bearer token falls through to the signed path,
which short-circuits at the first failing check in this order:

    1. signed headers present and well-formed   -> missing_credentials
    2. device id format                         -> bad_device_id
    3. clock skew                               -> clock_skew
    4. request path usable for canonical form   -> bad_request_path
    5. device lookup (unknown == revoked)       -> unknown_device
    6. nonce claim                              -> replay_detected
    7. signature verification                   -> bad_signature

The clock check precedes the nonce claim so a stale request never consumes a
nonce. The nonce is claimed before the signature result is reported so two
concurrent copies of one request cannot both pass.

Every collaborator call is bounded by AuthConfig.lookup_timeout_seconds. A
timeout or outage becomes storage_unavailable (503), never a 401. If the
surrounding request is cancelled, the pending wait is abandoned; a claim that
completes afterwards in the storage layer simply stays claimed.
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Mapping, Optional, TypeVar

from webtracker.core.auth.collaborators import (
    BearerIdentityVerifier,
    ClaimResult,
    CollaboratorUnavailable,
    DeviceKeyRegistry,
    NonceStore,
)
from webtracker.core.auth.principal import (
    AuthResult,
    Authenticated,
    DevicePrincipal,
    Rejected,
    RejectionCode,
    UserPrincipal,
)
from webtracker.core.auth.replay import ReplayGuard
from webtracker.core.config import AuthConfig
from webtracker.core.signing.canonical import BadRequestPath, canonicalize
from webtracker.core.signing.clock import check_clock_skew
from webtracker.core.signing.verify import SignatureCheck, check_signature

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Header names (lowercase; HTTP header lookup is case-insensitive)
HEADER_AUTHORIZATION = "authorization"
HEADER_DEVICE_ID = "x-device-id"
HEADER_TIMESTAMP = "x-ts"
HEADER_NONCE = "x-nonce"
HEADER_SIGNATURE = "x-sig"

SIGNED_HEADERS = (HEADER_DEVICE_ID, HEADER_TIMESTAMP, HEADER_NONCE, HEADER_SIGNATURE)

DEVICE_ID_PATTERN = re.compile(r"[-A-Za-z0-9_]{4,128}")
TIMESTAMP_PATTERN = re.compile(r"[0-9]{1,12}")
NONCE_PATTERN = re.compile(r"[\x21-\x7e]{1,128}")


@dataclass(frozen=True)
class AuthRequest:
    """
    Transport-independent view of an inbound request.

    Attributes:
        method: HTTP method as received
        path: Path including query string, exactly as received
        headers: Header mapping with lowercase names
        body: Raw body bytes as received on the wire
    """
    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def build(cls, method: str, path: str, headers: Mapping[str, str], body: Optional[bytes] = b"") -> "AuthRequest":
        return cls(
            method=method,
            path=path,
            headers={k.lower(): v for k, v in headers.items()},
            body=body or b"",
        )

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name.lower())
        if value is None:
            return None
        value = value.strip()
        return value or None


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from 'Bearer <token>' (scheme is case-insensitive)."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class Authenticator:
    """
    Stateless per-request authenticator.

    All collaborators are injected; the instance holds no mutable state and is
    safe to share across concurrent requests.
    """

    def __init__(
        self,
        config: AuthConfig,
        devices: DeviceKeyRegistry,
        nonces: NonceStore,
        bearer: Optional[BearerIdentityVerifier] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.devices = devices
        self.replay_guard = ReplayGuard(nonces)
        self.bearer = bearer
        self.clock = clock

    async def authenticate(self, request: AuthRequest) -> AuthResult:
        token = parse_bearer(request.header(HEADER_AUTHORIZATION))
        if token is not None and self.bearer is not None:
            try:
                user_id = await self._bounded(self.bearer.verify_bearer(token), "bearer verification")
            except CollaboratorUnavailable as e:
                return self._reject(RejectionCode.STORAGE_UNAVAILABLE, str(e))
            if user_id:
                logger.debug(f"Authenticated user {user_id} via bearer token")
                return Authenticated(UserPrincipal(user_id=user_id))
            logger.info("Bearer token invalid, falling through to signed device path")

        return await self._authenticate_signed(request)

    async def _authenticate_signed(self, request: AuthRequest) -> AuthResult:
        device_id = request.header(HEADER_DEVICE_ID)
        ts_raw = request.header(HEADER_TIMESTAMP)
        nonce = request.header(HEADER_NONCE)
        signature = request.header(HEADER_SIGNATURE)

        # 1. Headers present and well-formed
        missing = [name for name, value in zip(SIGNED_HEADERS, (device_id, ts_raw, nonce, signature)) if not value]
        if missing:
            return self._reject(RejectionCode.MISSING_CREDENTIALS, f"missing headers: {', '.join(missing)}")
        if not TIMESTAMP_PATTERN.fullmatch(ts_raw):
            return self._reject(RejectionCode.MISSING_CREDENTIALS, f"malformed timestamp {ts_raw[:32]!r}")
        if not NONCE_PATTERN.fullmatch(nonce):
            return self._reject(RejectionCode.MISSING_CREDENTIALS, "malformed nonce")

        # 2. Device id format
        if not DEVICE_ID_PATTERN.fullmatch(device_id):
            return self._reject(RejectionCode.BAD_DEVICE_ID, f"bad device id {device_id[:32]!r}")

        # 3. Clock skew
        timestamp = int(ts_raw)
        now = int(self.clock())
        if not check_clock_skew(timestamp, now, self.config.clock_skew_seconds):
            return self._reject(
                RejectionCode.CLOCK_SKEW,
                f"device {device_id}: timestamp {timestamp} is {now - timestamp}s from server time",
            )

        # 4. Canonical message
        try:
            message = canonicalize(request.method, request.path, timestamp, nonce, request.body)
        except BadRequestPath as e:
            return self._reject(RejectionCode.BAD_REQUEST_PATH, str(e))

        # 5. Device lookup
        try:
            device = await self._bounded(self.devices.get_device(device_id), "device lookup")
        except CollaboratorUnavailable as e:
            return self._reject(RejectionCode.STORAGE_UNAVAILABLE, str(e))
        if device is None or not device.usable:
            if device is None:
                reason = "not registered"
            elif device.revoked:
                reason = "revoked"
            else:
                reason = "no public key"
            return self._reject(RejectionCode.UNKNOWN_DEVICE, f"device {device_id}: {reason}")

        # 6. Nonce claim
        try:
            claim = await self._bounded(self.replay_guard.claim(nonce, device_id, timestamp), "nonce claim")
        except CollaboratorUnavailable as e:
            return self._reject(RejectionCode.STORAGE_UNAVAILABLE, str(e))
        if claim is ClaimResult.ALREADY_USED:
            return self._reject(RejectionCode.REPLAY_DETECTED, f"device {device_id}: nonce reused")

        # 7. Signature
        outcome = check_signature(message, signature, device.public_key)
        if outcome is not SignatureCheck.VALID:
            return self._reject(RejectionCode.BAD_SIGNATURE, f"device {device_id}: {outcome.value}")

        logger.debug(f"Authenticated device {device_id} (user {device.user_id})")
        return Authenticated(DevicePrincipal(device_id=device.device_id, user_id=device.user_id))

    async def _bounded(self, awaitable: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.lookup_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise CollaboratorUnavailable(
                f"{what} timed out after {self.config.lookup_timeout_seconds}s"
            ) from e

    @staticmethod
    def _reject(code: RejectionCode, reason: str) -> Rejected:
        if code is RejectionCode.STORAGE_UNAVAILABLE:
            logger.error(f"Authentication unavailable: {reason}")
        else:
            logger.warning(f"Authentication rejected ({code.value}): {reason}")
        return Rejected(code=code, reason=reason)
