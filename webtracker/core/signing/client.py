"""
Device-side request signing.

Reference implementation of what a device does before calling a signed
endpoint; used by the simulator scripts and the test-suite.
"""

import base64
import secrets
import time
from typing import Dict, Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from webtracker.core.signing.canonical import canonicalize

HEADER_DEVICE_ID = "X-Device-Id"
HEADER_TIMESTAMP = "X-Ts"
HEADER_NONCE = "X-Nonce"
HEADER_SIGNATURE = "X-Sig"


def new_nonce() -> str:
    """32 hex characters of randomness."""
    return secrets.token_hex(16)


def sign_request(
    private_key: Ed25519PrivateKey,
    device_id: str,
    method: str,
    path: str,
    body: bytes = b"",
    timestamp: Optional[int] = None,
    nonce: Optional[str] = None,
) -> Dict[str, str]:
    """
    Sign a request.

    Args:
        private_key: Device Ed25519 private key
        device_id: Registered device identifier
        method: HTTP method, exactly as it will be sent
        path: Path including query string, exactly as it will be sent
        body: Exact body bytes that will be sent
        timestamp: Override for the signing time (defaults to now)
        nonce: Override for the nonce (defaults to a fresh random one)

    Returns:
        Headers to add to the request
    """
    if timestamp is None:
        timestamp = int(time.time())
    if nonce is None:
        nonce = new_nonce()

    message = canonicalize(method, path, timestamp, nonce, body)
    signature = private_key.sign(message)

    return {
        HEADER_DEVICE_ID: device_id,
        HEADER_TIMESTAMP: str(timestamp),
        HEADER_NONCE: nonce,
        HEADER_SIGNATURE: base64.b64encode(signature).decode("ascii"),
    }
