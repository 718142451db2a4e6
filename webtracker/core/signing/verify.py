"""
Signature Verification

Verifies Ed25519 detached signatures over canonical request messages.

Malformed input (bad base64, wrong lengths, invalid key points) is a
verification failure, never an exception. The finer-grained SignatureCheck is
only for diagnostics; callers must treat every non-VALID outcome the same way.
"""

import base64
import binascii
import logging
from enum import Enum

from cryptography.exceptions import InvalidSignature

from webtracker.core.signing.keys import base64_to_public_key

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64


class SignatureCheck(Enum):
    """Outcome of a signature check."""
    VALID = "valid"
    MISMATCH = "mismatch"
    MALFORMED_SIGNATURE = "malformed_signature"
    MALFORMED_KEY = "malformed_key"


def decode_signature(signature_b64: str) -> bytes:
    """
    Decode a base64 signature header.

    Raises:
        ValueError: If not strict base64 or not 64 bytes long
    """
    try:
        signature = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise ValueError(f"Invalid base64 signature: {e}") from e
    if len(signature) != SIGNATURE_LENGTH:
        raise ValueError(f"Invalid signature length: {len(signature)} bytes (expected {SIGNATURE_LENGTH})")
    return signature


def check_signature(canonical_message: bytes, signature_b64: str, public_key_b64: str) -> SignatureCheck:
    """
    Check a detached signature and report why it failed, if it did.

    Args:
        canonical_message: Bytes produced by canonicalize()
        signature_b64: Base64 signature from the X-Sig header
        public_key_b64: Base64 raw Ed25519 public key from the device record

    Returns:
        SignatureCheck outcome (never raises)
    """
    try:
        public_key = base64_to_public_key(public_key_b64)
    except Exception:
        return SignatureCheck.MALFORMED_KEY

    try:
        signature = decode_signature(signature_b64)
    except ValueError:
        return SignatureCheck.MALFORMED_SIGNATURE

    try:
        public_key.verify(signature, canonical_message)
    except InvalidSignature:
        return SignatureCheck.MISMATCH
    except Exception as e:
        # cryptography may raise on degenerate inputs; still just a failed check
        logger.debug(f"Signature verification raised {type(e).__name__}: {e}")
        return SignatureCheck.MALFORMED_SIGNATURE

    return SignatureCheck.VALID


def verify_signature(canonical_message: bytes, signature_b64: str, public_key_b64: str) -> bool:
    """True only for a well-formed signature that matches the message and key."""
    return check_signature(canonical_message, signature_b64, public_key_b64) is SignatureCheck.VALID
