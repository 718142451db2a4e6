"""
Device Request Signing Module

Ed25519-based request signing for unattended device authentication:
canonical message construction, signature verification, freshness checks,
and the device-side signing helper.
"""

from webtracker.core.signing.canonical import (
    BadRequestPath,
    canonicalize,
    hash_body,
)
from webtracker.core.signing.clock import check_clock_skew
from webtracker.core.signing.keys import (
    generate_keypair,
    load_private_key,
    public_key_to_base64,
    base64_to_public_key,
)
from webtracker.core.signing.verify import (
    SignatureCheck,
    check_signature,
    verify_signature,
)

__all__ = [
    # Canonical message
    "BadRequestPath",
    "canonicalize",
    "hash_body",
    # Freshness
    "check_clock_skew",
    # Keys
    "generate_keypair",
    "load_private_key",
    "public_key_to_base64",
    "base64_to_public_key",
    # Verification
    "SignatureCheck",
    "check_signature",
    "verify_signature",
]
