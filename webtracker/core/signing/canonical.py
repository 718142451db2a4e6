"""
Canonical Request Construction

The exact byte string a device signs and the server verifies:

    {method}\n{path_with_query}\n{timestamp}\n{nonce}\n{body_hash}

Where:
    - method: HTTP method as sent (no case folding)
    - path_with_query: request path plus query string, exactly as received
      (no reordering or re-encoding of parameters)
    - timestamp: Unix timestamp in seconds, decimal
    - nonce: opaque per-device nonce
    - body_hash: lowercase hex SHA-256 of the raw body bytes; an absent or
      empty body hashes the empty byte string

The body hash must be taken over the bytes received on the wire. A body that
is parsed and re-serialized (e.g. JSON) will generally not verify.
"""

import hashlib
from typing import Optional


class BadRequestPath(ValueError):
    """The request path cannot be embedded in a canonical message."""


# sha256(b"")
EMPTY_BODY_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def hash_body(body: Optional[bytes]) -> str:
    """Lowercase hex SHA-256 of the request body (empty body -> hash of b"")."""
    return hashlib.sha256(body or b"").hexdigest()


def validate_path(full_path: str) -> str:
    """
    Check that a path can be framed inside the canonical message.

    Raises:
        BadRequestPath: If the path is empty, relative, or contains
            whitespace / non-printable characters
    """
    if not full_path or not full_path.startswith("/"):
        raise BadRequestPath(f"Request path must be absolute: {full_path!r}")
    for ch in full_path:
        if not ("\x21" <= ch <= "\x7e"):
            raise BadRequestPath(f"Request path contains invalid character {ch!r}")
    return full_path


def canonicalize(
    method: str,
    full_path: str,
    timestamp: int,
    nonce: str,
    body: Optional[bytes] = b"",
) -> bytes:
    """
    Build the canonical message for signing/verification.

    Example:
        >>> canonicalize("GET", "/api/notifications", 1703001234, "n1", b"")
        b'GET\\n/api/notifications\\n1703001234\\nn1\\ne3b0c442...'
    """
    validate_path(full_path)
    return f"{method}\n{full_path}\n{int(timestamp)}\n{nonce}\n{hash_body(body)}".encode("utf-8")
