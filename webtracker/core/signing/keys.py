"""
Ed25519 Key Management

Key generation, loading, and serialization for device keypairs.
Devices register their public key as base64 of the raw 32 bytes; that is the
form stored in the devices table and accepted by the verifier.
"""

import base64
import binascii
import os
from pathlib import Path
from typing import Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

PUBLIC_KEY_LENGTH = 32


def generate_keypair() -> Tuple[Ed25519PrivateKey, Ed25519PublicKey]:
    """
    Generate a new Ed25519 keypair.

    Returns:
        Tuple of (private_key, public_key)

    Example:
        >>> private_key, public_key = generate_keypair()
        >>> pub_b64 = public_key_to_base64(public_key)
    """
    private_key = Ed25519PrivateKey.generate()
    return private_key, private_key.public_key()


def public_key_to_base64(public_key: Ed25519PublicKey) -> str:
    """Serialize a public key to base64 of its raw bytes (44 characters)."""
    raw_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return base64.b64encode(raw_bytes).decode("ascii")


def base64_to_public_key(b64_key: str) -> Ed25519PublicKey:
    """
    Deserialize a base64-encoded raw public key.

    Raises:
        ValueError: If the key is not valid base64 or has the wrong length
    """
    try:
        raw_bytes = base64.b64decode(b64_key, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise ValueError(f"Invalid public key encoding: {e}") from e
    if len(raw_bytes) != PUBLIC_KEY_LENGTH:
        raise ValueError(
            f"Invalid public key length: {len(raw_bytes)} bytes (expected {PUBLIC_KEY_LENGTH})"
        )
    return Ed25519PublicKey.from_public_bytes(raw_bytes)


def save_keypair(
    private_key: Ed25519PrivateKey,
    directory: Path,
    name: str = "device",
) -> Tuple[Path, Path]:
    """
    Save a keypair to files.

    Creates {name}.key (PKCS8 PEM, mode 0600) and {name}.pub (raw base64).

    Returns:
        Tuple of (private_key_path, public_key_path)
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    private_path = directory / f"{name}.key"
    public_path = directory / f"{name}.pub"

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    private_path.write_bytes(private_pem)
    os.chmod(private_path, 0o600)

    public_path.write_text(public_key_to_base64(private_key.public_key()) + "\n")

    return private_path, public_path


def load_private_key(path: Path) -> Ed25519PrivateKey:
    """
    Load a private key from a PEM file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the file does not hold an Ed25519 key
    """
    path = Path(path)
    pem_data = path.read_bytes()

    try:
        private_key = serialization.load_pem_private_key(pem_data, password=None)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Failed to load private key from {path}: {e}") from e
    if not isinstance(private_key, Ed25519PrivateKey):
        raise ValueError(f"Not an Ed25519 key: {type(private_key).__name__}")
    return private_key
