"""Signature utilities built on Ed25519 primitives."""
from __future__ import annotations

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey


def verify_signature(pubkey_bytes: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature.

    Args:
        pubkey_bytes: Raw 32-byte public key.
        message: Exact bytes that were signed on the client.
        signature: Raw 64-byte signature.

    Returns:
        True if the signature is valid for `message` under `pubkey_bytes`; False otherwise.
    """
    try:
        VerifyKey(pubkey_bytes).verify(message, signature)
    except (BadSignatureError, ValueError, TypeError):
        return False
    return True
