# src/cashid/services/crypto.py
"""Signature providers consumed by the request lifecycle."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Protocol, runtime_checkable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from cashid.core.security import verify_signature
from cashid.core.settings import settings
from cashid.utils.hash import blake3_digest

logger = logging.getLogger(__name__)

PUBKEY_LENGTH_BYTES = 32
CHECKSUM_LENGTH_BYTES = 4
SIGNATURE_LENGTH_BYTES = 64


@runtime_checkable
class SignatureProvider(Protocol):
    """Key operations the engine relies on; all values are opaque strings."""

    def sign(self, private_key: str, message: str) -> str: ...

    def verify(self, address: str, signature: str, message: str) -> bool: ...

    def derive_address(self, private_key: str) -> str: ...

    def is_valid_address(self, address: str) -> bool: ...


class CryptoService:
    """Ed25519 signature provider.

    Private keys are hex-encoded 32-byte seeds. An address is the unpadded
    lower-case base32 form of ``pubkey || blake3(pubkey)[:4]`` and may be
    written with a ``<prefix>:`` network prefix. Signatures are standard
    base64 of the raw 64 bytes.
    """

    def __init__(self, address_prefix: str | None = None) -> None:
        self.address_prefix = (address_prefix or settings.address_prefix).lower()

    # --- Address helpers ------------------------------------------------------------
    @staticmethod
    def _checksum(pubkey_bytes: bytes) -> bytes:
        return blake3_digest(pubkey_bytes)[:CHECKSUM_LENGTH_BYTES]

    def encode_address(self, pubkey_bytes: bytes, *, with_prefix: bool = False) -> str:
        """Return the address for a raw public key."""
        if len(pubkey_bytes) != PUBKEY_LENGTH_BYTES:
            raise ValueError("Ed25519 public keys must be 32 bytes")
        body = pubkey_bytes + self._checksum(pubkey_bytes)
        encoded = base64.b32encode(body).decode().rstrip("=").lower()
        return f"{self.address_prefix}:{encoded}" if with_prefix else encoded

    def decode_address(self, address: str) -> bytes:
        """Return the public key embedded in an address.

        Raises:
            ValueError: If the address is not well formed or its checksum fails.
        """
        cleaned = address.strip()
        prefix, sep, remainder = cleaned.partition(":")
        if sep:
            if prefix.lower() != self.address_prefix:
                raise ValueError(f"Unknown address prefix: {prefix}")
            cleaned = remainder
        padding = "=" * (-len(cleaned) % 8)
        try:
            body = base64.b32decode(cleaned.upper() + padding)
        except (binascii.Error, ValueError) as err:
            raise ValueError(f"Invalid base32 encoding: {err}") from err
        if len(body) != PUBKEY_LENGTH_BYTES + CHECKSUM_LENGTH_BYTES:
            raise ValueError("Address has an unexpected length")
        pubkey_bytes, checksum = body[:PUBKEY_LENGTH_BYTES], body[PUBKEY_LENGTH_BYTES:]
        if self._checksum(pubkey_bytes) != checksum:
            raise ValueError("Address checksum mismatch")
        return pubkey_bytes

    # --- SignatureProvider ----------------------------------------------------------
    @staticmethod
    def _load_private_key(private_key_hex: str) -> Ed25519PrivateKey:
        try:
            seed = bytes.fromhex(private_key_hex)
            return Ed25519PrivateKey.from_private_bytes(seed)
        except ValueError as err:
            raise ValueError(f"Invalid private key hex: {err}") from err

    def derive_address(self, private_key: str) -> str:
        """Return the address belonging to a hex-encoded private key."""
        public_bytes = self._load_private_key(private_key).public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return self.encode_address(public_bytes)

    def is_valid_address(self, address: str) -> bool:
        try:
            self.decode_address(address)
        except ValueError:
            return False
        return True

    def sign(self, private_key: str, message: str) -> str:
        """Sign ``message`` and return the base64 signature."""
        signature = self._load_private_key(private_key).sign(message.encode())
        return base64.b64encode(signature).decode()

    def verify(self, address: str, signature: str, message: str) -> bool:
        """Return True if ``signature`` over ``message`` was made by ``address``."""
        try:
            pubkey_bytes = self.decode_address(address)
            signature_bytes = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError) as err:
            logger.debug("Rejecting undecodable signature material: %s", err)
            return False
        if len(signature_bytes) != SIGNATURE_LENGTH_BYTES:
            return False
        return verify_signature(pubkey_bytes, message.encode(), signature_bytes)

    @classmethod
    def generate_key_pair(cls, address_prefix: str | None = None) -> tuple[str, str]:
        """Generate a new Ed25519 key pair.

        Returns:
            Tuple of (private_key_hex, address)
        """
        private_key = Ed25519PrivateKey.generate()
        private_hex = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        ).hex()
        return private_hex, cls(address_prefix).derive_address(private_hex)
