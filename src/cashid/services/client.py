"""Identity manager helpers: read requests and build signed responses."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from cashid.core.codec import RequestCodec
from cashid.core.errors import ResponseMissingMetadataError
from cashid.schemas.request import RequestDescriptor, ResponsePayload
from cashid.services.crypto import CryptoService, SignatureProvider
from cashid.utils.time import utcnow


class CashIDClient:
    """Client side of the protocol."""

    def __init__(
        self,
        signer: SignatureProvider | None = None,
        codec: RequestCodec | None = None,
    ) -> None:
        self._signer: SignatureProvider = signer if signer is not None else CryptoService()
        self._codec = codec or RequestCodec()

    def parse_request(self, request_url: str) -> RequestDescriptor:
        return self._codec.decode(request_url)

    def sign_request(self, request_url: str, private_key: str) -> str:
        """Sign the verbatim request URL."""
        return self._signer.sign(private_key, request_url)

    def create_response(
        self,
        request_url: str,
        metadata: Mapping[str, Any],
        private_key: str | None = None,
    ) -> ResponsePayload:
        """Build the response to ``request_url``.

        Without a private key the address and signature are left empty, for
        callers that sign elsewhere.

        Raises:
            ResponseMissingMetadataError: A required field has no value.
        """
        descriptor = self.parse_request(request_url)
        missing = [field for field in descriptor.required if not metadata.get(field)]
        if missing:
            raise ResponseMissingMetadataError(nonce=descriptor.nonce, fields=missing)

        address = signature = ""
        if private_key is not None:
            address = self._signer.derive_address(private_key)
            signature = self.sign_request(request_url, private_key)
        return ResponsePayload(
            request=request_url,
            address=address,
            signature=signature,
            metadata=dict(metadata),
        )

    def create_user_request(
        self,
        domain: str,
        path: str,
        action: str,
        *,
        data: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """Build a user-initiated request whose nonce is the current Unix time."""
        timestamp = int((now or utcnow()).timestamp())
        descriptor = RequestDescriptor(
            domain=domain,
            path=path,
            action=action,
            nonce=str(timestamp),
            data=data,
        )
        return self._codec.encode(descriptor)
