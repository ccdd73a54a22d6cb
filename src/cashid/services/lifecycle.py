"""Issuance and validation of CashID requests.

Server-initiated requests are minted here, persisted in the replay store and
consumed exactly once by a valid signed response. User-initiated requests
(revocations, updates, ...) carry the client's own Unix timestamp as nonce and
are accepted purely on freshness; they never touch storage.
"""

from __future__ import annotations

import json
import logging
import secrets
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from cashid.core.codec import RequestCodec
from cashid.core.errors import (
    CashIDError,
    RequestAlteredError,
    RequestConsumedError,
    RequestInvalidNonceError,
    RequestMissingNonceError,
    ResponseBrokenError,
    ResponseInvalidSignatureError,
    ResponseMalformedAddressError,
    ResponseMalformedMetadataError,
    ResponseMalformedSignatureError,
    ResponseMissingAddressError,
    ResponseMissingMetadataError,
    ResponseMissingRequestError,
    ResponseMissingSignatureError,
    ServiceInternalError,
)
from cashid.core.settings import settings
from cashid.schemas.request import (
    IssuedRequest,
    RequestDescriptor,
    RequestOrigin,
    ResponsePayload,
    StoredRequest,
    ValidationResult,
)
from cashid.services.crypto import CryptoService, SignatureProvider
from cashid.services.replay import ReplayStore, get_replay_store
from cashid.utils.time import from_unix, utcnow

logger = logging.getLogger(__name__)


class UserAction(str, Enum):
    """Actions whose requests are built by the identity manager itself."""

    DELETE = "delete"
    REVOKE = "revoke"
    LOGOUT = "logout"
    UPDATE = "update"


class RequestLifecycle:
    """Issue requests and validate the signed responses to them.

    The lifecycle keeps no state of its own between calls; everything lives
    in the injected :class:`ReplayStore`.
    """

    def __init__(
        self,
        domain: str | None = None,
        path: str | None = None,
        *,
        store: ReplayStore | None = None,
        signer: SignatureProvider | None = None,
        codec: RequestCodec | None = None,
        user_actions: Iterable[str | UserAction] | None = None,
        clock: Callable[[], datetime] | None = None,
        address_prefix: str | None = None,
    ) -> None:
        self.domain = domain or settings.service_domain
        self.path = path or settings.service_path
        self._store = store if store is not None else get_replay_store()
        self._signer: SignatureProvider = signer if signer is not None else CryptoService()
        self._codec = codec or RequestCodec()
        actions = settings.user_initiated_actions if user_actions is None else user_actions
        self.user_actions = frozenset(
            action.value if isinstance(action, UserAction) else action for action in actions
        )
        self._clock = clock or utcnow
        self._address_prefix = (address_prefix or settings.address_prefix).lower()
        self.clock_skew_seconds = settings.clock_skew_seconds
        self.user_window_seconds = settings.user_window_seconds
        self.nonce_max = settings.nonce_max
        self.nonce_mint_attempts = settings.nonce_mint_attempts

    def classify(self, action: str) -> RequestOrigin:
        """Return who minted the nonce of a request carrying ``action``."""
        if action in self.user_actions:
            return RequestOrigin.USER
        return RequestOrigin.SERVER

    # --- Issuance -------------------------------------------------------------------
    def issue(
        self,
        descriptor: RequestDescriptor | Mapping[str, Any] | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> IssuedRequest:
        """Create, persist and return a server-initiated request.

        Args:
            descriptor: Action, field lists, optional data and nonce. Domain
                and path are always replaced by the service's own values.
            extra: Caller data stored alongside the request and handed back
                on successful validation.
        """
        if descriptor is None:
            descriptor = RequestDescriptor()
        elif not isinstance(descriptor, RequestDescriptor):
            descriptor = RequestDescriptor.model_validate(dict(descriptor))
        descriptor = descriptor.model_copy(update={"domain": self.domain, "path": self.path})

        issued_at = self._clock()
        bag = dict(extra or {})

        if descriptor.nonce:
            nonce = descriptor.nonce
            url = self._codec.encode(descriptor)
            if self._store.get(nonce) is not None:
                logger.warning("Overwriting stored CashID request for nonce %s", nonce)
            self._store.set(nonce, StoredRequest(request=url, issued_at=issued_at, extra=bag))
        else:
            nonce, url = self._mint(descriptor, issued_at, bag)

        logger.info("Issued CashID request %s for action %s", nonce, descriptor.action)
        return IssuedRequest(nonce=nonce, request=url, issued_at=issued_at, extra=bag)

    def _mint(
        self,
        descriptor: RequestDescriptor,
        issued_at: datetime,
        extra: dict[str, Any],
    ) -> tuple[str, str]:
        for _ in range(self.nonce_mint_attempts):
            nonce = str(secrets.randbelow(self.nonce_max + 1))
            url = self._codec.encode(descriptor.model_copy(update={"nonce": nonce}))
            stored = StoredRequest(request=url, issued_at=issued_at, extra=extra)
            if self._store.add(nonce, stored):
                return nonce, url
            logger.warning("Minted nonce %s collides with a stored request; retrying", nonce)
        raise ServiceInternalError(detail="could not mint an unused nonce")

    def lookup(self, nonce: str) -> StoredRequest | None:
        """Return the stored state of an issued request, if any."""
        return self._store.get(str(nonce))

    def discard(self, nonce: str) -> None:
        """Evict an issued request so it can no longer be answered."""
        self._store.delete(str(nonce))

    # --- Validation -----------------------------------------------------------------
    def validate(self, payload: ResponsePayload | Mapping[str, Any] | str | bytes) -> ValidationResult:
        """Validate a signed response and consume its request.

        Checks run in a fixed order and the first failure is raised.

        Raises:
            CashIDError: One subclass per failure condition.
        """
        try:
            result = self._validate(payload)
        except CashIDError as err:
            logger.warning("Rejected CashID response (nonce=%s): %s", err.nonce, err)
            raise
        logger.info("Accepted CashID response for nonce %s (%s)", result.nonce, result.origin.value)
        return result

    def _validate(self, payload: Any) -> ValidationResult:
        body = self._as_mapping(payload)

        request = body.get("request")
        if not request:
            raise ResponseMissingRequestError()

        descriptor = self._codec.decode(request)
        nonce = descriptor.nonce

        address = body.get("address")
        if not address:
            raise ResponseMissingAddressError(nonce=nonce)
        if not isinstance(address, str) or not self._is_acceptable_address(address):
            raise ResponseMalformedAddressError(nonce=nonce)

        signature = body.get("signature")
        if not signature:
            raise ResponseMissingSignatureError(nonce=nonce)
        if not isinstance(signature, str):
            raise ResponseMalformedSignatureError(nonce=nonce)

        metadata = body.get("metadata") or {}
        if not isinstance(metadata, Mapping) or not all(isinstance(key, str) for key in metadata):
            raise ResponseMalformedMetadataError(nonce=nonce)

        if nonce is None:
            raise RequestMissingNonceError()

        origin = self.classify(descriptor.action)
        stored: StoredRequest | None = None
        if origin is RequestOrigin.USER:
            issued_at = self._check_user_nonce(nonce)
        else:
            stored = self._store.get(nonce)
            if stored is None:
                raise RequestInvalidNonceError(nonce=nonce)
            if request != stored.request:
                raise RequestAlteredError(nonce=nonce)
            if stored.consumed:
                raise RequestConsumedError(nonce=nonce)
            issued_at = stored.issued_at

        if not self._signer.verify(address, signature, request):
            raise ResponseInvalidSignatureError(nonce=nonce)

        missing = [field for field in descriptor.required if not metadata.get(field)]
        if missing:
            raise ResponseMissingMetadataError(nonce=nonce, fields=missing)

        response = ResponsePayload(
            request=request,
            address=address,
            signature=signature,
            metadata=dict(metadata),
        )
        now = self._clock()

        if stored is None:
            return ValidationResult(
                nonce=nonce,
                request=request,
                action=descriptor.action,
                origin=origin,
                issued_at=issued_at,
                consumed_at=now,
                payload=response,
            )

        consumed = self._store.consume(nonce, request, response, now)
        if consumed is None:
            # Lost the compare-and-set to a concurrent validation
            raise RequestConsumedError(nonce=nonce)
        return ValidationResult(
            nonce=nonce,
            request=consumed.request,
            action=descriptor.action,
            origin=origin,
            issued_at=consumed.issued_at,
            status=consumed.status or 0,
            consumed_at=consumed.consumed_at or now,
            payload=response,
            extra=consumed.extra,
        )

    @staticmethod
    def _as_mapping(payload: Any) -> Mapping[str, Any]:
        if isinstance(payload, ResponsePayload):
            return payload.model_dump()
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                payload = json.loads(payload)
            except ValueError as err:
                raise ResponseBrokenError(detail=str(err)) from err
        if not isinstance(payload, Mapping):
            raise ResponseBrokenError()
        return payload

    def _is_acceptable_address(self, address: str) -> bool:
        if address.strip().lower().startswith(f"{self._address_prefix}:"):
            return False
        return self._signer.is_valid_address(address)

    def _check_user_nonce(self, nonce: str) -> datetime:
        if not (nonce.isascii() and nonce.isdigit()):
            raise RequestInvalidNonceError(nonce=nonce)
        timestamp = int(nonce)
        now = int(self._clock().timestamp())
        upper = now + self.clock_skew_seconds
        lower = now - self.user_window_seconds
        if not lower <= timestamp <= upper:
            raise RequestInvalidNonceError(nonce=nonce)
        return from_unix(timestamp)


def get_lifecycle() -> RequestLifecycle:
    """Return a request lifecycle configured from settings."""
    return RequestLifecycle()
