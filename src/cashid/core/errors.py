"""Closed taxonomy of CashID failure conditions.

Every failure raised by the codec or the request lifecycle is an instance of
one :class:`CashIDError` subclass. Each subclass is bound to exactly one
:class:`StatusCode`, so callers can branch either on the exception type or on
``err.status``. Instances optionally carry the request ``nonce`` and, for
metadata failures, the list of missing ``fields``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from enum import IntEnum


class StatusCode(IntEnum):
    """Numeric status codes shared by services and identity managers."""

    AUTHENTICATION_SUCCESSFUL = 0

    REQUEST_BROKEN = 100
    REQUEST_MISSING_SCHEME = 111
    REQUEST_MISSING_DOMAIN = 112
    REQUEST_MISSING_NONCE = 113
    REQUEST_MALFORMED_SCHEME = 121
    REQUEST_MALFORMED_DOMAIN = 122
    REQUEST_INVALID_DOMAIN = 131
    REQUEST_INVALID_NONCE = 132
    REQUEST_ALTERED = 141
    REQUEST_EXPIRED = 142
    REQUEST_CONSUMED = 143

    RESPONSE_BROKEN = 200
    RESPONSE_MISSING_REQUEST = 211
    RESPONSE_MISSING_ADDRESS = 212
    RESPONSE_MISSING_SIGNATURE = 213
    RESPONSE_MISSING_METADATA = 214
    RESPONSE_MALFORMED_ADDRESS = 221
    RESPONSE_MALFORMED_SIGNATURE = 222
    RESPONSE_MALFORMED_METADATA = 223
    RESPONSE_INVALID_METHOD = 231
    RESPONSE_INVALID_ADDRESS = 232
    RESPONSE_INVALID_SIGNATURE = 233
    RESPONSE_INVALID_METADATA = 234

    SERVICE_BROKEN = 300
    SERVICE_ADDRESS_DENIED = 311
    SERVICE_ADDRESS_REVOKED = 312
    SERVICE_ACTION_DENIED = 321
    SERVICE_ACTION_UNAVAILABLE = 322
    SERVICE_ACTION_NOT_IMPLEMENTED = 323
    SERVICE_INTERNAL_ERROR = 331


def describe_status(status: int) -> str:
    """Return the human readable label of a status code.

    >>> describe_status(214)
    'response missing metadata'
    """
    return StatusCode(status).name.replace("_", " ").lower()


class CashIDError(Exception):
    """Base class for every protocol failure."""

    status: StatusCode = StatusCode.SERVICE_BROKEN

    def __init__(
        self,
        *,
        nonce: str | None = None,
        fields: Sequence[str] | None = None,
        detail: str | None = None,
    ) -> None:
        self.nonce = nonce
        self.fields = list(fields) if fields is not None else []
        self.detail = detail
        super().__init__(f"{int(self.status)}: {describe_status(self.status)}")

    @property
    def code(self) -> int:
        return int(self.status)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly description suitable for a status response."""
        body: dict[str, object] = {"status": self.code, "message": describe_status(self.status)}
        if self.nonce is not None:
            body["nonce"] = self.nonce
        if self.fields:
            body["fields"] = list(self.fields)
        return body


# --- Request errors -------------------------------------------------------------


class RequestError(CashIDError):
    """Failures attributable to the request URL."""

    status = StatusCode.REQUEST_BROKEN


class RequestBrokenError(RequestError):
    status = StatusCode.REQUEST_BROKEN


class RequestMissingSchemeError(RequestError):
    status = StatusCode.REQUEST_MISSING_SCHEME


class RequestMissingDomainError(RequestError):
    status = StatusCode.REQUEST_MISSING_DOMAIN


class RequestMissingNonceError(RequestError):
    status = StatusCode.REQUEST_MISSING_NONCE


class RequestMalformedSchemeError(RequestError):
    status = StatusCode.REQUEST_MALFORMED_SCHEME


class RequestMalformedDomainError(RequestError):
    status = StatusCode.REQUEST_MALFORMED_DOMAIN


class RequestInvalidDomainError(RequestError):
    status = StatusCode.REQUEST_INVALID_DOMAIN


class RequestInvalidNonceError(RequestError):
    status = StatusCode.REQUEST_INVALID_NONCE


class RequestAlteredError(RequestError):
    status = StatusCode.REQUEST_ALTERED


class RequestExpiredError(RequestError):
    status = StatusCode.REQUEST_EXPIRED


class RequestConsumedError(RequestError):
    status = StatusCode.REQUEST_CONSUMED


class NotARequestError(RequestMalformedSchemeError):
    """Raised when a URL does not use the CashID scheme."""


class MalformedFieldListError(RequestBrokenError):
    """Raised when a compact field list contains an unusable character."""

    def __init__(self, character: str, **context: object) -> None:
        self.character = character
        super().__init__(detail=f"unsupported field code {character!r}", **context)  # type: ignore[arg-type]


class UnsupportedFieldError(RequestBrokenError):
    """Raised when a field name or (namespace, code) pair is not catalogued."""

    def __init__(self, field: str, **context: object) -> None:
        self.field = field
        super().__init__(detail=f"unsupported field {field!r}", **context)  # type: ignore[arg-type]


# --- Response errors ------------------------------------------------------------


class ResponseError(CashIDError):
    """Failures attributable to the identity manager's response payload."""

    status = StatusCode.RESPONSE_BROKEN


class ResponseBrokenError(ResponseError):
    status = StatusCode.RESPONSE_BROKEN


class ResponseMissingRequestError(ResponseError):
    status = StatusCode.RESPONSE_MISSING_REQUEST


class ResponseMissingAddressError(ResponseError):
    status = StatusCode.RESPONSE_MISSING_ADDRESS


class ResponseMissingSignatureError(ResponseError):
    status = StatusCode.RESPONSE_MISSING_SIGNATURE


class ResponseMissingMetadataError(ResponseError):
    status = StatusCode.RESPONSE_MISSING_METADATA


class ResponseMalformedAddressError(ResponseError):
    status = StatusCode.RESPONSE_MALFORMED_ADDRESS


class ResponseMalformedSignatureError(ResponseError):
    status = StatusCode.RESPONSE_MALFORMED_SIGNATURE


class ResponseMalformedMetadataError(ResponseError):
    status = StatusCode.RESPONSE_MALFORMED_METADATA


class ResponseInvalidMethodError(ResponseError):
    status = StatusCode.RESPONSE_INVALID_METHOD


class ResponseInvalidAddressError(ResponseError):
    status = StatusCode.RESPONSE_INVALID_ADDRESS


class ResponseInvalidSignatureError(ResponseError):
    status = StatusCode.RESPONSE_INVALID_SIGNATURE


class ResponseInvalidMetadataError(ResponseError):
    status = StatusCode.RESPONSE_INVALID_METADATA


# --- Service errors (reserved for policy layers) --------------------------------


class ServiceError(CashIDError):
    status = StatusCode.SERVICE_BROKEN


class ServiceBrokenError(ServiceError):
    status = StatusCode.SERVICE_BROKEN


class ServiceAddressDeniedError(ServiceError):
    status = StatusCode.SERVICE_ADDRESS_DENIED


class ServiceAddressRevokedError(ServiceError):
    status = StatusCode.SERVICE_ADDRESS_REVOKED


class ServiceActionDeniedError(ServiceError):
    status = StatusCode.SERVICE_ACTION_DENIED


class ServiceActionUnavailableError(ServiceError):
    status = StatusCode.SERVICE_ACTION_UNAVAILABLE


class ServiceActionNotImplementedError(ServiceError):
    status = StatusCode.SERVICE_ACTION_NOT_IMPLEMENTED


class ServiceInternalError(ServiceError):
    status = StatusCode.SERVICE_INTERNAL_ERROR


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")

ERRORS_BY_STATUS: dict[StatusCode, type[CashIDError]] = {
    cls.status: cls
    for cls in (
        RequestBrokenError,
        RequestMissingSchemeError,
        RequestMissingDomainError,
        RequestMissingNonceError,
        RequestMalformedSchemeError,
        RequestMalformedDomainError,
        RequestInvalidDomainError,
        RequestInvalidNonceError,
        RequestAlteredError,
        RequestExpiredError,
        RequestConsumedError,
        ResponseBrokenError,
        ResponseMissingRequestError,
        ResponseMissingAddressError,
        ResponseMissingSignatureError,
        ResponseMissingMetadataError,
        ResponseMalformedAddressError,
        ResponseMalformedSignatureError,
        ResponseMalformedMetadataError,
        ResponseInvalidMethodError,
        ResponseInvalidAddressError,
        ResponseInvalidSignatureError,
        ResponseInvalidMetadataError,
        ServiceBrokenError,
        ServiceAddressDeniedError,
        ServiceAddressRevokedError,
        ServiceActionDeniedError,
        ServiceActionUnavailableError,
        ServiceActionNotImplementedError,
        ServiceInternalError,
    )
}


def error_for_status(
    status: int,
    *,
    nonce: str | None = None,
    fields: Sequence[str] | None = None,
) -> CashIDError:
    """Build the exception matching a numeric status code.

    Raises:
        ValueError: If ``status`` is unknown or denotes success.
    """
    code = StatusCode(status)
    if code is StatusCode.AUTHENTICATION_SUCCESSFUL:
        raise ValueError("Status 0 denotes success and has no error")
    return ERRORS_BY_STATUS[code](nonce=nonce, fields=fields)


def status_from_name(name: str) -> StatusCode:
    """Resolve a camel-case status name such as ``"RequestAltered"``."""
    words = _CAMEL_BOUNDARY.split(name.strip())
    try:
        return StatusCode["_".join(words).upper()]
    except KeyError as err:
        raise ValueError(f"Unknown status name: {name}") from err
