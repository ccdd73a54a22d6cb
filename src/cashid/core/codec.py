"""Encoding and decoding of CashID request URLs.

Wire form::

    <scheme>:<domain><path>?a=<action>[&d=<data>][&r=<fields>][&o=<fields>]&x=<nonce>

The scheme, domain and path are reproduced byte for byte, so a service can
compare a returned URL against the one it issued.
"""

from __future__ import annotations

from urllib.parse import parse_qs, quote, urlencode, urlsplit

from pydantic import ValidationError

from cashid.core.errors import (
    MalformedFieldListError,
    NotARequestError,
    RequestBrokenError,
    RequestMissingDomainError,
)
from cashid.core.fields import decode_field_list, encode_field_list
from cashid.core.settings import settings
from cashid.schemas.request import DEFAULT_ACTION, RequestDescriptor


def _normalize_path(path: str) -> str:
    return "/" + path.lstrip("/")


class RequestCodec:
    """Translate between :class:`RequestDescriptor` and request URLs."""

    def __init__(self, scheme: str | None = None) -> None:
        self.scheme = (scheme or settings.request_scheme).lower()

    def encode(self, descriptor: RequestDescriptor) -> str:
        """Build the request URL for ``descriptor``.

        The action is always written out, even when it is the default.
        """
        if not descriptor.domain:
            raise RequestMissingDomainError(nonce=descriptor.nonce)

        params: list[tuple[str, str]] = [("a", descriptor.action or DEFAULT_ACTION)]
        if descriptor.data is not None:
            params.append(("d", descriptor.data))
        if descriptor.required:
            params.append(("r", encode_field_list(descriptor.required)))
        if descriptor.optional:
            params.append(("o", encode_field_list(descriptor.optional)))
        if descriptor.nonce is not None:
            params.append(("x", descriptor.nonce))

        query = urlencode(params, quote_via=quote, safe="")
        return f"{self.scheme}:{descriptor.domain}{_normalize_path(descriptor.path)}?{query}"

    def decode(self, url: str) -> RequestDescriptor:
        """Parse a request URL.

        Raises:
            NotARequestError: The URL is not a string or uses another scheme.
            RequestMissingDomainError: The URL carries no domain.
            MalformedFieldListError: A field list holds an unusable character.
            RequestBrokenError: The URL cannot be split, or its field lists
                repeat or overlap.
        """
        if not isinstance(url, str):
            raise NotARequestError(detail="request must be a string")
        try:
            parts = urlsplit(url.strip())
        except ValueError as err:
            raise RequestBrokenError(detail=str(err)) from err

        if parts.scheme.lower() != self.scheme:
            raise NotARequestError(detail=f"unexpected scheme {parts.scheme!r}")

        query = parse_qs(parts.query, keep_blank_values=True)

        def first(key: str) -> str | None:
            values = query.get(key)
            return values[0] if values else None

        nonce = first("x") or None
        location = parts.netloc + parts.path if parts.netloc else parts.path
        domain, _, path = location.partition("/")
        if not domain:
            raise RequestMissingDomainError(nonce=nonce)

        try:
            required = decode_field_list(first("r") or "")
            optional = decode_field_list(first("o") or "")
        except MalformedFieldListError as err:
            err.nonce = nonce
            raise

        try:
            return RequestDescriptor(
                domain=domain,
                path=_normalize_path(path),
                action=first("a") or DEFAULT_ACTION,
                required=required,
                optional=optional,
                nonce=nonce,
                data=first("d"),
            )
        except ValidationError as err:
            raise RequestBrokenError(nonce=nonce, detail=str(err)) from err


_default_codec = RequestCodec()


def parse_request(url: str) -> RequestDescriptor:
    """Decode ``url`` with the configured scheme."""
    return _default_codec.decode(url)


def create_request_url(descriptor: RequestDescriptor) -> str:
    """Encode ``descriptor`` with the configured scheme."""
    return _default_codec.encode(descriptor)
