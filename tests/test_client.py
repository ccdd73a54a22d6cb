"""Tests for the identity manager helpers."""

from datetime import timedelta

import pytest

from cashid.core.errors import ResponseMissingMetadataError
from cashid.services.client import CashIDClient
from cashid.services.crypto import CryptoService
from tests.conftest import FIXED_NOW

REQUEST = "cashid:cashid.infra.cash/api/auth?a=auth&r=i12&o=p1&x=554077219"


def test_parse_request(cashid_client: CashIDClient) -> None:
    descriptor = cashid_client.parse_request(REQUEST)
    assert descriptor.required == ["name", "family"]
    assert descriptor.optional == ["country"]
    assert descriptor.nonce == "554077219"


def test_create_response_requires_fields(cashid_client: CashIDClient, key_pair: tuple[str, str]) -> None:
    with pytest.raises(ResponseMissingMetadataError) as exc_info:
        cashid_client.create_response(REQUEST, {"name": "firstname"}, key_pair[0])
    assert exc_info.value.fields == ["family"]
    assert exc_info.value.nonce == "554077219"


def test_create_signed_response(
    cashid_client: CashIDClient, crypto: CryptoService, key_pair: tuple[str, str]
) -> None:
    private_hex, address = key_pair
    response = cashid_client.create_response(REQUEST, {"name": "a", "family": "b"}, private_hex)
    assert response.request == REQUEST
    assert response.address == address
    assert response.metadata == {"name": "a", "family": "b"}
    assert crypto.verify(address, response.signature, REQUEST)


def test_create_unsigned_response(cashid_client: CashIDClient) -> None:
    response = cashid_client.create_response(REQUEST, {"name": "a", "family": "b"})
    assert response.address == ""
    assert response.signature == ""


def test_sign_request(cashid_client: CashIDClient, crypto: CryptoService, key_pair: tuple[str, str]) -> None:
    signature = cashid_client.sign_request(REQUEST, key_pair[0])
    assert crypto.verify(key_pair[1], signature, REQUEST)


def test_create_user_request(cashid_client: CashIDClient) -> None:
    url = cashid_client.create_user_request(
        "cashid.infra.cash", "/api/auth", "revoke", now=FIXED_NOW - timedelta(seconds=5)
    )
    timestamp = int(FIXED_NOW.timestamp()) - 5
    assert url == f"cashid:cashid.infra.cash/api/auth?a=revoke&x={timestamp}"
    assert cashid_client.parse_request(url).nonce == str(timestamp)
