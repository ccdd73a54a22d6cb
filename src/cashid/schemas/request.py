"""Schemas describing CashID requests, stored challenges and responses."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_ACTION = "auth"


class RequestOrigin(str, Enum):
    """Who minted the nonce of a request."""

    SERVER = "server"
    USER = "user"


class RequestDescriptor(BaseModel):
    """Decoded form of a request URL."""

    model_config = ConfigDict(frozen=True)

    domain: str = ""
    path: str = "/"
    action: str = DEFAULT_ACTION
    required: list[str] = Field(default_factory=list)
    optional: list[str] = Field(default_factory=list)
    nonce: str | None = None
    data: str | None = None

    @field_validator("action", mode="before")
    @classmethod
    def _default_action(cls, value: Any) -> Any:
        return value or DEFAULT_ACTION

    @field_validator("nonce", mode="before")
    @classmethod
    def _nonce_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _check_field_lists(self) -> RequestDescriptor:
        for label, names in (("required", self.required), ("optional", self.optional)):
            if len(set(names)) != len(names):
                raise ValueError(f"{label} fields must not repeat")
        overlap = set(self.required) & set(self.optional)
        if overlap:
            raise ValueError(f"fields both required and optional: {sorted(overlap)}")
        return self


class ResponsePayload(BaseModel):
    """Signed response sent by an identity manager."""

    model_config = ConfigDict(frozen=True)

    request: str
    address: str
    signature: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class StoredRequest(BaseModel):
    """Issued request as persisted in the replay store, keyed by nonce."""

    request: str
    issued_at: datetime
    status: int | None = None
    consumed_at: datetime | None = None
    payload: ResponsePayload | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def consumed(self) -> bool:
        return self.consumed_at is not None


class IssuedRequest(BaseModel):
    """Returned to the service after issuing a request."""

    nonce: str
    request: str
    issued_at: datetime
    extra: dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    """Outcome of a successful validation."""

    nonce: str
    request: str
    action: str
    origin: RequestOrigin
    issued_at: datetime
    status: int = 0
    consumed_at: datetime
    payload: ResponsePayload
    extra: dict[str, Any] = Field(default_factory=dict)
