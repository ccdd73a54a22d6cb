"""Catalogue of requestable metadata fields and their compact encoding.

A field list travels inside a request URL as a run of namespace letters each
followed by single-character codes, e.g. ``i12p1c1`` for name, family, country
and email.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from cashid.core.errors import MalformedFieldListError, UnsupportedFieldError


class FieldNamespace(str, Enum):
    """Metadata namespaces, valued by their wire letter."""

    IDENTITY = "i"
    POSITION = "p"
    CONTACT = "c"


@dataclass(frozen=True)
class FieldSpec:
    """One catalogue entry."""

    namespace: FieldNamespace
    code: str
    name: str


FIELD_CATALOG: tuple[FieldSpec, ...] = (
    FieldSpec(FieldNamespace.IDENTITY, "1", "name"),
    FieldSpec(FieldNamespace.IDENTITY, "2", "family"),
    FieldSpec(FieldNamespace.IDENTITY, "3", "nickname"),
    FieldSpec(FieldNamespace.IDENTITY, "4", "age"),
    FieldSpec(FieldNamespace.IDENTITY, "5", "gender"),
    FieldSpec(FieldNamespace.IDENTITY, "6", "birthdate"),
    FieldSpec(FieldNamespace.IDENTITY, "8", "picture"),
    FieldSpec(FieldNamespace.IDENTITY, "9", "national"),
    FieldSpec(FieldNamespace.POSITION, "1", "country"),
    FieldSpec(FieldNamespace.POSITION, "2", "state"),
    FieldSpec(FieldNamespace.POSITION, "3", "city"),
    FieldSpec(FieldNamespace.POSITION, "4", "streetname"),
    FieldSpec(FieldNamespace.POSITION, "5", "streetnumber"),
    FieldSpec(FieldNamespace.POSITION, "6", "residence"),
    FieldSpec(FieldNamespace.POSITION, "9", "coordinates"),
    FieldSpec(FieldNamespace.CONTACT, "1", "email"),
    FieldSpec(FieldNamespace.CONTACT, "2", "instant"),
    FieldSpec(FieldNamespace.CONTACT, "3", "social"),
    FieldSpec(FieldNamespace.CONTACT, "4", "phone"),
    FieldSpec(FieldNamespace.CONTACT, "5", "postal"),
)

_BY_CODE: dict[tuple[FieldNamespace, str], FieldSpec] = {
    (spec.namespace, spec.code): spec for spec in FIELD_CATALOG
}
_BY_NAME: dict[str, FieldSpec] = {spec.name: spec for spec in FIELD_CATALOG}
_NAMESPACE_LETTERS: dict[str, FieldNamespace] = {ns.value: ns for ns in FieldNamespace}


def name_for_code(namespace: FieldNamespace | str, code: str) -> str:
    """Return the field name registered under ``(namespace, code)``."""
    try:
        spec = _BY_CODE[(FieldNamespace(namespace), str(code))]
    except (KeyError, ValueError) as err:
        raise UnsupportedFieldError(f"{namespace}{code}") from err
    return spec.name


def code_for_name(name: str) -> tuple[FieldNamespace, str]:
    """Return the ``(namespace, code)`` pair registered for ``name``."""
    spec = _BY_NAME.get(name)
    if spec is None:
        raise UnsupportedFieldError(name)
    return spec.namespace, spec.code


def encode_field_list(names: Iterable[str]) -> str:
    """Encode field names into the compact namespace-major form.

    Namespaces are emitted in catalogue order; codes within a namespace keep
    the order in which the names were supplied.
    """
    grouped: dict[FieldNamespace, list[str]] = {ns: [] for ns in FieldNamespace}
    for name in names:
        namespace, code = code_for_name(name)
        grouped[namespace].append(code)
    return "".join(ns.value + "".join(codes) for ns, codes in grouped.items() if codes)


def decode_field_list(compact: str) -> list[str]:
    """Decode a compact field list into field names, left to right."""
    names: list[str] = []
    namespace: FieldNamespace | None = None
    for char in compact:
        if char in _NAMESPACE_LETTERS:
            namespace = _NAMESPACE_LETTERS[char]
            continue
        spec = _BY_CODE.get((namespace, char)) if namespace is not None else None
        if spec is None:
            raise MalformedFieldListError(char)
        names.append(spec.name)
    return names
