"""Validate an enrollment response body into TrustMaterial."""

import base64
import binascii
import re
import textwrap
from collections.abc import Mapping
from typing import Any

from node_enrollment.lib.errors import MaterialError
from node_enrollment.lib.models import TrustMaterial

HTTP_CA_CERT_FIELD = "http_ca_cert"
HTTP_CA_KEY_FIELD = "http_ca_key"
TRANSPORT_CERT_FIELD = "transport_cert"
TRANSPORT_KEY_FIELD = "transport_key"
HTTP_CERT_FIELD = "http_cert"
HTTP_KEY_FIELD = "http_key"
NODES_ADDRESSES_FIELD = "nodes_addresses"

_CERTIFICATE_LABEL = "CERTIFICATE"
_PRIVATE_KEY_LABEL = "PRIVATE KEY"
_PEM_RE = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\s*(?P<body>[A-Za-z0-9+/=\s]+?)\s*-----END (?P=label)-----"
)


def to_pem(value: str, label: str) -> str:
    """Return value as a PEM block.

    Existing nodes send the bare base64 body; a value that already carries
    envelope lines must have a matching BEGIN/END pair around a base64 body.

    Raises:
        ValueError: If the value is neither a well-formed PEM block nor base64
    """
    text = value.strip()
    if "-----BEGIN" in text:
        if not _PEM_RE.fullmatch(text):
            raise ValueError("malformed PEM envelope")
        return text + "\n"

    body = "".join(text.split())
    try:
        base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise ValueError(f"not base64: {e}") from e
    wrapped = "\n".join(textwrap.wrap(body, 64))
    return f"-----BEGIN {label}-----\n{wrapped}\n-----END {label}-----\n"


def _present(fields: Mapping[str, Any], name: str) -> bool:
    value = fields.get(name)
    return isinstance(value, str) and bool(value.strip())


def _pem_field(fields: Mapping[str, Any], name: str, label: str) -> str:
    if not _present(fields, name):
        raise MaterialError(name)
    try:
        return to_pem(fields[name], label)
    except ValueError as e:
        raise MaterialError(name, f"is not PEM encoded ({e})") from e


def _addresses(fields: Mapping[str, Any]) -> tuple[str, ...]:
    addresses = fields.get(NODES_ADDRESSES_FIELD, [])
    if not isinstance(addresses, list) or not all(isinstance(a, str) for a in addresses):
        raise MaterialError(NODES_ADDRESSES_FIELD, "must be a list of strings")
    return tuple(addresses)


def parse_material(fields: Mapping[str, Any]) -> TrustMaterial:
    """Build TrustMaterial from the fields of a successful enrollment response.

    The HTTP CA key may be absent only when the response carries the node's
    HTTP leaf certificate and key instead.

    Raises:
        MaterialError: If a required field is absent, empty or not PEM
    """
    leaf_only = not _present(fields, HTTP_CA_KEY_FIELD) and (
        _present(fields, HTTP_CERT_FIELD) and _present(fields, HTTP_KEY_FIELD)
    )

    http_ca_cert = _pem_field(fields, HTTP_CA_CERT_FIELD, _CERTIFICATE_LABEL)
    http_ca_key = None if leaf_only else _pem_field(fields, HTTP_CA_KEY_FIELD, _PRIVATE_KEY_LABEL)
    transport_key = _pem_field(fields, TRANSPORT_KEY_FIELD, _PRIVATE_KEY_LABEL)
    transport_cert = _pem_field(fields, TRANSPORT_CERT_FIELD, _CERTIFICATE_LABEL)

    http_cert = http_key = None
    if leaf_only:
        http_cert = _pem_field(fields, HTTP_CERT_FIELD, _CERTIFICATE_LABEL)
        http_key = _pem_field(fields, HTTP_KEY_FIELD, _PRIVATE_KEY_LABEL)

    return TrustMaterial(
        http_ca_cert_pem=http_ca_cert,
        http_ca_key_pem=http_ca_key,
        transport_cert_pem=transport_cert,
        transport_key_pem=transport_key,
        http_cert_pem=http_cert,
        http_key_pem=http_key,
        node_addresses=_addresses(fields),
    )
