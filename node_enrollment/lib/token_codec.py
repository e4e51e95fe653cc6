"""Enrollment token encoding and decoding.

A token is the standard base64 encoding of a compact JSON object::

    {"ver": "8.1.0", "adr": ["10.0.0.5:9200"], "fgr": "<sha256 hex>", "key": "<id:secret>"}
"""

import base64
import json
import re
from typing import Any

from node_enrollment.lib.errors import InvalidTokenError
from node_enrollment.lib.models import EnrollmentDescriptor

_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")


def split_address(address: str) -> tuple[str, int]:
    """Split a "host:port" address, accepting bracketed IPv6 hosts.

    Raises:
        ValueError: If the address has no host or no valid port
    """
    host, sep, port_text = address.rpartition(":")
    if not sep or not host or not port_text.isdigit():
        raise ValueError(f"address must be host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 host must be bracketed, got {address!r}")
    port = int(port_text)
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in {address!r}")
    return host, port


def normalize_fingerprint(fingerprint: str) -> str:
    """Lower-case a hex fingerprint and drop colon separators."""
    return fingerprint.replace(":", "").strip().lower()


def _require_str(payload: dict[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise InvalidTokenError(f"field {name!r} is missing or empty")
    return value.strip()


def decode_token(token: str) -> EnrollmentDescriptor:
    """Decode an enrollment token into an EnrollmentDescriptor.

    Args:
        token: Base64 encoded enrollment token as handed out by an existing node

    Returns:
        Descriptor with fingerprint, API key, version and bound addresses

    Raises:
        InvalidTokenError: If the token is not valid base64/JSON or a field is
            missing or malformed
    """
    try:
        raw = base64.b64decode(token.strip(), validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise InvalidTokenError(f"token is not valid base64 encoded JSON: {e}") from e

    if not isinstance(payload, dict):
        raise InvalidTokenError("token payload is not a JSON object")

    version = _require_str(payload, "ver")
    api_key = _require_str(payload, "key")
    fingerprint = normalize_fingerprint(_require_str(payload, "fgr"))
    if not _FINGERPRINT_RE.match(fingerprint):
        raise InvalidTokenError("field 'fgr' is not a SHA-256 hex fingerprint")

    addresses = payload.get("adr")
    if not isinstance(addresses, list) or not addresses:
        raise InvalidTokenError("field 'adr' must be a non-empty list")
    for address in addresses:
        if not isinstance(address, str):
            raise InvalidTokenError("field 'adr' must contain only strings")
        try:
            split_address(address)
        except ValueError as e:
            raise InvalidTokenError(str(e)) from e

    return EnrollmentDescriptor(
        fingerprint=fingerprint,
        api_key=api_key,
        version=version,
        bound_addresses=tuple(addresses),
    )


def encode_token(descriptor: EnrollmentDescriptor) -> str:
    """Encode a descriptor into the token format accepted by decode_token."""
    payload = {
        "ver": descriptor.version,
        "adr": list(descriptor.bound_addresses),
        "fgr": descriptor.fingerprint,
        "key": descriptor.api_key,
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")
