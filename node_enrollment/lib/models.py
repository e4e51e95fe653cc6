"""Data models for node enrollment."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class EnrollmentDescriptor:
    """Decoded enrollment token.

    Carries the pinned CA fingerprint, the shared secret used to authenticate
    the enrollment request and the ordered addresses of the existing nodes.
    """

    fingerprint: str
    api_key: str
    version: str
    bound_addresses: tuple[str, ...]


@dataclass(frozen=True)
class EnrollmentResponse:
    """Status and decoded JSON body of one enrollment exchange."""

    status: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True)
class TrustMaterial:
    """PEM material returned by an existing node.

    ``http_ca_key_pem`` is None in the leaf-only variant, where the existing
    node supplies ``http_cert_pem``/``http_key_pem`` instead.
    """

    http_ca_cert_pem: str
    http_ca_key_pem: str | None
    transport_cert_pem: str
    transport_key_pem: str
    http_cert_pem: str | None = None
    http_key_pem: str | None = None
    node_addresses: tuple[str, ...] = ()


@dataclass(frozen=True)
class KeystoreBundle:
    """PKCS#12 keystores protected by the same generated password."""

    transport_keystore: bytes
    http_keystore: bytes


@dataclass
class NodeState:
    """Local node state inspected before enrollment."""

    config_dir: Path
    config_file: Path
    data_paths: list[Path]
    settings: dict[str, Any]


@dataclass
class EnrollmentResult:
    """Result from a successful enrollment."""

    provisioning_dir: Path
    keystore_password: str
    enrolled_via: str
    node_addresses: list[str]


class BlockReason(Enum):
    """Reasons the safety gate refuses to enroll, in priority order."""

    EXISTING_DATA = "It appears that this is not the first time this node starts."
    SECURITY_CONFIGURED = "It appears that security is already configured."
    TLS_CONFIGURED = "It appears that TLS is already configured."


class EnrollmentStage(Enum):
    """Stages of one enrollment run."""

    IDLE = "idle"
    DECODING = "decoding"
    GATING = "gating"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    BUILDING = "building"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"
