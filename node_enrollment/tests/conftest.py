"""Test fixtures for node_enrollment tests."""

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from node_enrollment.lib.cert_utils import (
    certificate_fingerprint,
    generate_private_key,
    serialize_certificate,
    serialize_private_key,
)
from node_enrollment.lib.config import EnrollmentConfig, NodeIdentity
from node_enrollment.lib.models import EnrollmentDescriptor
from node_enrollment.lib.token_codec import encode_token
from node_enrollment.tests.helpers import build_self_signed, pem_body


@pytest.fixture
def enrollment_config() -> EnrollmentConfig:
    """Return enrollment configuration with a small key size for speed."""
    return EnrollmentConfig(key_size=2048, http_cert_validity_days=30)


@pytest.fixture
def node_identity() -> NodeIdentity:
    """Return a fixed identity for the issued HTTP certificate."""
    return NodeIdentity(
        common_name="node-2",
        dns_names=["localhost", "node-2.example.internal"],
        ip_addresses=["127.0.0.1", "::1"],
    )


@pytest.fixture(scope="session")
def http_ca_key() -> RSAPrivateKey:
    """Generate RSA private key for the HTTP CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture(scope="session")
def http_ca_cert(http_ca_key: RSAPrivateKey) -> x509.Certificate:
    """Generate self-signed HTTP CA certificate."""
    return build_self_signed(http_ca_key, "Test HTTP CA", ca=True)


@pytest.fixture(scope="session")
def transport_key() -> RSAPrivateKey:
    """Generate RSA private key shared by all nodes for transport TLS."""
    return generate_private_key(key_size=2048)


@pytest.fixture(scope="session")
def transport_cert(transport_key: RSAPrivateKey) -> x509.Certificate:
    """Generate self-signed all-nodes transport certificate."""
    return build_self_signed(transport_key, "Test Transport", ca=False)


@pytest.fixture
def response_body(
    http_ca_key: RSAPrivateKey,
    http_ca_cert: x509.Certificate,
    transport_key: RSAPrivateKey,
    transport_cert: x509.Certificate,
) -> dict[str, Any]:
    """Return an enrollment response body in the wire format (bare base64 bodies)."""
    return {
        "http_ca_key": pem_body(serialize_private_key(http_ca_key)),
        "http_ca_cert": pem_body(serialize_certificate(http_ca_cert)),
        "transport_key": pem_body(serialize_private_key(transport_key)),
        "transport_cert": pem_body(serialize_certificate(transport_cert)),
        "nodes_addresses": ["127.0.0.1:9300", "192.168.1.10:9301"],
    }


@pytest.fixture
def descriptor(http_ca_cert: x509.Certificate) -> EnrollmentDescriptor:
    """Return a descriptor pinned to the test HTTP CA."""
    return EnrollmentDescriptor(
        fingerprint=certificate_fingerprint(http_ca_cert),
        api_key="Yk9ZbkZwMEJ:dGVzdC1zZWNyZXQ",
        version="8.1.0",
        bound_addresses=("192.168.1.10:9200", "192.168.1.11:9200"),
    )


@pytest.fixture
def token(descriptor: EnrollmentDescriptor) -> str:
    """Return the encoded enrollment token for the test descriptor."""
    return encode_token(descriptor)


@pytest.fixture
def config_dir(tmp_path: Path) -> Generator[Path]:
    """Create a fresh node home with a minimal configuration file.

    Creates:
        {tmp}/node/config/node.yml
    """
    config_dir = tmp_path / "node" / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "node.yml").write_text("cluster.name: test-cluster\n")
    yield config_dir
