"""Certificate utility functions for key handling, fingerprints and chain checks."""

import ipaddress
import socket
import uuid

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from node_enrollment.lib.config import NodeIdentity

SigningKey = RSAPrivateKey | ec.EllipticCurvePrivateKey


def generate_private_key(key_size: int = 4096) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(key: SigningKey) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> SigningKey:
    """Deserialize an RSA or EC private key from PEM bytes.

    Raises:
        ValueError: If the PEM is invalid or holds another key type
    """
    try:
        key = serialization.load_pem_private_key(pem_data, password=None)
    except (TypeError, UnsupportedAlgorithm) as e:
        raise ValueError(f"unreadable private key: {e}") from e
    if not isinstance(key, RSAPrivateKey | ec.EllipticCurvePrivateKey):
        raise ValueError("expected RSA or EC private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def generate_serial_number() -> int:
    """Generate certificate serial number from UUID4 (128-bit, ~122 bits of entropy)."""
    return uuid.uuid4().int


def certificate_fingerprint(cert: x509.Certificate) -> str:
    """Return the lower-case hex SHA-256 fingerprint of a certificate."""
    return cert.fingerprint(hashes.SHA256()).hex()


def der_fingerprint(der_data: bytes) -> str:
    """Return the lower-case hex SHA-256 fingerprint of a DER encoded certificate."""
    return certificate_fingerprint(x509.load_der_x509_certificate(der_data))


def _public_key_der(key: SigningKey | x509.Certificate) -> bytes:
    public_key = key.public_key()
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def key_matches_certificate(key: SigningKey, cert: x509.Certificate) -> bool:
    """Return True if the private key belongs to the certificate's public key."""
    return _public_key_der(key) == _public_key_der(cert)


def is_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Verify that cert is signed by issuer's key and names issuer's subject."""
    try:
        cert.verify_directly_issued_by(issuer)
        return True
    except (ValueError, TypeError, InvalidSignature):
        return False


def local_node_identity(node_name: str | None = None) -> NodeIdentity:
    """Collect hostnames and addresses the local node is reachable by.

    Args:
        node_name: Common name for the node certificate (default: hostname)

    Returns:
        NodeIdentity with loopback entries plus the host's own names and addresses
    """
    hostname = socket.gethostname()
    dns_names = ["localhost"]
    ip_addresses = ["127.0.0.1", "::1"]

    for name in (hostname, socket.getfqdn()):
        if name and name not in dns_names:
            dns_names.append(name)

    try:
        _, _, addresses = socket.gethostbyname_ex(hostname)
    except OSError:
        addresses = []
    for address in addresses:
        if address not in ip_addresses:
            ip_addresses.append(address)

    return NodeIdentity(
        common_name=node_name or hostname or "localhost",
        dns_names=dns_names,
        ip_addresses=ip_addresses,
    )


def subject_alternative_names(identity: NodeIdentity) -> x509.SubjectAlternativeName:
    """Build the SAN extension value for a node identity."""
    general_names: list[x509.GeneralName] = [x509.DNSName(name) for name in identity.dns_names]
    general_names.extend(
        x509.IPAddress(ipaddress.ip_address(address)) for address in identity.ip_addresses
    )
    return x509.SubjectAlternativeName(general_names)
