"""Assemble the transport and HTTP PKCS#12 keystores from trust material."""

import secrets
import string

from asn1crypto import cms, core
from asn1crypto import pkcs12 as asn1_pkcs12
from cryptography import x509
from cryptography.hazmat.primitives import hashes, hmac, serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from node_enrollment.lib.cert_utils import (
    SigningKey,
    deserialize_certificate,
    deserialize_private_key,
    generate_private_key,
    is_issued_by,
    key_matches_certificate,
    local_node_identity,
)
from node_enrollment.lib.certificate_builder import CertificateBuilder
from node_enrollment.lib.config import EnrollmentConfig, NodeIdentity
from node_enrollment.lib.errors import KeystoreError
from node_enrollment.lib.models import KeystoreBundle, TrustMaterial

_PASSWORD_ALPHABET = string.ascii_letters + string.digits
_MAC_ITERATIONS = 2048
_MAC_SALT_BYTES = 16
_SHA256_BLOCK_BYTES = 64



def generate_keystore_password(length: int = 20) -> str:
    """Generate a random alphanumeric keystore password."""
    return "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def _load_pair(key_pem: str, cert_pem: str, label: str) -> tuple[SigningKey, x509.Certificate]:
    try:
        key = deserialize_private_key(key_pem.encode("ascii"))
        cert = deserialize_certificate(cert_pem.encode("ascii"))
    except ValueError as e:
        raise KeystoreError(f"cannot parse {label} key or certificate: {e}") from e
    if not key_matches_certificate(key, cert):
        raise KeystoreError(f"{label} private key does not match its certificate")
    return key, cert


def _stretch(data: bytes) -> bytes:
    size = _SHA256_BLOCK_BYTES * -(-len(data) // _SHA256_BLOCK_BYTES)
    return (data * (size // len(data) + 1))[:size]


def pkcs12_mac_key(password: str, salt: bytes, iterations: int) -> bytes:
    """Derive the SHA-256 integrity key of a PKCS#12 file (RFC 7292, appendix B.2).

    Args:
        password: Keystore password
        salt: MAC salt stored in the file
        iterations: MAC iteration count stored in the file

    Returns:
        32-byte HMAC-SHA256 key
    """
    diversifier = bytes([3]) * _SHA256_BLOCK_BYTES
    # BMPString with a two-byte terminator
    bmp_password = password.encode("utf-16-be") + b"\x00\x00"
    digest = diversifier + _stretch(salt) + _stretch(bmp_password)
    for _ in range(iterations):
        h = hashes.Hash(hashes.SHA256())
        h.update(digest)
        digest = h.finalize()
    return digest


def merge_keystores(keystores: list[bytes], password: str) -> bytes:
    """Combine PKCS#12 files sharing one password into a single file.

    The safe contents are concatenated in order, so the first file's key
    stays the primary entry, and the MAC is recomputed over the result.

    Args:
        keystores: DER encoded PKCS#12 files protected by password
        password: Password of every input and of the merged file

    Returns:
        DER encoded PKCS#12 file holding every entry of the inputs
    """
    contents = [
        info
        for keystore in keystores
        for info in asn1_pkcs12.Pfx.load(keystore).authenticated_safe
    ]
    auth_safe = asn1_pkcs12.AuthenticatedSafe(contents).dump()

    salt = secrets.token_bytes(_MAC_SALT_BYTES)
    mac = hmac.HMAC(pkcs12_mac_key(password, salt, _MAC_ITERATIONS), hashes.SHA256())
    mac.update(auth_safe)

    return asn1_pkcs12.Pfx(
        {
            "version": 3,
            "auth_safe": cms.ContentInfo(
                {"content_type": "data", "content": core.OctetString(auth_safe)}
            ),
            "mac_data": {
                "mac": {
                    "digest_algorithm": {"algorithm": "sha256", "parameters": core.Null()},
                    "digest": mac.finalize(),
                },
                "mac_salt": salt,
                "iterations": _MAC_ITERATIONS,
            },
        }
    ).dump()


class KeystoreBuilder:
    """Builds the keystores for one enrollment run."""

    def __init__(self, config: EnrollmentConfig, identity: NodeIdentity | None = None) -> None:
        """Initialize builder.

        Args:
            config: Enrollment configuration with aliases, key size and validity
            identity: Subject for the issued HTTP certificate (default: local host)
        """
        self.config = config
        self.identity = identity

    def _encryption(self, password: str) -> serialization.KeySerializationEncryption:
        return (
            serialization.PrivateFormat.PKCS12.encryption_builder()
            .kdf_rounds(50000)
            .key_cert_algorithm(pkcs12.PBES.PBESv2SHA256AndAES256CBC)
            .hmac_hash(hashes.SHA256())
            .build(password.encode("utf-8"))
        )

    def build_transport_keystore(self, material: TrustMaterial, password: str) -> bytes:
        """Transport keystore: node key entry plus the all-nodes certificate as trust entry.

        The transport certificate is shared by every node and self-signed, so
        it is both the node identity and the CA peers are validated against.
        """
        key, cert = _load_pair(material.transport_key_pem, material.transport_cert_pem, "transport")
        return pkcs12.serialize_key_and_certificates(
            name=self.config.transport_key_alias.encode("utf-8"),
            key=key,
            cert=cert,
            cas=[pkcs12.PKCS12Certificate(cert, self.config.transport_cert_alias.encode("utf-8"))],
            encryption_algorithm=self._encryption(password),
        )

    def _issue_http_leaf(
        self, ca_key: SigningKey, ca_cert: x509.Certificate
    ) -> tuple[SigningKey, x509.Certificate]:
        leaf_key = generate_private_key(self.config.key_size)
        leaf_cert = CertificateBuilder.build_http_certificate(
            identity=self.identity or local_node_identity(),
            public_key=leaf_key.public_key(),
            issuer_cert=ca_cert,
            issuer_key=ca_key,
            validity_days=self.config.http_cert_validity_days,
        )
        return leaf_key, leaf_cert

    def build_http_keystore(self, material: TrustMaterial, password: str) -> bytes:
        """HTTP keystore: HTTP CA entry plus the node leaf key entry.

        With the CA key present a new leaf is issued locally and the CA entry
        holds the CA key and certificate. Otherwise the leaf from the response
        is used and the CA entry holds the CA certificate only. Either way the
        leaf must verify against the CA.
        """
        try:
            ca_cert = deserialize_certificate(material.http_ca_cert_pem.encode("ascii"))
        except ValueError as e:
            raise KeystoreError(f"cannot parse HTTP CA certificate: {e}") from e

        if material.http_ca_key_pem is not None:
            ca_key, _ = _load_pair(material.http_ca_key_pem, material.http_ca_cert_pem, "HTTP CA")
            leaf_key, leaf_cert = self._issue_http_leaf(ca_key, ca_cert)
        elif material.http_key_pem is None or material.http_cert_pem is None:
            raise KeystoreError("neither the HTTP CA key nor an HTTP certificate was provided")
        else:
            ca_key = None
            leaf_key, leaf_cert = _load_pair(material.http_key_pem, material.http_cert_pem, "HTTP")

        if not is_issued_by(leaf_cert, ca_cert):
            raise KeystoreError("HTTP certificate is not signed by the HTTP CA")

        ca_alias = self.config.http_ca_alias.encode("utf-8")
        if ca_key is None:
            return pkcs12.serialize_key_and_certificates(
                name=self.config.http_keystore_name.encode("utf-8"),
                key=leaf_key,
                cert=leaf_cert,
                cas=[pkcs12.PKCS12Certificate(ca_cert, ca_alias)],
                encryption_algorithm=self._encryption(password),
            )

        leaf_store = pkcs12.serialize_key_and_certificates(
            name=self.config.http_keystore_name.encode("utf-8"),
            key=leaf_key,
            cert=leaf_cert,
            cas=None,
            encryption_algorithm=self._encryption(password),
        )
        ca_store = pkcs12.serialize_key_and_certificates(
            name=ca_alias,
            key=ca_key,
            cert=ca_cert,
            cas=None,
            encryption_algorithm=self._encryption(password),
        )
        return merge_keystores([leaf_store, ca_store], password)

    def build(self, material: TrustMaterial, password: str) -> KeystoreBundle:
        """Build both keystores, protected by the same password.

        Raises:
            KeystoreError: If material fails to parse or keys and certificates disagree
        """
        return KeystoreBundle(
            transport_keystore=self.build_transport_keystore(material, password),
            http_keystore=self.build_http_keystore(material, password),
        )
