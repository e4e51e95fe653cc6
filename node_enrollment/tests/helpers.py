"""Shared helpers for node_enrollment tests."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from asn1crypto import pkcs12 as asn1_pkcs12
from cryptography import x509
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.x509.oid import NameOID

from node_enrollment.lib.cert_utils import generate_serial_number
from node_enrollment.lib.models import EnrollmentDescriptor, EnrollmentResponse


def build_self_signed(key: RSAPrivateKey, common_name: str, ca: bool) -> x509.Certificate:
    """Build a self-signed certificate (CA or all-nodes transport certificate)."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    not_before = datetime.now(UTC) - timedelta(days=1)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(generate_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )


def pem_body(pem: bytes) -> str:
    """Strip envelope lines, leaving the base64 body as existing nodes send it."""
    return "".join(line for line in pem.decode("ascii").splitlines() if "-----" not in line)


def provisioning_dirs(config_dir: Path, prefix: str = "tls_auto_config_node_") -> list[Path]:
    """Return directories under config_dir that look like completed enrollments."""
    return [p for p in config_dir.iterdir() if p.is_dir() and p.name.startswith(prefix)]


class FakeExchange:
    """Scripted EnrollmentExchange recording the addresses it was asked for.

    Each address maps to an EnrollmentResponse to return or an exception to raise.
    """

    def __init__(self, outcomes: dict[str, EnrollmentResponse | Exception]) -> None:
        self.outcomes = outcomes
        self.attempted: list[str] = []

    def attempt(self, address: str, descriptor: EnrollmentDescriptor) -> EnrollmentResponse:
        self.attempted.append(address)
        outcome = self.outcomes[address]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@dataclass
class KeystoreEntry:
    """Key and certificate stored under one friendly name of a PKCS#12 file."""

    key: PrivateKeyTypes | None = None
    cert: x509.Certificate | None = None


def _decrypt_safe_contents(encrypted_data, password: str) -> bytes:
    info = encrypted_data["encrypted_content_info"]
    algorithm = info["content_encryption_algorithm"]
    key = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=algorithm.key_length,
        salt=algorithm.kdf_salt,
        iterations=algorithm.kdf_iterations,
    ).derive(password.encode("utf-8"))
    decryptor = Cipher(algorithms.AES(key), modes.CBC(algorithm.encryption_iv)).decryptor()
    padded = decryptor.update(info["encrypted_content"].native) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def _friendly_name(bag) -> str:
    for attribute in bag["bag_attributes"]:
        if attribute["type"].native == "friendly_name":
            return attribute["values"].native[0]
    return ""


def read_keystore(data: bytes, password: str) -> dict[str, KeystoreEntry]:
    """Read every key and certificate bag of a PBES2 protected PKCS#12 file.

    Unlike pkcs12.load_pkcs12, which keeps only the first private key, this
    returns all entries keyed by friendly name.
    """
    entries: dict[str, KeystoreEntry] = {}
    for info in asn1_pkcs12.Pfx.load(data).authenticated_safe:
        content_type = info["content_type"].native
        if content_type == "data":
            raw = info["content"].native
        elif content_type == "encrypted_data":
            raw = _decrypt_safe_contents(info["content"], password)
        else:
            raise ValueError(f"unexpected PKCS#12 content type {content_type}")

        for bag in asn1_pkcs12.SafeContents.load(raw):
            entry = entries.setdefault(_friendly_name(bag), KeystoreEntry())
            bag_id = bag["bag_id"].native
            if bag_id == "pkcs8_shrouded_key_bag":
                entry.key = serialization.load_der_private_key(
                    bag["bag_value"].untag().dump(), password.encode("utf-8")
                )
            elif bag_id == "cert_bag":
                entry.cert = x509.load_der_x509_certificate(
                    bag["bag_value"]["cert_value"].parsed.dump()
                )
    return entries
