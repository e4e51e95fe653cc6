"""Enrollment configuration dataclasses."""

from dataclasses import dataclass

from cryptography import x509
from cryptography.x509 import oid


@dataclass
class EnrollmentConfig:
    """Enrollment configuration: artifact names, keystore aliases and limits."""

    tls_config_dir_prefix: str = "tls_auto_config_node_"
    http_ca_name: str = "http_ca"
    http_keystore_name: str = "http_keystore_local_node"
    transport_keystore_name: str = "transport_keystore_all_nodes"
    transport_key_alias: str = "transport_all_nodes_key"
    transport_cert_alias: str = "transport_all_nodes_cert"
    node_config_file: str = "node.yml"
    enroll_path: str = "/_security/enroll/node"
    request_timeout_seconds: float = 10.0
    key_size: int = 4096
    http_cert_validity_days: int = 730
    password_length: int = 20

    @property
    def http_ca_alias(self) -> str:
        """Alias of the CA entry in the HTTP keystore."""
        return f"{self.http_keystore_name}_ca"

    @property
    def http_ca_filename(self) -> str:
        return f"{self.http_ca_name}.crt"

    @property
    def http_keystore_filename(self) -> str:
        return f"{self.http_keystore_name}.p12"

    @property
    def transport_keystore_filename(self) -> str:
        return f"{self.transport_keystore_name}.p12"


@dataclass
class NodeIdentity:
    """Subject of the HTTP certificate issued for the local node."""

    common_name: str
    dns_names: list[str]
    ip_addresses: list[str]

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        return x509.Name([x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name)])
