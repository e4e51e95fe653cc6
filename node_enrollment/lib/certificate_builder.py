"""Certificate builder for the local node's HTTP certificate."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPublicKeyTypes
from cryptography.x509.oid import ExtendedKeyUsageOID

from node_enrollment.lib.cert_utils import (
    SigningKey,
    generate_serial_number,
    subject_alternative_names,
)
from node_enrollment.lib.config import NodeIdentity


class CertificateBuilder:
    """Builds X.509 certificates issued by the cluster's HTTP CA."""

    @staticmethod
    def build_http_certificate(
        identity: NodeIdentity,
        public_key: CertificateIssuerPublicKeyTypes,
        issuer_cert: x509.Certificate,
        issuer_key: SigningKey,
        validity_days: int,
    ) -> x509.Certificate:
        """Build the node's HTTP server certificate, signed by the HTTP CA.

        The CA key arrives with the enrollment response, so the node issues its
        own certificate instead of sending a CSR.

        Args:
            identity: Common name, DNS names and IP addresses of the node
            public_key: Public key of the freshly generated node key
            issuer_cert: HTTP CA certificate (issuer)
            issuer_key: HTTP CA private key for signing
            validity_days: Certificate validity period in days

        Returns:
            X.509 end-entity certificate for TLS server and client authentication
        """
        not_before = datetime.now(timezone.utc) - timedelta(minutes=5)
        not_after = not_before + timedelta(days=validity_days)

        builder = (
            x509.CertificateBuilder()
            .subject_name(identity.to_x509_name())
            .issuer_name(issuer_cert.subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=False,
            )
            .add_extension(
                x509.ExtendedKeyUsage(
                    [ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]
                ),
                critical=False,
            )
            .add_extension(subject_alternative_names(identity), critical=False)
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_cert.public_key()),
                critical=False,
            )
        )

        return builder.sign(issuer_key, hashes.SHA256())
