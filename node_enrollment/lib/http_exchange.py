"""Single enrollment request over a TLS connection pinned to a CA fingerprint."""

import base64
import http.client
import json
import ssl
from typing import Protocol

from node_enrollment.lib.cert_utils import der_fingerprint
from node_enrollment.lib.errors import FingerprintMismatchError, MaterialError
from node_enrollment.lib.models import EnrollmentDescriptor, EnrollmentResponse
from node_enrollment.lib.token_codec import split_address


class EnrollmentExchange(Protocol):
    """Performs one enrollment request against one address."""

    def attempt(self, address: str, descriptor: EnrollmentDescriptor) -> EnrollmentResponse: ...


def pinned_client_context() -> ssl.SSLContext:
    """TLS client context that defers peer trust to fingerprint pinning.

    No CA is installed on a node that is being enrolled, so chain and hostname
    verification are off; the presented chain is checked against the pinned
    fingerprint before any request is sent.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def verify_pinned_fingerprint(sock: ssl.SSLSocket, fingerprint: str) -> None:
    """Check that a certificate presented by the peer hashes to fingerprint.

    Raises:
        FingerprintMismatchError: If no presented certificate matches
    """
    chain = sock.get_unverified_chain() or []
    if not chain:
        leaf = sock.getpeercert(binary_form=True)
        chain = [leaf] if leaf else []

    presented = [der_fingerprint(der) for der in chain]
    if fingerprint not in presented:
        raise FingerprintMismatchError(
            f"peer certificate chain does not contain a CA with fingerprint {fingerprint}"
        )


class PinnedHttpsExchange:
    """Production EnrollmentExchange built on http.client."""

    def __init__(self, timeout: float, path: str) -> None:
        """Initialize exchange.

        Args:
            timeout: Per-address socket timeout in seconds (connect and read)
            path: Enrollment endpoint path on the existing node
        """
        self.timeout = timeout
        self.path = path

    def attempt(self, address: str, descriptor: EnrollmentDescriptor) -> EnrollmentResponse:
        """Request enrollment material from one address.

        Args:
            address: "host:port" of an existing node
            descriptor: Decoded enrollment token (fingerprint and API key)

        Returns:
            EnrollmentResponse with the HTTP status and decoded JSON body

        Raises:
            OSError: On connection, timeout or TLS failure, including fingerprint mismatch
            http.client.HTTPException: On a malformed HTTP response
            MaterialError: If a successful response body is not a JSON object
        """
        host, port = split_address(address)
        connection = http.client.HTTPSConnection(
            host, port, timeout=self.timeout, context=pinned_client_context()
        )
        try:
            connection.connect()
            verify_pinned_fingerprint(connection.sock, descriptor.fingerprint)

            api_key = base64.b64encode(descriptor.api_key.encode("utf-8")).decode("ascii")
            connection.request(
                "GET",
                self.path,
                headers={
                    "Authorization": f"ApiKey {api_key}",
                    "Accept": "application/json",
                },
            )
            response = connection.getresponse()
            payload = response.read()
        finally:
            connection.close()

        if not 200 <= response.status < 300 or not payload:
            return EnrollmentResponse(status=response.status)

        try:
            body = json.loads(payload.decode("utf-8"))
        except ValueError as e:
            raise MaterialError("body", f"is not valid JSON: {e}") from e
        if not isinstance(body, dict):
            raise MaterialError("body", "is not a JSON object")
        return EnrollmentResponse(status=response.status, body=body)
