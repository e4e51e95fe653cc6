"""Exceptions raised while enrolling a node, with the exit code each maps to."""

import ssl

from node_enrollment.lib.models import BlockReason

EXIT_CODE_ERROR = 1
EXIT_DATA_ERROR = 65
EXIT_UNAVAILABLE = 69
EXIT_IO_ERROR = 74
EXIT_CONFIG = 78
EXIT_NOOP = 80

MESSAGE_PREFIX = "Aborting enrolling to cluster. "


class EnrollmentError(Exception):
    """Base class for enrollment failures reported to the operator."""

    exit_code = EXIT_CODE_ERROR

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(MESSAGE_PREFIX + reason)


class InvalidTokenError(EnrollmentError):
    """Enrollment token is not validly encoded or misses required fields."""

    exit_code = EXIT_DATA_ERROR

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__("Invalid enrollment token")


class BlockedByExistingStateError(EnrollmentError):
    """Local node state vetoes enrollment."""

    exit_code = EXIT_NOOP

    def __init__(self, block_reason: BlockReason) -> None:
        self.block_reason = block_reason
        super().__init__(block_reason.value)


class AllAddressesFailedError(EnrollmentError):
    """Every address in the enrollment token failed."""

    exit_code = EXIT_UNAVAILABLE

    def __init__(self, addresses: list[str], failures: dict[str, str]) -> None:
        self.addresses = addresses
        self.failures = failures
        super().__init__(
            "Could not communicate with the initial node in any of the addresses "
            f"from the enrollment token. All of [{', '.join(addresses)}] were attempted."
        )


class MaterialError(EnrollmentError):
    """Successful enrollment response with a missing or malformed field."""

    exit_code = EXIT_DATA_ERROR

    def __init__(self, field: str, problem: str = "is missing") -> None:
        self.field = field
        super().__init__(f"Enrollment response field [{field}] {problem}.")


class KeystoreError(EnrollmentError):
    """Received key material is unparseable or internally inconsistent."""

    exit_code = EXIT_DATA_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to build keystores: {detail}")


class ProvisioningWriteError(EnrollmentError):
    """Filesystem failure while committing the provisioning directory."""

    exit_code = EXIT_IO_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to write TLS configuration: {detail}")


class NodeConfigError(EnrollmentError):
    """Node configuration file cannot be read or parsed."""

    exit_code = EXIT_CONFIG

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid node configuration: {detail}")


class FingerprintMismatchError(ssl.SSLError):
    """Peer did not present a certificate matching the pinned fingerprint."""
