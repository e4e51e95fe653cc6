"""Persist keystores and the CA certificate into a fresh configuration directory."""

import os
import secrets
import shutil
from datetime import UTC, datetime
from pathlib import Path

from node_enrollment.lib.config import EnrollmentConfig
from node_enrollment.lib.errors import ProvisioningWriteError
from node_enrollment.lib.logging_config import LOGGER
from node_enrollment.lib.models import KeystoreBundle

_FILE_MODE = 0o600


def _write_synced(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())


def _sync_dir(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class ProvisioningWriter:
    """Writes one uniquely named TLS configuration directory per enrollment.

    Files are written into a staging directory whose name does not carry the
    configuration prefix, then renamed into place, so a failed or interrupted
    commit never leaves a directory that looks like a completed enrollment.
    """

    def __init__(self, config: EnrollmentConfig) -> None:
        self.config = config

    def _new_dir_name(self) -> str:
        timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
        return f"{self.config.tls_config_dir_prefix}{timestamp}_{secrets.token_hex(4)}"

    def _final_path(self, config_dir: Path) -> Path:
        while True:
            candidate = config_dir / self._new_dir_name()
            if not candidate.exists():
                return candidate

    def commit(self, config_dir: Path, ca_cert_pem: str, bundle: KeystoreBundle) -> Path:
        """Write the CA certificate and both keystores into a new directory.

        Args:
            config_dir: Node configuration directory
            ca_cert_pem: HTTP CA certificate in PEM format
            bundle: Transport and HTTP keystores

        Returns:
            Path to the created directory

        Raises:
            ProvisioningWriteError: If any write fails; nothing is left behind
        """
        staging = config_dir / f".staging-{secrets.token_hex(8)}"
        final = None
        try:
            staging.mkdir(mode=0o750)
            _write_synced(staging / self.config.http_ca_filename, ca_cert_pem.encode("ascii"))
            _write_synced(staging / self.config.http_keystore_filename, bundle.http_keystore)
            _write_synced(
                staging / self.config.transport_keystore_filename, bundle.transport_keystore
            )
            _sync_dir(staging)

            final = self._final_path(config_dir)
            staging.rename(final)
            _sync_dir(config_dir)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            if final is not None:
                shutil.rmtree(final, ignore_errors=True)
            raise ProvisioningWriteError(str(e)) from e

        LOGGER.info("Wrote TLS configuration to %s", final)
        return final

    @staticmethod
    def rollback(provisioning_dir: Path) -> None:
        """Remove a committed directory after a later step failed."""
        LOGGER.debug("Removing TLS configuration %s", provisioning_dir)
        shutil.rmtree(provisioning_dir, ignore_errors=True)
