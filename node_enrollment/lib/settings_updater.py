"""Append the security settings for the enrolled TLS configuration to node.yml."""

import os
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from node_enrollment.lib.config import EnrollmentConfig
from node_enrollment.lib.errors import ProvisioningWriteError
from node_enrollment.lib.logging_config import LOGGER
from node_enrollment.lib.models import NodeState

BLOCK_BEGIN = "#----------------------- BEGIN SECURITY AUTO CONFIGURATION -----------------------"
BLOCK_END = "#----------------------- END SECURITY AUTO CONFIGURATION -------------------------"


class SettingsUpdater:
    """Enables security and TLS in the node configuration after enrollment."""

    def __init__(self, config: EnrollmentConfig) -> None:
        self.config = config

    def security_settings(
        self, provisioning_dir: Path, node_addresses: list[str]
    ) -> dict[str, Any]:
        """Settings pointing the node at the keystores in provisioning_dir.

        Paths are relative to the configuration directory.
        """
        transport_keystore = f"{provisioning_dir.name}/{self.config.transport_keystore_filename}"
        http_keystore = f"{provisioning_dir.name}/{self.config.http_keystore_filename}"

        settings: dict[str, Any] = {
            "security.enabled": True,
            "security.enrollment.enabled": True,
            "security.transport.ssl.enabled": True,
            "security.transport.ssl.verification_mode": "certificate",
            "security.transport.ssl.keystore.path": transport_keystore,
            "security.transport.ssl.truststore.path": transport_keystore,
            "security.http.ssl.enabled": True,
            "security.http.ssl.keystore.path": http_keystore,
        }
        if node_addresses:
            settings["discovery.seed_hosts"] = list(node_addresses)
        return settings

    def render_block(self, settings: dict[str, Any]) -> str:
        """Render settings as a marked YAML block."""
        generated = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        body = yaml.safe_dump(settings, default_flow_style=False, sort_keys=False)
        return (
            f"\n{BLOCK_BEGIN}\n"
            f"# Added by node enrollment on {generated} UTC\n"
            f"{body}"
            f"{BLOCK_END}\n"
        )

    def apply(
        self, node_state: NodeState, provisioning_dir: Path, node_addresses: list[str]
    ) -> Path:
        """Append the security block to the node configuration file.

        The file is rewritten through a temporary sibling and os.replace.

        Args:
            node_state: Node state holding the configuration file location
            provisioning_dir: Directory created by ProvisioningWriter
            node_addresses: Transport addresses reported by the existing node

        Returns:
            Path to the updated configuration file

        Raises:
            ProvisioningWriteError: If the file cannot be read or replaced
        """
        config_file = node_state.config_file
        tmp_file = config_file.with_name(f".{config_file.name}.tmp")
        block = self.render_block(self.security_settings(provisioning_dir, node_addresses))

        try:
            existing = config_file.read_text(encoding="utf-8") if config_file.exists() else ""
            if existing and not existing.endswith("\n"):
                existing += "\n"

            with open(tmp_file, "w", encoding="utf-8") as f:
                f.write(existing + block)
                f.flush()
                os.fsync(f.fileno())
            if config_file.exists():
                shutil.copymode(config_file, tmp_file)
            os.replace(tmp_file, config_file)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            raise ProvisioningWriteError(f"cannot update {config_file}: {e}") from e

        LOGGER.info("Enabled security settings in %s", config_file)
        return config_file
