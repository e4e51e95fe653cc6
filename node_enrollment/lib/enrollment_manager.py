"""Enrollment manager running one node enrollment end to end."""

from collections.abc import Callable
from pathlib import Path

from node_enrollment.lib.config import EnrollmentConfig, NodeIdentity
from node_enrollment.lib.enrollment_client import EnrollmentClient
from node_enrollment.lib.errors import EnrollmentError
from node_enrollment.lib.http_exchange import EnrollmentExchange
from node_enrollment.lib.keystore_builder import KeystoreBuilder, generate_keystore_password
from node_enrollment.lib.logging_config import LOGGER, register_secret
from node_enrollment.lib.models import EnrollmentResult, EnrollmentStage
from node_enrollment.lib.node_settings import load_node_state
from node_enrollment.lib.provisioning_writer import ProvisioningWriter
from node_enrollment.lib.safety_gate import SafetyGate
from node_enrollment.lib.settings_updater import SettingsUpdater
from node_enrollment.lib.token_codec import decode_token


class EnrollmentManager:
    """Enrolls the local node into an existing cluster using an enrollment token."""

    def __init__(
        self,
        config: EnrollmentConfig,
        exchange: EnrollmentExchange,
        password_factory: Callable[[], str] | None = None,
        identity: NodeIdentity | None = None,
    ) -> None:
        """Initialize enrollment manager.

        Args:
            config: Enrollment configuration
            exchange: Network exchange used to reach existing nodes
            password_factory: Returns the keystore password (default: random)
            identity: Subject of the issued HTTP certificate (default: local host)
        """
        self.config = config
        self.gate = SafetyGate()
        self.client = EnrollmentClient(exchange, on_response=self._response_received)
        self.keystore_builder = KeystoreBuilder(config, identity)
        self.writer = ProvisioningWriter(config)
        self.settings_updater = SettingsUpdater(config)
        self.password_factory = password_factory or (
            lambda: generate_keystore_password(config.password_length)
        )
        self.stage = EnrollmentStage.IDLE

    def _enter(self, stage: EnrollmentStage) -> None:
        LOGGER.debug(
            "Enrollment stage: %s -> %s", self.stage.value, stage.value, extra={"stage": stage.value}
        )
        self.stage = stage

    def _response_received(self, address: str) -> None:
        LOGGER.debug("Received enrollment response from %s", address)
        self._enter(EnrollmentStage.EXTRACTING)

    def enroll(self, token: str, config_dir: Path, force: bool = False) -> EnrollmentResult:
        """Run decode, gate, fetch, build and write for one enrollment token.

        Generates:
            - <config_dir>/tls_auto_config_node_<suffix>/ with the HTTP CA
              certificate and the HTTP and transport keystores
            - A security settings block appended to the node configuration file

        Args:
            token: Enrollment token string
            config_dir: Node configuration directory
            force: Enroll even if the node looks already started or configured

        Returns:
            EnrollmentResult with the directory, keystore password and source address

        Raises:
            EnrollmentError: On any failure; no provisioning directory is left behind
        """
        try:
            self._enter(EnrollmentStage.DECODING)
            descriptor = decode_token(token)
            register_secret(descriptor.api_key)

            self._enter(EnrollmentStage.GATING)
            node_state = load_node_state(config_dir, self.config)
            self.gate.check(node_state, force)

            self._enter(EnrollmentStage.FETCHING)
            material = self.client.fetch(descriptor)

            self._enter(EnrollmentStage.BUILDING)
            password = self.password_factory()
            register_secret(password)
            bundle = self.keystore_builder.build(material, password)

            self._enter(EnrollmentStage.WRITING)
            provisioning_dir = self.writer.commit(config_dir, material.http_ca_cert_pem, bundle)
            try:
                self.settings_updater.apply(
                    node_state, provisioning_dir, list(material.node_addresses)
                )
            except EnrollmentError:
                self.writer.rollback(provisioning_dir)
                raise
        except EnrollmentError as e:
            LOGGER.debug(
                "Enrollment failed during %s: %s",
                self.stage.value,
                e.reason,
                extra={"stage": EnrollmentStage.FAILED.value},
            )
            self.stage = EnrollmentStage.FAILED
            raise

        self._enter(EnrollmentStage.DONE)
        return EnrollmentResult(
            provisioning_dir=provisioning_dir,
            keystore_password=password,
            enrolled_via=self.client.last_address or "",
            node_addresses=list(material.node_addresses),
        )
