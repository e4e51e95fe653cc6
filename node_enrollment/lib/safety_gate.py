"""Pre-flight checks that keep enrollment from overwriting a configured node."""

from node_enrollment.lib.errors import BlockedByExistingStateError
from node_enrollment.lib.logging_config import LOGGER
from node_enrollment.lib.models import BlockReason, NodeState

SECURITY_ENABLED_SETTING = "security.enabled"
TRANSPORT_SSL_ENABLED_SETTING = "security.transport.ssl.enabled"
HTTP_SSL_ENABLED_SETTING = "security.http.ssl.enabled"


class SafetyGate:
    """Decides whether the local node may be enrolled.

    A setting counts as configured when it is explicitly present in the node
    configuration, whatever its value.
    """

    @staticmethod
    def evaluate(node_state: NodeState) -> BlockReason | None:
        """Return the first matching block reason, or None when enrollment may proceed."""
        for data_path in node_state.data_paths:
            if data_path.is_dir() and any(data_path.iterdir()):
                return BlockReason.EXISTING_DATA

        if SECURITY_ENABLED_SETTING in node_state.settings:
            return BlockReason.SECURITY_CONFIGURED

        if (
            TRANSPORT_SSL_ENABLED_SETTING in node_state.settings
            or HTTP_SSL_ENABLED_SETTING in node_state.settings
        ):
            return BlockReason.TLS_CONFIGURED

        return None

    def check(self, node_state: NodeState, force: bool) -> None:
        """Raise if enrollment is vetoed by local state and not forced.

        Args:
            node_state: Inspected local node state
            force: Skip all checks

        Raises:
            BlockedByExistingStateError: If a veto condition holds and force is False
        """
        reason = self.evaluate(node_state)
        if reason is None:
            return
        if force:
            LOGGER.warning("Enrollment forced, ignoring: %s", reason.value)
            return
        raise BlockedByExistingStateError(reason)
