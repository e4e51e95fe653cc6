"""Fetch trust material from the first reachable node in an enrollment token."""

import http.client
from collections.abc import Callable

from node_enrollment.lib.errors import AllAddressesFailedError
from node_enrollment.lib.http_exchange import EnrollmentExchange
from node_enrollment.lib.logging_config import LOGGER
from node_enrollment.lib.material_extractor import parse_material
from node_enrollment.lib.models import EnrollmentDescriptor, EnrollmentResponse, TrustMaterial


class EnrollmentClient:
    """Tries each bound address in token order and stops at the first success."""

    def __init__(
        self,
        exchange: EnrollmentExchange,
        on_response: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize client.

        Args:
            exchange: Performs the pinned request against a single address
            on_response: Called with the answering address before the body is parsed
        """
        self.exchange = exchange
        self.on_response = on_response
        self.last_address: str | None = None

    def fetch_response(self, descriptor: EnrollmentDescriptor) -> EnrollmentResponse:
        """Return the first successful response among the bound addresses.

        Addresses are attempted sequentially, once each. Connection, TLS and
        fingerprint failures and non-2xx statuses move on to the next address.
        A successful response with an unusable body ends the search.

        Raises:
            AllAddressesFailedError: If every address failed
            MaterialError: If a successful response body is not a JSON object
        """
        failures: dict[str, str] = {}
        self.last_address = None

        for address in descriptor.bound_addresses:
            LOGGER.debug("Requesting enrollment material from %s", address)
            try:
                response = self.exchange.attempt(address, descriptor)
            except (OSError, http.client.HTTPException) as e:
                LOGGER.debug("Enrollment attempt to %s failed: %s", address, e)
                failures[address] = f"{type(e).__name__}: {e}"
                continue

            if not response.is_success:
                LOGGER.debug(
                    "Enrollment attempt to %s returned status %d", address, response.status
                )
                failures[address] = f"HTTP {response.status}"
                continue

            self.last_address = address
            return response

        raise AllAddressesFailedError(list(descriptor.bound_addresses), failures)

    def fetch(self, descriptor: EnrollmentDescriptor) -> TrustMaterial:
        """Fetch trust material from the first address that answers successfully.

        An incomplete body in a successful response is not retried against
        the remaining addresses.

        Raises:
            AllAddressesFailedError: If every address failed
            MaterialError: If the successful response is missing material
        """
        response = self.fetch_response(descriptor)
        if self.on_response is not None:
            self.on_response(self.last_address or "")
        return parse_material(response.body)
