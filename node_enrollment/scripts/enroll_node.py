#!/usr/bin/env python3
"""Enroll this node into an existing secured cluster using an enrollment token."""

import argparse
import logging
import os
import sys
from pathlib import Path

from node_enrollment.lib.config import EnrollmentConfig
from node_enrollment.lib.enrollment_manager import EnrollmentManager
from node_enrollment.lib.errors import EnrollmentError
from node_enrollment.lib.http_exchange import PinnedHttpsExchange
from node_enrollment.lib.logging_config import LOGGER


def main() -> int:
    """Enroll the local node and provision its TLS keystores.

    Returns:
        Exit code (0 for success, the error's exit code otherwise)
    """
    parser = argparse.ArgumentParser(
        description="Enroll this node into an existing cluster and configure TLS"
    )
    parser.add_argument(
        "--enrollment-token",
        required=True,
        help="Enrollment token generated by a node of the cluster",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Enroll even if the node appears to be started or configured already",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path(os.environ.get("NODE_PATH_CONF", "config")),
        help="Node configuration directory (default: $NODE_PATH_CONF or ./config)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=EnrollmentConfig.request_timeout_seconds,
        help="Per-address request timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log each enrollment stage and address attempt",
    )
    args = parser.parse_args()

    if args.verbose:
        LOGGER.setLevel(logging.DEBUG)

    try:
        config = EnrollmentConfig(request_timeout_seconds=args.timeout)
        exchange = PinnedHttpsExchange(timeout=config.request_timeout_seconds, path=config.enroll_path)
        manager = EnrollmentManager(config, exchange)

        LOGGER.debug("Enrolling node with configuration in %s", args.config_dir)
        result = manager.enroll(args.enrollment_token, args.config_dir, force=args.force)

        LOGGER.info("Enrolled via: %s", result.enrolled_via)
        LOGGER.info("TLS configuration: %s", result.provisioning_dir)
        print(f"TLS configuration written to: {result.provisioning_dir}")
        print(f"Keystore password: {result.keystore_password}")
        return 0

    except EnrollmentError as e:
        LOGGER.error("%s", e)
        return e.exit_code
    except Exception as e:
        LOGGER.error("Enrollment failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
