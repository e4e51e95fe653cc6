"""JSON logging configuration for node enrollment."""

import logging

from pythonjsonlogger import jsonlogger

REDACTED = "[REDACTED]"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter limited to timestamp, level, message, stage and call site."""

    def add_fields(self, log_record, record, message_dict):
        """Override to include only specified fields.

        Args:
            log_record: Dict to be logged as JSON
            record: LogRecord object from logging framework
            message_dict: Dict containing message and args
        """
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        allowed_fields = {
            "timestamp",
            "level",
            "message",
            "stage",
            "exc_info",
            "funcName",
            "lineno",
        }

        for key in [key for key in log_record if key not in allowed_fields]:
            log_record.pop(key)


class SecretRedactionFilter(logging.Filter):
    """Replaces registered secret values in every message passing the logger."""

    def __init__(self) -> None:
        super().__init__()
        self.secrets: set[str] = set()

    def register(self, secret: str) -> None:
        if secret:
            self.secrets.add(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        for secret in self.secrets:
            message = message.replace(secret, REDACTED)
        record.msg = message
        record.args = None
        return True


def _setup_logger() -> logging.Logger:
    """Initialize and configure singleton logger.

    Returns:
        Configured logger writing JSON lines to stderr, with secret redaction
    """
    logger = logging.getLogger("node_enrollment")

    # Module may be re-imported by test collection
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    logger.addFilter(SecretRedactionFilter())
    logger.propagate = False

    return logger


LOGGER = _setup_logger()


def register_secret(secret: str) -> None:
    """Keep secret out of every later message of the enrollment logger.

    Args:
        secret: Value to redact, e.g. the API key or the keystore password
    """
    for log_filter in LOGGER.filters:
        if isinstance(log_filter, SecretRedactionFilter):
            log_filter.register(secret)
