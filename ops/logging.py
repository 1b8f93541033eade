"""Logging configuration for the orchestration commands."""

import logging
import sys
from typing import Any

SECRET_FIELDS = {"access_key", "secret_key", "session_token", "config_passphrase", "password"}


def setup_logging(level: str = "INFO") -> None:
    """Configure timestamped console logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # boto and urllib3 are noisy at INFO
    for noisy in ("botocore", "boto3", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def sanitize(data: dict[str, Any]) -> dict[str, Any]:
    """Redact secret fields before logging a mapping."""
    sanitized = data.copy()
    for key in sanitized:
        if key.lower() in SECRET_FIELDS:
            sanitized[key] = "***REDACTED***"
    return sanitized
