"""Process-wide logging setup for the CLI and the HTTP server."""

import logging
import sys

from screenflow.config import get_config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Send log records to stderr at the configured level (``log_level``)."""
    level = (level or get_config().get("log_level", "INFO")).upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)
    # Provider SDKs are chatty at INFO.
    for noisy in ("httpx", "httpcore", "google_genai", "anthropic"):
        logging.getLogger(noisy).setLevel(max(logging.WARNING, logging.getLevelName(level)))
