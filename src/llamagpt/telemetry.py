"""Logging setup shared by the CLI and the HTTP app."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Third-party loggers that are only interesting when debugging.
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def configure_logging(level: str | int = "WARNING", *, debug: bool = False) -> None:
    """Install a single stderr handler on the root logger.

    `debug` overrides `level` and also lets HTTP client chatter through.
    """
    resolved = logging.DEBUG if debug else level
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.WARNING

    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stderr, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else max(resolved, logging.WARNING))


__all__ = ["configure_logging"]
