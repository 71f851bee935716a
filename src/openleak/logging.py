"""Logging setup for openleak.

Each run appends a full DEBUG trace to ~/.openleak/logs/openleak.log and
echoes warnings (or everything from INFO up with --verbose) to stderr, so
stdout stays reserved for the rich output of the CLI. OpenLeak keys never
reach either destination in clear text.
"""

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "openleak"

# sk-cl- followed by the key body
KEY_PATTERN = re.compile(r'sk-cl-[A-Za-z0-9_-]+')

# x-api-key header and apiKey/api_key settings, whatever value they carry
KEY_FIELD_PATTERN = re.compile(
    r'(x-api-key|api[_-]?key)(["\']?\s*[:=]\s*["\']?)([^\s"\',}]+)',
    re.IGNORECASE,
)


def redact(text: str) -> str:
    """Mask OpenLeak keys and key-carrying fields in a piece of text.

    Example:
        >>> redact("Using sk-cl-0123abcd")
        'Using sk-cl-***'
    """
    text = KEY_PATTERN.sub('sk-cl-***', text)
    return KEY_FIELD_PATTERN.sub(r'\1\2***', text)


class KeyRedactingFilter(logging.Filter):
    """Rewrite each record so formatted output carries no API key."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Format first so keys passed as %-args are caught too
        record.msg = redact(record.getMessage())
        record.args = ()
        return True


def get_log_dir() -> Path:
    """Get the openleak logs directory path.

    Returns:
        Path to ~/.openleak/logs directory
    """
    return Path.home() / ".openleak" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / "openleak.log"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the openleak logger for one CLI run.

    Args:
        verbose: Show INFO messages on stderr instead of only warnings

    Returns:
        The configured "openleak" logger
    """
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Handlers decide what is shown

    # main and refresh may run in the same process (tests, wrappers)
    logger.handlers.clear()

    # Runs are short, a daily cron job stays well under this for months
    file_handler = RotatingFileHandler(
        filename=get_log_path(),
        maxBytes=1024 * 1024,  # 1 MB
        backupCount=3,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        fmt='%(asctime)s %(levelname)-7s %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    # sys.stderr looked up now so CliRunner's captured stream is used
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

    redactor = KeyRedactingFilter()
    for handler in (file_handler, console_handler):
        handler.addFilter(redactor)
        logger.addHandler(handler)

    logger.debug(f"Logging to {get_log_path()} (verbose={verbose})")
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger below the "openleak" namespace.

    Module names from inside the package ("openleak.keys") are used as is;
    bare names ("keys") are prefixed.
    """
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
