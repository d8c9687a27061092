"""Logging configuration for the FTP server image harness.

Provides centralized logging with credential redaction so that server
passwords passed through container environments or FTP URLs are
never written to log output.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional, Union


# Credential patterns to redact from logs
REDACT_PATTERNS = [
    # Container environment entries such as FTP_PASS=secret or BF_FTPS_VSFTPD_PASS=secret
    (re.compile(r'(\b[A-Z0-9_]*PASS(?:WORD)?=)[^\s,\'"\]]+'), r'\1[REDACTED]'),
    # Password in various formats
    (re.compile(r'(password["\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(passwd["\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    # Raw PASS command echoed by ftplib debugging
    (re.compile(r'(\bPASS )\S+'), r'\1[REDACTED]'),
    # FTP URLs with credentials
    (re.compile(r'(ftps?)://[^:/\s]+:[^@\s]+@'), r'\1://[REDACTED]@'),
]

LOGGER_NAME = "ftpharness"


class CredentialRedactingFormatter(logging.Formatter):
    """Custom formatter that redacts credentials from log messages."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record, redacting any credentials."""
        message = super().format(record)
        for pattern, replacement in REDACT_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True
) -> logging.Logger:
    """
    Configure harness logging with credential redaction.

    Args:
        level: Logging level, as a number or a name like "DEBUG" (default INFO)
        log_file: Optional file path for log output
        console: Whether to output to console (default True)

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()

    formatter = CredentialRedactingFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Console handler
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default is the harness logger)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
