"""Logging utilities for CERT-SYNC-SERVER.

All loggers hang off the ``cert_sync`` logger. Handlers installed by
``setup_logging`` write to stderr (stdout carries the MCP stdio transport)
and scrub bearer tokens and PEM private keys from every record.
"""

import logging
import re
import sys

from ..config.models import LoggingConfig


ROOT_LOGGER = "cert_sync"

_PRIVATE_KEY_PEM = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL
)
_BEARER_TOKEN = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")

_loggers: dict[str, logging.Logger] = {}
_root_configured = False


class SecretRedactingFilter(logging.Filter):
    """Replace key material and API tokens in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _PRIVATE_KEY_PEM.sub("[private key redacted]", message)
        redacted = _BEARER_TOKEN.sub(r"\1[redacted]", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _attach(logger: logging.Logger, handler: logging.Handler, config: LoggingConfig) -> None:
    handler.setLevel(getattr(logging, config.level))
    handler.setFormatter(logging.Formatter(config.format))
    handler.addFilter(SecretRedactingFilter())
    logger.addHandler(handler)


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """Configure the ``cert_sync`` logger once per process.

    Args:
        config: Logging configuration

    Returns:
        The ``cert_sync`` logger
    """
    global _root_configured

    logger = logging.getLogger(ROOT_LOGGER)
    if _root_configured:
        return logger

    logger.setLevel(getattr(logging, config.level))
    logger.handlers.clear()

    if config.console:
        _attach(logger, logging.StreamHandler(sys.stderr), config)
    if config.file_path:
        _attach(logger, logging.FileHandler(config.file_path), config)

    _root_configured = True
    _loggers[ROOT_LOGGER] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a component logger.

    Args:
        name: Component name, e.g. ``state_store`` becomes ``cert_sync.state_store``
    """
    full_name = name if name.startswith(ROOT_LOGGER) else f"{ROOT_LOGGER}.{name}"

    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)
    return _loggers[full_name]


def set_log_level(level: str) -> None:
    """Change the level of every logger handed out so far, and their handlers."""
    log_level = getattr(logging, level.upper())

    for logger in _loggers.values():
        logger.setLevel(log_level)
        for handler in logger.handlers:
            handler.setLevel(log_level)
