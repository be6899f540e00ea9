"""Central logging utilities for the compliance ledger.

Every module obtains its logger through :func:`get_logger`, which makes sure
the root logger is configured exactly once with the shared format. Audit
events are mirrored to the dedicated ``compliance_ledger.audit`` logger so
operators can route them separately from application logs.
"""

from __future__ import annotations

import logging
from typing import Final

from beartype import beartype

__all__: Final = [
    "AUDIT_LOGGER_NAME",
    "configure_logging",
    "get_audit_logger",
    "get_logger",
]

AUDIT_LOGGER_NAME: Final = "compliance_ledger.audit"

_DEFAULT_LOG_FORMAT: Final = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_is_configured: bool = False


@beartype
def configure_logging(
    *, level: int | None = None, fmt: str = _DEFAULT_LOG_FORMAT
) -> None:
    """Configure the root logger.

    The handler and format are installed on the first call only. An explicit
    ``level`` is applied to the root logger on every call, so the configured
    level wins over the INFO default set when modules first import a logger.
    """
    global _is_configured
    if not _is_configured:
        logging.basicConfig(level=logging.INFO, format=fmt)
        _is_configured = True
    if level is not None:
        logging.getLogger().setLevel(level)


@beartype
def get_logger(name: str | None = None, *, level: int | None = None) -> logging.Logger:
    """Return a module-scoped logger that is guaranteed to be configured."""
    configure_logging()
    logger = logging.getLogger(name or "compliance_ledger")
    if level is not None:
        logger.setLevel(level)
    return logger


@beartype
def get_audit_logger() -> logging.Logger:
    """Return the logger that mirrors persisted audit events."""
    return get_logger(AUDIT_LOGGER_NAME)
