"""Verbosity-driven logging for reconciliation runs.

The CLI's ``-v`` count picks how much of a run is narrated on stderr:

    0  errors only
    1  writes to the destination org and the plan summary
    2  the create/update/skip/filter decision for every account,
       plus harness steps (seeding, job start)
    3  batch job notifications as the observer receives them

Warnings about suspicious input (duplicate keys, keyless destination
accounts) show up from verbosity 1 on.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

LOGGER_NAME = "acctsync"

CHANGES_LEVEL = 25  # above INFO: destination writes
CHECKS_LEVEL = 15  # below INFO: per-account decisions

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0
VERBOSITY_CHANGES = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3

_LEVELS_BY_VERBOSITY = {
    VERBOSITY_SILENT: logging.ERROR,
    VERBOSITY_CHANGES: CHANGES_LEVEL,
    VERBOSITY_CHECKS: CHECKS_LEVEL,
    VERBOSITY_DEBUG: logging.DEBUG,
}


class SyncLogger(logging.Logger):
    """Logger for reconciliation runs.

    changes() reports what AccountSynchronizer wrote ("Created Acme (Id=...)")
    and the planned totals. checks() reports why each source account ended up
    as create, update, skip_stale or filtered.
    """

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger() -> SyncLogger:
    """Return the process-wide acctsync logger.

    Modules grab it at import time; output stays at errors-only until
    setup_logger() runs.
    """
    logging.setLoggerClass(SyncLogger)
    logger = logging.getLogger(LOGGER_NAME)
    if not isinstance(logger, SyncLogger):
        raise TypeError(f"Logger {LOGGER_NAME!r} was created before SyncLogger was installed")
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Point the acctsync logger at a stream for the given ``-v`` count.

    Safe to call again; the previous handler is replaced. Unknown verbosity
    values fall back to errors only.

    Args:
        verbosity: ``-v`` count from the CLI (0-3)
        stream: Where messages go; sys.stderr keeps stdout clean for ``plan --json``
    """
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(_LEVELS_BY_VERBOSITY.get(verbosity, logging.ERROR))

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Detach handlers and drop back to errors only."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)


def changes_enabled() -> bool:
    return get_logger().isEnabledFor(CHANGES_LEVEL)


def checks_enabled() -> bool:
    return get_logger().isEnabledFor(CHECKS_LEVEL)


def debug_enabled() -> bool:
    return get_logger().isEnabledFor(logging.DEBUG)
