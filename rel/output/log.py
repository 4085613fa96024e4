"""Release log record.

Every orchestrator event (lock taken, step run or skipped, compensation
applied) goes to an append-only log file next to the state record, one
timestamped line per event. Operator-facing output stays on the console;
this file is the audit trail to read after a crash.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "rel-release-log"


def setup_logging(log_path: Path, *, level: int = logging.INFO) -> logging.Handler:
    """Attach the file handler for the release log to the `rel` logger.

    Call once per process, before the first step runs. Calling again with
    another path replaces the previous handler.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("rel")
    logger.setLevel(level)
    for h in list(logger.handlers):
        if h.get_name() == _HANDLER_NAME:
            logger.removeHandler(h)
            h.close()

    handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(handler)

    # Console output is handled by ConsoleProtocol; keep records off stderr.
    logger.propagate = False
    return handler
