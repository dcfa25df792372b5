from __future__ import annotations

import logging
import sys

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_success(logger: logging.Logger, msg: str, *args) -> None:
    if logger.isEnabledFor(SUCCESS):
        logger.log(SUCCESS, msg, *args)


def configure_logging(verbose: bool = False, stream=None) -> logging.Logger:
    """
    Install a single stderr handler on the package logger.
    Safe to call more than once (replaces the previous handler).
    """
    root = logging.getLogger("icongate")
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False
    return root
