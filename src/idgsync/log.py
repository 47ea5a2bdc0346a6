"""Logging setup for the idgsync command line."""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from .config import ConfigError

LOGGER_NAME = "idgsync"
PLAIN_FORMAT = "[%(relativeCreated)8d] %(levelname).1s %(lineno)4d (%(funcName)s) %(message)s"


def resolve_level(*, verbose: bool = False, debug: bool = False) -> int:
    """WARNING by default, INFO with ``verbose`` and DEBUG with ``debug``."""

    if verbose and debug:
        raise ConfigError("Called with --debug and --verbose; choose one!")
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def setup_logging(*, verbose: bool = False, debug: bool = False, colorize: bool | None = None) -> logging.Logger:
    """Configure the package logger to write to stderr.

    Args:
        verbose: Log INFO messages.
        debug: Log DEBUG messages; may not be combined with ``verbose``.
        colorize: Use rich's coloured handler. ``None`` picks colour only when
            stderr is a terminal.
    """

    level = resolve_level(verbose=verbose, debug=debug)
    if colorize is None:
        colorize = sys.stderr.isatty()

    handler: logging.Handler
    if colorize:
        handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
