"""Logging configuration utilities for treatment design scripts.

Design goals
------------
- Stable logs for both CLI and notebooks (avoid duplicate handlers).
- Optional file logging for reproducibility.
- One run log per script: a named script logger shares its handlers with the
  ``variable_treatment`` package logger and, when warnings are captured, with
  ``py.warnings``. Design progress and ``warnings.warn`` drift notices (type
  drift, stale plans) then land next to the script's own messages.

Used by
-------
- ``variable_treatment/run_treatment.py`` (through ``run_design``)
- ``variable_treatment/src/experiments/run_design.py``

Library modules never call :func:`configure_logging`; they only obtain a
module-level logger with ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

DEFAULT_LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"

PACKAGE_LOGGER = "variable_treatment"
WARNINGS_LOGGER = "py.warnings"


def _resolve_log_path(log_file: Union[str, Path], logger_name: Optional[str]) -> Path:
    log_path = Path(log_file)
    # A directory (existing or spelled with a trailing slash) gets a default file name.
    if (log_path.exists() and log_path.is_dir()) or str(log_file).endswith(("/", "\\")):
        name = (logger_name or "root").replace("/", "_")
        log_path = log_path / f"{name}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return log_path


def _install(logger: logging.Logger, handlers: List[logging.Handler], level: int, force: bool) -> None:
    logger.setLevel(level)
    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    logger_name: Optional[str] = None,
    *,
    force: bool = True,
    capture_warnings: bool = True,
) -> logging.Logger:
    """Configure and return a logger.

    Parameters
    ----------
    level:
        Log level (default: INFO).
    log_file:
        Optional path to a log file. If a directory is provided, the log file
        name defaults to ``<logger_name or root>.log``.
    logger_name:
        Name of the logger to configure. ``None`` configures the root logger,
        which the package and warnings loggers reach by propagation. A named
        logger instead shares its handlers with ``variable_treatment`` and
        (with ``capture_warnings``) ``py.warnings``; none of them propagate.
    force:
        If True (default), remove existing handlers to prevent duplicate logs.
    capture_warnings:
        If True (default), route Python warnings through logging.

    Returns
    -------
    logging.Logger
        Configured logger.
    """
    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)

    console_handler = logging.StreamHandler(stream=sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [console_handler]

    if log_file is not None:
        file_handler = logging.FileHandler(_resolve_log_path(log_file, logger_name), encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logger = logging.getLogger(logger_name)
    _install(logger, handlers, level, force)

    if logger_name is not None:
        logger.propagate = False
        companions = [PACKAGE_LOGGER] + ([WARNINGS_LOGGER] if capture_warnings else [])
        for name in companions:
            if name == logger_name:
                continue
            companion = logging.getLogger(name)
            _install(companion, handlers, level, force)
            companion.propagate = False

    if capture_warnings:
        logging.captureWarnings(True)

    return logger


__all__ = ["configure_logging", "DEFAULT_LOG_FORMAT", "PACKAGE_LOGGER", "WARNINGS_LOGGER"]
