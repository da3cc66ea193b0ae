"""Logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

from .io_utils import RunPaths

PACKAGE_LOGGER = "formfill"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_FILENAME = "formfill.log"


class _RunHandlerMixin:
    """Marks handlers installed by ``build_logger`` so a later run can swap them."""


class _RunStreamHandler(_RunHandlerMixin, logging.StreamHandler):
    pass


class _RunFileHandler(_RunHandlerMixin, logging.FileHandler):
    pass


def _drop_run_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if isinstance(handler, _RunHandlerMixin):
            logger.removeHandler(handler)
            handler.close()


def build_logger(run_paths: RunPaths, verbose: bool = False) -> logging.Logger:
    """Route the whole package's logging to the console and the run's log file.

    Handlers sit on the package logger, so module loggers used by library code
    end up in the same file as the returned run logger.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = False
    _drop_run_handlers(package_logger)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%H:%M:%S")

    console_handler = _RunStreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    file_handler = _RunFileHandler(log_path(run_paths), encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    package_logger.addHandler(file_handler)

    return package_logger.getChild(f"run.{run_paths.run_id}")


def log_path(run_paths: RunPaths) -> Path:
    return run_paths.base_dir / LOG_FILENAME


__all__ = ["PACKAGE_LOGGER", "LOG_FORMAT", "build_logger", "log_path"]
