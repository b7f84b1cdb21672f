"""Logging utilities for ctxscan commands and analysis passes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, MutableMapping

_LOGGER_NAME = "ctxscan"


class PassLoggerAdapter(logging.LoggerAdapter):
    """Tags every record with the name of the pass that emitted it."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        pass_name = self.extra.get("pass_name", "") if self.extra else ""
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("pass_name", pass_name)
        kwargs["extra"] = extra
        return f"[{pass_name}] {msg}", kwargs


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the ctxscan hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def pass_logger(logger: logging.Logger | logging.LoggerAdapter, pass_name: str) -> PassLoggerAdapter:
    """Return a logger handed to a single pass, scoped to ``pass_name``."""
    base = logger.logger if isinstance(logger, logging.LoggerAdapter) else logger
    return PassLoggerAdapter(base.getChild(f"passes.{pass_name}"), {"pass_name": pass_name})


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the ctxscan logger with console output and optional file sink."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[ctxscan] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["PassLoggerAdapter", "configure_logging", "get_logger", "pass_logger"]
