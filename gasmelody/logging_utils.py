from __future__ import annotations

import logging
import os
import sys
import traceback
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from types import MappingProxyType

PACKAGE_LOGGER = "gasmelody"
LOG_DIR_ENV = "GASMELODY_LOG_DIR"
DEBUG_ENV = "GASMELODY_DEBUG"

_LOGGER = logging.getLogger("gasmelody.logging")
_LOG_FILE = "gasmelody.log"
_configured = False


class _PrefixFormatter(logging.Formatter):
    """Console lines led by a glyph per level, e.g. ``⚠️ gasmelody.render: ...``."""

    PREFIXES: Mapping[int, str] = MappingProxyType(
        {
            logging.DEBUG: "🐛",
            logging.INFO: "ℹ️",
            logging.WARNING: "⚠️",
            logging.ERROR: "❌",
            logging.CRITICAL: "💥",
        }
    )

    def __init__(self) -> None:
        super().__init__("%(level_prefix)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.level_prefix = self.PREFIXES.get(record.levelno, "")
        return super().format(record)


def get_log_dir() -> Path:
    if configured := os.environ.get(LOG_DIR_ENV):
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "gasmelody" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / _LOG_FILE


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    # Library users see warnings only unless they opt into debug output.
    handler.setLevel(logging.DEBUG if os.environ.get(DEBUG_ENV) else logging.WARNING)
    handler.setFormatter(_PrefixFormatter())
    return handler


def _file_handler() -> logging.Handler:
    path = get_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    return handler


def configure_logging(*, force: bool = False) -> None:
    """Attach console and file handlers to the package logger, once per process.

    The console handler is skipped when the host already configured the
    root logger, unless ``force`` is given. ``force`` also drops handlers
    from an earlier call, so a changed ``GASMELODY_LOG_DIR`` takes effect.
    """

    global _configured
    if _configured and not force:
        return

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)
    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    if force or not logging.getLogger().handlers:
        logger.addHandler(_console_handler())
    try:
        logger.addHandler(_file_handler())
    except OSError as exc:
        _LOGGER.warning("File logging disabled: %s", exc)

    # Let pytest's caplog and host applications see our records too.
    logger.propagate = True
    _configured = True


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append ``exc`` with its traceback to the log file; returns the path written."""

    stamp = datetime.now().isoformat(timespec="seconds")
    lines = [f"[{stamp}] {context} failed: {type(exc).__name__}: {exc}\n"]
    lines.extend(traceback.format_exception(type(exc), exc, exc.__traceback__))
    path = get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.writelines(lines)
            handle.write("\n")
    except OSError as log_exc:
        _LOGGER.warning("Could not write %s: %s", path, log_exc)
        return None
    return path
