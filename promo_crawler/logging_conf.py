"""JSON log files under the crawler home, plus run-scoped logging context.

Two files are written: ``crawler.log`` gets every event at INFO and above and
``error.log`` only the failures. Events emitted inside :func:`run_context`
carry the bound keys (``job_id``, ``trigger``), so a job row in the ledger
can be traced back through the log files.
"""

from __future__ import annotations

import logging.config
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import structlog

# log file name -> lowest level written to it
LOG_LEVELS = {"crawler": "INFO", "error": "ERROR"}

_configured = False


def log_dir() -> Path:
    env_root = os.environ.get("PROMO_CRAWLER_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def log_files() -> dict[str, Path]:
    """Return the known log files keyed by short name."""

    directory = log_dir()
    return {name: directory / f"{name}.log" for name in LOG_LEVELS}


def _dict_config(files: dict[str, Path], verbose: bool) -> dict[str, Any]:
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG" if verbose else "WARNING",
            "formatter": "json",
        }
    }
    for name, path in files.items():
        handlers[f"{name}_file"] = {
            "class": "logging.FileHandler",
            "level": LOG_LEVELS[name],
            "filename": str(path),
            "formatter": "json",
            "encoding": "utf-8",
        }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": handlers,
        "loggers": {
            "promo_crawler": {
                "handlers": list(handlers),
                "level": "DEBUG" if verbose else "INFO",
                "propagate": False,
            }
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Set up the log files once per process and return the application logger.

    ``verbose`` echoes debug events (parser rejections, fetch timings) to the
    console; otherwise the console only shows warnings and errors.
    """

    global _configured
    files = log_files()
    for path in files.values():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)

    if not _configured:
        logging.config.dictConfig(_dict_config(files, verbose))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.format_exc_info,
                # event name becomes the record message, the rest JSON fields
                structlog.stdlib.render_to_log_kwargs,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _configured = True
    return structlog.get_logger("promo_crawler")


@contextmanager
def run_context(**values: Any) -> Iterator[None]:
    """Attach ``values`` to every event logged in this block, then drop them."""

    bound = {key: value for key, value in values.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


__all__ = ["LOG_LEVELS", "configure_logging", "log_dir", "log_files", "run_context", "tail_log"]
