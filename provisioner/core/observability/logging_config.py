"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Console level, in precedence order:
    --debug  >  --verbose  >  --quiet  >  PROVISION_LOG_LEVEL  >  WARNING

The optional log file (``log_file`` in provision.yml, or
PROVISION_LOG_FILE / PROVISION_LOG_FILE_LEVEL) is shared by every run:
it is appended to, never rotated, and each line carries the id of the
run that wrote it.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

ENV_LEVEL = "PROVISION_LOG_LEVEL"
ENV_FILE = "PROVISION_LOG_FILE"
ENV_FILE_LEVEL = "PROVISION_LOG_FILE_LEVEL"

# Console format per level tier: (format, datefmt)
_CONSOLE_FORMATS = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    logging.WARNING: ("%(message)s", None),
}

_FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(run_id)s] %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


class _RunIdFilter(logging.Filter):
    """Stamp records with the active run id ("-" outside a run)."""

    run_id = "-"

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        return True


_run_filter = _RunIdFilter()


def bind_run(run_id: str | None) -> None:
    """Tag subsequent file log lines with ``run_id``."""
    _run_filter.run_id = run_id or "-"


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags and the environment."""
    env = os.environ if env is None else env
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return env.get(ENV_LEVEL, "WARNING")


def _parse_level(level: str | None) -> int:
    numeric = getattr(logging, (level or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with a console (and file) handler.

    Args:
        level: Console level name; unknown names mean WARNING.
        log_file: Log file path. Falls back to PROVISION_LOG_FILE.
        log_file_level: File level. Falls back to
            PROVISION_LOG_FILE_LEVEL, then ``level``.
        quiet_third_party: Keep noisy third-party loggers at WARNING
            unless the console is at DEBUG.
    """
    console_level = _parse_level(level)
    log_file = log_file or os.environ.get(ENV_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_FILE_LEVEL)

    tier = max(t for t in _CONSOLE_FORMATS if t <= max(console_level, logging.DEBUG))
    fmt, datefmt = _CONSOLE_FORMATS[tier]
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        fh.setLevel(file_level)
        fh.addFilter(_run_filter)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(fh)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False
