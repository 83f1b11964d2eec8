"""structlog setup shared by the CLI runner and the HTTP app.

Development gets the colored console renderer; every other environment gets
one JSON object per line. LOG_FILE adds a second sink so a batch run leaves
an audit trail next to its progress checkpoint.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

from enricher.config import Settings


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


class _TeeStream:
    """File-like sink that fans each rendered line out to stdout and a file.

    The file is best-effort: if it cannot be opened, or a later write fails,
    it is dropped and stdout keeps working.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._file: IO[str] | None = None
        try:
            self._file = open(path, "a", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            self._drop(f"could not open {path!r}: {exc}")

    @property
    def file_enabled(self) -> bool:
        return self._file is not None

    def _drop(self, reason: str) -> None:
        # runs before structlog is usable, so plain stderr
        self._file = None
        print(f"WARNING: file logging disabled, {reason}", file=sys.stderr)

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError) as exc:
            self._drop(f"write to {self.path!r} failed: {exc}")

    def flush(self) -> None:
        sys.stdout.flush()
        if self._file is None:
            return
        try:
            self._file.flush()
        except (OSError, ValueError) as exc:
            self._drop(f"flush of {self.path!r} failed: {exc}")


def configure_logging(settings: Settings) -> None:
    """Configure structlog from LOG_LEVEL, LOG_FILE and ENVIRONMENT."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.environment == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    sink = _TeeStream(settings.log_file) if settings.log_file else None

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level(settings.log_level)),
        context_class=dict,
        # PrintLoggerFactory only needs write() and flush()
        logger_factory=structlog.PrintLoggerFactory(file=sink),  # type: ignore[arg-type]
        cache_logger_on_first_use=True,
    )
