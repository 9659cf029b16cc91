"""Audit sinks.

* :class:`LoggingAuditSink` -- forwards records to a :mod:`logging`
  logger (the default sink of every policy store).
* :class:`NDJSONFileAuditSink` -- buffers records and appends them to a
  file, one JSON object per line, on :meth:`flush`.
* :class:`CompositeAuditSink` -- fans records out to several sinks.

The in-memory sink lives in :mod:`serialguard.core.interfaces` next to
the :class:`~serialguard.core.interfaces.AuditSink` protocol.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from serialguard.audit.records import describe
from serialguard.core.interfaces import AuditSink
from serialguard.core.types import AuditLevel, AuditRecord

_LEVELS = {
    AuditLevel.INFO: logging.INFO,
    AuditLevel.ERROR: logging.ERROR,
}


class LoggingAuditSink:
    """Writes each record to *logger* as soon as it is emitted.

    Parameters
    ----------
    logger:
        A logger instance or a logger name.  Defaults to
        ``"serialguard.audit"``.
    """

    def __init__(self, logger: logging.Logger | str | None = None) -> None:
        if logger is None or isinstance(logger, str):
            logger = logging.getLogger(logger or "serialguard.audit")
        self._logger = logger

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def emit(self, record: AuditRecord) -> None:
        self._logger.log(
            _LEVELS[record.level],
            describe(record),
            extra={"serialguard_audit": record.model_dump(mode="json")},
        )

    def flush(self) -> None:
        logger: logging.Logger | None = self._logger
        while logger is not None:
            for handler in logger.handlers:
                handler.flush()
            logger = logger.parent if logger.propagate else None


class NDJSONFileAuditSink:
    """Appends records to *path* as newline-delimited JSON.

    Records are buffered in memory by :meth:`emit` and written (then the
    file flushed) by :meth:`flush`.  Write errors propagate to the caller.
    """

    def __init__(self, path: str | Path, *, encoding: str = "utf-8") -> None:
        self._path = Path(path)
        self._encoding = encoding
        self._lock = threading.Lock()
        self._pending: list[AuditRecord] = []

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, record: AuditRecord) -> None:
        with self._lock:
            self._pending.append(record)

    def flush(self) -> None:
        with self._lock:
            if not self._pending:
                return
            lines = "".join(r.model_dump_json() + "\n" for r in self._pending)
            with self._path.open("a", encoding=self._encoding) as fh:
                fh.write(lines)
                fh.flush()
            self._pending.clear()


class CompositeAuditSink:
    """Forwards every record to each of *sinks*, in order."""

    def __init__(self, sinks: Iterable[AuditSink]) -> None:
        self._sinks: tuple[AuditSink, ...] = tuple(sinks)

    @property
    def sinks(self) -> tuple[AuditSink, ...]:
        return self._sinks

    def emit(self, record: AuditRecord) -> None:
        for sink in self._sinks:
            sink.emit(record)

    def flush(self) -> None:
        for sink in self._sinks:
            sink.flush()
