"""CSV sinks: one shared file, or one file per RNTI."""

import csv
import logging
import os

from ue_metrics.metrics import (
    RECORDS_DROPPED, RECORDS_WRITTEN, SINK_ERRORS, SINKS_OPENED, Metrics,
)
from ue_metrics.models import CSV_COLUMNS, UERecord, record_to_row

logger = logging.getLogger(__name__)


class SinkError(OSError):
    """A sink could not be opened or written."""


class CsvSink:
    """Append-only CSV file, opened lazily on the first write.

    The header row is written once, when the file is created (or is empty in
    append mode). Each row is flushed as soon as it is written.
    """

    def __init__(self, path: str, append: bool = False):
        self._path = path
        self._append = append
        self._file = None
        self._writer = None
        self.rows_written = 0

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def _open(self):
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        mode = "a" if self._append else "w"
        self._file = open(self._path, mode, encoding="utf-8", newline="")
        self._writer = csv.writer(self._file, lineterminator="\n")
        if self._file.tell() == 0:
            self._writer.writerow(CSV_COLUMNS)
        logger.info("Opened sink %s", self._path)

    def write(self, record: UERecord) -> None:
        try:
            if self._file is None:
                self._open()
            self._writer.writerow(record_to_row(record))
            self._file.flush()
        except OSError as e:
            raise SinkError(f"{self._path}: {e}") from e
        self.rows_written += 1

    def close(self):
        if self._file is not None and not self._file.closed:
            self._file.close()
        self._file = None
        self._writer = None


def split_path(base_path: str, rnti: str) -> str:
    """'out/ue_metrics.csv' + '928c' -> 'out/ue_metrics_928c.csv'."""
    stem, suffix = os.path.splitext(base_path)
    return f"{stem}_{rnti}{suffix or '.csv'}"


class SinkRouter:
    """Routes records to the aggregate sink or to a per-RNTI sink.

    Owned by the persistence stage. A sink that fails is closed, remembered as
    failed, and further records routed to it are dropped; other sinks carry on.
    """

    def __init__(self, base_path: str, split: bool = False, append: bool = False,
                 metrics: Metrics | None = None):
        self._base_path = base_path
        self._split = split
        self._append = append
        self._metrics = metrics or Metrics()
        self._sinks: dict[str, CsvSink] = {}
        self._failed: set[str] = set()

    @property
    def sinks(self) -> dict[str, CsvSink]:
        return dict(self._sinks)

    def _key(self, record: UERecord) -> str:
        return record.rnti if self._split else ""

    def _sink_for(self, key: str) -> CsvSink:
        sink = self._sinks.get(key)
        if sink is None:
            path = split_path(self._base_path, key) if key else self._base_path
            sink = CsvSink(path, append=self._append)
            self._sinks[key] = sink
            self._metrics.increment(SINKS_OPENED)
        return sink

    def write(self, record: UERecord) -> bool:
        """Write one record. Returns False if it was dropped."""
        key = self._key(record)
        if key in self._failed:
            self._metrics.increment(RECORDS_DROPPED)
            return False

        sink = self._sink_for(key)
        try:
            sink.write(record)
        except SinkError as e:
            logger.error("Sink failed, dropping its records from now on: %s", e)
            self._failed.add(key)
            sink.close()
            self._metrics.increment(SINK_ERRORS)
            self._metrics.increment(RECORDS_DROPPED)
            return False

        self._metrics.increment(RECORDS_WRITTEN)
        return True

    def close(self):
        for sink in self._sinks.values():
            sink.close()
        logger.info("Closed %d sink(s)", len(self._sinks))
