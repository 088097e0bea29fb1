"""Record assembly: correlates per-UE fragments into complete UERecords."""

import logging
from datetime import datetime
from threading import Thread

from ue_metrics.blocking_queue import CLOSED, BlockingQueue
from ue_metrics.classifier import classify
from ue_metrics.metrics import (
    FRAGMENTS_APPLIED, LINES_IGNORED, MALFORMED_LINES, PENDING_RECORDS, RECORDS_COMPLETED,
    Metrics,
)
from ue_metrics.models import Fragment, FragmentKind, ParseFailure, UERecord

logger = logging.getLogger(__name__)


class RecordAssembler:
    """Holds one in-progress record per RNTI.

    Not thread-safe; owned by a single AssemblerStage. A record is complete
    when its UL_PHY fragment arrives. Records that never see one stay pending.
    """

    def __init__(self, metrics: Metrics | None = None, time_func=None):
        self._metrics = metrics or Metrics()
        self._time_func = time_func or datetime.now
        self._pending: dict[str, UERecord] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_rntis(self) -> list[str]:
        return list(self._pending)

    def _entry(self, rnti: str) -> UERecord:
        record = self._pending.get(rnti)
        if record is None:
            record = UERecord(rnti=rnti, timestamp=self._time_func())
            self._pending[rnti] = record
            self._metrics.set_gauge(PENDING_RECORDS, len(self._pending))
            logger.debug("New in-progress record for UE %s", rnti)
        return record

    def apply(self, fragment: Fragment) -> UERecord | None:
        """Apply a classified fragment. Returns the record if it is now complete."""
        record = self._entry(fragment.rnti)
        record.apply(fragment.values)
        self._metrics.increment(FRAGMENTS_APPLIED)

        if fragment.kind is FragmentKind.BASIC:
            record.timestamp = self._time_func()

        if not fragment.terminates:
            return None

        record.timestamp = self._time_func()
        del self._pending[fragment.rnti]
        self._metrics.set_gauge(PENDING_RECORDS, len(self._pending))
        self._metrics.increment(RECORDS_COMPLETED)
        return record

    def feed(self, line: str) -> UERecord | None:
        """Classify and apply one raw line."""
        result = classify(line)
        if result is None:
            self._metrics.increment(LINES_IGNORED)
            return None
        if isinstance(result, ParseFailure):
            self._metrics.increment(MALFORMED_LINES)
            logger.warning("Malformed line %r: %s", result.line, result.reason)
            return None
        return self.apply(result)


class AssemblerStage(Thread):
    """Drains the line queue into a RecordAssembler and pushes completed records.

    Sole producer and closer of the record queue; closes it only after the
    line queue reports closed-and-empty.
    """

    def __init__(self, line_queue: BlockingQueue, record_queue: BlockingQueue,
                 assembler: RecordAssembler):
        super().__init__(name="assembler", daemon=True)
        self._line_queue = line_queue
        self._record_queue = record_queue
        self._assembler = assembler

    def run(self):
        logger.info("Assembler stage started")
        try:
            while True:
                line = self._line_queue.blocking_pop()
                if line is CLOSED:
                    break
                record = self._assembler.feed(line)
                if record is not None:
                    self._record_queue.push(record)
        finally:
            self._record_queue.close()

        pending = self._assembler.pending_count
        if pending:
            logger.info("Input exhausted with %d incomplete record(s) pending: %s",
                        pending, ", ".join(self._assembler.pending_rntis()))
        logger.info("Assembler stage stopped")
