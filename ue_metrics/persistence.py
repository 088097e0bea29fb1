"""PersistenceStage: consumer thread that drains the record queue into CSV sinks."""

import logging
from threading import Thread

from ue_metrics.blocking_queue import CLOSED, BlockingQueue
from ue_metrics.sinks import SinkRouter

logger = logging.getLogger(__name__)


class PersistenceStage(Thread):
    def __init__(self, record_queue: BlockingQueue, router: SinkRouter):
        super().__init__(name="persistence", daemon=True)
        self._record_queue = record_queue
        self._router = router

    def run(self):
        logger.info("Persistence stage started")
        try:
            while True:
                record = self._record_queue.blocking_pop()
                if record is CLOSED:
                    break
                self._router.write(record)
        finally:
            self._router.close()
        logger.info("Persistence stage stopped")
