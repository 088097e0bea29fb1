"""Pipeline coordinator: ingestion -> assembler -> persistence.

Shutdown is driven by queue closure alone. Ingestion closes the line queue at
end of input (or on cancellation); the assembler closes the record queue once
the line queue is closed and drained; persistence closes the sinks once the
record queue is closed and drained. Each queue is closed only by its producer.
"""

import logging
import sys
import threading
from typing import TextIO

from ue_metrics.assembler import AssemblerStage, RecordAssembler
from ue_metrics.blocking_queue import BlockingQueue
from ue_metrics.config import Config
from ue_metrics.ingest import FollowingIngestionStage, IngestionStage, replace_undecodable
from ue_metrics.metrics import Metrics
from ue_metrics.persistence import PersistenceStage
from ue_metrics.sinks import SinkRouter

logger = logging.getLogger(__name__)


class Pipeline:
    def __init__(self, config: Config, stream: TextIO | None = None,
                 shutdown_event: threading.Event | None = None, time_func=None):
        self._config = config
        self._shutdown = shutdown_event or threading.Event()
        self.metrics = Metrics()

        self.line_queue = BlockingQueue()
        self.record_queue = BlockingQueue()

        if config.follow:
            self._ingestion = FollowingIngestionStage(
                self.line_queue, config.input_path, self.metrics, self._shutdown,
                poll_interval=config.poll_interval,
            )
        else:
            source = stream if stream is not None else sys.stdin
            self._ingestion = IngestionStage(
                self.line_queue, replace_undecodable(source), self.metrics,
                self._shutdown, poll_interval=config.poll_interval,
            )

        self.assembler = RecordAssembler(self.metrics, time_func=time_func)
        self._assembly = AssemblerStage(self.line_queue, self.record_queue, self.assembler)

        self.router = SinkRouter(config.output_path, split=config.split_output,
                                 append=config.append, metrics=self.metrics)
        self._persistence = PersistenceStage(self.record_queue, self.router)

        self._stages = [self._ingestion, self._assembly, self._persistence]

    @property
    def ingestion_error(self) -> BaseException | None:
        return self._ingestion.error

    def start(self):
        # Downstream first so nothing is produced before its consumer exists
        for stage in reversed(self._stages):
            stage.start()
        logger.info("Pipeline started: output=%s, split=%s, follow=%s",
                    self._config.output_path, self._config.split_output, self._config.follow)

    def stop(self):
        """Request cancellation; stages still drain what is already queued."""
        self._shutdown.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for all stages in pipeline order. Returns True if all finished."""
        for stage in self._stages:
            stage.join(timeout)
        return not any(stage.is_alive() for stage in self._stages)

    def run(self) -> dict:
        self.start()
        self.join()
        return self.report()

    def report(self) -> dict:
        """Log the final counters and save them if a metrics file is configured."""
        stats = self.metrics.get_all()
        logger.info("Stats: %s", self.metrics.summary())
        if self._config.metrics_file:
            self.metrics.save(self._config.metrics_file)
            logger.info("Metrics saved to %s", self._config.metrics_file)
        return stats
