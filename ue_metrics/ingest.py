"""Ingestion: reads raw log lines into the line queue.

Two modes:
  - stream: read a text stream (stdin or a file) to EOF, then close the queue.
    A daemon reader thread does the blocking reads and hands lines over, so a
    shutdown request is honoured even while the source has nothing to read.
  - follow: read a file, then keep tailing it until shutdown is requested.
    A watchdog observer signals modifications; the stage thread does all reads.

In both modes the stage thread is the only producer of the line queue.
"""

import logging
import os
import queue
import threading
from threading import Thread
from typing import TextIO

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ue_metrics.blocking_queue import BlockingQueue
from ue_metrics.metrics import LINES_READ, Metrics

logger = logging.getLogger(__name__)

_EOF = object()
_HANDOFF_SIZE = 1024


def replace_undecodable(stream: TextIO) -> TextIO:
    """Make *stream* decode bad bytes as U+FFFD instead of raising.

    Must run before the first read. Streams that cannot be reconfigured
    (e.g. io.StringIO) are returned unchanged.
    """
    reconfigure = getattr(stream, "reconfigure", None)
    if reconfigure is not None and getattr(stream, "encoding", None):
        reconfigure(encoding="utf-8", errors="replace")
    return stream


class IngestionStage(Thread):
    """Pushes every non-empty line of *stream* to the line queue, then closes it."""

    def __init__(self, line_queue: BlockingQueue, stream: TextIO, metrics: Metrics,
                 shutdown_event: threading.Event, poll_interval: float = 0.5):
        super().__init__(name="ingestion", daemon=True)
        self._line_queue = line_queue
        self._stream = stream
        self._metrics = metrics
        self._shutdown = shutdown_event
        self._poll_interval = poll_interval
        self.error: BaseException | None = None

    def _push(self, raw: str) -> None:
        line = raw.rstrip("\r\n")
        if line:
            self._line_queue.push(line)
            self._metrics.increment(LINES_READ)

    def _reader(self, handoff: queue.Queue) -> None:
        """Blocking reads; forwards lines, then a read error if any, then _EOF."""
        try:
            for raw in self._stream:
                handoff.put(raw)
                if self._shutdown.is_set():
                    break
        except (OSError, ValueError) as e:
            handoff.put(e)
        finally:
            handoff.put(_EOF)

    def _read(self) -> None:
        handoff: queue.Queue = queue.Queue(maxsize=_HANDOFF_SIZE)
        reader = Thread(target=self._reader, args=(handoff,),
                        name="ingestion-reader", daemon=True)
        reader.start()
        while True:
            try:
                item = handoff.get(timeout=self._poll_interval)
            except queue.Empty:
                if self._shutdown.is_set():
                    logger.info("Shutdown requested while waiting for input, "
                                "abandoning the blocked read")
                    return
                continue
            if self._shutdown.is_set():
                logger.info("Shutdown requested, stopping ingestion early")
                return
            if item is _EOF:
                return
            if isinstance(item, BaseException):
                raise item
            self._push(item)

    def run(self):
        logger.info("Ingestion stage started")
        try:
            self._read()
        except (OSError, ValueError) as e:
            self.error = e
            logger.exception("Input stream failed")
        finally:
            self._line_queue.close()
        logger.info("Ingestion stage stopped (%d lines read)", self._metrics.get(LINES_READ))


class _ChangeNotifier(FileSystemEventHandler):
    """Sets *changed* whenever the followed file is created or modified."""

    def __init__(self, path: str, changed: threading.Event):
        super().__init__()
        self._path = os.path.abspath(path)
        self._changed = changed

    def _handle(self, event):
        if not event.is_directory and os.path.abspath(event.src_path) == self._path:
            self._changed.set()

    def on_modified(self, event):
        self._handle(event)

    def on_created(self, event):
        self._handle(event)


class FollowingIngestionStage(IngestionStage):
    """Tails *path* until the shutdown event is set.

    Handles partial trailing lines and truncation. Watchdog events wake the
    reader early; *poll_interval* bounds the wait when no event arrives.
    """

    def __init__(self, line_queue: BlockingQueue, path: str, metrics: Metrics,
                 shutdown_event: threading.Event, poll_interval: float = 0.5):
        super().__init__(line_queue, None, metrics, shutdown_event, poll_interval)
        self._path = os.path.abspath(path)
        self._changed = threading.Event()
        self._partial = ""

    def _read_available(self, fh) -> None:
        if os.fstat(fh.fileno()).st_size < fh.tell():
            logger.info("File truncated: %s", self._path)
            fh.seek(0)
            self._partial = ""

        data = fh.read()
        if not data:
            return
        data = self._partial + data
        lines = data.split("\n")
        # Keep an unterminated last line until the rest of it is written
        self._partial = lines.pop()
        for line in lines:
            self._push(line)

    def _read(self) -> None:
        observer = Observer()
        observer.schedule(_ChangeNotifier(self._path, self._changed),
                          os.path.dirname(self._path), recursive=False)
        observer.start()
        logger.info("Following %s", self._path)
        try:
            with open(self._path, "r", encoding="utf-8", errors="replace") as fh:
                while True:
                    self._changed.clear()
                    self._read_available(fh)
                    if self._shutdown.is_set():
                        break
                    self._changed.wait(timeout=self._poll_interval)
                self._push(self._partial)
        finally:
            observer.stop()
            observer.join(timeout=5)
