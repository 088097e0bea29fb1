"""Tests for the ingestion stages."""

import io
import os
import threading
import time

from ue_metrics.blocking_queue import CLOSED, BlockingQueue
from ue_metrics.ingest import FollowingIngestionStage, IngestionStage
from ue_metrics.metrics import Metrics


def _drain(q: BlockingQueue) -> list[str]:
    items = []
    while True:
        item = q.blocking_pop(timeout=2)
        if item is CLOSED:
            return items
        items.append(item)


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


class TestStreamIngestion:
    def test_pushes_non_empty_lines_verbatim(self):
        q = BlockingQueue()
        stream = io.StringIO("first\n\n  indented  \nlast")
        stage = IngestionStage(q, stream, Metrics(), threading.Event())
        stage.start()
        stage.join(timeout=5)

        assert _drain(q) == ["first", "  indented  ", "last"]
        assert q.closed

    def test_strips_crlf(self):
        q = BlockingQueue()
        stage = IngestionStage(q, io.StringIO("a\r\nb\r\n"), Metrics(), threading.Event())
        stage.run()
        assert _drain(q) == ["a", "b"]

    def test_counts_lines(self):
        metrics = Metrics()
        q = BlockingQueue()
        IngestionStage(q, io.StringIO("a\nb\n\nc\n"), metrics, threading.Event()).run()
        assert metrics.get("lines_read") == 3

    def test_shutdown_stops_reading(self):
        q = BlockingQueue()
        shutdown = threading.Event()
        shutdown.set()
        IngestionStage(q, io.StringIO("a\nb\n"), Metrics(), shutdown).run()
        assert _drain(q) == []
        assert q.closed

    def test_read_error_closes_queue(self):
        class BrokenStream:
            def __iter__(self):
                yield "ok\n"
                raise OSError("device gone")

        q = BlockingQueue()
        stage = IngestionStage(q, BrokenStream(), Metrics(), threading.Event())
        stage.run()

        assert _drain(q) == ["ok"]
        assert isinstance(stage.error, OSError)


class TestFollowingIngestion:
    def test_tails_appended_lines(self, tmp_path):
        path = tmp_path / "gnb.log"
        path.write_text("existing line\n")
        q = BlockingQueue()
        metrics = Metrics()
        shutdown = threading.Event()
        stage = FollowingIngestionStage(q, str(path), metrics, shutdown, poll_interval=0.1)
        stage.start()
        try:
            assert _wait_for(lambda: metrics.get("lines_read") == 1)
            with open(path, "a") as f:
                f.write("appended one\nappended ")
                f.flush()
                time.sleep(0.3)
                f.write("two\n")
            assert _wait_for(lambda: metrics.get("lines_read") == 3)
        finally:
            shutdown.set()
            stage.join(timeout=5)

        assert not stage.is_alive()
        assert _drain(q) == ["existing line", "appended one", "appended two"]

    def test_truncation_restarts_from_top(self, tmp_path):
        path = tmp_path / "gnb.log"
        path.write_text("a fairly long first line\n")
        q = BlockingQueue()
        metrics = Metrics()
        shutdown = threading.Event()
        stage = FollowingIngestionStage(q, str(path), metrics, shutdown, poll_interval=0.1)
        stage.start()
        try:
            assert _wait_for(lambda: metrics.get("lines_read") == 1)
            path.write_text("new\n")
            assert _wait_for(lambda: metrics.get("lines_read") == 2)
        finally:
            shutdown.set()
            stage.join(timeout=5)

        assert _drain(q) == ["a fairly long first line", "new"]

    def test_unterminated_last_line_pushed_at_shutdown(self, tmp_path):
        path = tmp_path / "gnb.log"
        path.write_text("complete\npartial")
        q = BlockingQueue()
        metrics = Metrics()
        shutdown = threading.Event()
        stage = FollowingIngestionStage(q, str(path), metrics, shutdown, poll_interval=0.1)
        stage.start()
        assert _wait_for(lambda: metrics.get("lines_read") == 1)
        shutdown.set()
        stage.join(timeout=5)

        assert _drain(q) == ["complete", "partial"]


class TestCancellation:
    def test_shutdown_while_blocked_on_idle_pipe(self):
        read_fd, write_fd = os.pipe()
        stream = os.fdopen(read_fd, "r")
        q = BlockingQueue()
        shutdown = threading.Event()
        stage = IngestionStage(q, stream, Metrics(), shutdown, poll_interval=0.1)
        stage.start()
        try:
            time.sleep(0.2)
            shutdown.set()
            stage.join(timeout=2)
            assert not stage.is_alive()
            assert q.closed
            assert stage.error is None
        finally:
            os.close(write_fd)

    def test_lines_before_shutdown_are_delivered(self):
        read_fd, write_fd = os.pipe()
        stream = os.fdopen(read_fd, "r")
        q = BlockingQueue()
        metrics = Metrics()
        shutdown = threading.Event()
        stage = IngestionStage(q, stream, metrics, shutdown, poll_interval=0.1)
        stage.start()
        try:
            os.write(write_fd, b"first\nsecond\n")
            assert _wait_for(lambda: metrics.get("lines_read") == 2)
            shutdown.set()
            stage.join(timeout=2)
        finally:
            os.close(write_fd)

        assert _drain(q) == ["first", "second"]
