"""Pipeline counters and gauges shared by the three stages."""

import json
import os
import tempfile
import threading
import time
from datetime import datetime, timezone

# Counters
LINES_READ = "lines_read"
LINES_IGNORED = "lines_ignored"
MALFORMED_LINES = "malformed_lines"
FRAGMENTS_APPLIED = "fragments_applied"
RECORDS_COMPLETED = "records_completed"
RECORDS_WRITTEN = "records_written"
RECORDS_DROPPED = "records_dropped"
SINK_ERRORS = "sink_errors"
SINKS_OPENED = "sinks_opened"

# Gauges
PENDING_RECORDS = "pending_records"

_SUMMARY_ORDER = [
    (LINES_READ, "lines read"),
    (LINES_IGNORED, "ignored"),
    (MALFORMED_LINES, "malformed"),
    (RECORDS_COMPLETED, "records completed"),
    (RECORDS_WRITTEN, "written"),
    (RECORDS_DROPPED, "dropped"),
]


class Metrics:
    """Monotonic counters plus last-value gauges, safe to update from any stage."""

    def __init__(self):
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, int] = {}
        self._lock = threading.Lock()
        self._start_time = time.time()

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def set_gauge(self, name: str, value: int) -> None:
        with self._lock:
            self._gauges[name] = value

    def get(self, name: str) -> int:
        with self._lock:
            if name in self._gauges:
                return self._gauges[name]
            return self._counters.get(name, 0)

    def summary(self) -> str:
        """One-line stats for the shutdown log, e.g. '12 lines read, 0 ignored, ...'."""
        with self._lock:
            parts = [f"{self._counters.get(name, 0)} {label}" for name, label in _SUMMARY_ORDER]
            parts.append(f"{self._gauges.get(PENDING_RECORDS, 0)} pending")
        return ", ".join(parts)

    def get_all(self) -> dict:
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
        return {
            "counters": counters,
            "gauges": gauges,
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }

    def save(self, path: str) -> None:
        """Write get_all() as JSON via a temp file in the same directory."""
        directory = os.path.dirname(path) or "."
        os.makedirs(directory, exist_ok=True)
        data = self.get_all()
        fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
