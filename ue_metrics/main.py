#!/usr/bin/env python3
"""UE Metrics Pipeline entry point.

Reads a gNB MAC scheduler log (stdin or --input), assembles per-UE records,
and writes them to CSV.
"""

import argparse
import logging
import os
import signal
import sys
import threading

from ue_metrics.config import ConfigError, load_config, load_yaml_config
from ue_metrics.pipeline import Pipeline

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="gNB UE metrics CSV exporter")
    parser.add_argument(
        "output", nargs="?", default=None,
        help="Output CSV path; base name in --split mode (default: ue_metrics.csv)",
    )
    parser.add_argument(
        "--input", default=None,
        help="Log file to read (default: stdin)",
    )
    parser.add_argument(
        "--split", action="store_true", default=None,
        help="Write one CSV per UE RNTI instead of one shared file",
    )
    parser.add_argument(
        "--append", action="store_true", default=None,
        help="Append to existing CSV files instead of overwriting them",
    )
    parser.add_argument(
        "--follow", action="store_true", default=None,
        help="Keep tailing --input until interrupted",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--metrics-file", default=None,
        help="Write pipeline counters as JSON to this path on exit",
    )
    parser.add_argument(
        "--log-level", default=None,
        help="DEBUG, INFO, WARNING, ERROR (default: INFO)",
    )
    return parser


def main(argv=None) -> int:
    args = build_cli_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [UE-METRICS] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 1
    logging.getLogger().setLevel(config.log_level)

    if config.follow and not os.path.isfile(config.input_path):
        logger.error("Cannot follow %s: no such file", config.input_path)
        return 1

    stream = None
    if config.input_path and not config.follow:
        try:
            stream = open(config.input_path, "r", encoding="utf-8", errors="replace")
        except OSError as e:
            logger.error("Cannot open input %s: %s", config.input_path, e)
            return 1

    shutdown_event = threading.Event()

    def _signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down (signal again to abort)...", signum)
        shutdown_event.set()
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    previous = {sig: signal.signal(sig, _signal_handler)
                for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        pipeline = Pipeline(config, stream=stream, shutdown_event=shutdown_event)
        pipeline.start()
        # Poll so signal handlers get to run on the main thread
        while not pipeline.join(timeout=0.5):
            pass
        stats = pipeline.report()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        if stream is not None:
            stream.close()

    if pipeline.ingestion_error is not None or stats["counters"].get("sink_errors"):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
