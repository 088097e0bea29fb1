"""Configuration loading from CLI args, env vars, and optional YAML file.

Precedence: CLI flag > environment variable > YAML key > default.
"""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Invalid configuration value."""


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    input_path: str | None = None       # None reads stdin
    output_path: str = "ue_metrics.csv"
    split_output: bool = False
    append: bool = False
    follow: bool = False
    poll_interval: float = 0.5
    metrics_file: str | None = None
    log_level: str = "INFO"


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _pick(cli_value, env_key: str, yaml_data: dict, yaml_key: str, default, environ):
    if cli_value is not None:
        return cli_value
    if env_key and env_key in environ:
        return environ[env_key]
    if yaml_key in yaml_data and yaml_data[yaml_key] is not None:
        return yaml_data[yaml_key]
    return default


def load_config(cli_args, yaml_data: dict, environ=None) -> Config:
    """Build Config from CLI args, env vars, and parsed YAML data."""
    environ = os.environ if environ is None else environ

    def pick(attr, env_key, yaml_key, default):
        cli_value = getattr(cli_args, attr, None) if attr else None
        return _pick(cli_value, env_key, yaml_data, yaml_key, default, environ)

    try:
        poll_interval = float(pick(None, "UE_METRICS_POLL_INTERVAL", "poll_interval",
                                   Config.poll_interval))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"poll_interval must be a number: {e}") from e
    if poll_interval <= 0:
        raise ConfigError("poll_interval must be positive")

    log_level = str(pick("log_level", "UE_METRICS_LOG_LEVEL", "log_level",
                         Config.log_level)).upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(f"Unknown log level {log_level!r}")

    config = Config(
        input_path=pick("input", "UE_METRICS_INPUT", "input", Config.input_path),
        output_path=pick("output", "UE_METRICS_OUTPUT", "output", Config.output_path),
        split_output=_parse_bool(pick("split", "UE_METRICS_SPLIT", "split", False)),
        append=_parse_bool(pick("append", "UE_METRICS_APPEND", "append", False)),
        follow=_parse_bool(pick("follow", None, "follow", False)),
        poll_interval=poll_interval,
        metrics_file=pick("metrics_file", "UE_METRICS_METRICS_FILE", "metrics_file",
                          Config.metrics_file),
        log_level=log_level,
    )

    if config.follow and not config.input_path:
        raise ConfigError("--follow requires --input")
    return config
