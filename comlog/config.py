"""Configuration loading from env vars, an optional YAML file and CLI args."""

import logging
import os
from dataclasses import dataclass, fields, replace

import yaml

from comlog.errors import ConfigurationError

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    port: str = "/dev/ttyUSB0"
    baudrate: int = 115200
    output_dir: str = "./logs"
    display_lines: int = 100
    rotation_minutes: int = 20
    max_lines_per_file: int = 500_000
    read_timeout: float = 0.5
    max_consecutive_write_errors: int = 0  # 0 = never give up
    log_level: str = "INFO"

    def validate(self) -> "Config":
        if self.baudrate <= 0:
            raise ConfigurationError(f"baudrate must be > 0, got {self.baudrate}")
        if self.display_lines < 1:
            raise ConfigurationError(f"display_lines must be >= 1, got {self.display_lines}")
        if self.rotation_minutes < 0:
            raise ConfigurationError(f"rotation_minutes must be >= 0, got {self.rotation_minutes}")
        if self.max_lines_per_file <= 0:
            raise ConfigurationError(
                f"max_lines_per_file must be > 0, got {self.max_lines_per_file}"
            )
        if self.read_timeout <= 0:
            raise ConfigurationError(f"read_timeout must be > 0, got {self.read_timeout}")
        if self.max_consecutive_write_errors < 0:
            raise ConfigurationError(
                "max_consecutive_write_errors must be >= 0, "
                f"got {self.max_consecutive_write_errors}"
            )
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"unknown log_level '{self.log_level}'")
        return self


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
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _coerce(name: str, value, kind):
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid value for {name}: {value!r}") from e


def load_config(yaml_data: dict | None = None, overrides: dict | None = None) -> Config:
    """Build Config: defaults < environment < YAML file < explicit overrides."""
    env = os.environ
    config = Config(
        port=env.get("COMLOG_PORT", Config.port),
        baudrate=_coerce("COMLOG_BAUDRATE", env.get("COMLOG_BAUDRATE", Config.baudrate), int),
        output_dir=env.get("COMLOG_OUTPUT_DIR", Config.output_dir),
        display_lines=_coerce(
            "COMLOG_DISPLAY_LINES", env.get("COMLOG_DISPLAY_LINES", Config.display_lines), int
        ),
        rotation_minutes=_coerce(
            "COMLOG_ROTATION_MINUTES",
            env.get("COMLOG_ROTATION_MINUTES", Config.rotation_minutes), int,
        ),
        max_lines_per_file=_coerce(
            "COMLOG_MAX_LINES_PER_FILE",
            env.get("COMLOG_MAX_LINES_PER_FILE", Config.max_lines_per_file), int,
        ),
        read_timeout=_coerce(
            "COMLOG_READ_TIMEOUT", env.get("COMLOG_READ_TIMEOUT", Config.read_timeout), float
        ),
        max_consecutive_write_errors=_coerce(
            "COMLOG_MAX_WRITE_ERRORS",
            env.get("COMLOG_MAX_WRITE_ERRORS", Config.max_consecutive_write_errors), int,
        ),
        log_level=env.get("COMLOG_LOG_LEVEL", Config.log_level),
    )

    types = {f.name: type(getattr(config, f.name)) for f in fields(Config)}
    for source in (yaml_data or {}, overrides or {}):
        changes = {}
        for key, value in source.items():
            if value is None:
                continue
            if key not in types:
                logger.warning("Ignoring unknown config key '%s'", key)
                continue
            changes[key] = _coerce(key, value, types[key])
        config = replace(config, **changes)

    return config.validate()
