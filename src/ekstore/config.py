"""Configuration management for ekstore."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

EKSTORE_HOME = Path(os.environ.get("EKSTORE_HOME", Path.home() / ".ekstore"))
CONFIG_FILE = EKSTORE_HOME / "ekstore.conf"

BACKENDS = ("eventkit", "memory")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class Config:
    """ekstore configuration."""

    backend: str = "eventkit"
    color_precision: int = 6
    strict_sources: bool = False
    default_entity_type: str = "event"
    lookahead_days: int = 7
    log_level: str = "WARNING"


def _unquote(value: str) -> str:
    """Strip quotes, or an inline comment from an unquoted value."""
    if value[:1] in ('"', "'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    if "#" in value:
        return value.split("#")[0].strip()
    return value


def _parse_int(key: str, value: str, default: int, minimum: int = 0) -> int:
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Ignoring {key.upper()}={value!r}: not an integer")
        return default
    if parsed < minimum:
        logger.warning(f"Ignoring {key.upper()}={value!r}: must be >= {minimum}")
        return default
    return parsed


def _parse_bool(key: str, value: str, default: bool) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    logger.warning(f"Ignoring {key.upper()}={value!r}: not a boolean")
    return default


def load_config(path: Path | None = None) -> Config:
    """Load configuration from ekstore.conf file."""
    config = Config()
    config_file = path or CONFIG_FILE

    if not config_file.exists():
        return config

    for line in config_file.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _unquote(value.strip())

        match key:
            case "backend":
                if value.lower() in BACKENDS:
                    config.backend = value.lower()
                else:
                    logger.warning(f"Unknown BACKEND {value!r}, expected one of {', '.join(BACKENDS)}")
            case "color_precision":
                config.color_precision = _parse_int(key, value, config.color_precision)
            case "strict_sources":
                config.strict_sources = _parse_bool(key, value, config.strict_sources)
            case "default_entity_type":
                if value in ("event", "reminder"):
                    config.default_entity_type = value
                else:
                    logger.warning(f"Unknown DEFAULT_ENTITY_TYPE {value!r}")
            case "lookahead_days":
                config.lookahead_days = _parse_int(key, value, config.lookahead_days, minimum=1)
            case "log_level":
                if value.upper() in LOG_LEVELS:
                    config.log_level = value.upper()
                else:
                    logger.warning(f"Unknown LOG_LEVEL {value!r}, expected one of {', '.join(LOG_LEVELS)}")

    return config
