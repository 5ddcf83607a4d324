"""Configuration management for dueday."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DUEDAY_HOME = Path(os.environ.get("DUEDAY_HOME", Path.home() / "dueday"))
CONFIG_FILE = DUEDAY_HOME / "config" / "dueday.conf"


@dataclass
class Config:
    """dueday configuration."""

    supabase_url: str = ""
    supabase_key: str = ""
    # Optional user session token; the anon key is used when empty
    access_token: str = ""
    echo_seconds: float = 1.0
    restore_list_on_uncomplete: bool = False
    store_retries: int = 2
    store_backoff: float = 0.5
    request_timeout: float = 10.0
    log_level: str = "WARNING"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _strip_value(value: str) -> str:
    """Handle quoted values with inline comments: "value" # comment"""
    if value.startswith('"') or value.startswith("'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        if end_quote != -1:
            return value[1:end_quote]
        return value[1:]
    # Unquoted: strip inline comments
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def _set_number(config: Config, attr: str, key: str, value: str, cast) -> None:
    try:
        setattr(config, attr, cast(value))
    except ValueError:
        logger.warning(f"Invalid {key.upper()} value {value!r}, keeping {getattr(config, attr)}")


def load_config(path: Path | None = None) -> Config:
    """Load configuration from dueday.conf, then apply environment overrides."""
    config = Config()
    path = path or CONFIG_FILE

    if path.exists():
        for line in path.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                continue

            key, _, value = line.partition("=")
            key = key.strip().lower()
            value = _strip_value(value.strip())

            match key:
                case "supabase_url":
                    config.supabase_url = value.rstrip("/")
                case "supabase_key" | "supabase_anon_key":
                    config.supabase_key = value
                case "access_token":
                    config.access_token = value
                case "echo_seconds":
                    _set_number(config, "echo_seconds", key, value, float)
                case "restore_list_on_uncomplete":
                    config.restore_list_on_uncomplete = _parse_bool(value)
                case "store_retries":
                    _set_number(config, "store_retries", key, value, int)
                case "store_backoff":
                    _set_number(config, "store_backoff", key, value, float)
                case "request_timeout":
                    _set_number(config, "request_timeout", key, value, float)
                case "log_level":
                    if isinstance(logging.getLevelName(value.upper()), int):
                        config.log_level = value.upper()
                    else:
                        logger.warning(f"Invalid LOG_LEVEL value {value!r}, keeping {config.log_level}")
                case _:
                    logger.debug(f"Ignoring unknown config key {key}")

    if os.environ.get("SUPABASE_URL"):
        config.supabase_url = os.environ["SUPABASE_URL"].strip().rstrip("/")
    if os.environ.get("SUPABASE_ANON_KEY"):
        config.supabase_key = os.environ["SUPABASE_ANON_KEY"].strip()

    return config
