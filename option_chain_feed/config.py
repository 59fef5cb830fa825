"""Feed settings read from a YAML file and the environment."""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "OPTION_CHAIN_FEED_"


@dataclass(frozen=True)
class FeedSettings:
    """Connection and retry settings for one feed session."""
    url: str
    max_retries: int = 5
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    connect_timeout: float = 10.0
    read_timeout: Optional[float] = None
    log_level: str = "INFO"


# Environment variable suffix -> (settings field, converter)
_ENV_FIELDS = {
    "URL": ("url", str),
    "MAX_RETRIES": ("max_retries", int),
    "BASE_DELAY_MS": ("base_delay_ms", int),
    "MAX_DELAY_MS": ("max_delay_ms", int),
    "CONNECT_TIMEOUT": ("connect_timeout", float),
    "READ_TIMEOUT": ("read_timeout", float),
    "LOG_LEVEL": ("log_level", str),
}

_CONVERTERS = {name: convert for name, convert in _ENV_FIELDS.values()}


def _convert(name: str, raw: Any, source: str) -> Any:
    """Coerces one raw setting to its field type; file and environment values share this path."""
    convert = _CONVERTERS[name]
    if isinstance(raw, (bool, dict, list)):
        raise ValueError(f"Invalid value for {source}: {raw!r}")
    if convert is int and isinstance(raw, float) and not raw.is_integer():
        raise ValueError(f"Invalid value for {source}: {raw!r}")
    try:
        return convert(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {source}: {raw!r}") from e


def _read_yaml(config_path: str) -> Dict[str, Any]:
    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    stream = config.get("stream", {}) or {}
    if not isinstance(stream, dict):
        raise ValueError(f"'stream' section in {config_path} must be a mapping")

    unknown = set(stream) - set(_CONVERTERS)
    if unknown:
        logger.warning(f"Ignoring unknown stream settings: {sorted(unknown)}")

    values = {}
    for name, raw in stream.items():
        # null leaves the field at its default
        if name in unknown or raw is None:
            continue
        values[name] = _convert(name, raw, f"stream.{name} in {config_path}")
    return values


def load_settings(config_path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> FeedSettings:
    """
    Builds FeedSettings from an optional YAML file, overridden by environment variables.

    The YAML file is expected to have a `stream` section whose keys match the
    FeedSettings fields. Variables from a `.env` file are loaded first (without
    overriding the real environment); `OPTION_CHAIN_FEED_<FIELD>` then wins
    over the file, e.g. OPTION_CHAIN_FEED_URL or OPTION_CHAIN_FEED_MAX_RETRIES.

    Args:
        config_path: Path to the YAML configuration file.
        env: Mapping used instead of os.environ (no .env loading then).

    Returns:
        The resolved FeedSettings.

    Raises:
        ValueError: If no stream URL is configured or a value has the wrong type.
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    values: Dict[str, Any] = {}
    if config_path:
        if os.path.exists(config_path):
            values.update(_read_yaml(config_path))
            logger.info(f"Loaded feed configuration from {config_path}")
        else:
            logger.warning(f"Configuration file {config_path} not found, using environment only")

    for suffix, (name, _) in _ENV_FIELDS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        values[name] = _convert(name, raw, ENV_PREFIX + suffix)

    if not values.get("url"):
        raise ValueError(f"No stream URL configured; set {ENV_PREFIX}URL or stream.url in the config file")

    return FeedSettings(**values)
