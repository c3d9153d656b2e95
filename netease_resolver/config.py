"""
netease-resolver configuration.

Values are layered, later layers winning:
defaults, then the YAML file, then NETEASE_* environment variables,
then command-line options.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import yaml

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://music.163.com/weapi"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 9_1 like Mac OS X) AppleWebKit/601.1.46 "
    "(KHTML, like Gecko) Version/9.0 Mobile/13B143 Safari/601.1"
)
DEFAULT_TIMEOUT = 10.0
DEFAULT_BITRATE = 320000

# Bitrates accepted by the player/url endpoint
VALID_BITRATES = {128000, 192000, 320000, 999000}

LOG_LEVELS = ("debug", "info", "warning", "error")

# NETEASE_* variable -> (section, key, converter)
ENV_MAPPINGS: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "NETEASE_API_BASE_URL": ("api", "base_url", str),
    "NETEASE_API_TIMEOUT": ("api", "timeout", float),
    "NETEASE_USER_AGENT": ("api", "user_agent", str),
    "NETEASE_BITRATE": ("api", "bitrate", int),
    "NETEASE_FFMPEG_PATH": ("decoder", "ffmpeg_path", str),
    "NETEASE_LOG_LEVEL": ("logging", "level", str),
}


class ConfigError(Exception):
    """Invalid or unreadable configuration."""

    pass


@dataclass
class ApiConfig:
    """Vendor API client settings."""

    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT  # Seconds, whole request
    bitrate: int = DEFAULT_BITRATE


@dataclass
class DecoderConfig:
    ffmpeg_path: str = "ffmpeg"


@dataclass
class LoggingConfig:
    level: str = "info"


@dataclass
class Config:
    """All settings, one dataclass per section."""

    api: ApiConfig = field(default_factory=ApiConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_base_url(url: str) -> bool:
    """Check that the base URL is absolute http(s)."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_config(config: Config) -> None:
    """
    Check every setting and report all problems at once.

    Raises:
        ConfigError: One or more settings are invalid
    """
    problems = []
    api = config.api

    if not validate_base_url(api.base_url):
        problems.append(f"API base URL must be absolute http(s): {api.base_url!r}")
    if not api.user_agent:
        problems.append("User agent must not be empty")
    if isinstance(api.timeout, bool) or not isinstance(api.timeout, (int, float)) or api.timeout <= 0:
        problems.append(f"API timeout must be a positive number of seconds: {api.timeout!r}")
    if api.bitrate not in VALID_BITRATES:
        problems.append(f"Unsupported bitrate {api.bitrate!r}, choose one of {sorted(VALID_BITRATES)}")

    if not config.decoder.ffmpeg_path:
        problems.append("ffmpeg path must not be empty")

    if str(config.logging.level).lower() not in LOG_LEVELS:
        problems.append(f"Unknown log level {config.logging.level!r}, choose one of {list(LOG_LEVELS)}")

    if problems:
        raise ConfigError("Invalid configuration: " + "; ".join(problems))


def load_yaml_config(path: Path) -> dict:
    """
    Read the YAML config file.

    A missing or empty file yields an empty dict.

    Raises:
        ConfigError: File unreadable, not YAML, or not a mapping
    """
    if not path.exists():
        logger.debug(f"No config file at {path}, using defaults")
        return {}

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"{path} is not valid YAML: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of sections")
    return data


def load_env_config() -> dict:
    """
    Collect NETEASE_* environment variables into a section dict.

    Values that do not convert are logged and ignored.
    """
    result: dict = {}

    for env_var, (section, key, convert) in ENV_MAPPINGS.items():
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning(f"Ignoring {env_var}={raw!r}: expected {convert.__name__}")
            continue
        result.setdefault(section, {})[key] = value

    return result


def merge_configs(*layers: dict) -> dict:
    """Merge section dicts; keys in later layers replace earlier ones."""
    result: dict = {}
    for layer in layers:
        for section, values in layer.items():
            if isinstance(values, dict) and isinstance(result.get(section), dict):
                result[section] = {**result[section], **values}
            else:
                result[section] = values
    return result


def _apply_section(target: Any, values: Any, section: str) -> None:
    if not isinstance(values, dict):
        raise ConfigError(f"Config section '{section}' must be a mapping")
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key {section}.{key}")
            continue
        setattr(target, key, value)


def dict_to_config(d: dict) -> Config:
    """Build a Config from a merged section dict."""
    config = Config()

    for section, values in d.items():
        target = getattr(config, section, None)
        if target is None:
            logger.warning(f"Ignoring unknown config section '{section}'")
            continue
        _apply_section(target, values, section)

    config.api.base_url = str(config.api.base_url).rstrip("/")
    return config


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict] = None,
) -> Config:
    """
    Load and validate configuration from every layer.

    Args:
        config_path: YAML file; skipped when None or missing
        cli_args: Section dict built from command-line options

    Returns:
        Validated Config

    Raises:
        ConfigError: A layer is unreadable or the result is invalid
    """
    file_layer = load_yaml_config(config_path) if config_path else {}
    env_layer = load_env_config()

    config = dict_to_config(merge_configs(file_layer, env_layer, cli_args or {}))
    validate_config(config)

    logger.debug(
        f"Config layers: file={bool(file_layer)} env={sorted(env_layer)} cli={sorted(cli_args or {})}"
    )
    return config
