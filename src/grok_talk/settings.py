"""
Configuration for grok-talk.

Settings are layered: CLI arguments > config.json > environment (and .env)
> built-in defaults. Only the API credential is secret; it is read from the
environment and never written to config.json.
"""

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger("grok_talk.settings")

CONFIG_PATH: Path = Path("config.json")

API_KEY_ENV: str = "XAI_API_KEY"
BASE_URL_ENV: str = "XAI_BASE_URL"
MODEL_ENV: str = "GROK_MODEL"

DEFAULT_BASE_URL: str = "https://api.x.ai/v1"
DEFAULT_MODEL: str = "grok-beta"
DEFAULT_LOG_FILE: str = "outputs/grok_talk.log"


@dataclass(frozen=True)
class Settings:
    """All runtime configuration of the assistant."""

    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    api_timeout: float = 30.0  # seconds

    talk_key: str = "ctrl_r"
    quit_key: str = "esc"
    poll_interval: float = 0.1  # seconds

    listen_timeout: float = 15.0  # seconds, longest phrase per press
    initial_silence_timeout: float = 5.0  # seconds before "nothing heard"
    language: str = "en-US"
    input_device: Optional[int] = None
    calibrate_seconds: float = 0.5

    speech_rate: Optional[int] = None
    speech_volume: Optional[float] = None
    voice: Optional[str] = None
    greeting: Optional[str] = "Grok is ready."

    log_file: str = DEFAULT_LOG_FILE

    @property
    def demo_mode(self) -> bool:
        return not self.api_key


# Keys that config.json may set; the credential is deliberately excluded
CONFIG_KEYS = frozenset(f.name for f in fields(Settings)) - {"api_key"}


def save_config(config: Dict[str, Any], path: Union[str, Path, None] = None) -> None:
    """Save configuration to config.json file.

    Persists hotkey and device selection for the next session.
    Logs a warning if the write fails.

    Args:
        config: Configuration dictionary to save.
        path: Target file (default: config.json in the working directory).
    """
    target = Path(path) if path is not None else CONFIG_PATH
    try:
        with open(target, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        logger.debug(f"Config saved to {target}")
    except OSError as e:
        logger.warning(f"Failed to save config: {e}")


def load_config(path: Union[str, Path, None] = None) -> Dict[str, Any]:
    """Load configuration from config.json file.

    Returns an empty dict if the file doesn't exist or fails to parse.

    Args:
        path: Source file (default: config.json in the working directory).

    Returns:
        Configuration dictionary.
    """
    source = Path(path) if path is not None else CONFIG_PATH
    if not source.exists():
        return {}
    try:
        with open(source, "r", encoding="utf-8") as f:
            config = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to load config: {e}")
        return {}
    if not isinstance(config, dict):
        logger.warning(f"Ignoring config {source}: expected a JSON object")
        return {}
    logger.debug(f"Loaded config from {source}")
    return config


def load_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    config_path: Union[str, Path, None] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build :class:`Settings` from defaults, environment, config file and overrides.

    Args:
        overrides: Values from the command line; ``None`` entries are ignored.
        config_path: config.json location.
        env: Environment mapping (default: ``os.environ`` after loading .env).

    Returns:
        The merged settings.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    values: Dict[str, Any] = {}
    api_key = (env.get(API_KEY_ENV) or "").strip()
    if api_key:
        values["api_key"] = api_key
    if env.get(BASE_URL_ENV):
        values["base_url"] = env[BASE_URL_ENV].strip()
    if env.get(MODEL_ENV):
        values["model"] = env[MODEL_ENV].strip()

    for key, value in load_config(config_path).items():
        if key in CONFIG_KEYS:
            values[key] = value
        else:
            logger.warning(f"Unknown config key ignored: {key}")

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    return replace(Settings(), **values)
