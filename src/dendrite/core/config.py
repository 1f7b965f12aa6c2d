"""Tracking constants and the user configuration file."""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from dendrite.core.errors import ConfigError

# Gaps between two activity events at or above this are not counted as
# active time (machine sleep, missed events).
ACTIVITY_GAP_THRESHOLD_MS = 5000

# Time credited to a language bucket per file edit.
LANGUAGE_CREDIT_MS = 1000

CONFIG_FILENAME = "config.json"
DATA_DIR_ENV = "DENDRITE_HOME"


class DendriteConfig(BaseModel):
    """Settings stored in ``<data dir>/config.json``."""

    version: str = "0.1.0"
    profile_filename: str = "profile.json"
    heatmap_weeks: int = Field(default=12, ge=1, le=53)
    daily_window_days: int = Field(default=30, ge=1)
    log_level: str = "WARNING"


def default_data_dir() -> Path:
    """Data directory from ``$DENDRITE_HOME``, falling back to ``~/.dendrite``."""
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".dendrite"


def load_config(data_dir: Path) -> DendriteConfig:
    """Load the config from ``data_dir``; defaults when no file exists."""
    config_file = Path(data_dir) / CONFIG_FILENAME
    if not config_file.exists():
        return DendriteConfig()

    try:
        return DendriteConfig.model_validate_json(config_file.read_text())
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {config_file}: {e}") from e


def save_config(data_dir: Path, config: Optional[DendriteConfig] = None) -> Path:
    """Write ``config`` (or the defaults) to ``data_dir`` and return the path."""
    config_file = Path(data_dir) / CONFIG_FILENAME
    config = config or DendriteConfig()
    config_file.write_text(json.dumps(config.model_dump(), indent=2))
    return config_file
