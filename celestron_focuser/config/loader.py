"""
Configuration loader for config.json.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .models import AppConfig


logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from JSON file.

    Args:
        path: Path to config.json file. If None, looks for config.json in current directory.

    Returns:
        Validated AppConfig instance. Defaults are used when the file does not exist.

    Raises:
        ConfigurationError: If config file is unreadable or invalid.
    """
    if path is None:
        path = "config.json"

    config_path = Path(path)

    if not config_path.exists():
        logger.info(f"Config file not found: {config_path}. Using default configuration.")
        return AppConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in {config_path}: {e}"
        ) from e
    except IOError as e:
        raise ConfigurationError(
            f"Failed to read {config_path}: {e}"
        ) from e

    # Comment keys are allowed at top level
    config_dict = {k: v for k, v in config_dict.items() if not k.startswith("_")}

    try:
        config = AppConfig(**config_dict)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field = " -> ".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {field}: {msg}")

        error_message = "Configuration validation failed:\n" + "\n".join(errors)
        raise ConfigurationError(error_message) from e

    logger.info(f"Configuration loaded from {config_path}")
    return config
