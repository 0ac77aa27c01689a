from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

import yaml

from kvstore_lib.config.config import CONFIG_PATH, StoreConfig, load_config


def resolve_log_level(config: StoreConfig) -> int:
    """Map `config.log_level` to a logging level, WARNING when unrecognised."""
    level = logging.getLevelName(str(config.log_level).upper())
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(config_path: Optional[Path] = None) -> logging.Logger:
    """Configure root logging for an application embedding the store.

    The level comes from `log_level` in the store config read through
    `load_config`. A missing, unreadable or invalid config falls back to
    WARNING. Returns a module logger for the caller.
    """
    try:
        level = resolve_log_level(load_config(config_path or CONFIG_PATH))
    except (OSError, yaml.YAMLError, ValueError):
        level = logging.WARNING

    # Reconfigure root handlers to use the selected level and format
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s [%(name)s]: %(message)s')
    logger = logging.getLogger(__name__)
    logger.info("Log level set to %s", logging.getLevelName(level))
    return logger
