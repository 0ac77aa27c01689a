from pathlib import Path
from typing import Literal, Optional
import logging

import yaml
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("data/config/store_config.yml")


class StoreConfig(BaseModel):
    """Settings used to build a backend and a TypedStore over it."""

    model_config = ConfigDict(extra="forbid")

    backend: Literal["memory", "preferences", "secure"] = "preferences"
    namespace: str = "default"
    data_dir: str = "./data"
    preferences_file: Optional[str] = None
    password: Optional[str] = None
    kdf_iterations: int = 390000
    accessibility: Literal["after_first_unlock", "always"] = "after_first_unlock"
    index_key: str = "keys"
    index_policy: Literal["lenient", "strict", "rollback"] = "lenient"
    log_level: str = "WARNING"

    def preferences_path(self) -> Path:
        if self.preferences_file:
            return Path(self.preferences_file)
        return Path(self.data_dir) / "preferences.yml"


def load_yaml_file(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"invalid config format in {path}: expected mapping")
    return data


def load_config(path: Optional[Path] = None) -> StoreConfig:
    """Load store settings from a YAML file.

    A missing file yields the defaults. Unknown keys or invalid values raise
    `ValueError` (pydantic's ValidationError is one).
    """
    cfg_path = Path(path) if path is not None else CONFIG_PATH
    data = load_yaml_file(cfg_path)
    cfg = StoreConfig(**data)
    logger.debug("Loaded store config from %s: backend=%s namespace=%s", cfg_path, cfg.backend, cfg.namespace)
    return cfg
