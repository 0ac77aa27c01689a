"""Bootstrap helpers that build stores from configuration.

Stores are constructed explicitly and handed to whatever needs them;
there is no process-wide instance.
"""
import logging
from typing import Optional

from kvstore_lib.config.config import StoreConfig
from kvstore_lib.storage.base import ACCESSIBILITY_BY_NAME, StorageBackend
from kvstore_lib.storage.memory_backend import MemoryBackend
from kvstore_lib.storage.preferences_backend import PreferencesBackend
from kvstore_lib.storage.secure_backend import SecureFileBackend
from kvstore_lib.store.typed_store import TypedStore

logger = logging.getLogger(__name__)


def create_backend(config: StoreConfig) -> StorageBackend:
    if config.backend == "memory":
        return MemoryBackend()
    if config.backend == "preferences":
        return PreferencesBackend(config.preferences_path())
    if config.backend == "secure":
        return SecureFileBackend(
            config.data_dir,
            password=config.password,
            iterations=config.kdf_iterations,
        )
    raise ValueError(f"unknown backend {config.backend!r}")


def create_store(config: StoreConfig, backend: Optional[StorageBackend] = None) -> TypedStore:
    """Build a TypedStore from `config`, reusing `backend` when given."""
    backend = backend or create_backend(config)
    logger.info("Using %s backend for namespace %s", type(backend).__name__, config.namespace)
    return TypedStore(
        backend,
        config.namespace,
        accessibility=ACCESSIBILITY_BY_NAME[config.accessibility],
        index_key=config.index_key,
        index_policy=config.index_policy,
    )
