"""Storage abstraction package for the typed key-value store."""

from .base import (
    AFTER_FIRST_UNLOCK,
    ALWAYS,
    Accessibility,
    BackendError,
    BackendLocked,
    StorageBackend,
)
from .memory_backend import MemoryBackend
from .preferences_backend import PreferencesBackend
from .secure_backend import SecureFileBackend

__all__ = [
    "AFTER_FIRST_UNLOCK",
    "ALWAYS",
    "Accessibility",
    "BackendError",
    "BackendLocked",
    "StorageBackend",
    "MemoryBackend",
    "PreferencesBackend",
    "SecureFileBackend",
]
