"""Typed store: serialize typed values into a StorageBackend."""

from .errors import (
    StorageError,
    DuplicateError,
    SaveObjectError,
    GetObjectError,
    InsertKeyError,
    NotFoundError,
    DeleteError,
    WipeError,
    UnknownError,
)
from .typed_store import (
    TypedStore,
    DEFAULT_INDEX_KEY,
    INDEX_LENIENT,
    INDEX_STRICT,
    INDEX_ROLLBACK,
    INDEX_POLICIES,
)
from .values import StorableValue, StorableModel

__all__ = [
    "StorageError",
    "DuplicateError",
    "SaveObjectError",
    "GetObjectError",
    "InsertKeyError",
    "NotFoundError",
    "DeleteError",
    "WipeError",
    "UnknownError",
    "TypedStore",
    "DEFAULT_INDEX_KEY",
    "INDEX_LENIENT",
    "INDEX_STRICT",
    "INDEX_ROLLBACK",
    "INDEX_POLICIES",
    "StorableValue",
    "StorableModel",
]
