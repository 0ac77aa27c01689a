"""Errors raised by the typed store.

Each error is local to the call that raised it; the store stays usable.
None of them is retried automatically.
"""
from typing import Optional


class StorageError(Exception):
    """Base class for typed store failures."""

    message = "Storage error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail
        super().__init__(f"{self.message} {detail}" if detail else self.message)


class DuplicateError(StorageError):
    message = "Duplicate error"


class SaveObjectError(StorageError):
    message = "Save object error"


class GetObjectError(StorageError):
    message = "Get object error"


class InsertKeyError(StorageError):
    message = "Insert key error"


class NotFoundError(StorageError):
    message = "Not found"


class DeleteError(StorageError):
    message = "Can't delete"


class WipeError(StorageError):
    message = "Can't wipe data"


class UnknownError(StorageError):
    message = "Unknown error"
