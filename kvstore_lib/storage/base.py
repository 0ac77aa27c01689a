"""Storage backend interface definitions.

Defines the StorageBackend abstract class used by the typed store to
persist and retrieve opaque payloads. Backends deal only in bytes; values
are encoded and decoded one layer up.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable


class BackendError(Exception):
    """A backend operation failed for a reason other than absence."""


class BackendLocked(BackendError):
    """The entry's accessibility policy does not allow access right now."""


@dataclass(frozen=True)
class Accessibility:
    """When a stored entry may be read back.

    Only backends with access control consult it; others ignore it.
    """

    name: str
    requires_unlock: bool = True


AFTER_FIRST_UNLOCK = Accessibility("after_first_unlock", requires_unlock=True)
ALWAYS = Accessibility("always", requires_unlock=False)

ACCESSIBILITY_BY_NAME = {a.name: a for a in (AFTER_FIRST_UNLOCK, ALWAYS)}


class StorageBackend(ABC):
    """Abstract byte-level storage backend.

    Implementations must be thread-safe if used concurrently. Missing
    entries are reported with `KeyError`, every other failure with
    `BackendError`.
    """

    #: True when `list_keys` is natively supported.
    supports_enumeration: bool = False

    @abstractmethod
    def exists(self, namespace: str, key: str) -> bool:
        """Return True if `key` exists under `namespace`.

        Must not decode the stored payload.
        """

    @abstractmethod
    def put(
        self,
        namespace: str,
        key: str,
        payload: bytes,
        accessibility: Accessibility = AFTER_FIRST_UNLOCK,
    ) -> None:
        """Insert or overwrite `payload` under `namespace` and `key`."""

    @abstractmethod
    def get(self, namespace: str, key: str) -> bytes:
        """Return the raw payload. Raise `KeyError` if the key does not exist."""

    @abstractmethod
    def delete(self, namespace: str, key: str) -> None:
        """Delete a single entry. Raise `KeyError` if not found."""

    @abstractmethod
    def delete_all(self, namespace: str) -> None:
        """Remove every entry under `namespace` in one step."""

    def list_keys(self, namespace: str) -> Iterable[str]:
        """Return an iterable of keys stored in `namespace`."""
        raise NotImplementedError(f"{type(self).__name__} does not support key enumeration")

    def configure(self, **options) -> None:
        return
