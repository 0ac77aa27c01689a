"""Simple memory-backed storage backend

This backend keeps payloads in memory as a data structure `[<namespace>][<key>]`.
Pass `enumerable=False` to make it behave like a preferences store that
cannot list its keys.
"""
from threading import RLock
from typing import Dict, Iterable

from .base import AFTER_FIRST_UNLOCK, Accessibility, StorageBackend


class MemoryBackend(StorageBackend):
    def __init__(self, enumerable: bool = True):
        self._lock = RLock()
        self._store: Dict[str, Dict[str, bytes]] = {}
        self.supports_enumeration = enumerable

    def exists(self, namespace: str, key: str) -> bool:
        with self._lock:
            return key in self._store.get(namespace, {})

    def put(
        self,
        namespace: str,
        key: str,
        payload: bytes,
        accessibility: Accessibility = AFTER_FIRST_UNLOCK,
    ) -> None:
        with self._lock:
            self._store.setdefault(namespace, {})[key] = bytes(payload)

    def get(self, namespace: str, key: str) -> bytes:
        with self._lock:
            try:
                return self._store[namespace][key]
            except KeyError:
                raise KeyError(key)

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            try:
                del self._store[namespace][key]
            except KeyError:
                raise KeyError(key)

    def delete_all(self, namespace: str) -> None:
        with self._lock:
            self._store.pop(namespace, None)

    def list_keys(self, namespace: str) -> Iterable[str]:
        if not self.supports_enumeration:
            return super().list_keys(namespace)
        with self._lock:
            return list(self._store.get(namespace, {}).keys())

    def configure(self, **options) -> None:
        # Only enumeration can be toggled at runtime; other options are
        # accepted and ignored.
        if "enumerable" in options:
            self.supports_enumeration = bool(options["enumerable"])
