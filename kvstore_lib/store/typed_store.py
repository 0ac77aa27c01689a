"""Typed façade over a byte-level StorageBackend.

A TypedStore is bound to one backend and one namespace. It encodes values
on save, decodes them on get, refuses silent overwrites unless asked, and
reports failures through the errors in `kvstore_lib.store.errors`.

Backends that cannot enumerate their keys (plain preferences) get an
auxiliary key index: a JSON list of keys stored in the same namespace
under a reserved key. The index is best-effort; concurrent writers are not
coordinated and may leave it out of step with the stored entries.
"""
from __future__ import annotations
from typing import Any, List, Optional, Type, TypeVar
import logging

from kvstore_lib.storage.base import AFTER_FIRST_UNLOCK, Accessibility, BackendError, StorageBackend
from kvstore_lib.storage.serializer import JSONSerializer

from .errors import (
    DeleteError,
    DuplicateError,
    GetObjectError,
    InsertKeyError,
    NotFoundError,
    SaveObjectError,
    UnknownError,
    WipeError,
)
from .values import StorableValue

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_INDEX_KEY = "keys"

# What to do when the key index cannot be updated after a payload write.
INDEX_LENIENT = "lenient"    # log it, report the save as successful
INDEX_STRICT = "strict"      # keep the payload, raise InsertKeyError
INDEX_ROLLBACK = "rollback"  # restore the previous payload, raise InsertKeyError
INDEX_POLICIES = (INDEX_LENIENT, INDEX_STRICT, INDEX_ROLLBACK)

_index_serializer = JSONSerializer()


class TypedStore:
    """Persist and retrieve typed values by their storage key.

    Parameters
    - backend: any `StorageBackend`.
    - namespace: identifier scoping every key this store touches.
    - accessibility: policy passed to the backend on every write.
    - index_key: reserved key holding the key index on non-enumerable backends.
    - index_policy: one of `INDEX_POLICIES`.
    """

    def __init__(
        self,
        backend: StorageBackend,
        namespace: str,
        *,
        accessibility: Accessibility = AFTER_FIRST_UNLOCK,
        index_key: str = DEFAULT_INDEX_KEY,
        index_policy: str = INDEX_LENIENT,
    ) -> None:
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        if index_policy not in INDEX_POLICIES:
            raise ValueError(f"unknown index policy {index_policy!r}")
        self.backend = backend
        self.namespace = namespace
        self.accessibility = accessibility
        self.index_key = index_key
        self.index_policy = index_policy

    @property
    def uses_index(self) -> bool:
        return not self.backend.supports_enumeration

    def exists(self, key: str) -> bool:
        try:
            return self.backend.exists(self.namespace, key)
        except Exception as e:
            raise UnknownError(f"key: {key}") from e

    def save(self, value: StorableValue, overwrite: bool = False) -> None:
        """Encode and store `value` under its type's storage key.

        Raises DuplicateError when the key is taken and `overwrite` is false,
        SaveObjectError when encoding, writing or the read-back check fails,
        and InsertKeyError when the key index could not be updated under a
        non-lenient index policy.
        """
        value_type = type(value)
        key = value_type.storage_key
        detail = f"type: {value_type.__name__} key: {key}"

        if self.uses_index and key == self.index_key:
            raise SaveObjectError(f"{detail} (reserved for the key index)")
        if not overwrite and self.exists(key):
            raise DuplicateError(detail)

        try:
            payload = value.encode()
        except Exception as e:
            raise SaveObjectError(detail) from e

        previous = self._snapshot(key, detail) if self._needs_snapshot() else None

        try:
            self.backend.put(self.namespace, key, payload, self.accessibility)
        except Exception as e:
            raise SaveObjectError(detail) from e

        # Read the entry back to make sure it decodes before reporting success.
        try:
            value_type.decode(self.backend.get(self.namespace, key))
        except Exception as e:
            raise SaveObjectError(f"{detail} (write verification failed)") from e

        if self.uses_index:
            self._add_key(key, previous)
        logger.debug("Saved %s/%s (%d bytes)", self.namespace, key, len(payload))

    def get(self, value_type: Type[T]) -> T:
        """Load and decode the value stored for `value_type`.

        Absence and decode failures both raise GetObjectError.
        """
        key = value_type.storage_key  # type: ignore[attr-defined]
        try:
            data = self.backend.get(self.namespace, key)
            return value_type.decode(data)  # type: ignore[attr-defined]
        except Exception as e:
            raise GetObjectError(f"type: {value_type.__name__} key: {key}") from e

    def all_keys(self) -> List[str]:
        if not self.uses_index:
            try:
                return list(self.backend.list_keys(self.namespace))
            except Exception as e:
                raise UnknownError(f"cannot list keys in {self.namespace}") from e
        return self._load_index()

    def delete(self, key: str) -> None:
        try:
            self.backend.delete(self.namespace, key)
        except KeyError:
            raise NotFoundError(key)
        except BackendError as e:
            raise DeleteError(key) from e
        except Exception as e:
            raise UnknownError(key) from e
        if self.uses_index:
            self._remove_key(key)
        logger.debug("Deleted %s/%s", self.namespace, key)

    def delete_all(self) -> None:
        # The key index lives in the same namespace and goes with it.
        try:
            self.backend.delete_all(self.namespace)
        except BackendError as e:
            raise WipeError(self.namespace) from e
        except Exception as e:
            raise UnknownError(self.namespace) from e
        logger.debug("Wiped namespace %s", self.namespace)

    # -- key index ----------------------------------------------------

    def _load_index(self) -> List[str]:
        try:
            keys: Any = _index_serializer.load(self.backend.get(self.namespace, self.index_key))
        except KeyError:
            return []
        except Exception:
            logger.warning("Key index %s/%s is unreadable; treating as empty", self.namespace, self.index_key)
            return []
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            logger.warning("Key index %s/%s has an unexpected shape; treating as empty", self.namespace, self.index_key)
            return []
        return keys

    def _write_index(self, keys: List[str]) -> None:
        self.backend.put(self.namespace, self.index_key, _index_serializer.dump(keys), self.accessibility)

    def _add_key(self, key: str, previous: Optional[bytes]) -> None:
        keys = self._load_index()
        if key in keys:
            return
        keys.append(key)
        try:
            self._write_index(keys)
        except Exception as e:
            if self.index_policy == INDEX_LENIENT:
                logger.warning("Saved %s/%s but could not update the key index: %s", self.namespace, key, e)
                return
            if self.index_policy == INDEX_ROLLBACK:
                self._restore(key, previous)
            raise InsertKeyError(f"key: {key}") from e

    def _remove_key(self, key: str) -> None:
        keys = self._load_index()
        if key not in keys:
            return
        try:
            self._write_index([k for k in keys if k != key])
        except Exception as e:
            logger.warning("Deleted %s/%s but could not update the key index: %s", self.namespace, key, e)

    def _needs_snapshot(self) -> bool:
        return self.uses_index and self.index_policy == INDEX_ROLLBACK

    def _snapshot(self, key: str, detail: str) -> Optional[bytes]:
        try:
            return self.backend.get(self.namespace, key)
        except KeyError:
            return None
        except Exception as e:
            raise SaveObjectError(f"{detail} (cannot read previous value)") from e

    def _restore(self, key: str, previous: Optional[bytes]) -> None:
        try:
            if previous is None:
                self.backend.delete(self.namespace, key)
            else:
                self.backend.put(self.namespace, key, previous, self.accessibility)
            logger.info("Rolled back %s/%s after key index failure", self.namespace, key)
        except Exception:
            logger.exception("Failed to roll back %s/%s; entry and key index disagree", self.namespace, key)
