from typing import Protocol, Iterable, runtime_checkable

from .base import Accessibility


@runtime_checkable
class StorageProtocol(Protocol):
    """Storage backend protocol mirroring `kvstore_lib.storage.StorageBackend`.

    Implementations should follow the semantics documented on the abstract
    base class in `kvstore_lib.storage.base` (KeyError for missing keys,
    BackendError for other failures, thread-safety where required).
    """

    supports_enumeration: bool

    def exists(self, namespace: str, key: str) -> bool: ...

    def put(self, namespace: str, key: str, payload: bytes, accessibility: Accessibility = ...) -> None: ...

    def get(self, namespace: str, key: str) -> bytes: ...

    def delete(self, namespace: str, key: str) -> None: ...

    def delete_all(self, namespace: str) -> None: ...

    def list_keys(self, namespace: str) -> Iterable[str]: ...

    def configure(self, **options) -> None: ...
