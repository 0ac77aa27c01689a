from dataclasses import dataclass, field
from typing import List

from kvstore_lib.storage.base import BackendError
from kvstore_lib.storage.memory_backend import MemoryBackend
from kvstore_lib.storage.serializer import YAMLSerializer
from kvstore_lib.store.values import StorableModel


@dataclass
class Profile(StorableModel):
    storage_key = "profile"
    name: str
    age: int = 0


@dataclass
class Settings(StorableModel):
    storage_key = "settings"
    serializer = YAMLSerializer()
    theme: str = "light"
    tags: List[str] = field(default_factory=list)


@dataclass
class Token(StorableModel):
    storage_key = "token"
    value: str


class Unreadable:
    """Encodes fine but never decodes, to exercise write verification."""

    storage_key = "unreadable"

    def encode(self) -> bytes:
        return b"\x00garbage"

    @classmethod
    def decode(cls, data: bytes):
        raise ValueError("cannot decode")


class Unwritable:
    storage_key = "unwritable"

    def encode(self) -> bytes:
        raise TypeError("not serializable")

    @classmethod
    def decode(cls, data: bytes):
        return cls()


class FlakyBackend(MemoryBackend):
    """Memory backend that fails writes or deletes for selected keys."""

    def __init__(self, enumerable: bool = False, fail_put=(), fail_delete=(), fail_wipe=False, broken=False):
        super().__init__(enumerable=enumerable)
        self.fail_put = set(fail_put)
        self.fail_delete = set(fail_delete)
        self.fail_wipe = fail_wipe
        self.broken = broken

    def put(self, namespace, key, payload, accessibility=None):
        if key in self.fail_put:
            raise BackendError(f"put refused for {key}")
        super().put(namespace, key, payload)

    def delete(self, namespace, key):
        if self.broken:
            raise RuntimeError("unexpected status")
        if key in self.fail_delete:
            raise BackendError(f"delete refused for {key}")
        super().delete(namespace, key)

    def delete_all(self, namespace):
        if self.broken:
            raise RuntimeError("unexpected status")
        if self.fail_wipe:
            raise BackendError("wipe refused")
        super().delete_all(namespace)
