"""Typed value contract for objects kept in a TypedStore."""
from __future__ import annotations
from dataclasses import asdict, fields, is_dataclass
from typing import Any, ClassVar, Protocol, Type, TypeVar, runtime_checkable

from kvstore_lib.storage.serializer import JSONSerializer, Serializer

M = TypeVar("M", bound="StorableModel")


@runtime_checkable
class StorableValue(Protocol):
    """A value with a fixed storage slot and a deterministic byte encoding."""

    storage_key: ClassVar[str]

    def encode(self) -> bytes: ...

    @classmethod
    def decode(cls, data: bytes) -> Any: ...


class StorableModel:
    """Mixin implementing `StorableValue` for flat dataclasses.

    Subclasses set `storage_key` and may swap `serializer` for another
    `Serializer` (e.g. YAMLSerializer):

        @dataclass
        class Profile(StorableModel):
            storage_key = "profile"
            name: str
            age: int = 0
    """

    storage_key: ClassVar[str] = ""
    serializer: ClassVar[Serializer] = JSONSerializer()

    def encode(self) -> bytes:
        if not is_dataclass(self):
            raise TypeError(f"{type(self).__name__} must be a dataclass")
        return self.serializer.dump(asdict(self))

    @classmethod
    def decode(cls: Type[M], data: bytes) -> M:
        raw = cls.serializer.load(data)
        if not isinstance(raw, dict):
            raise ValueError(f"invalid {cls.__name__} payload: expected mapping")
        names = {f.name for f in fields(cls)}
        unknown = set(raw) - names
        if unknown:
            raise ValueError(f"invalid {cls.__name__} payload: unexpected fields {sorted(unknown)}")
        return cls(**raw)
