from __future__ import annotations

from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


class TypeIndex(Generic[T]):
    """Buckets of items keyed by their concrete class, built once.

    Buckets keep the order in which items were given. Positions may be
    negative and count from the end of the bucket, one wrap only.
    """

    __slots__ = ("_buckets",)

    def __init__(self, items: Iterable[T]):
        buckets: dict[type, list[T]] = {}
        for item in items:
            buckets.setdefault(type(item), []).append(item)
        self._buckets: dict[type, tuple[T, ...]] = {cls: tuple(bucket) for cls, bucket in buckets.items()}

    def of_type(self, cls: type) -> list[T]:
        return list(self._buckets.get(cls, ()))

    def has(self, cls: type) -> bool:
        return cls in self._buckets

    def types(self) -> list[type]:
        return list(self._buckets)

    def at(self, cls: type, index: int) -> T:
        bucket = self._buckets.get(cls, ())
        effective = index if index >= 0 else len(bucket) + index
        if not 0 <= effective < len(bucket):
            raise IndexError(f"no {cls.__name__} at position {index} (have {len(bucket)})")
        return bucket[effective]

    def first(self, cls: type) -> T:
        return self.at(cls, 0)

    def last(self, cls: type) -> T:
        return self.at(cls, -1)

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())
