"""
Read-only view of the watched objects of one resource type.

The operator never builds its own cache: kopf maintains in-memory indices of
every watched SharedSecret and SharedSecretRequest, and :class:`IndexedStore`
puts a small lookup interface on top of them. Any mapping from keys to
collections of objects works, which keeps the lookup logic testable with
plain dicts.
"""

from collections.abc import Callable, Collection, Hashable, Iterator, Mapping
from typing import Generic, Protocol, TypeVar

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class ObjectStore(Protocol[T_co]):
    """Lookup by key and linear predicate scan over watched objects."""

    def get(self, key: Hashable) -> T_co | None: ...

    def find(self, predicate: Callable[[T_co], bool]) -> list[T_co]: ...


class IndexedStore(Generic[T]):
    """:class:`ObjectStore` over a ``Mapping[key, Collection[object]]``.

    kopf indices map each key to a collection of values; our index functions
    emit one value per object, so a key normally maps to a single object.
    """

    def __init__(self, index: Mapping[Hashable, Collection[T]]):
        self._index = index

    def get(self, key: Hashable) -> T | None:
        values = self._index.get(key)
        if not values:
            return None
        return next(iter(values))

    def find(self, predicate: Callable[[T], bool]) -> list[T]:
        return [obj for obj in self if predicate(obj)]

    def __iter__(self) -> Iterator[T]:
        for values in self._index.values():
            yield from values

    def __len__(self) -> int:
        return len(self._index)
