# kw_platform/cache/_entity_store.py
# normalized keyed collections for the client cache.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


def _name_key(entity: Any) -> str:
    return str(getattr(entity, "name", "") or "").casefold()


class EntityStore(Generic[T]):
    """Records of one entity type keyed by ``id``.

    ``all()`` is ordered by ``sort_key`` when one is given, otherwise by
    insertion order (an upsert of an existing id keeps its position).
    Every mutation calls ``on_change`` before returning.
    """

    def __init__(
        self,
        name: str,
        *,
        key: Callable[[T], Hashable] = lambda e: getattr(e, "id"),
        sort_key: Callable[[T], Any] | None = None,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self.name = name
        self._key = key
        self._sort_key = sort_key
        self._entities: dict[Hashable, T] = {}
        self.on_change = on_change

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.name)

    # reads
    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def get(self, entity_id: Hashable) -> T | None:
        return self._entities.get(entity_id)

    def ids(self) -> list[Hashable]:
        return [self._key(e) for e in self.all()]

    def all(self) -> list[T]:
        items = list(self._entities.values())
        if self._sort_key is not None:
            items.sort(key=self._sort_key)
        return items

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        for e in self._entities.values():
            if predicate(e):
                return e
        return None

    # writes
    def upsert(self, entity: T) -> None:
        self._entities[self._key(entity)] = entity
        self._changed()

    def upsert_many(self, entities: Iterable[T]) -> None:
        batch = list(entities)
        if not batch:
            return
        for e in batch:
            self._entities[self._key(e)] = e
        self._changed()

    def remove(self, entity_id: Hashable) -> bool:
        if self._entities.pop(entity_id, None) is None:
            return False
        self._changed()
        return True

    def remove_many(self, entity_ids: Iterable[Hashable]) -> int:
        n = 0
        for eid in list(entity_ids):
            if self._entities.pop(eid, None) is not None:
                n += 1
        if n:
            self._changed()
        return n

    def set_all(self, entities: Iterable[T]) -> None:
        fresh: dict[Hashable, T] = {}
        for e in entities:
            fresh[self._key(e)] = e
        self._entities = fresh
        self._changed()

    def clear(self) -> None:
        self._entities = {}
        self._changed()


def profile_store(on_change: Callable[[str], None] | None = None) -> EntityStore[Any]:
    return EntityStore("profiles", sort_key=_name_key, on_change=on_change)


__all__ = ["EntityStore", "profile_store"]
