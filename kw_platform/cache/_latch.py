# kw_platform/cache/_latch.py
# single in-flight fetch guard per collection.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations


class InFlightLatch:
    """At most one holder per collection name; a second acquire is refused, not queued."""

    def __init__(self) -> None:
        self._held: set[str] = set()

    def held(self, name: str) -> bool:
        return name in self._held

    def acquire(self, name: str) -> bool:
        if name in self._held:
            return False
        self._held.add(name)
        return True

    def release(self, name: str) -> None:
        self._held.discard(name)

    def reset(self) -> None:
        self._held.clear()


__all__ = ["InFlightLatch"]
