# kw_platform/cache/_state_store.py
# durable per-namespace snapshots for the client cache.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from _logging import log as BASE_LOG

LOG = BASE_LOG.child("STATE")

PROFILES = "profiles"
ACTIVE_PROFILE = "active_profile"
NAMESPACES: tuple[str, ...] = (PROFILES, ACTIVE_PROFILE)

_SAFE_NS = re.compile(r"^[a-z0-9_]+$")


@dataclass
class StateStore:
    """JSON file per namespace under ``base_path``.

    Failures never raise: a failed write is logged and the cache keeps
    working from memory; a failed read is a cache-miss.
    """

    base_path: Path
    enabled: bool = True
    known: set[str] = field(default_factory=lambda: set(NAMESPACES))

    def path(self, namespace: str) -> Path:
        if not _SAFE_NS.match(namespace or ""):
            raise ValueError(f"invalid namespace: {namespace!r}")
        return self.base_path / f"{namespace}.json"

    def _write_atomic(self, p: Path, data: Any) -> None:
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(p.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
        tmp.replace(p)

    def save(self, namespace: str, data: Any) -> bool:
        p = self.path(namespace)
        self.known.add(namespace)
        if not self.enabled:
            return False
        try:
            self._write_atomic(p, data)
            return True
        except (OSError, TypeError, ValueError) as e:
            LOG.warn(f"snapshot write failed for {namespace}: {e}")
            return False

    def load(self, namespace: str) -> Any | None:
        p = self.path(namespace)
        self.known.add(namespace)
        if not self.enabled:
            return None
        try:
            if not p.exists():
                return None
            return json.loads(p.read_text("utf-8"))
        except (OSError, ValueError) as e:
            LOG.warn(f"snapshot read failed for {namespace}: {e}")
            return None

    def clear(self, namespace: str) -> None:
        p = self.path(namespace)
        try:
            if p.exists():
                p.unlink()
        except OSError as e:
            LOG.warn(f"snapshot clear failed for {namespace}: {e}")

    def clear_all(self) -> None:
        for ns in sorted(self.known):
            self.clear(ns)


__all__ = ["StateStore", "PROFILES", "ACTIVE_PROFILE", "NAMESPACES"]
