# kw_platform/cache/_notify.py
# fire-and-forget outcome notifications (transient banner semantics).
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from _logging import log as BASE_LOG

LOG = BASE_LOG.child("NOTIFY")

Severity = Literal["success", "error", "info", "warning"]


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity
    seq: int


class Notifier:
    def __init__(self, cb: Callable[[Notification], None] | None = None):
        self.cb = cb
        self.latest: Notification | None = None
        self._seq = 0

    def emit(self, message: str, severity: Severity = "info") -> None:
        self._seq += 1
        note = Notification(message=message, severity=severity, seq=self._seq)
        self.latest = note
        if not self.cb:
            return
        try:
            self.cb(note)
        except Exception as e:
            # a broken listener never affects cache state
            LOG.debug(f"listener failed: {e}")

    def dismiss(self) -> None:
        self.latest = None


__all__ = ["Notification", "Notifier", "Severity"]
