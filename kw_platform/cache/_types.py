# kw_platform/cache/_types.py
# collection envelopes and operation outcomes.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from ._entity_store import EntityStore

Status = Literal["idle", "pending", "succeeded", "failed"]

# transport-failure / no-message fallbacks, one per operation family
FALLBACKS: dict[str, str] = {
    "fetch_profiles": "Get Profiles Failed",
    "add_profile": "Add Profile Failed",
    "edit_profile": "Edit Profile Failed",
    "delete_profile": "Delete Profile Failed",
    "update_profile_image": "Profile Image Update Failed",
    "fetch_shows": "Get Shows Failed",
    "fetch_movies": "Get Movies Failed",
    "fetch_episodes": "Get Episodes Failed",
    "add_show_favorite": "Add Show Favorite Failed",
    "remove_show_favorite": "Remove Show Favorite Failed",
    "update_show_status": "Show Status Update Failed",
    "add_movie_favorite": "Add Movie Favorite Failed",
    "remove_movie_favorite": "Remove Movie Favorite Failed",
    "update_movie_status": "Movie Status Update Failed",
    "fetch_notifications": "Failed to fetch system notifications",
    "dismiss_notification": "Failed to dismiss a system notification",
}


@dataclass
class CollectionState:
    status: Status = "idle"
    error: str | None = None

    def reset(self) -> None:
        self.status = "idle"
        self.error = None


@dataclass
class Collection:
    name: str
    namespace: str | None
    store: EntityStore[Any]
    state: CollectionState = field(default_factory=CollectionState)

    @property
    def status(self) -> Status:
        return self.state.status

    @property
    def error(self) -> str | None:
        return self.state.error

    def populated(self) -> bool:
        return len(self.store) > 0


@dataclass(frozen=True)
class OpResult:
    ok: bool
    value: Any = None
    error: str | None = None
    skipped: bool = False
    stale: bool = False


__all__ = ["Status", "FALLBACKS", "CollectionState", "Collection", "OpResult"]
