# kw_platform/cache/facade.py
# cache engine: owns the collections and drives every remote operation.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from _logging import log as BASE_LOG
from ..config_base import cache_dir, load_config, view_windows
from ..models import (
    MOVIE_STATUSES,
    SHOW_STATUSES,
    ActiveProfileSnapshot,
    Episode,
    Movie,
    Profile,
    ProfilesSnapshot,
    Show,
    SystemNotification,
    dump,
)
from ..remote import HttpRemote, RemoteSource
from ._entity_store import EntityStore, profile_store
from ._latch import InFlightLatch
from ._notify import Notification, Notifier
from ._ops import run_fetch, run_mutation
from ._state_store import ACTIVE_PROFILE, PROFILES, StateStore
from ._types import Collection, OpResult

__all__ = ["CacheEngine", "create_engine"]

LOG = BASE_LOG.child("CACHE")

NO_ACTIVE_PROFILE = "No active profile"


def _bad_status(op: str, status: str) -> OpResult:
    LOG.warn(f"{op}: unsupported watch status {status!r}, ignored")
    return OpResult(ok=False, error=f"Unsupported watch status: {status}", skipped=True)


@dataclass
class CacheEngine:
    remote: RemoteSource
    state_store: StateStore
    notifier: Notifier = field(default_factory=Notifier)
    # (recent_days, upcoming_days) used by the derived views
    windows: tuple[int, int] = (7, 7)

    latch: InFlightLatch = field(init=False, default_factory=InFlightLatch)
    account_id: int | None = field(init=False, default=None)
    active_profile_id: int | None = field(init=False, default=None)
    generation: int = field(init=False, default=0)
    content_epoch: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self._quiet = 0
        self.profiles = Collection("profiles", PROFILES, profile_store(self._on_change))
        self.shows = Collection("shows", ACTIVE_PROFILE, EntityStore("shows", on_change=self._on_change))
        self.movies = Collection("movies", ACTIVE_PROFILE, EntityStore("movies", on_change=self._on_change))
        self.episodes = Collection("episodes", ACTIVE_PROFILE, EntityStore("episodes", on_change=self._on_change))
        self.notifications = Collection(
            "notifications", None, EntityStore("notifications", on_change=self._on_change)
        )
        self._by_name = {c.name: c for c in self.collections()}

    # ---------- lifecycle

    def collections(self) -> tuple[Collection, ...]:
        return (self.profiles, self.shows, self.movies, self.episodes, self.notifications)

    def content(self) -> tuple[Collection, ...]:
        return (self.shows, self.movies, self.episodes)

    def epoch(self, coll: Collection) -> Hashable:
        if coll.namespace == ACTIVE_PROFILE:
            return (self.generation, self.content_epoch)
        return (self.generation, 0)

    @contextmanager
    def _no_persist(self) -> Iterator[None]:
        self._quiet += 1
        try:
            yield
        finally:
            self._quiet -= 1

    def init(self) -> None:
        """Seed collections from the durable snapshots (read once per process)."""
        with self._no_persist():
            profiles = self._restore(PROFILES, ProfilesSnapshot)
            if isinstance(profiles, ProfilesSnapshot):
                self.profiles.store.set_all(profiles.profiles)

            active = self._restore(ACTIVE_PROFILE, ActiveProfileSnapshot)
            if isinstance(active, ActiveProfileSnapshot):
                self.account_id = active.account_id
                self.active_profile_id = active.profile_id
                self.shows.store.set_all(active.shows)
                self.movies.store.set_all(active.movies)
                self.episodes.store.set_all(active.episodes)

        for coll in self.collections():
            coll.state.status = "succeeded" if coll.populated() else "idle"
            coll.state.error = None
        LOG.info(
            f"cache ready: {len(self.profiles.store)} profiles, {len(self.shows.store)} shows, "
            f"{len(self.movies.store)} movies, {len(self.episodes.store)} episodes"
        )

    def _restore(self, namespace: str, schema: type[Any]) -> Any | None:
        raw = self.state_store.load(namespace)
        if raw is None:
            return None
        try:
            return schema.model_validate(raw)
        except ValidationError as e:
            LOG.warn(f"snapshot {namespace} does not match the current schema ({e.error_count()} errors), ignored")
            return None

    def reset(self) -> None:
        """Back to the initial state: empty idle collections, nothing persisted."""
        self.generation += 1
        self.content_epoch += 1
        self.latch.reset()
        with self._no_persist():
            for coll in self.collections():
                coll.store.clear()
                coll.state.reset()
        self.account_id = None
        self.active_profile_id = None
        self.state_store.clear_all()

    def logout(self) -> None:
        self.reset()
        LOG.info("logged out, cache cleared")

    # ---------- persistence

    def _on_change(self, name: str) -> None:
        if self._quiet:
            return
        coll = self._by_name.get(name)
        if coll is None or coll.namespace is None:
            return
        self.persist(coll.namespace)

    def snapshot(self, namespace: str) -> dict[str, Any]:
        if namespace == PROFILES:
            return {"profiles": [dump(p) for p in self.profiles.store.all()]}
        if namespace == ACTIVE_PROFILE:
            return {
                "account_id": self.account_id,
                "profile_id": self.active_profile_id,
                "shows": [dump(s) for s in self.shows.store.all()],
                "movies": [dump(m) for m in self.movies.store.all()],
                "episodes": [dump(e) for e in self.episodes.store.all()],
            }
        raise ValueError(f"unknown namespace: {namespace}")

    def persist(self, namespace: str) -> None:
        self.state_store.save(namespace, self.snapshot(namespace))

    # ---------- reads

    def collection(self, name: str) -> Collection:
        return self._by_name[name]

    def active_profile(self) -> Profile | None:
        if self.active_profile_id is None:
            return None
        return self.profiles.store.get(self.active_profile_id)

    def show_by_tmdb_id(self, tmdb_id: int) -> Show | None:
        return self.shows.store.find(lambda s: s.tmdb_id == tmdb_id)

    def movie_by_tmdb_id(self, tmdb_id: int) -> Movie | None:
        return self.movies.store.find(lambda m: m.tmdb_id == tmdb_id)

    def status_view(self) -> dict[str, Any]:
        return {
            c.name: {"status": c.status, "error": c.error, "count": len(c.store)}
            for c in self.collections()
        }

    # ---------- profiles

    async def fetch_profiles(self, account_id: int, *, refresh: bool = False) -> OpResult:
        self.account_id = account_id
        return await run_fetch(
            self, self.profiles, "fetch_profiles",
            self.remote.get_profiles, (account_id,),
            Profile.model_validate, refresh=refresh,
        )

    async def add_profile(self, account_id: int, name: str) -> OpResult:
        return await run_mutation(
            self, self.profiles, "add_profile",
            self.remote.add_profile, (account_id, name),
            parse=Profile.model_validate,
            apply=self.profiles.store.upsert,
            message=lambda p: f"Added profile: {p.name}",
        )

    async def edit_profile(self, account_id: int, profile_id: int, name: str) -> OpResult:
        return await run_mutation(
            self, self.profiles, "edit_profile",
            self.remote.edit_profile, (account_id, profile_id, name),
            parse=Profile.model_validate,
            apply=self.profiles.store.upsert,
            message=lambda _p: "Profile edited successfully",
        )

    async def update_profile_image(self, account_id: int, profile_id: int, filename: str, content: bytes) -> OpResult:
        return await run_mutation(
            self, self.profiles, "update_profile_image",
            self.remote.update_profile_image, (account_id, profile_id, filename, content),
            parse=Profile.model_validate,
            apply=self.profiles.store.upsert,
            message=lambda _p: "Profile image updated successfully",
        )

    async def delete_profile(self, account_id: int, profile_id: int) -> OpResult:
        def _apply(pid: int) -> None:
            self.profiles.store.remove(pid)
            if self.active_profile_id == pid:
                self._switch_profile(None)

        return await run_mutation(
            self, self.profiles, "delete_profile",
            self.remote.delete_profile, (account_id, profile_id),
            parse=lambda _raw: profile_id,
            apply=_apply,
            message=lambda _pid: "Profile deleted successfully",
        )

    # ---------- active profile

    def _switch_profile(self, profile_id: int | None) -> None:
        self.content_epoch += 1
        for coll in self.content():
            self.latch.release(coll.name)
            coll.state.reset()
        with self._no_persist():
            for coll in self.content():
                coll.store.clear()
        self.active_profile_id = profile_id
        self.persist(ACTIVE_PROFILE)

    async def set_active_profile(self, account_id: int, profile_id: int, *, refresh: bool = False) -> OpResult:
        """Make ``profile_id`` active and load its shows, movies and episodes concurrently."""
        if self.active_profile_id != profile_id or self.account_id != account_id:
            LOG.info(f"active profile -> {profile_id}")
            self.account_id = account_id
            self._switch_profile(profile_id)
        results = await asyncio.gather(
            self.fetch_shows(refresh=refresh),
            self.fetch_movies(refresh=refresh),
            self.fetch_episodes(refresh=refresh),
        )
        errors = [r.error for r in results if not r.ok and r.error]
        if errors:
            return OpResult(ok=False, value=profile_id, error=errors[0])
        return OpResult(ok=True, value=profile_id)

    def _active(self) -> tuple[int, int] | None:
        if self.account_id is None or self.active_profile_id is None:
            LOG.warn("content operation without an active profile, ignored")
            return None
        return self.account_id, self.active_profile_id

    async def fetch_shows(self, *, refresh: bool = False) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        return await run_fetch(
            self, self.shows, "fetch_shows", self.remote.get_shows, ids, Show.model_validate, refresh=refresh
        )

    async def fetch_movies(self, *, refresh: bool = False) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        return await run_fetch(
            self, self.movies, "fetch_movies", self.remote.get_movies, ids, Movie.model_validate, refresh=refresh
        )

    async def fetch_episodes(self, *, refresh: bool = False) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        return await run_fetch(
            self, self.episodes, "fetch_episodes", self.remote.get_episodes, ids, Episode.model_validate,
            refresh=refresh,
        )

    # ---------- shows

    async def add_show_favorite(self, tmdb_id: int) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        existing = self.show_by_tmdb_id(tmdb_id)
        if existing is not None:
            return OpResult(ok=True, value=existing, skipped=True)
        return await run_mutation(
            self, self.shows, "add_show_favorite",
            self.remote.add_show_favorite, (*ids, tmdb_id),
            parse=Show.model_validate,
            apply=self.shows.store.upsert,
            message=lambda s: f"Added show to favorites: {s.title}",
        )

    async def remove_show_favorite(self, show_id: int) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)

        def _apply(sid: int) -> None:
            self.shows.store.remove(sid)
            self.episodes.store.remove_many(e.id for e in self.episodes.store.all() if e.show_id == sid)

        return await run_mutation(
            self, self.shows, "remove_show_favorite",
            self.remote.remove_show_favorite, (*ids, show_id),
            parse=lambda _raw: show_id,
            apply=_apply,
            message=lambda _sid: "Show removed from favorites",
        )

    async def update_show_status(self, show_id: int, status: str) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        if status not in SHOW_STATUSES:
            return _bad_status("update_show_status", status)
        return await run_mutation(
            self, self.shows, "update_show_status",
            self.remote.update_show_status, (*ids, show_id, status),
            parse=Show.model_validate,
            apply=self.shows.store.upsert,
            message=lambda s: f"'{s.title}' marked {s.watch_status.replace('_', ' ').lower()}",
        )

    # ---------- movies

    async def add_movie_favorite(self, tmdb_id: int) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        existing = self.movie_by_tmdb_id(tmdb_id)
        if existing is not None:
            return OpResult(ok=True, value=existing, skipped=True)
        return await run_mutation(
            self, self.movies, "add_movie_favorite",
            self.remote.add_movie_favorite, (*ids, tmdb_id),
            parse=Movie.model_validate,
            apply=self.movies.store.upsert,
            message=lambda m: f"Added movie to favorites: {m.title}",
        )

    async def remove_movie_favorite(self, movie_id: int) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        return await run_mutation(
            self, self.movies, "remove_movie_favorite",
            self.remote.remove_movie_favorite, (*ids, movie_id),
            parse=lambda _raw: movie_id,
            apply=self.movies.store.remove,
            message=lambda _mid: "Movie removed from favorites",
        )

    async def update_movie_status(self, movie_id: int, status: str) -> OpResult:
        ids = self._active()
        if ids is None:
            return OpResult(ok=False, error=NO_ACTIVE_PROFILE, skipped=True)
        if status not in MOVIE_STATUSES:
            return _bad_status("update_movie_status", status)
        return await run_mutation(
            self, self.movies, "update_movie_status",
            self.remote.update_movie_status, (*ids, movie_id, status),
            parse=Movie.model_validate,
            apply=self.movies.store.upsert,
            message=lambda m: f"'{m.title}' marked {m.watch_status.replace('_', ' ').lower()}",
        )

    # ---------- system notifications (memory only)

    async def fetch_notifications(self, account_id: int, *, refresh: bool = False) -> OpResult:
        return await run_fetch(
            self, self.notifications, "fetch_notifications",
            self.remote.get_notifications, (account_id,),
            SystemNotification.model_validate, refresh=refresh,
            message=lambda items: f"{len(items)} system notification(s)",
        )

    async def dismiss_notification(self, account_id: int, notification_id: int) -> OpResult:
        return await run_mutation(
            self, self.notifications, "dismiss_notification",
            self.remote.dismiss_notification, (account_id, notification_id),
            parse=lambda raw: [SystemNotification.model_validate(x) for x in raw],
            apply=self.notifications.store.set_all,
            message=lambda _items: "Notification dismissed",
        )


def create_engine(
    cfg: dict[str, Any] | None = None,
    *,
    remote: RemoteSource | None = None,
    on_notify: Callable[[Notification], None] | None = None,
    base_path: Path | None = None,
) -> CacheEngine:
    """Build an engine from config and seed it from disk."""
    cfg = cfg or load_config()
    persist = bool((cfg.get("cache") or {}).get("persist", True))
    engine = CacheEngine(
        remote=remote or HttpRemote(cfg),
        state_store=StateStore(base_path or cache_dir(cfg), enabled=persist),
        notifier=Notifier(on_notify),
        windows=view_windows(cfg),
    )
    engine.init()
    return engine
