# KeepWatching test scripts
from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from kw_platform.cache import CacheEngine, Notifier, StateStore  # noqa: E402


def profile_payload(pid: int, name: str, **extra: Any) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": pid,
        "name": name,
        "image": None,
        "counts": {"showsToWatch": 1, "showsWatching": 0, "showsWatched": 0, "moviesToWatch": 0, "moviesWatched": 0},
    }
    out.update(extra)
    return out


def show_payload(sid: int, tmdb_id: int, title: str, *, status: str = "NOT_WATCHED", release: str | None = "2020-01-01", profile_id: int = 11) -> dict[str, Any]:
    return {
        "id": sid,
        "tmdbId": tmdb_id,
        "title": title,
        "description": f"{title} description",
        "releaseDate": release,
        "genres": "Drama, Comedy",
        "streamingServices": "Netflix",
        "watchStatus": status,
        "profileId": profile_id,
    }


def movie_payload(mid: int, tmdb_id: int, title: str, *, status: str = "NOT_WATCHED", release: str | None = "2020-01-01", profile_id: int = 11) -> dict[str, Any]:
    return {
        "id": mid,
        "tmdbId": tmdb_id,
        "title": title,
        "releaseDate": release,
        "genres": ["Action"],
        "streamingServices": "Max",
        "runtime": 120,
        "watchStatus": status,
        "profileId": profile_id,
    }


def episode_payload(eid: int, show_id: int, air_date: str | None, profile_id: int = 11) -> dict[str, Any]:
    return {
        "id": eid,
        "showId": show_id,
        "showName": f"Show {show_id}",
        "seasonNumber": 1,
        "episodeNumber": eid,
        "title": f"Episode {eid}",
        "airDate": air_date,
        "profileId": profile_id,
    }


@dataclass
class FakeRemote:
    """In-memory backend. ``fail`` maps a method name to the exception it raises;
    ``gates`` maps a key to a threading.Event the call waits on before answering;
    a call-specific key (e.g. ``("get_shows", 12)``) is looked up before the method name."""

    profiles: list[dict[str, Any]] = field(default_factory=list)
    shows: list[dict[str, Any]] = field(default_factory=list)
    movies: list[dict[str, Any]] = field(default_factory=list)
    episodes: list[dict[str, Any]] = field(default_factory=list)
    notifications: list[dict[str, Any]] = field(default_factory=list)
    fail: dict[str, BaseException] = field(default_factory=dict)
    gates: dict[Any, threading.Event] = field(default_factory=dict)
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    next_id: int = 100

    def _enter(self, name: str, *args: Any, gate: Any = None) -> None:
        self.calls.append((name, args))
        ev = self.gates.get(gate) if gate is not None else None
        if ev is None:
            ev = self.gates.get(name)
        if ev is not None:
            assert ev.wait(5), f"gate {gate or name} never opened"
        exc = self.fail.get(name)
        if exc is not None:
            raise exc

    def count(self, name: str) -> int:
        return sum(1 for n, _ in self.calls if n == name)

    # profiles
    def get_profiles(self, account_id: int) -> list[dict[str, Any]]:
        self._enter("get_profiles", account_id)
        return [dict(p) for p in self.profiles]

    def add_profile(self, account_id: int, name: str) -> dict[str, Any]:
        self._enter("add_profile", account_id, name)
        self.next_id += 1
        p = profile_payload(self.next_id, name.strip())
        self.profiles.append(p)
        return dict(p)

    def edit_profile(self, account_id: int, profile_id: int, name: str) -> dict[str, Any]:
        self._enter("edit_profile", account_id, profile_id, name, gate=name)
        return profile_payload(profile_id, name)

    def delete_profile(self, account_id: int, profile_id: int) -> None:
        self._enter("delete_profile", account_id, profile_id)
        self.profiles = [p for p in self.profiles if p["id"] != profile_id]

    def update_profile_image(self, account_id: int, profile_id: int, filename: str, content: bytes) -> dict[str, Any]:
        self._enter("update_profile_image", account_id, profile_id, filename)
        for p in self.profiles:
            if p["id"] == profile_id:
                return dict(p, image=f"profiles/{filename}")
        return profile_payload(profile_id, "unknown", image=f"profiles/{filename}")

    # content
    def get_shows(self, account_id: int, profile_id: int) -> list[dict[str, Any]]:
        self._enter("get_shows", account_id, profile_id, gate=("get_shows", profile_id))
        return [dict(s) for s in self.shows if s["profileId"] == profile_id]

    def get_movies(self, account_id: int, profile_id: int) -> list[dict[str, Any]]:
        self._enter("get_movies", account_id, profile_id)
        return [dict(m) for m in self.movies if m["profileId"] == profile_id]

    def get_episodes(self, account_id: int, profile_id: int) -> list[dict[str, Any]]:
        self._enter("get_episodes", account_id, profile_id)
        return [dict(e) for e in self.episodes if e["profileId"] == profile_id]

    def add_show_favorite(self, account_id: int, profile_id: int, tmdb_id: int) -> dict[str, Any]:
        self._enter("add_show_favorite", account_id, profile_id, tmdb_id)
        self.next_id += 1
        s = show_payload(self.next_id, tmdb_id, f"Show {tmdb_id}", profile_id=profile_id)
        self.shows.append(s)
        return dict(s)

    def remove_show_favorite(self, account_id: int, profile_id: int, show_id: int) -> None:
        self._enter("remove_show_favorite", account_id, profile_id, show_id)

    def update_show_status(self, account_id: int, profile_id: int, show_id: int, status: str) -> dict[str, Any]:
        self._enter("update_show_status", account_id, profile_id, show_id, status, gate=status)
        for s in self.shows:
            if s["id"] == show_id:
                return dict(s, watchStatus=status)
        return show_payload(show_id, show_id, "Unknown", status=status, profile_id=profile_id)

    def add_movie_favorite(self, account_id: int, profile_id: int, tmdb_id: int) -> dict[str, Any]:
        self._enter("add_movie_favorite", account_id, profile_id, tmdb_id)
        self.next_id += 1
        m = movie_payload(self.next_id, tmdb_id, f"Movie {tmdb_id}", profile_id=profile_id)
        self.movies.append(m)
        return dict(m)

    def remove_movie_favorite(self, account_id: int, profile_id: int, movie_id: int) -> None:
        self._enter("remove_movie_favorite", account_id, profile_id, movie_id)

    def update_movie_status(self, account_id: int, profile_id: int, movie_id: int, status: str) -> dict[str, Any]:
        self._enter("update_movie_status", account_id, profile_id, movie_id, status)
        for m in self.movies:
            if m["id"] == movie_id:
                return dict(m, watchStatus=status)
        return movie_payload(movie_id, movie_id, "Unknown", status=status, profile_id=profile_id)

    # notifications
    def get_notifications(self, account_id: int) -> list[dict[str, Any]]:
        self._enter("get_notifications", account_id)
        return [dict(n) for n in self.notifications]

    def dismiss_notification(self, account_id: int, notification_id: int) -> list[dict[str, Any]]:
        self._enter("dismiss_notification", account_id, notification_id)
        self.notifications = [n for n in self.notifications if n["id"] != notification_id]
        return [dict(n) for n in self.notifications]


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture()
def remote() -> FakeRemote:
    return FakeRemote(
        profiles=[profile_payload(11, "bob"), profile_payload(12, "Alice")],
        shows=[
            show_payload(1, 501, "The Expanse", status="WATCHING"),
            show_payload(2, 502, "Severance", status="NOT_WATCHED"),
        ],
        movies=[movie_payload(3, 601, "Dune", status="WATCHED")],
        episodes=[
            episode_payload(21, 1, "2024-05-01"),
            episode_payload(22, 2, "2024-05-20"),
        ],
    )


@pytest.fixture()
def cache_path(config_base: Path) -> Path:
    return config_base / "cache"


@pytest.fixture()
def notes() -> list[Any]:
    return []


@pytest.fixture()
def engine(remote: FakeRemote, cache_path: Path, notes: list[Any]) -> CacheEngine:
    eng = CacheEngine(remote=remote, state_store=StateStore(cache_path), notifier=Notifier(notes.append))
    eng.init()
    return eng
