# services/views.py
# KeepWatching - derived read models over the client cache (never stored)
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Any, TypeVar

from kw_platform.models import Episode, Movie, Show, to_day

T = TypeVar("T")

SORT_KEYS = ("title", "release_date", "watch_status")


def _today(now: date | datetime | None) -> date:
    if now is None:
        # the viewer's calendar day, not UTC
        return date.today()
    return to_day(now)  # type: ignore[return-value]


def _date_of(item: Any) -> date | None:
    if isinstance(item, Episode):
        return to_day(item.air_date)
    return to_day(getattr(item, "release_date", None))


def in_recent_window(d: date | None, today: date, days: int) -> bool:
    return d is not None and today - timedelta(days=days) <= d <= today


def in_upcoming_window(d: date | None, today: date, days: int) -> bool:
    return d is not None and today <= d <= today + timedelta(days=days)


def is_unaired(item: Any, now: date | datetime | None = None) -> bool:
    """No date, or a date after today. Independent of the stored watch status."""
    d = _date_of(item)
    return d is None or d > _today(now)


# ---------- windows

def recent(items: Iterable[T], *, days: int, now: date | datetime | None = None) -> list[T]:
    today = _today(now)
    out = [it for it in items if in_recent_window(_date_of(it), today, days)]
    out.sort(key=lambda it: _date_of(it), reverse=True)  # type: ignore[arg-type, return-value]
    return out


def upcoming(items: Iterable[T], *, days: int, now: date | datetime | None = None) -> list[T]:
    today = _today(now)
    out = [it for it in items if in_upcoming_window(_date_of(it), today, days)]
    out.sort(key=lambda it: _date_of(it))  # type: ignore[arg-type, return-value]
    return out


def recent_episodes(engine: Any, *, days: int | None = None, now: date | datetime | None = None) -> list[Episode]:
    return recent(engine.episodes.store.all(), days=_days(engine, days, 0), now=now)


def upcoming_episodes(engine: Any, *, days: int | None = None, now: date | datetime | None = None) -> list[Episode]:
    return upcoming(engine.episodes.store.all(), days=_days(engine, days, 1), now=now)


def recent_movies(engine: Any, *, days: int | None = None, now: date | datetime | None = None) -> list[Movie]:
    return recent(engine.movies.store.all(), days=_days(engine, days, 0), now=now)


def upcoming_movies(engine: Any, *, days: int | None = None, now: date | datetime | None = None) -> list[Movie]:
    return upcoming(engine.movies.store.all(), days=_days(engine, days, 1), now=now)


def _days(engine: Any, days: int | None, which: int) -> int:
    if days is not None:
        return days
    return engine.windows[which]


# ---------- counts

def show_watch_counts(shows: Iterable[Show], now: date | datetime | None = None) -> dict[str, int]:
    counts = {"watched": 0, "watching": 0, "not_watched": 0, "unaired": 0}
    for s in shows:
        if s.watch_status == "WATCHED":
            counts["watched"] += 1
        elif s.watch_status == "WATCHING":
            counts["watching"] += 1
        else:
            counts["not_watched"] += 1
        if is_unaired(s, now):
            counts["unaired"] += 1
    return counts


def movie_watch_counts(movies: Iterable[Movie], now: date | datetime | None = None) -> dict[str, int]:
    counts = {"watched": 0, "not_watched": 0, "unaired": 0}
    for m in movies:
        if m.watch_status == "WATCHED":
            counts["watched"] += 1
        else:
            counts["not_watched"] += 1
        if is_unaired(m, now):
            counts["unaired"] += 1
    return counts


# ---------- list filters

def filter_content(
    items: Iterable[T],
    *,
    genre: str | None = None,
    streaming_service: str | None = None,
    watch_statuses: Sequence[str] | None = None,
) -> list[T]:
    """Empty filter values match everything (the '--All--' choice)."""
    g = (genre or "").strip().lower()
    svc = (streaming_service or "").strip().lower()
    statuses = {s.upper() for s in (watch_statuses or []) if s}
    out: list[T] = []
    for it in items:
        if g and g not in {x.lower() for x in getattr(it, "genres", [])}:
            continue
        if svc and svc not in str(getattr(it, "streaming_services", "") or "").lower():
            continue
        if statuses and getattr(it, "watch_status", None) not in statuses:
            continue
        out.append(it)
    return out


def sort_content(items: Iterable[T], key: str = "title", *, reverse: bool = False) -> list[T]:
    if key not in SORT_KEYS:
        raise ValueError(f"Unsupported sort key: {key}")
    if key == "title":
        return sorted(items, key=lambda it: str(getattr(it, "title", "")).casefold(), reverse=reverse)
    if key == "release_date":
        # undated items last
        return sorted(items, key=lambda it: (_date_of(it) is None, _date_of(it) or date.min), reverse=reverse)
    return sorted(items, key=lambda it: str(getattr(it, "watch_status", "")), reverse=reverse)


# ---------- dashboard

def profile_summary(engine: Any, *, now: date | datetime | None = None) -> dict[str, Any]:
    profile = engine.active_profile()
    return {
        "profile": profile.model_dump(mode="json", by_alias=True) if profile else None,
        "shows": show_watch_counts(engine.shows.store.all(), now),
        "movies": movie_watch_counts(engine.movies.store.all(), now),
    }


__all__ = [
    "in_recent_window", "in_upcoming_window", "is_unaired",
    "recent", "upcoming",
    "recent_episodes", "upcoming_episodes", "recent_movies", "upcoming_movies",
    "show_watch_counts", "movie_watch_counts",
    "filter_content", "sort_content", "profile_summary",
]
