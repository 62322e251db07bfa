# kw_platform/models.py
# Canonical entity shapes for the client cache.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ShowWatchStatus = Literal["NOT_WATCHED", "WATCHING", "WATCHED"]
MovieWatchStatus = Literal["NOT_WATCHED", "WATCHED"]

SHOW_STATUSES: tuple[str, ...] = ("NOT_WATCHED", "WATCHING", "WATCHED")
MOVIE_STATUSES: tuple[str, ...] = ("NOT_WATCHED", "WATCHED")


def _split_csv(v: Any) -> Any:
    # the backend sends genres either as a list or as "Drama, Comedy"
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    if v is None:
        return []
    return v


class _Entity(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProfileCounts(_Entity):
    shows_to_watch: int = Field(0, alias="showsToWatch")
    shows_watching: int = Field(0, alias="showsWatching")
    shows_watched: int = Field(0, alias="showsWatched")
    movies_to_watch: int = Field(0, alias="moviesToWatch")
    movies_watched: int = Field(0, alias="moviesWatched")


class Profile(_Entity):
    id: int
    name: str
    image: str | None = None
    counts: ProfileCounts = Field(default_factory=ProfileCounts)


class Show(_Entity):
    id: int
    tmdb_id: int = Field(alias="tmdbId")
    title: str
    description: str = ""
    release_date: date | None = Field(None, alias="releaseDate")
    genres: list[str] = Field(default_factory=list)
    streaming_services: str = Field("", alias="streamingServices")
    image: str | None = None
    user_rating: float | None = Field(None, alias="userRating")
    content_rating: str | None = Field(None, alias="contentRating")
    season_count: int | None = Field(None, alias="seasonCount")
    episode_count: int | None = Field(None, alias="episodeCount")
    watch_status: ShowWatchStatus = Field("NOT_WATCHED", alias="watchStatus")
    profile_id: int = Field(alias="profileId")

    @field_validator("genres", mode="before")
    @classmethod
    def split_genres(cls, v: Any) -> Any:
        return _split_csv(v)


class Movie(_Entity):
    id: int
    tmdb_id: int = Field(alias="tmdbId")
    title: str
    description: str = ""
    release_date: date | None = Field(None, alias="releaseDate")
    genres: list[str] = Field(default_factory=list)
    streaming_services: str = Field("", alias="streamingServices")
    image: str | None = None
    runtime: int | None = None
    user_rating: float | None = Field(None, alias="userRating")
    mpa_rating: str | None = Field(None, alias="mpaRating")
    watch_status: MovieWatchStatus = Field("NOT_WATCHED", alias="watchStatus")
    profile_id: int = Field(alias="profileId")

    @field_validator("genres", mode="before")
    @classmethod
    def split_genres(cls, v: Any) -> Any:
        return _split_csv(v)


class Episode(_Entity):
    id: int
    show_id: int = Field(alias="showId")
    show_name: str | None = Field(None, alias="showName")
    season_number: int = Field(0, alias="seasonNumber")
    episode_number: int = Field(0, alias="episodeNumber")
    title: str = ""
    overview: str | None = None
    air_date: date | None = Field(None, alias="airDate")
    image: str | None = None
    profile_id: int = Field(alias="profileId")


class SystemNotification(_Entity):
    id: int
    message: str
    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")


# ---------- persisted snapshot schemas

class ProfilesSnapshot(_Entity):
    model_config = ConfigDict(extra="forbid")
    profiles: list[Profile] = Field(default_factory=list)


class ActiveProfileSnapshot(_Entity):
    model_config = ConfigDict(extra="forbid")
    account_id: int | None = None
    profile_id: int | None = None
    shows: list[Show] = Field(default_factory=list)
    movies: list[Movie] = Field(default_factory=list)
    episodes: list[Episode] = Field(default_factory=list)


def dump(entity: BaseModel) -> dict[str, Any]:
    return entity.model_dump(mode="json", by_alias=True)


def to_day(value: date | datetime | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def next_movie_status(current: str) -> MovieWatchStatus:
    return "WATCHED" if current == "NOT_WATCHED" else "NOT_WATCHED"


def next_show_status(current: str) -> ShowWatchStatus:
    # a show being watched is completed by the toggle, a finished one starts over
    return "NOT_WATCHED" if current == "WATCHED" else "WATCHED"


__all__ = [
    "next_movie_status", "next_show_status",
    "ShowWatchStatus", "MovieWatchStatus", "SHOW_STATUSES", "MOVIE_STATUSES",
    "Profile", "ProfileCounts", "Show", "Movie", "Episode", "SystemNotification",
    "ProfilesSnapshot", "ActiveProfileSnapshot", "dump", "to_day",
]
