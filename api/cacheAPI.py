# /api/cacheAPI.py
# KeepWatching - read/dispatch surface over the client cache
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, File, Path as FPath, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from kw_platform.cache import CacheEngine, OpResult
from kw_platform.models import MovieWatchStatus, ShowWatchStatus, dump
from services import views

router = APIRouter(prefix="/api/cache", tags=["cache"])


class NameIn(BaseModel):
    name: str


class FavoriteIn(BaseModel):
    tmdb_id: int


class ShowStatusIn(BaseModel):
    status: ShowWatchStatus


class MovieStatusIn(BaseModel):
    status: MovieWatchStatus


def get_engine(request: Request) -> CacheEngine:
    engine = getattr(request.app.state, "cache_engine", None)
    if engine is None:
        raise RuntimeError("cache engine not bound to app.state.cache_engine")
    return engine


def _out(res: OpResult) -> JSONResponse:
    value: Any = res.value
    if isinstance(value, BaseModel):
        value = dump(value)
    elif isinstance(value, list):
        value = [dump(v) if isinstance(v, BaseModel) else v for v in value]
    body = {"ok": res.ok, "skipped": res.skipped, "error": res.error, "result": value}
    if res.ok:
        return JSONResponse(body)
    return JSONResponse(body, status_code=409 if res.skipped else 502)


# ---------- reads

@router.get("/state")
def api_state(engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    latest = engine.notifier.latest
    return JSONResponse({
        "account_id": engine.account_id,
        "active_profile_id": engine.active_profile_id,
        "collections": engine.status_view(),
        "notification": {"message": latest.message, "severity": latest.severity} if latest else None,
    })


@router.post("/notification/dismiss")
def api_dismiss_banner(engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    engine.notifier.dismiss()
    return JSONResponse({"ok": True})


@router.get("/{collection}")
def api_collection(
    collection: str = FPath(..., pattern="^(profiles|shows|movies|episodes|notifications)$"),
    genre: str | None = Query(None),
    service: str | None = Query(None),
    status: list[str] | None = Query(None),
    sort: str | None = Query(None),
    engine: CacheEngine = Depends(get_engine),
) -> JSONResponse:
    items: list[Any] = engine.collection(collection).store.all()
    if collection in ("shows", "movies"):
        items = views.filter_content(items, genre=genre, streaming_service=service, watch_statuses=status)
        if sort:
            try:
                items = views.sort_content(items, sort)
            except ValueError as e:
                return JSONResponse({"ok": False, "error": str(e)}, status_code=400)
    return JSONResponse({"ok": True, "results": [dump(x) for x in items]})


@router.get("/views/summary")
def api_summary(engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return JSONResponse(views.profile_summary(engine))


@router.get("/views/home")
def api_home(engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return JSONResponse({
        "recent_episodes": [dump(e) for e in views.recent_episodes(engine)],
        "upcoming_episodes": [dump(e) for e in views.upcoming_episodes(engine)],
        "recent_movies": [dump(m) for m in views.recent_movies(engine)],
        "upcoming_movies": [dump(m) for m in views.upcoming_movies(engine)],
    })


# ---------- profiles

@router.post("/accounts/{account_id}/profiles/fetch")
async def api_fetch_profiles(
    account_id: int, refresh: bool = Query(False), engine: CacheEngine = Depends(get_engine)
) -> JSONResponse:
    return _out(await engine.fetch_profiles(account_id, refresh=refresh))


@router.post("/accounts/{account_id}/profiles")
async def api_add_profile(account_id: int, body: NameIn = Body(...), engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.add_profile(account_id, body.name))


@router.put("/accounts/{account_id}/profiles/{profile_id}")
async def api_edit_profile(
    account_id: int, profile_id: int, body: NameIn = Body(...), engine: CacheEngine = Depends(get_engine)
) -> JSONResponse:
    return _out(await engine.edit_profile(account_id, profile_id, body.name))


@router.delete("/accounts/{account_id}/profiles/{profile_id}")
async def api_delete_profile(account_id: int, profile_id: int, engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.delete_profile(account_id, profile_id))


@router.post("/accounts/{account_id}/profiles/{profile_id}/image")
async def api_profile_image(
    account_id: int, profile_id: int, file: UploadFile = File(...), engine: CacheEngine = Depends(get_engine)
) -> JSONResponse:
    content = await file.read()
    return _out(await engine.update_profile_image(account_id, profile_id, file.filename or "image", content))


@router.post("/accounts/{account_id}/profiles/{profile_id}/activate")
async def api_activate(
    account_id: int, profile_id: int, refresh: bool = Query(False), engine: CacheEngine = Depends(get_engine)
) -> JSONResponse:
    return _out(await engine.set_active_profile(account_id, profile_id, refresh=refresh))


# ---------- favorites / watch status (active profile)

@router.post("/shows/favorites")
async def api_add_show(body: FavoriteIn = Body(...), engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.add_show_favorite(body.tmdb_id))


@router.delete("/shows/favorites/{show_id}")
async def api_remove_show(show_id: int, engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.remove_show_favorite(show_id))


@router.put("/shows/{show_id}/status")
async def api_show_status(show_id: int, body: ShowStatusIn = Body(...), engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.update_show_status(show_id, body.status))


@router.post("/movies/favorites")
async def api_add_movie(body: FavoriteIn = Body(...), engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.add_movie_favorite(body.tmdb_id))


@router.delete("/movies/favorites/{movie_id}")
async def api_remove_movie(movie_id: int, engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.remove_movie_favorite(movie_id))


@router.put("/movies/{movie_id}/status")
async def api_movie_status(movie_id: int, body: MovieStatusIn = Body(...), engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    return _out(await engine.update_movie_status(movie_id, body.status))


# ---------- system notifications

@router.post("/accounts/{account_id}/notifications/fetch")
async def api_fetch_notifications(
    account_id: int, refresh: bool = Query(False), engine: CacheEngine = Depends(get_engine)
) -> JSONResponse:
    return _out(await engine.fetch_notifications(account_id, refresh=refresh))


@router.post("/accounts/{account_id}/notifications/{notification_id}/dismiss")
async def api_dismiss_notification(
    account_id: int, notification_id: int, engine: CacheEngine = Depends(get_engine)
) -> JSONResponse:
    return _out(await engine.dismiss_notification(account_id, notification_id))


# ---------- logout

@router.post("/logout")
def api_logout(engine: CacheEngine = Depends(get_engine)) -> JSONResponse:
    engine.logout()
    return JSONResponse({"ok": True})
