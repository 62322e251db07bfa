from __future__ import annotations

from fastapi import FastAPI

from .cacheAPI import get_engine, router as cache_router

__all__ = [
    "cache_router",
    "get_engine",
    "register",
]

def register(app: FastAPI) -> None:
    app.include_router(cache_router)
