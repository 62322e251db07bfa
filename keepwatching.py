# /keepwatching.py
# KeepWatching - client cache service (profiles, favorites, watch progress)
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import uvicorn
from fastapi import FastAPI

from _logging import log as BASE_LOG
from api import register as register_api
from kw_platform.cache import CacheEngine, Notification, create_engine
from kw_platform.config_base import cache_dir, config_path, load_config

LOG = BASE_LOG.child("APP")


def _log_notification(note: Notification) -> None:
    if note.severity == "error":
        LOG.warn(note.message)
    else:
        LOG.info(note.message)


def create_app(engine: CacheEngine | None = None, cfg: dict[str, Any] | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "cache_engine", None) is None:
            app.state.cache_engine = create_engine(cfg, on_notify=_log_notification)
        yield

    app = FastAPI(title="KeepWatching cache", lifespan=lifespan)
    app.state.cache_engine = engine
    register_api(app)
    return app


# Entry point
def main(host: str = "0.0.0.0", port: int = 8788) -> None:
    cfg = load_config()
    debug = bool((cfg.get("runtime") or {}).get("debug"))
    print("\nKeepWatching cache running:")
    print(f"  Local:   http://127.0.0.1:{port}")
    print(f"  Backend: {cfg['api']['base_url']}")
    print(f"  Config:  {config_path()} (JSON)")
    print(f"  Cache:   {cache_dir(cfg)}\n")

    uvicorn.run(
        create_app(cfg=cfg),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
    )

if __name__ == "__main__":
    main()
