# kw_platform/config_base.py
from __future__ import annotations

import copy
import json
import os
import secrets
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config and cache files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in a container that mounts /config)
      3) Project root (one level up from this package)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- Backend API ---------------------------------------------------------
    "api": {
        "base_url": "http://localhost:3000/api/v1",    # KeepWatching backend root (no trailing slash)
        "timeout": 10.0,                                # HTTP timeout (seconds)
        "max_retries": 3,                               # Retry budget for 429/5xx responses
        "backoff_base": 0.5,                            # Exponential backoff base (seconds)
        "token": "",                                    # Optional bearer token forwarded as-is
    },

    # --- Local cache ---------------------------------------------------------
    "cache": {
        "dir": "",                                      # Snapshot directory; empty = <CONFIG_BASE>/cache
        "persist": True,                                # Write-through snapshots; False = memory only
    },

    # --- Derived views -------------------------------------------------------
    "views": {
        "recent_days": 7,                               # Trailing window for "recent" episodes/movies
        "upcoming_days": 7,                             # Forward window for "upcoming" episodes/movies
    },

    # --- Runtime -------------------------------------------------------------
    "runtime": {
        "debug": False,                                 # Emit DEBUG log lines
    },
}


# ------------------------------------------------------------
# Helpers: paths, IO, merging
# ------------------------------------------------------------
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"

def config_path() -> Path:
    return _cfg_file()


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)  # type: ignore[assignment]
        else:
            out[k] = v
    return out


def load_config() -> Dict[str, Any]:
    """
    Read config.json merged over DEFAULT_CFG. A missing or unreadable file yields the defaults.
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except Exception:
            user_cfg = {}
    if not isinstance(user_cfg, dict):
        user_cfg = {}

    cfg = _deep_merge(DEFAULT_CFG, user_cfg)

    env_url = os.getenv("KW_API_BASE_URL")
    if env_url:
        cfg["api"]["base_url"] = env_url.rstrip("/")
    return cfg


def save_config(cfg: Dict[str, Any]) -> None:
    _write_json_atomic(_cfg_file(), dict(cfg or {}))


def cache_dir(cfg: Dict[str, Any] | None = None) -> Path:
    c = (cfg or load_config()).get("cache") or {}
    raw = str(c.get("dir") or "").strip()
    return Path(raw) if raw else CONFIG_BASE() / "cache"


def view_windows(cfg: Dict[str, Any] | None = None) -> tuple[int, int]:
    v = (cfg or load_config()).get("views") or {}
    try:
        recent = max(0, int(v.get("recent_days", 7)))
    except Exception:
        recent = 7
    try:
        upcoming = max(0, int(v.get("upcoming_days", 7)))
    except Exception:
        upcoming = 7
    return recent, upcoming
