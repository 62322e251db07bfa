# kw_platform/remote.py
# KeepWatching backend client: thin requests wrapper returning canonical payloads.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

import json
import time
from collections.abc import Mapping
from typing import Any, Protocol

import requests

from _logging import log as BASE_LOG

LOG = BASE_LOG.child("REMOTE")

RETRY_ON: tuple[int, ...] = (429, 500, 502, 503, 504)


class RemoteFailure(Exception):
    """Base class for anything a remote call can fail with."""


class RemoteError(RemoteFailure):
    """The backend answered with a structured error payload."""

    def __init__(self, message: str | None, status_code: int | None = None, payload: Any = None):
        super().__init__(message or f"HTTP {status_code}")
        self.message = message
        self.status_code = status_code
        self.payload = payload


class TransportError(RemoteFailure):
    """No usable response (connection refused, timeout, DNS...)."""


class RemoteSource(Protocol):
    def get_profiles(self, account_id: int) -> list[dict[str, Any]]: ...
    def add_profile(self, account_id: int, name: str) -> dict[str, Any]: ...
    def edit_profile(self, account_id: int, profile_id: int, name: str) -> dict[str, Any]: ...
    def delete_profile(self, account_id: int, profile_id: int) -> None: ...
    def update_profile_image(self, account_id: int, profile_id: int, filename: str, content: bytes) -> dict[str, Any]: ...
    def get_shows(self, account_id: int, profile_id: int) -> list[dict[str, Any]]: ...
    def get_movies(self, account_id: int, profile_id: int) -> list[dict[str, Any]]: ...
    def get_episodes(self, account_id: int, profile_id: int) -> list[dict[str, Any]]: ...
    def add_show_favorite(self, account_id: int, profile_id: int, tmdb_id: int) -> dict[str, Any]: ...
    def remove_show_favorite(self, account_id: int, profile_id: int, show_id: int) -> None: ...
    def update_show_status(self, account_id: int, profile_id: int, show_id: int, status: str) -> dict[str, Any]: ...
    def add_movie_favorite(self, account_id: int, profile_id: int, tmdb_id: int) -> dict[str, Any]: ...
    def remove_movie_favorite(self, account_id: int, profile_id: int, movie_id: int) -> None: ...
    def update_movie_status(self, account_id: int, profile_id: int, movie_id: int, status: str) -> dict[str, Any]: ...
    def get_notifications(self, account_id: int) -> list[dict[str, Any]]: ...
    def dismiss_notification(self, account_id: int, notification_id: int) -> list[dict[str, Any]]: ...


def safe_json(resp: requests.Response) -> Any:
    try:
        if not (resp.text or "").strip():
            return {}
        ctype = (resp.headers.get("Content-Type") or "").lower()
        if "json" in ctype:
            return resp.json()
        return json.loads(resp.text)
    except Exception:
        return {}


def request_with_retries(
    session: requests.Session,
    method: str,
    url: str,
    *,
    timeout: float = 10.0,
    max_retries: int = 3,
    retry_on: tuple[int, ...] = RETRY_ON,
    backoff_base: float = 0.5,
    **kwargs: Any,
) -> requests.Response:
    last: Any = None
    for i in range(max(1, int(max_retries))):
        try:
            resp = session.request(method, url, timeout=timeout, **kwargs)
        except requests.RequestException as e:
            last = e
            if i < max_retries - 1:
                time.sleep(backoff_base * (2**i))
                continue
            break
        if resp.status_code in retry_on and i < max_retries - 1:
            wait = backoff_base * (2**i)
            if resp.status_code == 429:
                try:
                    ra = resp.headers.get("Retry-After")
                    if ra:
                        wait = max(wait, float(ra))
                except ValueError:
                    pass
            LOG.debug(f"{method} {url} -> {resp.status_code}, retry in {wait:.2f}s")
            time.sleep(wait)
            last = resp
            continue
        return resp
    if isinstance(last, requests.Response):
        return last
    raise TransportError(f"request failed after retries: {method} {url}: {last}")


class HttpRemote:
    def __init__(self, cfg: Mapping[str, Any], *, session: requests.Session | None = None):
        api = dict(cfg.get("api") or {})
        self.base_url = str(api.get("base_url") or "").rstrip("/")
        self.timeout = float(api.get("timeout") or 10.0)
        self.max_retries = int(api.get("max_retries") or 1)
        self.backoff_base = float(api.get("backoff_base") or 0.0)
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", "User-Agent": "KeepWatching-Client/1.0"})
        token = str(api.get("token") or "").strip()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    # ---------- plumbing

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        resp = request_with_retries(
            self.session,
            method,
            url,
            timeout=self.timeout,
            max_retries=self.max_retries,
            backoff_base=self.backoff_base,
            **kwargs,
        )
        body = safe_json(resp)
        if resp.status_code >= 400:
            msg = body.get("message") if isinstance(body, dict) else None
            LOG.warn(f"{method} {path} -> {resp.status_code} {msg or ''}".rstrip())
            raise RemoteError(str(msg) if msg else None, resp.status_code, body)
        LOG.debug(f"{method} {path} -> {resp.status_code}")
        return body if isinstance(body, dict) else {}

    def _result(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        body = self._call(method, path, **kwargs)
        res = body.get("result")
        if not isinstance(res, dict):
            raise RemoteError(None, None, body)
        return res

    def _results(self, method: str, path: str, key: str = "results", **kwargs: Any) -> list[dict[str, Any]]:
        body = self._call(method, path, **kwargs)
        res = body.get(key)
        if not isinstance(res, list):
            raise RemoteError(None, None, body)
        return [x for x in res if isinstance(x, dict)]

    @staticmethod
    def _profile_path(account_id: int, profile_id: int) -> str:
        return f"/accounts/{account_id}/profiles/{profile_id}"

    # ---------- profiles

    def get_profiles(self, account_id: int) -> list[dict[str, Any]]:
        return self._results("GET", f"/accounts/{account_id}/profiles")

    def add_profile(self, account_id: int, name: str) -> dict[str, Any]:
        return self._result("POST", f"/accounts/{account_id}/profiles", json={"name": name})

    def edit_profile(self, account_id: int, profile_id: int, name: str) -> dict[str, Any]:
        return self._result("PUT", self._profile_path(account_id, profile_id), json={"name": name})

    def delete_profile(self, account_id: int, profile_id: int) -> None:
        self._call("DELETE", self._profile_path(account_id, profile_id))

    def update_profile_image(self, account_id: int, profile_id: int, filename: str, content: bytes) -> dict[str, Any]:
        return self._result(
            "POST",
            f"/upload/accounts/{account_id}/profiles/{profile_id}",
            files={"file": (filename, content)},
        )

    # ---------- active profile content

    def get_shows(self, account_id: int, profile_id: int) -> list[dict[str, Any]]:
        return self._results("GET", f"{self._profile_path(account_id, profile_id)}/shows")

    def get_movies(self, account_id: int, profile_id: int) -> list[dict[str, Any]]:
        return self._results("GET", f"{self._profile_path(account_id, profile_id)}/movies")

    def get_episodes(self, account_id: int, profile_id: int) -> list[dict[str, Any]]:
        return self._results("GET", f"{self._profile_path(account_id, profile_id)}/episodes")

    def add_show_favorite(self, account_id: int, profile_id: int, tmdb_id: int) -> dict[str, Any]:
        return self._result(
            "POST", f"{self._profile_path(account_id, profile_id)}/shows/favorites", json={"showTMDBId": tmdb_id}
        )

    def remove_show_favorite(self, account_id: int, profile_id: int, show_id: int) -> None:
        self._call("DELETE", f"{self._profile_path(account_id, profile_id)}/shows/favorites/{show_id}")

    def update_show_status(self, account_id: int, profile_id: int, show_id: int, status: str) -> dict[str, Any]:
        return self._result(
            "PUT",
            f"{self._profile_path(account_id, profile_id)}/shows/watchstatus",
            json={"showId": show_id, "status": status},
        )

    def add_movie_favorite(self, account_id: int, profile_id: int, tmdb_id: int) -> dict[str, Any]:
        return self._result(
            "POST", f"{self._profile_path(account_id, profile_id)}/movies/favorites", json={"movieTMDBId": tmdb_id}
        )

    def remove_movie_favorite(self, account_id: int, profile_id: int, movie_id: int) -> None:
        self._call("DELETE", f"{self._profile_path(account_id, profile_id)}/movies/favorites/{movie_id}")

    def update_movie_status(self, account_id: int, profile_id: int, movie_id: int, status: str) -> dict[str, Any]:
        return self._result(
            "PUT",
            f"{self._profile_path(account_id, profile_id)}/movies/watchstatus",
            json={"movieId": movie_id, "status": status},
        )

    # ---------- system notifications

    def get_notifications(self, account_id: int) -> list[dict[str, Any]]:
        return self._results("GET", f"/accounts/{account_id}/notifications", key="notifications")

    def dismiss_notification(self, account_id: int, notification_id: int) -> list[dict[str, Any]]:
        return self._results(
            "POST", f"/accounts/{account_id}/notifications/dismiss/{notification_id}", key="notifications"
        )


__all__ = [
    "RemoteFailure", "RemoteError", "TransportError", "RemoteSource",
    "HttpRemote", "request_with_retries", "safe_json",
]
