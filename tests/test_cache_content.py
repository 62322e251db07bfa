# KeepWatching test scripts
from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any

from kw_platform.cache import CacheEngine, StateStore
from kw_platform.models import next_movie_status, next_show_status
from kw_platform.remote import RemoteError

from conftest import FakeRemote, show_payload


def _activate(engine: CacheEngine, profile_id: int = 11) -> None:
    asyncio.run(engine.fetch_profiles(7))
    res = asyncio.run(engine.set_active_profile(7, profile_id))
    assert res.ok


def test_set_active_profile_loads_all_content(engine: CacheEngine, remote: FakeRemote, cache_path: Path) -> None:
    _activate(engine)

    assert engine.active_profile().name == "bob"
    assert [s.title for s in engine.shows.store.all()] == ["The Expanse", "Severance"]
    assert [m.title for m in engine.movies.store.all()] == ["Dune"]
    assert engine.episodes.store.ids() == [21, 22]
    assert all(c.status == "succeeded" for c in engine.content())

    warm = CacheEngine(remote=remote, state_store=StateStore(cache_path))
    warm.init()
    assert warm.active_profile_id == 11
    assert warm.shows.store.ids() == [1, 2]
    assert asyncio.run(warm.set_active_profile(7, 11)).ok
    assert remote.count("get_shows") == 1


def test_switching_profile_resets_content(engine: CacheEngine, remote: FakeRemote) -> None:
    _activate(engine)
    remote.shows.append(show_payload(9, 509, "Andor", profile_id=12))

    assert asyncio.run(engine.set_active_profile(7, 12)).ok
    assert engine.shows.store.ids() == [9]
    assert len(engine.movies.store) == 0
    assert remote.count("get_shows") == 2


def test_fetch_for_previous_profile_settles_stale(engine: CacheEngine, remote: FakeRemote, notes: list[Any]) -> None:
    _activate(engine)
    remote.shows.append(show_payload(9, 509, "Andor", profile_id=12))
    old_gate, new_gate = threading.Event(), threading.Event()
    remote.gates[("get_shows", 11)] = old_gate
    remote.gates[("get_shows", 12)] = new_gate

    async def wait_for_calls(n: int) -> None:
        while remote.count("get_shows") < n:
            await asyncio.sleep(0.01)

    async def scenario() -> tuple[Any, bool, list[int], Any]:
        old = asyncio.create_task(engine.fetch_shows(refresh=True))
        await wait_for_calls(2)
        switch = asyncio.create_task(engine.set_active_profile(7, 12))
        await wait_for_calls(3)

        old_gate.set()
        old_res = await old
        held_after_old = engine.latch.held("shows")
        ids_after_old = engine.shows.store.ids()

        new_gate.set()
        return old_res, held_after_old, ids_after_old, await switch

    old_res, held_after_old, ids_after_old, switched = asyncio.run(scenario())

    assert old_res.ok and old_res.stale
    assert [s.id for s in old_res.value] == [1, 2]
    # the superseded fetch neither wrote profile 11 shows nor freed the new fetch's latch
    assert held_after_old is True
    assert ids_after_old == []

    assert switched.ok
    assert engine.active_profile_id == 12
    assert engine.shows.store.ids() == [9]
    assert engine.shows.status == "succeeded"
    assert not engine.latch.held("shows")
    # one from the first activation, one from the superseded fetch
    assert sum(n.message == "Loaded 2 shows" for n in notes) == 2


def test_content_operations_need_an_active_profile(engine: CacheEngine, remote: FakeRemote) -> None:
    res = asyncio.run(engine.add_show_favorite(777))
    assert res.ok is False and res.skipped
    assert remote.count("add_show_favorite") == 0


def test_add_favorite_upserts_server_show(engine: CacheEngine, notes: list[Any]) -> None:
    _activate(engine)
    res = asyncio.run(engine.add_show_favorite(777))

    assert res.ok
    assert engine.show_by_tmdb_id(777).title == "Show 777"
    assert notes[-1].message == "Added show to favorites: Show 777"


def test_already_favorited_is_a_noop(engine: CacheEngine, remote: FakeRemote, notes: list[Any]) -> None:
    _activate(engine)
    notes.clear()
    res = asyncio.run(engine.add_movie_favorite(601))

    assert res.ok and res.skipped
    assert res.value.title == "Dune"
    assert remote.count("add_movie_favorite") == 0
    assert notes == []


def test_failed_favorite_never_enters_store(engine: CacheEngine, remote: FakeRemote) -> None:
    _activate(engine)
    before = engine.snapshot("active_profile")
    remote.fail["add_movie_favorite"] = RemoteError("Movie not found", 404)

    res = asyncio.run(engine.add_movie_favorite(999))

    assert res.error == "Movie not found"
    assert engine.snapshot("active_profile") == before
    assert engine.movies.status == "failed"


def test_remove_show_favorite_cascades_to_episodes(engine: CacheEngine) -> None:
    _activate(engine)
    assert asyncio.run(engine.remove_show_favorite(1)).ok
    assert 1 not in engine.shows.store
    assert engine.episodes.store.ids() == [22]


def test_server_status_wins_over_requested(engine: CacheEngine, remote: FakeRemote) -> None:
    _activate(engine)
    remote.update_show_status = lambda a, p, sid, status: show_payload(  # type: ignore[method-assign]
        sid, 501, "The Expanse", status="WATCHING"
    )
    res = asyncio.run(engine.update_show_status(1, "WATCHED"))
    assert res.ok
    assert engine.shows.store.get(1).watch_status == "WATCHING"


def test_movie_status_update_and_toggle_helpers(engine: CacheEngine) -> None:
    _activate(engine)
    movie = engine.movies.store.get(3)
    res = asyncio.run(engine.update_movie_status(3, next_movie_status(movie.watch_status)))
    assert res.ok
    assert engine.movies.store.get(3).watch_status == "NOT_WATCHED"

    assert next_show_status("NOT_WATCHED") == "WATCHED"
    assert next_show_status("WATCHING") == "WATCHED"
    assert next_show_status("WATCHED") == "NOT_WATCHED"


def test_unsupported_status_never_reaches_backend(engine: CacheEngine, remote: FakeRemote, notes: list[Any]) -> None:
    _activate(engine)
    before = len(notes)

    res = asyncio.run(engine.update_movie_status(3, "WATCHING"))
    assert res.ok is False and res.skipped
    assert res.error == "Unsupported watch status: WATCHING"

    res = asyncio.run(engine.update_show_status(1, "FOO"))
    assert res.ok is False and res.skipped

    assert remote.count("update_movie_status") == 0
    assert remote.count("update_show_status") == 0
    assert engine.movies.store.get(3).watch_status == "WATCHED"
    assert engine.movies.status == "succeeded"
    assert len(notes) == before


def test_deleting_active_profile_clears_its_content(engine: CacheEngine) -> None:
    _activate(engine)
    assert asyncio.run(engine.delete_profile(7, 11)).ok
    assert engine.active_profile_id is None
    assert all(len(c.store) == 0 for c in engine.content())


def test_logout_resets_everything(engine: CacheEngine, cache_path: Path) -> None:
    _activate(engine)
    asyncio.run(engine.fetch_notifications(7))
    assert (cache_path / "profiles.json").exists()

    engine.logout()

    for coll in engine.collections():
        assert coll.status == "idle"
        assert coll.error is None
        assert len(coll.store) == 0
    assert list(cache_path.glob("*.json")) == []
    assert engine.active_profile_id is None and engine.account_id is None


def test_in_flight_operations_settle_harmlessly_after_logout(engine: CacheEngine, remote: FakeRemote, cache_path: Path, notes: list[Any]) -> None:
    add_gate, fetch_gate = threading.Event(), threading.Event()
    remote.gates["add_profile"] = add_gate
    remote.gates["get_profiles"] = fetch_gate

    async def scenario() -> tuple[Any, Any]:
        add = asyncio.create_task(engine.add_profile(7, "Late"))
        fetch = asyncio.create_task(engine.fetch_profiles(7))
        await asyncio.sleep(0)
        engine.logout()
        add_gate.set()
        fetch_gate.set()
        return await add, await fetch

    add, fetch = asyncio.run(scenario())
    assert add.stale and fetch.stale
    assert len(engine.profiles.store) == 0
    assert engine.profiles.status == "idle"
    assert list(cache_path.glob("*.json")) == []
    assert len(notes) == 2

    res = asyncio.run(engine.fetch_profiles(7))
    assert res.ok and not res.skipped


def test_system_notifications_fetch_and_dismiss(engine: CacheEngine, remote: FakeRemote, cache_path: Path) -> None:
    remote.notifications = [
        {"id": 1, "message": "Maintenance tonight", "startDate": "2024-05-01T00:00:00Z"},
        {"id": 2, "message": "New features"},
    ]
    assert asyncio.run(engine.fetch_notifications(7)).ok
    assert engine.notifications.store.ids() == [1, 2]

    assert asyncio.run(engine.dismiss_notification(7, 1)).ok
    assert engine.notifications.store.ids() == [2]
    assert not (cache_path / "notifications.json").exists()
