# kw_platform/cache/_ops.py
# fetch / mutate lifecycles shared by every cache operation.
# Copyright (c) 2025-2026 KeepWatching contributors
from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable, Sequence
from typing import Any, Protocol

from pydantic import ValidationError

from _logging import log as BASE_LOG
from ..remote import RemoteError, TransportError
from ._latch import InFlightLatch
from ._notify import Notifier
from ._types import FALLBACKS, Collection, OpResult

LOG = BASE_LOG.child("CACHE")


class OpContext(Protocol):
    latch: InFlightLatch
    notifier: Notifier

    def epoch(self, coll: Collection) -> Hashable: ...


async def call_remote(fn: Callable[..., Any], *args: Any) -> Any:
    # the HTTP client blocks; keep the event loop free while it runs
    return await asyncio.to_thread(fn, *args)


def error_message(exc: BaseException, op: str) -> str:
    fallback = FALLBACKS.get(op, "An error occurred")
    if isinstance(exc, RemoteError):
        return exc.message or fallback
    return fallback


def _log_failure(op: str, exc: BaseException) -> None:
    if isinstance(exc, RemoteError):
        LOG.warn(f"{op}: server rejected ({exc.status_code}): {exc.message or '-'}")
    elif isinstance(exc, TransportError):
        LOG.warn(f"{op}: transport failure: {exc}")
    elif isinstance(exc, ValidationError):
        LOG.error(f"{op}: malformed payload: {exc.error_count()} validation error(s)")
    else:
        LOG.error(f"{op}: unexpected {type(exc).__name__}: {exc}")


def _settle_failure(ctx: OpContext, coll: Collection, epoch: Hashable, op: str, exc: BaseException) -> OpResult:
    _log_failure(op, exc)
    msg = error_message(exc, op)
    if ctx.epoch(coll) == epoch:
        coll.state.status = "failed"
        coll.state.error = msg
    ctx.notifier.emit(msg, "error")
    return OpResult(ok=False, error=msg)


def should_skip_fetch(ctx: OpContext, coll: Collection, *, refresh: bool = False) -> bool:
    if ctx.latch.held(coll.name):
        return True
    if refresh:
        return False
    return coll.state.status != "idle" and coll.populated()


async def run_fetch(
    ctx: OpContext,
    coll: Collection,
    op: str,
    fn: Callable[..., Sequence[Any]],
    args: tuple[Any, ...],
    parse: Callable[[Any], Any],
    *,
    refresh: bool = False,
    message: Callable[[list[Any]], str] | None = None,
) -> OpResult:
    """Replace ``coll`` with the server collection.

    Skipped without a remote call while another fetch of the same collection
    is in flight, or when the collection is already populated.
    """
    if should_skip_fetch(ctx, coll, refresh=refresh):
        LOG.debug(f"{op}: skipped ({coll.status}, {len(coll.store)} cached)")
        return OpResult(ok=True, value=coll.store.all(), skipped=True)

    ctx.latch.acquire(coll.name)
    epoch = ctx.epoch(coll)
    coll.state.status = "pending"
    coll.state.error = None
    try:
        raw = await call_remote(fn, *args)
        entities = [parse(x) for x in raw]
    except Exception as e:
        return _settle_failure(ctx, coll, epoch, op, e)
    finally:
        if ctx.epoch(coll) == epoch:
            ctx.latch.release(coll.name)

    text = message(entities) if message else f"Loaded {len(entities)} {coll.name}"
    if ctx.epoch(coll) != epoch:
        LOG.debug(f"{op}: settled after reset, result dropped")
        ctx.notifier.emit(text, "info")
        return OpResult(ok=True, value=entities, stale=True)

    coll.store.set_all(entities)
    coll.state.status = "succeeded"
    LOG.debug(f"{op}: {len(entities)} {coll.name} cached")
    ctx.notifier.emit(text, "info")
    return OpResult(ok=True, value=entities)


async def run_mutation(
    ctx: OpContext,
    coll: Collection,
    op: str,
    fn: Callable[..., Any],
    args: tuple[Any, ...],
    *,
    parse: Callable[[Any], Any],
    apply: Callable[[Any], None],
    message: Callable[[Any], str],
) -> OpResult:
    """Issue a create/update/delete and commit only the confirmed result.

    ``parse`` turns the server payload into the value to commit and runs
    before any store write, so a malformed payload leaves the store untouched.
    """
    epoch = ctx.epoch(coll)
    coll.state.status = "pending"
    coll.state.error = None
    try:
        raw = await call_remote(fn, *args)
        value = parse(raw)
    except Exception as e:
        return _settle_failure(ctx, coll, epoch, op, e)

    if ctx.epoch(coll) != epoch:
        LOG.debug(f"{op}: settled after reset, result dropped")
        ctx.notifier.emit(message(value), "success")
        return OpResult(ok=True, value=value, stale=True)

    apply(value)
    coll.state.status = "succeeded"
    ctx.notifier.emit(message(value), "success")
    return OpResult(ok=True, value=value)


__all__ = ["OpContext", "call_remote", "error_message", "should_skip_fetch", "run_fetch", "run_mutation"]
