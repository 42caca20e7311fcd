"""Async single-flight helper.

Used to coordinate concurrent session recoveries so only one coroutine
performs the login, while others await the same Future.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

K = TypeVar("K")
T = TypeVar("T")


def consume_future_exception(fut: asyncio.Future[Any]) -> None:
    """Mark a recovery future's exception as retrieved.

    A login that raises with no concurrent dispatch waiting on the shared
    future would otherwise log "Future exception was never retrieved" when
    the future is collected. The creator still re-raises to its own caller.
    """
    try:
        _ = fut.exception()
    except asyncio.CancelledError:
        return


async def singleflight(
    key: K,
    *,
    lock: asyncio.Lock,
    inflight: dict[K, asyncio.Future[T]],
    work: Callable[[], Awaitable[T]],
) -> T:
    """Run *work* once per key among concurrent callers.

    - If inflight, awaits the existing Future.
    - Otherwise, creates a Future and runs *work* as the single creator.

    Nothing is cached: once the creator finishes, the next caller for the
    same key starts a fresh flight.
    """
    async with lock:
        fut = inflight.get(key)
        if fut is None:
            fut = asyncio.get_running_loop().create_future()
            fut.add_done_callback(consume_future_exception)
            inflight[key] = fut
            creator = True
        else:
            creator = False

    if not creator:
        return await asyncio.shield(fut)

    try:
        value = await work()
    except asyncio.CancelledError:
        fut.cancel()
        raise
    except Exception as e:
        fut.set_exception(e)
        raise
    else:
        fut.set_result(value)
        return value
    finally:
        async with lock:
            inflight.pop(key, None)
