from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

log = logging.getLogger(__name__)


def call_isolated(label: str, func: Callable[..., Any], *args: Any) -> tuple[bool, Any]:
    """Invoke one consumer; a raising consumer is logged and reported as failed."""
    try:
        return True, func(*args)
    except Exception:
        log.exception("consumer_failed consumer=%s", label)
        return False, None


async def _gather(awaitables: list[Awaitable[Any]]) -> list[Any]:
    return await asyncio.gather(*awaitables, return_exceptions=True)


def _run_to_completion(awaitables: list[Awaitable[Any]]) -> list[Any]:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_gather(awaitables))
    # A loop already owns this thread; settle on a private loop in a worker.
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, _gather(awaitables)).result()


def _log_future_outcome(label: str) -> Callable[[asyncio.Future], None]:
    def _done(future: asyncio.Future) -> None:
        if future.cancelled():
            log.warning("consumer_async_cancelled consumer=%s", label)
            return
        error = future.exception()
        if error is not None:
            log.error("consumer_async_failed consumer=%s error=%r", label, error)

    return _done


def settle_awaitables(results: dict[str, Any]) -> dict[str, Any]:
    """Wait for every coroutine value in ``results`` and replace it with its result.

    Coroutines are settled together; one failing or slow consumer does not
    stop the others. Failed entries are logged and mapped to ``None``.

    Tasks and futures already belong to some caller's loop and cannot be
    awaited from here. They are left running, mapped to ``None``, and any
    failure is logged when they finish.
    """
    settled = dict(results)
    coroutines: dict[str, Awaitable[Any]] = {}
    for label, value in results.items():
        if inspect.iscoroutine(value):
            coroutines[label] = value
        elif isinstance(value, asyncio.Future):
            value.add_done_callback(_log_future_outcome(label))
            settled[label] = None
        elif inspect.isawaitable(value):
            coroutines[label] = _await_value(value)
    if not coroutines:
        return settled
    try:
        outcomes = _run_to_completion(list(coroutines.values()))
    except Exception:
        log.exception("consumer_settle_failed consumers=%s", ",".join(coroutines))
        for label in coroutines:
            settled[label] = None
        return settled
    for label, outcome in zip(coroutines.keys(), outcomes):
        if isinstance(outcome, BaseException):
            log.error("consumer_async_failed consumer=%s error=%r", label, outcome)
            settled[label] = None
        else:
            settled[label] = outcome
    return settled


async def _await_value(value: Awaitable[Any]) -> Any:
    return await value
