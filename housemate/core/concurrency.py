"""Fan-out/fan-in of independent coroutines with first-failure semantics."""

import asyncio
from collections.abc import Coroutine, Iterable
from typing import Any, TypeVar


T = TypeVar("T")


async def fan_out(coros: Iterable[Coroutine[Any, Any, T]]) -> list[T]:
    """Run coroutines concurrently and return their results in input order.

    The first failure cancels the siblings that are still running and is
    re-raised as-is (not wrapped in an ExceptionGroup). Side effects of
    siblings that already completed are left in place.
    """
    coros = list(coros)
    if not coros:
        return []

    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except BaseExceptionGroup as eg:
        raise _first_failure(eg) from None

    return [task.result() for task in tasks]


def _first_failure(eg: BaseExceptionGroup) -> BaseException:
    first = eg.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_failure(first)
    return first
