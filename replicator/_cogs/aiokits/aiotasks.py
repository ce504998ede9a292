"""
Helpers for orchestrating asyncio tasks.

These utilities only support tasks, not more generic futures or coroutines:
the operator's root tasks are not only awaited, but also cancelled.
"""
import asyncio
from collections.abc import Collection, Coroutine
from typing import TYPE_CHECKING, Any

from replicator._cogs.helpers import typedefs

# A workaround for a difference in tasks at runtime and type-checking time.
# Otherwise, at runtime: TypeError: 'type' object is not subscriptable.
if TYPE_CHECKING:
    Future = asyncio.Future[Any]
    Task = asyncio.Task[Any]
else:
    Future = asyncio.Future
    Task = asyncio.Task


async def guard(
        coro: Coroutine[Any, Any, Any],
        name: str,
        *,
        flag: asyncio.Event | None = None,
        finishable: bool = False,
        cancellable: bool = False,
        logger: typedefs.Logger | None = None,
) -> None:
    """
    A guard for a presumably eternal (never-finishing) task.

    If such a task exits, this is a misbehaviour that is logged.
    Errors are always logged. Cancellations are logged unless expected.
    The watchers, the queue processors, the poster, the health reporter
    are all started this way: they are never awaited until the very end.
    """
    capname = name.capitalize()

    # Guarded tasks can have prerequisites, which are set in other tasks.
    if flag is not None:
        try:
            await flag.wait()
        except asyncio.CancelledError:
            coro.close()  # to prevent "never awaited" warnings.
            raise

    try:
        await coro
    except asyncio.CancelledError:
        if logger is not None and not cancellable:
            logger.debug(f"{capname} is cancelled.")
        raise
    except Exception as e:
        if logger is not None:
            logger.exception(f"{capname} has failed: {e}")
        raise
    else:
        if logger is not None and not finishable:
            logger.warning(f"{capname} has finished unexpectedly.")


def create_guarded_task(
        coro: Coroutine[Any, Any, Any],
        name: str,
        *,
        flag: asyncio.Event | None = None,
        finishable: bool = False,
        cancellable: bool = False,
        logger: typedefs.Logger | None = None,
) -> Task:
    """ Create a guarded eternal task. See :func:`guard` for explanation. """
    return asyncio.create_task(
        name=name,
        coro=guard(
            name=name,
            coro=coro,
            flag=flag,
            finishable=finishable,
            cancellable=cancellable,
            logger=logger))


async def wait(
        tasks: Collection[Task],
        *,
        timeout: float | None = None,
        return_when: Any = asyncio.ALL_COMPLETED,
) -> tuple[set[Task], set[Task]]:
    """
    A safer version of :func:`asyncio.wait` -- does not fail on an empty list.
    """
    if not tasks:
        return set(), set()
    done, pending = await asyncio.wait(tasks, timeout=timeout, return_when=return_when)
    return done, pending


async def stop(
        tasks: Collection[Task],
        *,
        title: str,
        cancelled: bool = False,
        interval: float | None = None,
        logger: typedefs.Logger | None = None,
) -> tuple[set[Task], set[Task]]:
    """
    Cancel the tasks and wait for them to finish; log if some are stuck.

    If the interval is set, the tasks that are still pending after it
    are reported, and the waiting continues until they are all done.
    The stopping itself has no timeouts: it either ends with the tasks exited,
    or with the stopping routine itself being cancelled.
    """
    captitle = title.capitalize()
    if not tasks:
        return set(), set()

    for task in tasks:
        task.cancel()

    done_ever: set[Task] = set()
    pending: set[Task] = set(tasks)
    while pending:
        try:
            done_now, pending = await wait(pending, timeout=interval)
        except asyncio.CancelledError:
            # Double-cancelled while stopping: no graceful cleanup, it seems urgent.
            pending = {task for task in tasks if not task.done()}
            if logger is not None:
                logger.debug(f"{captitle} tasks are not stopped: double-cancelling; "
                             f"tasks left: {pending!r}")
            raise
        else:
            if logger is not None and pending:
                logger.debug(f"{captitle} tasks are not yet stopped; tasks left: {pending!r}")
            elif logger is not None:
                why = 'cancelling normally' if cancelled else 'finishing normally'
                logger.debug(f"{captitle} tasks are stopped: {why}.")
            done_ever |= done_now

    return done_ever, pending


async def reraise(
        tasks: Collection[Task],
) -> None:
    """
    Re-raise errors from tasks, if any. Do nothing if all tasks have succeeded.
    """
    for task in tasks:
        try:
            task.result()  # can raise the regular (non-cancellation) exceptions.
        except asyncio.CancelledError:
            pass


async def all_tasks(
        *,
        ignored: Collection[Task] = frozenset(),
) -> Collection[Task]:
    """
    Return all tasks in the current event loop except the current one
    and except those that existed before (e.g. those that started the operator).
    """
    current_task = asyncio.current_task()
    return {task for task in asyncio.all_tasks()
            if task is not current_task and task not in ignored}
