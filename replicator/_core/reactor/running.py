import asyncio
import functools
import logging
import signal
import threading
from collections.abc import Collection, Iterable, MutableSequence

from replicator._cogs.aiokits import aiotasks
from replicator._cogs.clients import auth, stores
from replicator._cogs.configs import configuration
from replicator._cogs.structs import references
from replicator._core.engines import health, posting
from replicator._core.intents import adapters as adapters_, logins
from replicator._core.reactor import observation, queueing, reconciling, resyncing

logger = logging.getLogger(__name__)

NAMESPACE_QUEUE_NAME = 'Namespace'


def run(
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        adapters: Iterable[adapters_.KindAdapter] | None = None,
        settings: configuration.OperatorSettings | None = None,
        liveness_endpoint: str | None = None,
        stop_flag: asyncio.Event | None = None,
        ready_flag: asyncio.Event | None = None,
        store: stores.ObjectStore | None = None,
) -> None:
    """
    Run the whole operator synchronously.

    This function should be used to run an operator in normal sync mode.
    """
    coro = operator(
        adapters=adapters,
        settings=settings,
        liveness_endpoint=liveness_endpoint,
        stop_flag=stop_flag,
        ready_flag=ready_flag,
        store=store,
    )
    try:
        if loop is not None:
            loop.run_until_complete(coro)
        else:
            asyncio.run(coro)
    except asyncio.CancelledError:
        pass


async def operator(
        *,
        adapters: Iterable[adapters_.KindAdapter] | None = None,
        settings: configuration.OperatorSettings | None = None,
        liveness_endpoint: str | None = None,
        stop_flag: asyncio.Event | None = None,
        ready_flag: asyncio.Event | None = None,
        store: stores.ObjectStore | None = None,
) -> None:
    """
    Run the whole operator asynchronously.

    This function should be used to run an operator in an asyncio event-loop
    if the operator is orchestrated explicitly and manually.

    It is efficiently `spawn_tasks` + `run_tasks` with some safety.
    """
    existing_tasks = await aiotasks.all_tasks()
    operator_tasks = await spawn_tasks(
        adapters=adapters,
        settings=settings,
        liveness_endpoint=liveness_endpoint,
        stop_flag=stop_flag,
        ready_flag=ready_flag,
        store=store,
    )
    await run_tasks(operator_tasks, ignored=existing_tasks)


async def spawn_tasks(
        *,
        adapters: Iterable[adapters_.KindAdapter] | None = None,
        settings: configuration.OperatorSettings | None = None,
        liveness_endpoint: str | None = None,
        stop_flag: asyncio.Event | None = None,
        ready_flag: asyncio.Event | None = None,
        store: stores.ObjectStore | None = None,
) -> Collection[aiotasks.Task]:
    """
    Spawn all the tasks needed to run the operator.

    The tasks are properly inter-connected with the synchronisation primitives.
    There is one work queue per replicated kind, fed by that kind's watcher,
    and one work queue of the namespaces, fed by the namespace watcher.
    The namespace resync does not reconcile the objects itself:
    it only feeds the objects' keys into the kinds' work queues.
    """
    loop = asyncio.get_running_loop()

    # The freshly created objects are not shared with anyone. Sharing them is pointless.
    settings = settings if settings is not None else configuration.OperatorSettings()
    selected = list(adapters) if adapters is not None else list(adapters_.ADAPTERS.values())
    event_queue: posting.K8sEventQueue = asyncio.Queue()
    signal_flag: aiotasks.Future = asyncio.Future()
    started_flag: asyncio.Event = asyncio.Event()
    tasks: MutableSequence[aiotasks.Task] = []

    # Global credentials for this operator: one session for all the API calls.
    # An explicitly given store (e.g. in tests) is used as is, with no logging in.
    if store is None:
        context = auth.APIContext(logins.login())
        auth.context_var.set(context)
        store = stores.APIStore(settings=settings, logger=logger)
        tasks.append(asyncio.create_task(
            name="session closer",
            coro=_session_closer(context=context)))

    # Special case: pass the settings & the queue to the reconciliations (no explicit args).
    posting.settings_var.set(settings)
    posting.event_queue_var.set(event_queue)

    # Few common background forever-running infrastructural tasks (irregular root tasks).
    tasks.append(asyncio.create_task(
        name="stop-flag checker",
        coro=_stop_flag_checker(
            signal_flag=signal_flag,
            stop_flag=stop_flag)))
    tasks.append(asyncio.create_task(
        name="ultimate termination",
        coro=_ultimate_termination(
            settings=settings,
            stop_flag=stop_flag)))

    # K8s-event posting. Events are queued in-memory and posted in the background.
    tasks.append(aiotasks.create_guarded_task(
        name="poster of events", flag=started_flag, logger=logger,
        coro=posting.poster(
            event_queue=event_queue,
            settings=settings)))

    # One work queue per kind, and one for the namespaces. All of them are fully independent.
    queues: dict[adapters_.KindAdapter, queueing.WorkQueue[references.ObjectKey]] = {
        adapter: queueing.WorkQueue(
            name=adapter.kind,
            base_delay=settings.queueing.requeue_base_delay,
            max_delay=settings.queueing.requeue_max_delay)
        for adapter in selected
    }
    namespace_queue: queueing.WorkQueue[references.ObjectKey] = queueing.WorkQueue(
        name=NAMESPACE_QUEUE_NAME,
        base_delay=settings.queueing.requeue_base_delay,
        max_delay=settings.queueing.requeue_max_delay)

    # Liveness endpoint for Kubernetes to know that the replicator is alive.
    if liveness_endpoint:
        depths = {queue.name: queue for queue in [*queues.values(), namespace_queue]}
        tasks.append(aiotasks.create_guarded_task(
            name="health reporter", flag=started_flag, logger=logger,
            coro=health.health_reporter(
                endpoint=liveness_endpoint,
                queues=depths)))

    for adapter, queue in queues.items():
        tasks.append(aiotasks.create_guarded_task(
            name=f"watcher of {adapter.kind}", flag=started_flag, logger=logger,
            coro=observation.object_watcher(
                adapter=adapter,
                queue=queue,
                settings=settings)))
        tasks.append(aiotasks.create_guarded_task(
            name=f"processor of {adapter.kind}", flag=started_flag, logger=logger,
            coro=queueing.processor(
                queue=queue,
                settings=settings,
                reconciler=functools.partial(reconciling.reconcile_object,
                                             adapter=adapter,
                                             store=store,
                                             settings=settings))))

    tasks.append(aiotasks.create_guarded_task(
        name="watcher of namespaces", flag=started_flag, logger=logger,
        coro=observation.namespace_watcher(
            queue=namespace_queue,
            settings=settings)))
    tasks.append(aiotasks.create_guarded_task(
        name="processor of namespaces", flag=started_flag, logger=logger,
        coro=queueing.processor(
            queue=namespace_queue,
            settings=settings,
            reconciler=functools.partial(resyncing.reconcile_namespace,
                                         queues=queues,
                                         store=store,
                                         settings=settings))))

    # Ensure that all guarded tasks got control for a moment to enter the guard.
    await asyncio.sleep(0)
    started_flag.set()
    if ready_flag is not None:
        ready_flag.set()
    logger.info(f"Replicating: {', '.join(adapter.kind for adapter in selected) or 'nothing'}.")

    # On Ctrl+C or pod termination, cancel all tasks gracefully.
    if threading.current_thread() is threading.main_thread():
        # Handle NotImplementedError when ran on Windows since asyncio only supports Unix signals
        try:
            loop.add_signal_handler(signal.SIGINT, signal_flag.set_result, signal.SIGINT)
            loop.add_signal_handler(signal.SIGTERM, signal_flag.set_result, signal.SIGTERM)
        except NotImplementedError:
            logger.warning("OS signals are ignored: can't add signal handler in Windows.")

    else:
        logger.warning("OS signals are ignored: running not in the main thread.")

    return tasks


async def run_tasks(
        root_tasks: Collection[aiotasks.Task],
        *,
        ignored: Collection[aiotasks.Task] = frozenset(),
) -> None:
    """
    Orchestrate the tasks and terminate them gracefully when needed.

    The root tasks are expected to run forever. Their number is limited. Once
    any of them exits, the whole operator and all other root tasks should exit.

    The hung tasks are those that were spawned during the operator runtime,
    and were not cancelled/exited on the root tasks termination. They are given
    some extra time to finish, after which they are forcely terminated too.
    """

    # Run the infinite tasks until one of them fails/exits (they never exit normally).
    # If the operator is cancelled, propagate the cancellation to all the sub-tasks.
    try:
        root_done, root_pending = await aiotasks.wait(root_tasks, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await aiotasks.stop(root_tasks, title="Root", logger=logger, cancelled=True, interval=10)
        hung_tasks = await aiotasks.all_tasks(ignored=ignored)
        await aiotasks.stop(hung_tasks, title="Hung", logger=logger, cancelled=True, interval=1)
        raise

    # If the operator is intact, but one of the root tasks has exited (successfully or not),
    # cancel all the remaining root tasks, and gracefully exit other spawned sub-tasks.
    root_cancelled, _ = await aiotasks.stop(root_pending, title="Root", logger=logger)

    # After the root tasks are all gone, cancel any spawned sub-tasks.
    hung_tasks = await aiotasks.all_tasks(ignored=ignored)
    try:
        hung_done, hung_pending = await aiotasks.wait(hung_tasks, timeout=5)
    except asyncio.CancelledError:
        await aiotasks.stop(hung_tasks, title="Hung", logger=logger, cancelled=True, interval=1)
        raise

    # If the operator is intact, but the timeout is reached, forcely cancel the sub-tasks.
    hung_cancelled, _ = await aiotasks.stop(hung_pending, title="Hung", logger=logger, interval=1)

    # If succeeded or if cancellation is silenced, re-raise from failed tasks (if any).
    await aiotasks.reraise(root_done | root_cancelled | hung_done | hung_cancelled)


async def _stop_flag_checker(
        signal_flag: aiotasks.Future,
        stop_flag: asyncio.Event | None,
) -> None:
    """
    A top-level task for external stopping by setting a stop-flag. Once set,
    this task will exit, and thus all other top-level tasks will be cancelled.
    """

    # Selects the flags to be awaited (if set).
    flags: list[aiotasks.Future] = [signal_flag]
    if stop_flag is not None:
        flags.append(asyncio.create_task(stop_flag.wait(), name="stop-flag waiter"))

    # Wait until one of the stoppers is set/raised.
    try:
        done, pending = await asyncio.wait(flags, return_when=asyncio.FIRST_COMPLETED)
        future = done.pop()
        result = await future
    except asyncio.CancelledError:
        pass  # operator is stopping for any other reason
    else:
        if isinstance(result, signal.Signals):
            logger.info("Signal %s is received. Operator is stopping.", result.name)
        else:
            logger.info("Stop-flag is raised. Operator is stopping.")
    finally:
        for flag in flags[1:]:
            flag.cancel()


async def _ultimate_termination(
        *,
        settings: configuration.OperatorSettings,
        stop_flag: asyncio.Event | None,
) -> None:
    """
    Ensure that SIGKILL is sent regardless of the operator's stopping routines.

    Try to be gentle and kill only the thread with the operator, not the whole
    process or a process group. If this is the main thread (as in most cases),
    this would imply the process termination too.

    Intentional stopping via a stop-flag is ignored.
    """
    # Sleep forever, or until cancelled, which happens when the operator begins its shutdown.
    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        if stop_flag is None or not stop_flag.is_set():
            if settings.process.ultimate_exiting_timeout is not None:
                loop = asyncio.get_running_loop()
                loop.call_later(settings.process.ultimate_exiting_timeout,
                                signal.pthread_kill, threading.get_ident(), signal.SIGKILL)


async def _session_closer(
        *,
        context: auth.APIContext,
) -> None:
    """ Keep the API session open while the operator runs; close it at exit. """
    try:
        await asyncio.Event().wait()
    finally:
        await asyncio.shield(context.close())
