"""
The deduplicating work queues and the workers of the reconciliations.

Every replicated kind (and the namespaces) has its own work queue of keys,
i.e. of the objects' identities, not of the events: the reconciliation
re-reads the object anyway, so the events' payloads are of no use.

The queue guarantees that:

* A key that is already pending is not added again: multiple changes
  of the same object collapse into one reconciliation.
* A key that is being processed is never given to another worker:
  if it is added meanwhile, it is postponed until the processing is done.
* A failed key is re-added with a per-key exponentially growing delay;
  a success resets the key's delay to the initial one.

The workers are a fixed-size pool per queue. This is the only mechanism
that keeps the reconciliations of the same object from overlapping:
there are no locks in the reconciliation logic itself.
"""
import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import TYPE_CHECKING, Generic, TypeVar

from replicator._cogs.aiokits import aiotasks
from replicator._cogs.configs import configuration

logger = logging.getLogger(__name__)

KeyT = TypeVar('KeyT', bound=Hashable)

Reconciler = Callable[[KeyT], Awaitable[None]]


# An end-of-stream marker sent from the queue to the workers on shutdown.
# See: https://www.python.org/dev/peps/pep-0484/#support-for-singleton-types-in-unions
class EOS(enum.Enum):
    token = enum.auto()


class WorkQueue(Generic[KeyT]):

    def __init__(
            self,
            *,
            name: str,
            base_delay: float = 0.005,
            max_delay: float = 1000.0,
    ) -> None:
        super().__init__()
        self.name = name
        self.base_delay = base_delay
        self.max_delay = max_delay
        if TYPE_CHECKING:
            self._backlog: asyncio.Queue[KeyT | EOS]
        self._backlog = asyncio.Queue()
        self._dirty: set[KeyT] = set()
        self._processing: set[KeyT] = set()
        self._failures: dict[KeyT, int] = {}
        self._timers: dict[KeyT, asyncio.TimerHandle] = {}
        self._closed = False

    def __len__(self) -> int:
        return len(self._dirty)

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.name!r}: {len(self._dirty)} pending>'

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, key: KeyT) -> None:
        if self._closed or key in self._dirty:
            return
        self._dirty.add(key)
        if key not in self._processing:
            self._backlog.put_nowait(key)

    def add_after(self, key: KeyT, delay: float) -> None:
        if self._closed:
            return
        if delay <= 0:
            self.add(key)
            return
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key)

    def retry(self, key: KeyT) -> float:
        """ Re-add the failed key with a growing per-key delay; return the delay. """
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        delay = min(self.base_delay * 2 ** failures, self.max_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: KeyT) -> None:
        self._failures.pop(key, None)

    def failures(self, key: KeyT) -> int:
        return self._failures.get(key, 0)

    async def get(self) -> KeyT | EOS:
        item = await self._backlog.get()
        if isinstance(item, EOS):
            self._backlog.put_nowait(item)  # for other workers.
            return item
        self._dirty.discard(item)
        self._processing.add(item)
        return item

    def done(self, key: KeyT) -> None:
        self._processing.discard(key)
        if key in self._dirty and not self._closed:
            self._backlog.put_nowait(key)

    def shutdown(self) -> None:
        """ Stop accepting the keys. The workers exit once they see the end of stream. """
        self._closed = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._backlog.put_nowait(EOS.token)

    def _fire(self, key: KeyT) -> None:
        self._timers.pop(key, None)
        self.add(key)


async def worker(
        *,
        queue: WorkQueue[KeyT],
        reconciler: Reconciler[KeyT],
) -> None:
    """
    Reconcile the keys from the queue one by one until the queue is shut down.

    Any failure of the reconciliation is logged and the key is re-queued later.
    The worker itself never fails because of the reconciliation's failures.
    """
    while True:
        key = await queue.get()
        if isinstance(key, EOS):
            break
        try:
            await reconciler(key)
        except Exception as e:
            delay = queue.retry(key)
            logger.error(f"Reconciliation of {queue.name} {key} has failed; "
                         f"retrying in {delay:.3f}s: {e}", exc_info=True)
        else:
            queue.forget(key)
        finally:
            queue.done(key)


async def processor(
        *,
        queue: WorkQueue[KeyT],
        reconciler: Reconciler[KeyT],
        settings: configuration.OperatorSettings,
) -> None:
    """
    Run a fixed-size pool of workers on the queue, forever until cancelled.

    On cancellation (i.e. on the operator's exit), no new keys are taken,
    but the in-flight reconciliations are allowed to finish within
    the configured timeout. After that, the remaining workers are cancelled.
    """
    workers = [
        asyncio.create_task(worker(queue=queue, reconciler=reconciler),
                            name=f"{queue.name} worker #{idx}")
        for idx in range(max(1, settings.queueing.worker_limit))
    ]
    try:
        await aiotasks.wait(workers)
        await aiotasks.reraise(workers)
    finally:
        await _wait_for_depletion(queue=queue, workers=workers, settings=settings)


async def _wait_for_depletion(
        *,
        queue: WorkQueue[KeyT],
        workers: list[aiotasks.Task],
        settings: configuration.OperatorSettings,
) -> None:

    # Notify all the workers to finish now. Wake them up if they are waiting in the queue-getting.
    queue.shutdown()

    # Wait for the in-flight reconciliations to finish, but not longer than configured.
    # Shielded, since this routine runs in the cancelled processor task.
    done, pending = await asyncio.shield(aiotasks.wait(workers, timeout=settings.queueing.exit_timeout))

    # The last check if the termination is going to be graceful or not.
    if pending:
        logger.warning(f"Unfinished reconciliations left in {queue.name}: {len(pending)} workers.")
        await aiotasks.stop(pending, title=f"{queue.name} worker", logger=logger)
