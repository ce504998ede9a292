"""
Optimistic concurrency for read-mutate-write cycles.

Nothing in the replicator patches the objects partially. Instead, an object
is re-read fresh, mutated in memory, and written back as a whole with the
resource version as it was read. If someone else has changed the object
in the meantime, the write conflicts, and the whole cycle is repeated
with the freshly read object -- a limited number of times with the delays
between the attempts. Once the attempts are exhausted, the conflict is
escalated to the caller (usually, to the reconciliation, which is re-queued).

If the desired state is already reached (the mutation changes nothing),
nothing is written at all.
"""
import asyncio
import copy
import enum
import itertools
from collections.abc import Awaitable, Callable, Iterable

from replicator._cogs.clients import errors
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies

Reader = Callable[[], Awaitable[bodies.RawBody | None]]
Writer = Callable[[bodies.RawBody], Awaitable[object]]
Mutator = Callable[[bodies.RawBody], None]
Blank = Callable[[], bodies.RawBody]


class Outcome(enum.Enum):
    """ What has happened to the object in one read-mutate-write cycle. """
    NONE = enum.auto()  # the object is in the desired state already; nothing is written.
    CREATED = enum.auto()
    UPDATED = enum.auto()
    ABSENT = enum.auto()  # the object is absent and is not going to be created.


async def read_mutate_write(
        *,
        read: Reader,
        mutate: Mutator,
        write: Writer,
        create: Writer | None = None,
        blank: Blank | None = None,
        backoffs: Iterable[float],
        what: str = 'object',
        logger: typedefs.Logger,
) -> Outcome:
    """
    Apply the mutation to the object, retrying on the write conflicts.

    If the object is absent and the creation is possible (``create``
    and ``blank`` are both passed), a blank object is mutated and created.
    A concurrent creation by someone else is a conflict too ("already exists"),
    so the next attempt will read and update that concurrently created object.
    Otherwise, an absent object is reported as such with no errors.
    """
    attempts = list(backoffs)
    total = len(attempts) + 1
    backoff: float | None
    for attempt, backoff in enumerate(itertools.chain(attempts, [None]), start=1):
        try:
            body = await read()
            if body is None:
                if create is None or blank is None:
                    return Outcome.ABSENT
                target = blank()
                mutate(target)
                await create(target)
                return Outcome.CREATED
            else:
                target = copy.deepcopy(body)
                mutate(target)
                if target == body:
                    return Outcome.NONE
                await write(target)
                return Outcome.UPDATED
        except errors.APINotFoundError:
            # Gone between reading and writing: for creatable objects, try again from scratch.
            if create is None:
                return Outcome.ABSENT
            elif backoff is None:
                raise
            logger.debug(f"The {what} is gone while being written; retrying ({attempt}/{total}).")
        except errors.APIConflictError:
            if backoff is None:
                raise
            logger.debug(f"The {what} has changed while being written; retrying ({attempt}/{total}).")
        await asyncio.sleep(backoff)

    raise RuntimeError("Broken retryable routine.")  # impossible, but needed for type-checking.
