"""
The watchers: the translation of the watch-streams into the work queues.

The watchers do not process anything themselves. They only put the keys
of the changed objects into the work queues, and return to the stream
immediately, so that the stream is never blocked by slow reconciliations.

The initial listing (events with type ``None``) goes the same way as
the regular changes: every existing object is reconciled on startup.
"""
import logging
from typing import cast

from replicator._cogs.clients import watching
from replicator._cogs.configs import configuration
from replicator._cogs.structs import bodies, references
from replicator._core.intents import adapters
from replicator._core.reactor import queueing

logger = logging.getLogger(__name__)


async def object_watcher(
        *,
        adapter: adapters.KindAdapter,
        queue: queueing.WorkQueue[references.ObjectKey],
        settings: configuration.OperatorSettings,
) -> None:
    """
    Watch the objects of one kind cluster-wide, and queue the relevant ones.

    Only the marked objects, or those still holding our finalizer,
    are relevant. All other objects of the kind are ignored silently.
    """
    marks = settings.replication.markers
    stream = watching.infinite_watch(settings=settings, resource=adapter.resource)
    async for raw_event in stream:
        if raw_event is watching.Bookmark.LISTED:
            logger.debug(f"Initial listing of {adapter.kind} is over; watching for changes.")
            continue

        body = cast(bodies.RawBody, raw_event['object'])
        if not marks.is_relevant(body):
            continue

        namespace = references.NamespaceName(bodies.get_namespace(body) or '')
        queue.add(references.ObjectKey(namespace, bodies.get_name(body)))


async def namespace_watcher(
        *,
        queue: queueing.WorkQueue[references.ObjectKey],
        settings: configuration.OperatorSettings,
) -> None:
    """
    Watch the namespaces, and queue every one of them on every change.

    Any namespace's change can change its eligibility (e.g. its labels),
    so there is no filtering here: the resync decides what to do.
    """
    stream = watching.infinite_watch(settings=settings, resource=references.NAMESPACES)
    async for raw_event in stream:
        if raw_event is watching.Bookmark.LISTED:
            logger.debug("Initial listing of namespaces is over; watching for changes.")
            continue

        body = cast(bodies.RawBody, raw_event['object'])
        queue.add(references.ObjectKey(None, bodies.get_name(body)))
