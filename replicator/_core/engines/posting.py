"""
All the functions to write the Kubernetes events for the replicated objects.

The source objects get the events about their replicas being created,
updated, or deleted in other namespaces -- so that ``kubectl describe``
on the source shows where it was replicated to.

The actual k8s-event posting runs in the background,
and posts the k8s-events as soon as they are queued.
The reconciliations are never slowed down or failed by the posting.
"""
import asyncio
import logging
from contextvars import ContextVar
from typing import TYPE_CHECKING, NamedTuple, NoReturn

from replicator._cogs.clients import events
from replicator._cogs.configs import configuration
from replicator._cogs.structs import bodies

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    K8sEventQueue = asyncio.Queue["K8sEvent"]
else:
    K8sEventQueue = asyncio.Queue

event_queue_var: ContextVar[K8sEventQueue] = ContextVar('event_queue_var')

# Per-operator container for settings. We only need the posting flags from there.
settings_var: ContextVar[configuration.OperatorSettings] = ContextVar('settings_var')


class K8sEvent(NamedTuple):
    """
    A single k8s-event to be posted, with all ref-information preserved.
    It can exist and be posted even after the object is garbage-collected.
    """
    ref: bodies.ObjectReference
    type: str
    reason: str
    message: str


def enqueue(
        ref: bodies.ObjectReference,
        type: str,
        reason: str,
        message: str,
) -> None:
    queue = event_queue_var.get()
    queue.put_nowait(K8sEvent(ref=ref, type=type, reason=reason, message=message))


def info(
        obj: bodies.RawBody,
        *,
        reason: str,
        message: str = '',
) -> None:
    settings: configuration.OperatorSettings = settings_var.get()
    if settings.posting.enabled and settings.posting.level <= logging.INFO:
        ref = bodies.build_object_reference(obj)
        enqueue(ref=ref, type='Normal', reason=reason, message=message)


def warn(
        obj: bodies.RawBody,
        *,
        reason: str,
        message: str = '',
) -> None:
    settings: configuration.OperatorSettings = settings_var.get()
    if settings.posting.enabled and settings.posting.level <= logging.WARNING:
        ref = bodies.build_object_reference(obj)
        enqueue(ref=ref, type='Warning', reason=reason, message=message)


async def poster(
        *,
        event_queue: K8sEventQueue,
        settings: configuration.OperatorSettings,
) -> NoReturn:
    """
    Post events in the background as they are queued.
    """
    while True:
        posted_event = await event_queue.get()
        await events.post_event(
            ref=posted_event.ref,
            type=posted_event.type,
            reason=posted_event.reason,
            message=posted_event.message,
            settings=settings,
            logger=logger,
        )
