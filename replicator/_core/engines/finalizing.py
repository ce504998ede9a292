"""
The finalizer manager: attaching & detaching the replicator's finalizer.

The object is always re-read fresh, so the body at hand is only used
for its identity. If the finalizer is already in the desired state,
nothing is written. Write conflicts are retried (see :mod:`retrying`).
"""
import functools

from replicator._cogs.clients import stores
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, finalizers, references
from replicator._core.actions import retrying


async def add_finalizer(
        *,
        resource: references.Resource,
        body: bodies.RawBody,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> retrying.Outcome:
    finalizer = settings.replication.markers.finalizer
    outcome = await _apply(
        mutate=functools.partial(finalizers.block_deletion, finalizer=finalizer),
        resource=resource, body=body, store=store, settings=settings, logger=logger)
    if outcome == retrying.Outcome.UPDATED:
        logger.debug(f"Added the finalizer {finalizer!r}.")
    return outcome


async def remove_finalizer(
        *,
        resource: references.Resource,
        body: bodies.RawBody,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> retrying.Outcome:
    """
    Remove the finalizer. An absent object is fine: it is gone already.
    """
    finalizer = settings.replication.markers.finalizer
    outcome = await _apply(
        mutate=functools.partial(finalizers.allow_deletion, finalizer=finalizer),
        resource=resource, body=body, store=store, settings=settings, logger=logger)
    if outcome == retrying.Outcome.UPDATED:
        logger.debug(f"Removed the finalizer {finalizer!r}.")
    return outcome


async def _apply(
        *,
        mutate: retrying.Mutator,
        resource: references.Resource,
        body: bodies.RawBody,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> retrying.Outcome:
    namespace = bodies.get_namespace(body)
    name = bodies.get_name(body)
    return await retrying.read_mutate_write(
        read=functools.partial(store.read, resource, namespace=namespace, name=name),
        write=functools.partial(store.update, resource),
        mutate=mutate,
        backoffs=settings.retrying.conflict_backoffs,
        what=f'{resource.kind} {namespace}/{name}',
        logger=logger,
    )
