"""
Creating, updating, and deleting the replicas in individual namespaces.

A replica is fully derived from its source: the kind-specific payload
(via the kind adapter), the labels & annotations except the replicator's own,
the replicator's own markers, and the finalizer. The replica's metadata
is re-derived as a whole on every pass, so whatever drifted on the replica
is overwritten, and an already converged replica causes no writes at all.
"""
import functools
import logging

from replicator._cogs.clients import stores
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, finalizers, references
from replicator._core.actions import retrying
from replicator._core.engines import finalizing, posting
from replicator._core.intents import adapters

logger = logging.getLogger(__name__)

# The reasons of the k8s-events posted on the source objects.
REASON_CREATED = 'SourceObjectCreate'
REASON_UPDATED = 'SourceObjectUpdate'
REASON_DELETED = 'SourceObjectDelete'


def build_replica(
        target: bodies.RawBody,
        *,
        source: bodies.RawBody,
        namespace: str,
        adapter: adapters.KindAdapter,
        settings: configuration.OperatorSettings,
) -> None:
    """
    Mutate the target (a blank or an existing object) into the source's replica.
    """
    if finalizers.is_deletion_ongoing(target):
        return  # the replica's own reconciliation releases & re-creates it.

    markers = settings.replication.markers
    adapter.replicate(source, target)
    meta = target.setdefault('metadata', {})
    meta['name'] = bodies.get_name(source)
    meta['namespace'] = namespace
    meta['labels'] = markers.build_replica_labels(source)
    meta['annotations'] = markers.build_replica_annotations(source)
    finalizers.block_deletion(target, markers.finalizer)


async def replicate_object(
        *,
        source: bodies.RawBody,
        namespace: references.NamespaceName,
        adapter: adapters.KindAdapter,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> retrying.Outcome:
    """
    Create or update the source's replica in one namespace.

    The creation/update is reported as a k8s-event on the source object.
    """
    name = bodies.get_name(source)
    outcome = await retrying.read_mutate_write(
        read=functools.partial(store.read, adapter.resource, namespace=namespace, name=name),
        blank=adapter.empty_object,
        create=functools.partial(store.create, adapter.resource),
        write=functools.partial(store.update, adapter.resource),
        mutate=functools.partial(build_replica, source=source, namespace=namespace,
                                 adapter=adapter, settings=settings),
        backoffs=settings.retrying.conflict_backoffs,
        what=f'replica in {namespace}',
        logger=logger,
    )
    if outcome == retrying.Outcome.CREATED:
        logger.info(f"Replica in namespace {namespace} is created.")
        posting.info(source, reason=REASON_CREATED, message=f"replica in namespace {namespace} created")
    elif outcome == retrying.Outcome.UPDATED:
        logger.info(f"Replica in namespace {namespace} is updated.")
        posting.info(source, reason=REASON_UPDATED, message=f"replica in namespace {namespace} updated")
    return outcome


async def delete_object(
        *,
        body: bodies.RawBody,
        adapter: adapters.KindAdapter,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> bool:
    """
    Delete an object owned by the replicator (usually a replica).

    The finalizer is released first, so that the deletion does not wait
    for another reconciliation to happen. An absent object is fine.
    Returns ``True`` if the object was actually deleted by this call.
    """
    await finalizing.remove_finalizer(resource=adapter.resource, body=body,
                                      store=store, settings=settings, logger=logger)
    deleted = await store.delete(adapter.resource,
                                 namespace=bodies.get_namespace(body),
                                 name=bodies.get_name(body))
    if deleted:
        logger.debug(f"Deleted {adapter.kind} {bodies.get_namespace(body)}/{bodies.get_name(body)}.")
    return deleted
