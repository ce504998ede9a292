"""
The reconciliation of individual objects of the replicated kinds.

The reconciliation is level-triggered: the object is re-read fresh,
and the decision is made from its current state only, never from the event
that has triggered the reconciliation. The same key can be reconciled many
times with the same result; an already converged object causes no writes.

The object is classified by its ``object-type`` label:

* A source (``replicated``) is propagated to all eligible namespaces, or,
  if it is being deleted, its replicas are deleted from all namespaces.
* A replica (``replica``) is validated against its source: if the source
  is gone or unmarked, the replica is deleted as an orphan.
* Unmarked objects (or with unknown markers) are ignored, unless they still
  hold our finalizer from being a source before: then they are cleaned up.

An absent object is not an error: there is nothing to clean up after it.
Its replicas (if any) are cleaned up by their own reconciliations.
"""
import logging

from replicator._cogs.clients import stores
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, finalizers, references
from replicator._core.actions import failures, loggers
from replicator._core.engines import eligibility, finalizing, posting, replicating
from replicator._core.intents import adapters

logger = logging.getLogger(__name__)


async def reconcile_object(
        key: references.ObjectKey,
        *,
        adapter: adapters.KindAdapter,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
) -> None:
    body = await store.read(adapter.resource, namespace=key.namespace, name=key.name)
    if body is None:
        logger.debug(f"{adapter.kind} {key} is absent; nothing to do.")
        return

    objlogger = loggers.ObjectLogger(body=body, settings=settings)
    marks = settings.replication.markers
    object_type = marks.get_object_type(body)
    is_finalized = finalizers.is_deletion_blocked(body, marks.finalizer)
    if marks.is_replica(body):
        await validate_replica(body=body, adapter=adapter, store=store, settings=settings,
                               logger=objlogger)
    elif marks.is_source(body) and finalizers.is_deletion_ongoing(body):
        objlogger.debug("The source is being deleted; removing its replicas.")
        await remove_source(body=body, adapter=adapter, store=store, settings=settings,
                            logger=objlogger)
    elif marks.is_source(body):
        await propagate_source(body=body, adapter=adapter, store=store, settings=settings,
                               logger=objlogger)
    elif is_finalized:
        objlogger.debug(f"The object is not a source anymore ({object_type=}); removing its replicas.")
        await remove_source(body=body, adapter=adapter, store=store, settings=settings,
                            logger=objlogger)
    else:
        objlogger.debug(f"The object is not marked for replication ({object_type=}); ignoring.")


async def propagate_source(
        *,
        body: bodies.RawBody,
        adapter: adapters.KindAdapter,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> None:
    """
    Create or update the source's replicas in all eligible namespaces.

    The finalizer is attached first, so that the source's deletion is never
    missed: it will wait for the cleanup of the replicas created here.
    """
    await finalizing.add_finalizer(resource=adapter.resource, body=body,
                                   store=store, settings=settings, logger=logger)

    errors: dict[str, BaseException] = {}
    source_namespace = bodies.get_namespace(body)
    async for namespace in eligibility.iter_target_namespaces(
        store=store, settings=settings, exclude=source_namespace,
    ):
        try:
            await replicating.replicate_object(source=body, namespace=namespace, adapter=adapter,
                                               store=store, settings=settings, logger=logger)
        except Exception as e:
            logger.error(f"Failed to replicate to namespace {namespace}: {e!r}")
            errors[namespace] = e

    if errors:
        raise failures.AggregateReplicationError('replicate', errors)


async def remove_source(
        *,
        body: bodies.RawBody,
        adapter: adapters.KindAdapter,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> None:
    """
    Delete the source's replicas from all eligible namespaces, then release the source.

    Every same-named object in those namespaces is deleted, whatever its markers:
    the propagation makes them all into this source's replicas anyway.
    The finalizer is released only if all namespaces have succeeded.
    """
    errors: dict[str, BaseException] = {}
    source_namespace = bodies.get_namespace(body)
    name = bodies.get_name(body)
    async for namespace in eligibility.iter_target_namespaces(
        store=store, settings=settings, exclude=source_namespace,
    ):
        try:
            replica = await store.read(adapter.resource, namespace=namespace, name=name)
            if replica is None:
                continue
            await replicating.delete_object(body=replica, adapter=adapter, store=store,
                                            settings=settings, logger=logger)
        except Exception as e:
            logger.error(f"Failed to delete the replica in namespace {namespace}: {e!r}")
            errors[namespace] = e
        else:
            logger.info(f"Replica in namespace {namespace} is deleted.")
            posting.info(body, reason=replicating.REASON_DELETED,
                         message=f"replica in namespace {namespace} deleted")

    if errors:
        raise failures.AggregateReplicationError('delete the replicas', errors)

    await finalizing.remove_finalizer(resource=adapter.resource, body=body,
                                      store=store, settings=settings, logger=logger)


async def validate_replica(
        *,
        body: bodies.RawBody,
        adapter: adapters.KindAdapter,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> None:
    """
    Keep the replica if its source is valid and its namespace is eligible; release otherwise.

    The replica's content is not refreshed here: it is refreshed only when
    the source is reconciled. But a replica that is being deleted while
    its source is valid is released and re-created from the source at once.
    """
    marks = settings.replication.markers
    source_namespace = marks.get_source_namespace(body)
    if not source_namespace:
        posting.warn(body, reason='MalformedReplica',
                     message=f"the replica has no {marks.source_namespace} annotation")
        raise failures.MalformedReplicaError(
            f"The replica {bodies.get_namespace(body)}/{bodies.get_name(body)} "
            f"has no {marks.source_namespace!r} annotation.")

    # The replica's own namespace: a deleted or ineligible one must not keep the replicas.
    namespace = bodies.get_namespace(body)
    nsbody = await store.read(references.NAMESPACES, namespace=None, name=namespace or '')
    if nsbody is None or finalizers.is_deletion_ongoing(nsbody):
        logger.debug("The replica's namespace is being deleted; releasing the replica.")
        await finalizing.remove_finalizer(resource=adapter.resource, body=body,
                                          store=store, settings=settings, logger=logger)
        return
    if not eligibility.is_eligible(nsbody, settings=settings):
        logger.info("The replica's namespace is not eligible anymore; deleting the replica.")
        await replicating.delete_object(body=body, adapter=adapter, store=store,
                                        settings=settings, logger=logger)
        return

    source = await store.read(adapter.resource, namespace=source_namespace, name=bodies.get_name(body))
    if source is not None and marks.is_replica(source):
        raise failures.UnexpectedMarkerError(
            f"The source {source_namespace}/{bodies.get_name(body)} is marked as a replica itself.")

    is_available = (
        source is not None and
        marks.is_source(source) and
        not finalizers.is_deletion_ongoing(source)
    )
    if not is_available and finalizers.is_deletion_ongoing(body):
        logger.debug("The source is not available; releasing the replica being deleted.")
        await finalizing.remove_finalizer(resource=adapter.resource, body=body,
                                          store=store, settings=settings, logger=logger)
    elif not is_available:
        logger.info("The source is not available; deleting the orphaned replica.")
        await replicating.delete_object(body=body, adapter=adapter, store=store,
                                        settings=settings, logger=logger)
    elif finalizers.is_deletion_ongoing(body) and source is not None:
        logger.info("The replica is deleted while the source is valid; re-creating it.")
        await finalizing.remove_finalizer(resource=adapter.resource, body=body,
                                          store=store, settings=settings, logger=logger)
        await replicating.replicate_object(source=source, namespace=references.NamespaceName(namespace or ''),
                                           adapter=adapter, store=store, settings=settings,
                                           logger=logger)
    else:
        logger.debug("The replica is valid; nothing to do.")
