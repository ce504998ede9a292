"""
The namespace-driven resync: a namespace's change re-triggers the objects.

When a namespace appears or becomes eligible, it must receive the replicas
of all the existing sources, even if those sources do not change.
When a namespace is deleted or becomes ineligible, the replicas there
must be released or deleted, even if their sources do not change.

Nothing is replicated or deleted here directly: the affected objects
are put into the same work queues as for the objects' own changes,
and are reconciled the same way (see :mod:`reconciling`).
So, there is only one reconciliation algorithm with two entry points.
"""
import logging
from collections.abc import Mapping

from replicator._cogs.clients import stores
from replicator._cogs.configs import configuration
from replicator._cogs.structs import bodies, finalizers, references
from replicator._core.engines import eligibility
from replicator._core.intents import adapters
from replicator._core.reactor import queueing

logger = logging.getLogger(__name__)


async def reconcile_namespace(
        key: references.ObjectKey,
        *,
        queues: Mapping[adapters.KindAdapter, queueing.WorkQueue[references.ObjectKey]],
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
) -> None:
    namespace = await store.read(references.NAMESPACES, namespace=None, name=key.name)
    is_gone = namespace is None or finalizers.is_deletion_ongoing(namespace)
    if is_gone or namespace is None or not eligibility.is_eligible(namespace, settings=settings):
        how = 'deleted' if is_gone else 'ineligible'
        for adapter, queue in queues.items():
            objlist = adapter.empty_object_list()
            objlist.update(await store.list(adapter.resource,
                                            namespace=references.NamespaceName(key.name),
                                            labels=settings.replication.markers.replica_selector))
            replicas = adapter.list_to_array(objlist)
            for replica in replicas:
                queue.add(references.ObjectKey(references.NamespaceName(key.name), bodies.get_name(replica)))
            if replicas:
                logger.debug(f"Namespace {key.name} is {how}; re-queued {len(replicas)} {adapter.kind} replicas.")
    else:
        for adapter, queue in queues.items():
            objlist = adapter.empty_object_list()
            objlist.update(await store.list(adapter.resource,
                                            labels=settings.replication.markers.source_selector))
            sources = [
                source for source in adapter.list_to_array(objlist)
                if bodies.get_namespace(source) != key.name
                and not finalizers.is_deletion_ongoing(source)
            ]
            for source in sources:
                namespace_name = references.NamespaceName(bodies.get_namespace(source) or '')
                queue.add(references.ObjectKey(namespace_name, bodies.get_name(source)))
            if sources:
                logger.debug(f"Namespace {key.name} is eligible; re-queued {len(sources)} {adapter.kind} sources.")
