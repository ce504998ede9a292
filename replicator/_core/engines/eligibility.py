"""
Namespace eligibility: which namespaces receive the replicas.

The decision is made from the namespace's own labels and name only.
It is never cached: every propagation/cleanup pass re-reads the namespaces,
so that a relabelling takes effect on the next reconciliation.
"""
import logging
from collections.abc import AsyncIterator

from replicator._cogs.clients import stores
from replicator._cogs.configs import configuration
from replicator._cogs.structs import bodies, finalizers, markers, references

logger = logging.getLogger(__name__)


def is_eligible(
        namespace: bodies.RawBody,
        *,
        settings: configuration.OperatorSettings,
) -> bool:
    """
    Decide if a namespace should receive the replicas.

    An explicit ``namespace-type`` label wins: ``ignored`` namespaces never
    receive the replicas, ``managed`` namespaces always do. Otherwise,
    the system namespaces (by the name prefix) and the replicator's own
    namespace are not eligible, and all other namespaces are.
    """
    namespace_type = settings.replication.markers.get_namespace_type(namespace)
    if namespace_type == markers.NAMESPACE_TYPE_IGNORED:
        return False
    if namespace_type == markers.NAMESPACE_TYPE_MANAGED:
        return True

    name = bodies.get_name(namespace)
    if settings.replication.system_prefix and name.startswith(settings.replication.system_prefix):
        return False
    if settings.replication.operator_namespace and name == settings.replication.operator_namespace:
        return False
    return True


async def iter_target_namespaces(
        *,
        store: stores.ObjectStore,
        settings: configuration.OperatorSettings,
        exclude: str | None = None,
) -> AsyncIterator[references.NamespaceName]:
    """
    Yield the names of the eligible namespaces that are not being deleted.

    The excluded namespace (usually, the source's own one) is skipped.
    """
    namespaces = await store.list(references.NAMESPACES)
    for namespace in namespaces.get('items', []):
        name = bodies.get_name(namespace)
        if name == exclude:
            continue
        if finalizers.is_deletion_ongoing(namespace):
            continue
        if not is_eligible(namespace, settings=settings):
            continue
        yield references.NamespaceName(name)
