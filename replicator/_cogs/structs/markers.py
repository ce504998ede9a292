"""
The labels, annotations, and finalizers owned by the replicator.

All of them live under one common key prefix (an API-group-like domain),
which is configurable. Everything under that prefix on a source object
belongs to the replicator and is never copied to the replicas;
everything else is copied verbatim.
"""
import dataclasses
from collections.abc import Mapping

from replicator._cogs.structs import bodies, finalizers

DEFAULT_PREFIX = 'replicator.nadundesilva.github.io'

# Values of the namespace-type label on namespaces.
NAMESPACE_TYPE_MANAGED = 'managed'
NAMESPACE_TYPE_IGNORED = 'ignored'

# Values of the object-type label on the replicated kinds.
OBJECT_TYPE_REPLICATED = 'replicated'
OBJECT_TYPE_REPLICA = 'replica'


def strip_owned_keys(mapping: Mapping[str, str] | None, prefix: str) -> dict[str, str]:
    """ Copy the labels/annotations except those owned by the replicator. """
    return {key: val for key, val in (mapping or {}).items() if not key.startswith(prefix)}


@dataclasses.dataclass(frozen=True)
class Markers:
    """
    All the persisted keys, derived from one prefix.

    They are the only externally visible contract of the replicator:
    changing the prefix on a live cluster detaches all the existing replicas.
    """
    prefix: str = DEFAULT_PREFIX

    @property
    def namespace_type(self) -> str:
        return f'{self.prefix}/namespace-type'

    @property
    def object_type(self) -> str:
        return f'{self.prefix}/object-type'

    @property
    def source_namespace(self) -> str:
        return f'{self.prefix}/source-namespace'

    @property
    def finalizer(self) -> str:
        return f'{self.prefix}/finalizer'

    def get_namespace_type(self, body: bodies.RawBody) -> str | None:
        return bodies.get_labels(body).get(self.namespace_type)

    def get_object_type(self, body: bodies.RawBody) -> str | None:
        return bodies.get_labels(body).get(self.object_type)

    def get_source_namespace(self, body: bodies.RawBody) -> str | None:
        return bodies.get_annotations(body).get(self.source_namespace)

    def is_source(self, body: bodies.RawBody) -> bool:
        return self.get_object_type(body) == OBJECT_TYPE_REPLICATED

    def is_replica(self, body: bodies.RawBody) -> bool:
        return self.get_object_type(body) == OBJECT_TYPE_REPLICA

    def is_relevant(self, body: bodies.RawBody) -> bool:
        """
        Check if an object's change should trigger its reconciliation.

        Either it is marked as a source or a replica, or it was marked before
        and still holds our finalizer (and so needs cleaning up).
        """
        return (self.get_object_type(body) in [OBJECT_TYPE_REPLICATED, OBJECT_TYPE_REPLICA] or
                finalizers.is_deletion_blocked(body, self.finalizer))

    def build_replica_labels(self, source: bodies.RawBody) -> dict[str, str]:
        labels = strip_owned_keys(bodies.get_labels(source), self.prefix)
        labels[self.object_type] = OBJECT_TYPE_REPLICA
        return labels

    def build_replica_annotations(self, source: bodies.RawBody) -> dict[str, str]:
        annotations = strip_owned_keys(bodies.get_annotations(source), self.prefix)
        annotations[self.source_namespace] = bodies.get_namespace(source) or ''
        return annotations

    @property
    def replica_selector(self) -> dict[str, str]:
        return {self.object_type: OBJECT_TYPE_REPLICA}

    @property
    def source_selector(self) -> dict[str, str]:
        return {self.object_type: OBJECT_TYPE_REPLICATED}
