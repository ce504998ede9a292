"""
The object store: the only way how the replicator reads and writes the objects.

The reconciliation engine is written against the :class:`ObjectStore` protocol,
never against the API client directly. The store's semantics follow K8s API:

* Reading an absent object returns ``None`` (it is not an error).
* Updating is optimistic: the body's ``resourceVersion`` must be the current one,
  otherwise :class:`errors.APIConflictError` is raised. Creating an existing
  object raises the same error ("already exists").
* Updating an absent object raises :class:`errors.APINotFoundError`.
* Deleting an object with finalizers only marks it with ``deletionTimestamp``;
  the object disappears once its last finalizer is removed.
* Deleting an absent object is a success (returns ``False``).
"""
from collections.abc import Mapping
from typing import Protocol

from replicator._cogs.clients import creating, deleting, fetching, updating
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, references


class ObjectStore(Protocol):

    async def read(
            self,
            resource: references.Resource,
            *,
            namespace: references.Namespace,
            name: str,
    ) -> bodies.RawBody | None: ...

    async def list(
            self,
            resource: references.Resource,
            *,
            namespace: references.Namespace = None,
            labels: Mapping[str, str] | None = None,
    ) -> bodies.RawList: ...

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody: ...

    async def update(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody: ...

    async def delete(
            self,
            resource: references.Resource,
            *,
            namespace: references.Namespace,
            name: str,
    ) -> bool: ...


class APIStore:
    """ The object store backed by the real K8s API. """

    def __init__(
            self,
            *,
            settings: configuration.OperatorSettings,
            logger: typedefs.Logger,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.logger = logger

    async def read(
            self,
            resource: references.Resource,
            *,
            namespace: references.Namespace,
            name: str,
    ) -> bodies.RawBody | None:
        return await fetching.read_obj(resource=resource, namespace=namespace, name=name,
                                       settings=self.settings, logger=self.logger)

    async def list(
            self,
            resource: references.Resource,
            *,
            namespace: references.Namespace = None,
            labels: Mapping[str, str] | None = None,
    ) -> bodies.RawList:
        return await fetching.list_objs(resource=resource, namespace=namespace, labels=labels,
                                        settings=self.settings, logger=self.logger)

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody:
        return await creating.create_obj(resource=resource, body=body,
                                         settings=self.settings, logger=self.logger)

    async def update(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody:
        return await updating.update_obj(resource=resource, body=body,
                                         settings=self.settings, logger=self.logger)

    async def delete(
            self,
            resource: references.Resource,
            *,
            namespace: references.Namespace,
            name: str,
    ) -> bool:
        return await deleting.delete_obj(resource=resource, namespace=namespace, name=name,
                                         settings=self.settings, logger=self.logger)
