from replicator._cogs.clients import api
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, references


async def update_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        body: bodies.RawBody,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Replace the whole object, as it was previously read and then modified.

    The object's ``metadata.resourceVersion`` is sent as it was read.
    If the object has changed since then, K8s responds with "409 Conflict",
    which is escalated as :class:`errors.APIConflictError`: the caller
    should re-read the object and re-apply the changes.
    If the object is absent, :class:`errors.APINotFoundError` is escalated.
    """
    namespace = bodies.get_namespace(body)
    updated_body: bodies.RawBody = await api.put(
        url=resource.get_url(
            namespace=references.NamespaceName(namespace) if namespace else None,
            name=bodies.get_name(body),
        ),
        payload=body,
        logger=logger,
        settings=settings,
    )
    return updated_body
