from replicator._cogs.clients import api
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, references


async def create_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        body: bodies.RawBody,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Create an object. If it exists already, the conflict is escalated.
    """
    namespace = bodies.get_namespace(body)
    created_body: bodies.RawBody = await api.post(
        url=resource.get_url(namespace=references.NamespaceName(namespace) if namespace else None),
        payload=body,
        logger=logger,
        settings=settings,
    )
    return created_body
