from replicator._cogs.clients import api, errors
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import references


async def delete_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        logger: typedefs.Logger,
) -> bool:
    """
    Delete an object with the background propagation of the deletion.

    Returns ``True`` if the deletion was initiated, ``False`` if the object
    was absent already (i.e. the desired state is reached with no action).
    """
    try:
        await api.delete(
            url=resource.get_url(namespace=namespace, name=name),
            payload={'propagationPolicy': 'Background'},
            logger=logger,
            settings=settings,
        )
    except errors.APINotFoundError:
        return False
    return True
