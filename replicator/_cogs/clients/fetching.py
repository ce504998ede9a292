from collections.abc import Mapping

from replicator._cogs.clients import api, errors
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, references


def build_label_selector(labels: Mapping[str, str] | None) -> str | None:
    """ Only the equality-based selectors are needed: ``key1=value1,key2=value2``. """
    return ','.join(f'{key}={val}' for key, val in labels.items()) if labels else None


async def read_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        logger: typedefs.Logger,
) -> bodies.RawBody | None:
    """
    Read one object by its name; ``None`` if it does not exist.
    """
    try:
        obj: bodies.RawBody = await api.get(
            url=resource.get_url(namespace=namespace, name=name),
            logger=logger,
            settings=settings,
        )
    except errors.APINotFoundError:
        return None
    obj.setdefault('kind', resource.kind)
    obj.setdefault('apiVersion', resource.api_version)
    return obj


async def list_objs(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        labels: Mapping[str, str] | None = None,
        logger: typedefs.Logger,
) -> bodies.RawList:
    """
    List the objects of specific resource type.

    The cluster-wide call is used if the namespace is not specified.
    Otherwise, the namespace-scoped call is used.

    The items usually come without kinds and API versions, so we fill them
    from the list's own kind and version: the replicas are created from them.
    """
    selector = build_label_selector(labels)
    rsp: bodies.RawList = await api.get(
        url=resource.get_url(
            namespace=namespace,
            params={'labelSelector': selector} if selector else None,
        ),
        logger=logger,
        settings=settings,
    )

    items: list[bodies.RawBody] = []
    kind = rsp.get('kind', f'{resource.kind}List')
    for item in rsp.get('items', []):
        item.setdefault('kind', kind[:-4] if kind[-4:] == 'List' else kind)
        item.setdefault('apiVersion', rsp.get('apiVersion', resource.api_version))
        items.append(item)
    rsp['items'] = items
    return rsp
