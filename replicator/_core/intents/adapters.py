"""
Kind adapters: the only kind-specific knowledge in the replicator.

The reconciliation engine works with any kind through the adapters only:
it never refers to secrets, config maps, etc. directly. Every adapter knows
how to make an empty object or an empty list of its kind, how to get
the objects from a list, and which payload fields to copy from a source
to a replica. The generic metadata (labels, annotations, finalizers)
is handled by the engine itself, the same way for all kinds.
"""
import copy
import dataclasses
from collections.abc import Collection, Iterable, Mapping

from replicator._cogs.structs import bodies, references


@dataclasses.dataclass(frozen=True)
class KindAdapter:
    resource: references.Resource
    fields: tuple[str, ...]

    @property
    def kind(self) -> str:
        return self.resource.kind

    def empty_object(self) -> bodies.RawBody:
        return {'apiVersion': self.resource.api_version, 'kind': self.resource.kind, 'metadata': {}}

    def empty_object_list(self) -> bodies.RawList:
        return {'apiVersion': self.resource.api_version, 'kind': f'{self.resource.kind}List',
                'metadata': {}, 'items': []}

    def list_to_array(self, objlist: bodies.RawList) -> list[bodies.RawBody]:
        items: list[bodies.RawBody] = []
        for item in objlist.get('items', []):
            item.setdefault('apiVersion', self.resource.api_version)
            item.setdefault('kind', self.resource.kind)
            items.append(item)
        return items

    def replicate(self, source: bodies.RawBody, target: bodies.RawBody) -> None:
        """
        Copy the kind-specific payload from the source to the target.

        The fields absent in the source are removed from the target too,
        so that the replica is an exact copy of the source's payload.
        """
        src: Mapping[str, object] = source
        dst: dict[str, object] = target  # type: ignore[assignment]
        for field in self.fields:
            if field in src:
                dst[field] = copy.deepcopy(src[field])
            else:
                dst.pop(field, None)


SECRETS = KindAdapter(
    resource=references.Resource('', 'v1', 'secrets', 'Secret'),
    fields=('immutable', 'data', 'stringData', 'type'),
)
CONFIGMAPS = KindAdapter(
    resource=references.Resource('', 'v1', 'configmaps', 'ConfigMap'),
    fields=('immutable', 'data', 'binaryData'),
)
NETWORKPOLICIES = KindAdapter(
    resource=references.Resource('networking.k8s.io', 'v1', 'networkpolicies', 'NetworkPolicy'),
    fields=('spec',),
)
ROLES = KindAdapter(
    resource=references.Resource('rbac.authorization.k8s.io', 'v1', 'roles', 'Role'),
    fields=('rules',),
)
ROLEBINDINGS = KindAdapter(
    resource=references.Resource('rbac.authorization.k8s.io', 'v1', 'rolebindings', 'RoleBinding'),
    fields=('roleRef', 'subjects'),
)
SERVICEACCOUNTS = KindAdapter(
    resource=references.Resource('', 'v1', 'serviceaccounts', 'ServiceAccount'),
    fields=('secrets', 'imagePullSecrets', 'automountServiceAccountToken'),
)

ADAPTERS: Mapping[str, KindAdapter] = {
    adapter.kind: adapter
    for adapter in [SECRETS, CONFIGMAPS, NETWORKPOLICIES, ROLES, ROLEBINDINGS, SERVICEACCOUNTS]
}


class UnknownKindError(LookupError):
    """ Raised when a kind is requested, for which there is no adapter. """


def get_adapters(
        kinds: Iterable[str] = (),
        *,
        api_versions: Mapping[str, str] | None = None,
) -> Collection[KindAdapter]:
    """
    Select the adapters by the kind names (case-insensitive); all if none are requested.

    If API versions are specified for some kinds (e.g. in the config file),
    they must match the adapters' versions.
    """
    by_name = {kind.lower(): adapter for kind, adapter in ADAPTERS.items()}
    requested = list(kinds)
    if not requested:
        return list(ADAPTERS.values())

    selected: list[KindAdapter] = []
    for kind in requested:
        try:
            adapter = by_name[kind.lower()]
        except KeyError:
            raise UnknownKindError(f"Unsupported kind: {kind!r}. "
                                   f"Supported kinds: {', '.join(ADAPTERS)}.") from None
        api_version = (api_versions or {}).get(kind)
        if api_version is not None and api_version != adapter.resource.api_version:
            raise UnknownKindError(f"Unsupported API version of {kind!r}: {api_version!r}. "
                                   f"Supported version: {adapter.resource.api_version!r}.")
        if adapter not in selected:
            selected.append(adapter)
    return selected
