import dataclasses
import urllib.parse
from collections.abc import Mapping
from typing import NamedTuple, NewType

# An isolated type to distinguish namespace names from other strings (e.g. object names).
NamespaceName = NewType('NamespaceName', str)

# Some functions work cluster-wide when the namespace is not specified.
Namespace = NamespaceName | None


class ObjectKey(NamedTuple):
    """
    An identity of one object of some kind, as put into the work queues.

    For cluster-scoped objects (namespaces), the namespace is ``None``.
    """
    namespace: Namespace
    name: str

    def __str__(self) -> str:
        return f'{self.namespace}/{self.name}' if self.namespace else self.name


@dataclasses.dataclass(frozen=True)
class Resource:
    """
    A reference to a very specific built-in resource kind.

    It is used to form the K8s API URLs. Generally, K8s API only needs
    an API group, an API version, and a plural name of the resource.
    The kind is remembered for the bodies created from scratch and for logging.
    """

    group: str
    """
    The resource's API group; e.g. ``"rbac.authorization.k8s.io"``.
    For Core v1 API resources, an empty string: ``""``.
    """

    version: str
    """
    The resource's API version; e.g. ``"v1"``.
    """

    plural: str
    """
    The resource's plural name; e.g. ``"secrets"``, ``"networkpolicies"``.
    """

    kind: str
    """
    The resource's kind (as in YAML files); e.g. ``"Secret"``, ``"Role"``.
    """

    namespaced: bool = True
    """
    Whether the resource is namespaced (``True``) or cluster-scoped (``False``).
    """

    def __repr__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    @property
    def api_version(self) -> str:
        return f'{self.group}/{self.version}' if self.group else self.version

    def get_url(
            self,
            *,
            server: str | None = None,
            namespace: Namespace = None,
            name: str | None = None,
            params: Mapping[str, str] | None = None,
    ) -> str:
        """
        Build a URL to be used with K8s API.

        If the namespace is not set, a cluster-wide URL is returned.
        For cluster-scoped resources, the namespace is ignored.

        If the name is not set, the URL for the resource list is returned.
        Otherwise (if set), the URL for the individual resource is returned.

        Params go to the query parameters (``?param1=value1&param2=value2...``).
        """
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        parts: list[str | None] = [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            namespace if self.namespaced and namespace is not None else None,
            self.plural,
            name,
        ]

        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


# Some predefined API endpoints that we use in the replicator itself.
NAMESPACES = Resource('', 'v1', 'namespaces', 'Namespace', namespaced=False)
EVENTS = Resource('', 'v1', 'events', 'Event')
