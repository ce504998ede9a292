"""
All the structures coming from/to the Kubernetes API.

For strict type-checking, they are detailed to the per-field level
as far as it is used by the replicator (i.e. not the whole K8s API).
The kind-specific payloads (e.g. ``data`` of secrets, ``rules`` of roles)
fall into the untyped part and are copied as opaque JSON-like values.

Everything marked "raw" is a plain unwrapped unprocessed data as JSON-decoded
from Kubernetes API, usually as retrieved in watching or fetching API calls.
"""
from collections.abc import Mapping
from typing import Any, Literal, TypedDict, cast

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

# ``None`` is used for the listing, when the pseudo-watch-stream is simulated.
RawInputType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED', 'ERROR']
RawEventType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: dict[str, str]
    annotations: dict[str, str]
    finalizers: list[str]
    resourceVersion: str
    deletionTimestamp: str
    creationTimestamp: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta


class RawList(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: Mapping[str, Any]
    items: list[RawBody]


# A special payload for type==ERROR (this is not a connection or client error).
class RawError(TypedDict, total=False):
    apiVersion: str     # usually: Literal['v1']
    kind: str           # usually: Literal['Status']
    metadata: Mapping[Any, Any]
    code: int
    reason: str
    status: str
    message: str


# As received from the stream before processing the errors and special cases.
class RawInput(TypedDict, total=True):
    type: RawInputType
    object: RawBody | RawError


# As passed to the replicator after processing the errors and special cases.
class RawEvent(TypedDict, total=True):
    type: RawEventType
    object: RawBody


class ObjectReference(TypedDict, total=False):
    apiVersion: str
    kind: str
    namespace: str | None
    name: str
    uid: str


def get_name(body: RawBody) -> str:
    return body.get('metadata', {}).get('name', '')


def get_namespace(body: RawBody) -> str | None:
    return body.get('metadata', {}).get('namespace')


def get_labels(body: RawBody) -> Labels:
    return body.get('metadata', {}).get('labels') or {}


def get_annotations(body: RawBody) -> Annotations:
    return body.get('metadata', {}).get('annotations') or {}


def build_object_reference(
        body: RawBody,
) -> ObjectReference:
    """
    Construct an object reference for the events.

    Keep in mind that some fields can be absent: e.g. ``namespace``
    for cluster resources, or e.g. ``apiVersion`` for ``kind: Node``, etc.
    """
    ref = dict(
        apiVersion=body.get('apiVersion'),
        kind=body.get('kind'),
        name=body.get('metadata', {}).get('name'),
        uid=body.get('metadata', {}).get('uid'),
        namespace=body.get('metadata', {}).get('namespace'),
    )
    return cast(ObjectReference, {key: val for key, val in ref.items() if val})
