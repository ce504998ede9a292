"""
K8s API errors, as seen by the replicator.

Only the API-level failures (HTTP statuses 4xx/5xx) are converted here.
The networking and TLS failures are escalated from ``aiohttp`` as they are.

Two statuses matter for the reconciliations: "not found" means the desired
state of a deletion is already reached, and "conflict" means the object has
changed since it was read, so the read-mutate-write cycle must be repeated.
The other ones are only distinguished for the retries and for the logs.
"""
import collections.abc
import json
from collections.abc import Mapping
from typing import Any, Literal, TypedDict

import aiohttp


class RawStatusDetails(TypedDict, total=False):
    name: str
    kind: str
    retryAfterSeconds: int


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.19/#status-v1-meta
class RawStatus(TypedDict, total=False):
    apiVersion: str
    kind: Literal["Status"]
    code: int
    status: Literal["Success", "Failure"]
    reason: str
    message: str
    details: RawStatusDetails


class APIError(Exception):
    """ A K8s API failure, with the ``Status`` object if the API has sent one. """

    def __init__(self, payload: RawStatus | None, *, status: int) -> None:
        self.payload: RawStatus = payload or {}
        self.status = status
        super().__init__(self.payload.get('message'), payload)

    @property
    def code(self) -> int | None:
        return self.payload.get('code')

    @property
    def reason(self) -> str | None:
        return self.payload.get('reason')

    @property
    def message(self) -> str | None:
        return self.payload.get('message')

    @property
    def details(self) -> RawStatusDetails | None:
        return self.payload.get('details')


class APIClientError(APIError):
    pass


class APIServerError(APIError):
    pass


class APIUnauthorizedError(APIClientError):
    pass


class APIForbiddenError(APIClientError):
    pass


class APINotFoundError(APIClientError):
    pass


class APIConflictError(APIClientError):
    pass


ERRORS_BY_STATUS: Mapping[int, type[APIError]] = {
    401: APIUnauthorizedError,
    403: APIForbiddenError,
    404: APINotFoundError,
    409: APIConflictError,
}


async def check_response(response: aiohttp.ClientResponse) -> None:
    """ Raise one of the API errors if the response is a failure; do nothing otherwise. """
    if response.status < 400:
        return

    # The body must be read before raise_for_status(), which releases the connection.
    payload: Any
    try:
        payload = await response.json()
    except (json.JSONDecodeError, aiohttp.ContentTypeError, aiohttp.ClientConnectionError):
        payload = None

    # Never keep arbitrary bodies in the errors (and in the logs): only the K8s statuses.
    if not isinstance(payload, collections.abc.Mapping) or payload.get('kind') != 'Status':
        payload = None

    default_cls = APIClientError if response.status < 500 else APIServerError
    cls = ERRORS_BY_STATUS.get(response.status, default_cls)
    try:
        response.raise_for_status()
    except aiohttp.ClientResponseError as e:
        raise cls(payload, status=response.status) from e
