import asyncio
import copy
import dataclasses
import itertools
import json
import logging
import re
from collections.abc import Mapping
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from replicator._cogs.clients import auth, errors
from replicator._cogs.configs.configuration import OperatorSettings
from replicator._cogs.structs import bodies
from replicator._cogs.structs.credentials import ConnectionInfo
from replicator._cogs.structs.references import NAMESPACES, Resource
from replicator._core.engines import posting
from replicator._core.intents.adapters import CONFIGMAPS, SECRETS


@pytest.fixture()
def settings():
    settings = OperatorSettings()
    settings.replication.operator_namespace = 'replicator-system'
    settings.retrying.conflict_backoffs = (0, 0)
    settings.networking.error_backoffs = (0, 0)
    return settings


@pytest.fixture()
def markers(settings):
    return settings.replication.markers


@pytest.fixture()
def logger():
    return logging.getLogger('replicator.tests')


@pytest.fixture(autouse=True)
def event_queue(settings):
    """
    The same k8s-event queue & settings as the operator sets for the reconciliations.

    The reconciliations post the k8s-events with no explicit args via contextvars.
    """
    queue: posting.K8sEventQueue = asyncio.Queue()
    settings_token = posting.settings_var.set(settings)
    queue_token = posting.event_queue_var.set(queue)
    try:
        yield queue
    finally:
        posting.event_queue_var.reset(queue_token)
        posting.settings_var.reset(settings_token)


@pytest.fixture()
def secrets():
    return SECRETS


@pytest.fixture()
def configmaps():
    return CONFIGMAPS


@pytest.fixture()
def resource():
    """ The resource used in the API tests. Usually mocked, so it does not matter. """
    return Resource('replicator.dev', 'v1', 'examples', 'Example')


#
# An in-memory object store: it mimics the K8s API semantics that matter
# for the reconciliations (resource versions, finalizers, conflicts),
# and records every write for the assertions.
#


@dataclasses.dataclass(frozen=True)
class Write:
    verb: str
    kind: str
    namespace: str | None
    name: str


class FakeStore:

    def __init__(self) -> None:
        super().__init__()
        self.objects: dict[tuple[str, str | None, str], bodies.RawBody] = {}
        self.writes: list[Write] = []
        self.failures: dict[tuple[str, str | None], BaseException] = {}
        self._versions = itertools.count(1)
        self._kinds: dict[str, Resource] = {}

    def _key(self, resource: Resource, namespace: str | None, name: str) -> tuple[str, str | None, str]:
        self._kinds[resource.plural] = resource
        return (resource.plural, namespace if resource.namespaced else None, name)

    def _fail(self, verb: str, namespace: str | None) -> None:
        error = self.failures.get((verb, namespace))
        if error is not None:
            raise error

    def put(self, resource: Resource, body: bodies.RawBody) -> bodies.RawBody:
        """ Store an object as is, without counting it as a write. """
        body = copy.deepcopy(body)
        body.setdefault('apiVersion', resource.api_version)
        body.setdefault('kind', resource.kind)
        body.setdefault('metadata', {})['resourceVersion'] = str(next(self._versions))
        key = self._key(resource, bodies.get_namespace(body), bodies.get_name(body))
        self.objects[key] = body
        return copy.deepcopy(body)

    def get(self, resource: Resource, namespace: str | None, name: str) -> bodies.RawBody | None:
        """ Peek into the store, as an observer from outside. """
        return self.objects.get(self._key(resource, namespace, name))

    def add_namespace(self, name: str, *, labels: Mapping[str, str] | None = None,
                      deleting: bool = False) -> bodies.RawBody:
        metadata: dict[str, object] = {'name': name, 'labels': dict(labels or {})}
        if deleting:
            metadata['deletionTimestamp'] = '2020-12-31T23:59:59Z'
            metadata['finalizers'] = ['kubernetes']
        return self.put(NAMESPACES, {'metadata': metadata})

    def add_object(self, resource: Resource, namespace: str, name: str, *,
                   labels: Mapping[str, str] | None = None,
                   annotations: Mapping[str, str] | None = None,
                   finalizers: list[str] | None = None,
                   deleting: bool = False,
                   **fields: object) -> bodies.RawBody:
        metadata: dict[str, object] = {'namespace': namespace, 'name': name}
        if labels is not None:
            metadata['labels'] = dict(labels)
        if annotations is not None:
            metadata['annotations'] = dict(annotations)
        if finalizers:
            metadata['finalizers'] = list(finalizers)
        if deleting:
            metadata['deletionTimestamp'] = '2020-12-31T23:59:59Z'
        return self.put(resource, {'metadata': metadata, **fields})

    def writes_of(self, verb: str | None = None) -> list[Write]:
        return [write for write in self.writes if verb is None or write.verb == verb]

    async def read(self, resource, *, namespace, name):
        body = self.objects.get(self._key(resource, namespace, name))
        return copy.deepcopy(body) if body is not None else None

    async def list(self, resource, *, namespace=None, labels=None):
        items = []
        for (plural, obj_namespace, _), body in sorted(self.objects.items(), key=lambda kv: str(kv[0])):
            if plural != resource.plural:
                continue
            if namespace is not None and obj_namespace != namespace:
                continue
            obj_labels = bodies.get_labels(body)
            if any(obj_labels.get(key) != val for key, val in (labels or {}).items()):
                continue
            item = copy.deepcopy(body)
            item.pop('apiVersion', None)
            item.pop('kind', None)
            items.append(item)
        return {'apiVersion': resource.api_version, 'kind': f'{resource.kind}List',
                'metadata': {'resourceVersion': str(next(self._versions))}, 'items': items}

    async def create(self, resource, body):
        namespace, name = bodies.get_namespace(body), bodies.get_name(body)
        self._fail('create', namespace)
        key = self._key(resource, namespace, name)
        if key in self.objects:
            raise errors.APIConflictError(None, status=409)
        self.writes.append(Write('create', resource.kind, namespace, name))
        return self.put(resource, body)

    async def update(self, resource, body):
        namespace, name = bodies.get_namespace(body), bodies.get_name(body)
        self._fail('update', namespace)
        key = self._key(resource, namespace, name)
        stored = self.objects.get(key)
        if stored is None:
            raise errors.APINotFoundError(None, status=404)
        if body.get('metadata', {}).get('resourceVersion') != stored['metadata']['resourceVersion']:
            raise errors.APIConflictError(None, status=409)
        self.writes.append(Write('update', resource.kind, namespace, name))

        # The deletion is finished once the last finalizer is removed.
        if stored['metadata'].get('deletionTimestamp') and not body['metadata'].get('finalizers'):
            del self.objects[key]
            return copy.deepcopy(body)

        # The deletion timestamp cannot be changed by the clients, only by the server.
        body = copy.deepcopy(body)
        if stored['metadata'].get('deletionTimestamp'):
            body['metadata']['deletionTimestamp'] = stored['metadata']['deletionTimestamp']
        return self.put(resource, body)

    async def delete(self, resource, *, namespace, name):
        self._fail('delete', namespace)
        key = self._key(resource, namespace, name)
        stored = self.objects.get(key)
        if stored is None:
            return False
        self.writes.append(Write('delete', resource.kind, namespace, name))
        if stored['metadata'].get('finalizers'):
            stored['metadata'].setdefault('deletionTimestamp', '2020-12-31T23:59:59Z')
            stored['metadata']['resourceVersion'] = str(next(self._versions))
        else:
            del self.objects[key]
        return True


@pytest.fixture()
def store():
    return FakeStore()


#
# Mocks for the K8s API client. No external calls must be made under any circumstances.
#


@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
async def enforced_context(mocker, hostname):
    """
    Force the authenticating decorators to use one specific session for the test.

    The context is injected from the context variable at the call time,
    so it is enough to replace the variable for the duration of the test.
    """
    context = auth.APIContext(ConnectionInfo(server=f'https://{hostname}'))
    mocker.patch.object(auth, 'context_var', Mock(get=Mock(return_value=context)))
    try:
        yield context
    finally:
        await context.close()


@pytest.fixture()
def resp_mocker(enforced_context, aresponses):
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The value of the fixture is a function, which returns a coroutine mock.
    That coroutine mock should be passed to `aresponses.add` as a response
    callback function. When called, it calls the mock defined by the function's
    arguments (specifically, return_value or side_effects).

    Sample usage::

        def test_me(resp_mocker):
            response = aiohttp.web.json_response({'a': 'b'})
            callback = resp_mocker(return_value=response)
            aresponses.add(hostname, '/path/', 'get', callback)
            do_something()
            assert callback.called
            assert callback.call_count == 1
    """
    def resp_maker(*args, **kwargs):
        actual_response = MagicMock(*args, **kwargs)
        async def resp_mock_effect(request):

            # The request's content can be read inside of the handler only. We preserve
            # the data into a conventional field, so that they could be asserted later.
            try:
                request.data = await request.json()
            except json.JSONDecodeError:
                request.data = await request.text()

            # Get a response/error as it was intended (via return_value/side_effect).
            return actual_response()

        return AsyncMock(side_effect=resp_mock_effect)
    return resp_maker


#
# Helpers for the logging checks.
#


@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    caplog.set_level(logging.DEBUG)

    def assert_logs_fn(patterns=(), prohibited=()):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            if remaining_patterns and re.search(remaining_patterns[0], message):
                remaining_patterns[:1] = []
            for pattern in prohibited:
                if re.search(pattern, message):
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")
    return assert_logs_fn
