import pytest


@pytest.fixture()
def cluster(store):
    """ A few namespaces: eligible, ineligible, and the source's own one. """
    store.add_namespace('src')
    store.add_namespace('ns1')
    store.add_namespace('ns2')
    store.add_namespace('kube-system')
    store.add_namespace('replicator-system')
    return store


@pytest.fixture()
def make_source(cluster, secrets, markers):
    def make(namespace='src', name='name1', *, finalized=True, deleting=False,
             object_type='replicated', data=None, **kwargs):
        return cluster.add_object(
            secrets.resource, namespace, name,
            labels={markers.object_type: object_type} if object_type else {},
            finalizers=[markers.finalizer] if finalized else [],
            deleting=deleting,
            data=data if data is not None else {'k': 'dg=='},
            **kwargs)
    return make


@pytest.fixture()
def make_replica(cluster, secrets, markers):
    def make(namespace, name='name1', *, source_namespace='src', deleting=False,
             finalized=True, data=None):
        annotations = {markers.source_namespace: source_namespace} if source_namespace else {}
        return cluster.add_object(
            secrets.resource, namespace, name,
            labels={markers.object_type: 'replica'},
            annotations=annotations,
            finalizers=[markers.finalizer] if finalized else [],
            deleting=deleting,
            data=data if data is not None else {'k': 'dg=='})
    return make
