import pytest

from replicator._cogs.structs.bodies import build_object_reference
from replicator._cogs.structs.references import NAMESPACES, ObjectKey, Resource


def test_object_key_formatting():
    assert str(ObjectKey('ns1', 'name1')) == 'ns1/name1'
    assert str(ObjectKey(None, 'name1')) == 'name1'


@pytest.mark.parametrize('group, version, expected', [
    ('', 'v1', 'v1'),
    ('rbac.authorization.k8s.io', 'v1', 'rbac.authorization.k8s.io/v1'),
])
def test_api_version(group, version, expected):
    assert Resource(group, version, 'plural', 'Kind').api_version == expected


def test_url_of_core_namespaced_object():
    resource = Resource('', 'v1', 'secrets', 'Secret')
    url = resource.get_url(namespace='ns1', name='name1')
    assert url == '/api/v1/namespaces/ns1/secrets/name1'


def test_url_of_grouped_cluster_wide_list():
    resource = Resource('networking.k8s.io', 'v1', 'networkpolicies', 'NetworkPolicy')
    url = resource.get_url(params={'labelSelector': 'a=b'})
    assert url == '/apis/networking.k8s.io/v1/networkpolicies?labelSelector=a%3Db'


def test_url_with_server():
    url = NAMESPACES.get_url(server='https://localhost/', name='ns1')
    assert url == 'https://localhost/api/v1/namespaces/ns1'


def test_url_of_cluster_resource_with_namespace_fails():
    with pytest.raises(ValueError):
        NAMESPACES.get_url(namespace='ns1')


def test_url_of_namespaced_object_without_namespace_fails():
    with pytest.raises(ValueError):
        Resource('', 'v1', 'secrets', 'Secret').get_url(name='name1')


def test_object_reference_skips_absent_fields():
    ref = build_object_reference({'apiVersion': 'v1', 'kind': 'Namespace',
                                  'metadata': {'name': 'ns1', 'uid': 'uid1'}})
    assert ref == {'apiVersion': 'v1', 'kind': 'Namespace', 'name': 'ns1', 'uid': 'uid1'}
