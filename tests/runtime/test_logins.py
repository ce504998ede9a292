import pytest

from replicator._cogs.structs.credentials import ConnectionInfo, LoginError
from replicator._core.intents import logins

KUBECONFIG = '''
current-context: ctx1
contexts:
  - name: ctx1
    context: {cluster: cluster1, user: user1, namespace: ns1}
  - name: ctx2
    context: {cluster: cluster2, user: user2}
clusters:
  - name: cluster1
    cluster: {server: 'https://cluster1:6443', insecure-skip-tls-verify: true}
  - name: cluster2
    cluster: {server: 'https://cluster2:6443'}
users:
  - name: user1
    user: {token: token1}
  - name: user2
    user: {username: user2, password: pass2}
'''


@pytest.fixture()
def kubeconfig(tmp_path, monkeypatch):
    path = tmp_path / 'config'
    path.write_text(KUBECONFIG)
    monkeypatch.setenv('KUBECONFIG', str(path))
    return path


def test_service_account_is_absent(tmp_path):
    assert logins.login_with_service_account(str(tmp_path)) is None


def test_service_account(tmp_path, monkeypatch):
    monkeypatch.setenv('KUBERNETES_SERVICE_HOST', 'api.example.com')
    monkeypatch.setenv('KUBERNETES_SERVICE_PORT', '8443')
    (tmp_path / 'token').write_text('token1\n')
    (tmp_path / 'ca.crt').write_text('-----BEGIN CERTIFICATE-----\n')

    info = logins.login_with_service_account(str(tmp_path))

    assert info == ConnectionInfo(
        server='https://api.example.com:8443',
        ca_path=str(tmp_path / 'ca.crt'),
        token='token1',
    )


def test_kubeconfig_is_absent(monkeypatch, tmp_path):
    monkeypatch.delenv('KUBECONFIG', raising=False)
    monkeypatch.setenv('HOME', str(tmp_path))
    assert logins.login_with_kubeconfig() is None


def test_kubeconfig_current_context(kubeconfig):
    info = logins.login_with_kubeconfig()
    assert info == ConnectionInfo(
        server='https://cluster1:6443',
        insecure=True,
        token='token1',
    )


def test_kubeconfig_first_file_wins(kubeconfig, tmp_path, monkeypatch):
    other = tmp_path / 'other'
    other.write_text('current-context: ctx2\n')
    monkeypatch.setenv('KUBECONFIG', f'{kubeconfig}:{other}')
    info = logins.login_with_kubeconfig()
    assert info is not None
    assert info.server == 'https://cluster1:6443'


def test_kubeconfig_merged_from_many_files(tmp_path, monkeypatch):
    first = tmp_path / 'first'
    first.write_text('current-context: ctx2\n')
    second = tmp_path / 'second'
    second.write_text(KUBECONFIG)
    monkeypatch.setenv('KUBECONFIG', f'{first}:{second}')
    info = logins.login_with_kubeconfig()
    assert info is not None
    assert info.server == 'https://cluster2:6443'
    assert info.username == 'user2'
    assert info.password == 'pass2'


def test_kubeconfig_without_current_context(tmp_path, monkeypatch):
    path = tmp_path / 'config'
    path.write_text('contexts: []\n')
    monkeypatch.setenv('KUBECONFIG', str(path))
    with pytest.raises(LoginError, match=r"Current context is not set"):
        logins.login_with_kubeconfig()


def test_kubeconfig_with_inconsistent_references(tmp_path, monkeypatch):
    path = tmp_path / 'config'
    path.write_text('current-context: absent\n')
    monkeypatch.setenv('KUBECONFIG', str(path))
    with pytest.raises(LoginError, match=r"Inconsistent kubeconfig"):
        logins.login_with_kubeconfig()


def test_login_fails_with_no_methods(mocker):
    mocker.patch.object(logins, 'login_with_service_account', return_value=None)
    mocker.patch.object(logins, 'login_with_kubeconfig', return_value=None)
    with pytest.raises(LoginError):
        logins.login()


def test_login_prefers_the_service_account(mocker):
    info = ConnectionInfo(server='https://in-cluster')
    mocker.patch.object(logins, 'login_with_service_account', return_value=info)
    kubeconfig = mocker.patch.object(logins, 'login_with_kubeconfig')
    assert logins.login() is info
    assert not kubeconfig.called
