import logging

from replicator._cogs.configs.configuration import OperatorSettings
from replicator._cogs.structs.markers import DEFAULT_PREFIX


def test_defaults(monkeypatch):
    monkeypatch.delenv('OPERATOR_NAMESPACE', raising=False)
    settings = OperatorSettings()
    assert settings.queueing.worker_limit == 100
    assert settings.queueing.requeue_base_delay == 0.005
    assert settings.queueing.requeue_max_delay == 1000.0
    assert tuple(settings.retrying.conflict_backoffs) == (0.1, 0.2)
    assert settings.posting.enabled
    assert settings.posting.level == logging.INFO
    assert settings.replication.prefix == DEFAULT_PREFIX
    assert settings.replication.system_prefix == 'kube-'
    assert settings.replication.operator_namespace is None


def test_operator_namespace_from_env(monkeypatch):
    monkeypatch.setenv('OPERATOR_NAMESPACE', 'replicator-system')
    settings = OperatorSettings()
    assert settings.replication.operator_namespace == 'replicator-system'


def test_markers_follow_the_prefix():
    settings = OperatorSettings()
    settings.replication.prefix = 'example.com'
    assert settings.replication.markers.finalizer == 'example.com/finalizer'


def test_settings_are_not_shared():
    settings1 = OperatorSettings()
    settings2 = OperatorSettings()
    settings1.queueing.worker_limit = 1
    assert settings2.queueing.worker_limit == 100
