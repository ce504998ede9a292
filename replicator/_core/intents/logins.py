"""
Minimalistic logins to the K8s API from the environment.

Two sources are supported: the in-cluster service account (when running
in a pod), and the kubeconfig files (when running locally for development).
Authentication capabilities are limited to keep the code short & simple:
no sophisticated multi-step token retrieval (e.g. exec plugins) is performed.
"""
import logging
import os
from typing import Any

import yaml

from replicator._cogs.structs import credentials

logger = logging.getLogger(__name__)

# As per https://kubernetes.io/docs/tasks/run-application/access-api-from-pod/
SERVICE_ACCOUNT_DIR = '/var/run/secrets/kubernetes.io/serviceaccount'


def login() -> credentials.ConnectionInfo:
    """ Login with the first available method, or fail if none are available. """
    info = login_with_service_account() or login_with_kubeconfig()
    if info is None:
        raise credentials.LoginError("Cannot login: neither a service account, nor a kubeconfig.")
    logger.debug(f"Logged in to {info.server}.")
    return info


def login_with_service_account(
        path: str = SERVICE_ACCOUNT_DIR,
) -> credentials.ConnectionInfo | None:
    token_path = os.path.join(path, 'token')
    ca_path = os.path.join(path, 'ca.crt')

    if not os.path.exists(token_path):
        return None

    with open(token_path, encoding='utf-8') as f:
        token = f.read().strip()

    host = os.environ.get('KUBERNETES_SERVICE_HOST', 'kubernetes.default.svc')
    port = os.environ.get('KUBERNETES_SERVICE_PORT', '443')
    return credentials.ConnectionInfo(
        server=f'https://{host}:{port}',
        ca_path=ca_path if os.path.exists(ca_path) else None,
        token=token or None,
    )


def login_with_kubeconfig() -> credentials.ConnectionInfo | None:
    # As per https://kubernetes.io/docs/concepts/configuration/organize-cluster-access-kubeconfig/
    kubeconfig = os.environ.get('KUBECONFIG')
    if not kubeconfig and os.path.exists(os.path.expanduser('~/.kube/config')):
        kubeconfig = '~/.kube/config'
    if not kubeconfig:
        return None

    paths = [path.strip() for path in kubeconfig.split(os.pathsep)]
    paths = [os.path.expanduser(path) for path in paths if path]

    # As prescribed: if the file is absent or non-deserialisable, then fail. The first value wins.
    current_context: str | None = None
    contexts: dict[Any, Any] = {}
    clusters: dict[Any, Any] = {}
    users: dict[Any, Any] = {}
    for path in paths:

        with open(path, encoding='utf-8') as f:
            config = yaml.safe_load(f.read()) or {}

        if current_context is None:
            current_context = config.get('current-context')
        for item in config.get('contexts') or []:
            contexts.setdefault(item['name'], item.get('context') or {})
        for item in config.get('clusters') or []:
            clusters.setdefault(item['name'], item.get('cluster') or {})
        for item in config.get('users') or []:
            users.setdefault(item['name'], item.get('user') or {})

    # Once fully parsed, use the current context only.
    if current_context is None:
        raise credentials.LoginError('Current context is not set in kubeconfigs.')
    try:
        context = contexts[current_context]
        cluster = clusters[context['cluster']]
        user = users.get(context.get('user'), {})
    except KeyError as e:
        raise credentials.LoginError(f"Inconsistent kubeconfig: {e} is not found.") from e

    return credentials.ConnectionInfo(
        server=cluster.get('server'),
        ca_path=cluster.get('certificate-authority'),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=user.get('client-certificate'),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=user.get('client-key'),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token'),
    )
