"""
The main replicator module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the top-level interface,
# as it is seen by the users. So, we export the individual functions.

from replicator._cogs.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
)
from replicator._cogs.clients.stores import (
    ObjectStore,
    APIStore,
)
from replicator._cogs.configs.configuration import (
    OperatorSettings,
)
from replicator._cogs.configs.loading import (
    ConfigError,
    FileConfig,
    load_config,
)
from replicator._cogs.helpers.typedefs import (
    Logger,
)
from replicator._cogs.helpers.versions import (
    version as __version__,
)
from replicator._cogs.structs.credentials import (
    LoginError,
    ConnectionInfo,
)
from replicator._cogs.structs.markers import (
    Markers,
)
from replicator._cogs.structs.references import (
    ObjectKey,
    Resource,
)
from replicator._core.actions.failures import (
    ReplicationError,
    MalformedReplicaError,
    UnexpectedMarkerError,
    AggregateReplicationError,
)
from replicator._core.actions.loggers import (
    configure,
    LogFormat,
    ObjectLogger,
)
from replicator._core.engines.eligibility import (
    is_eligible,
)
from replicator._core.intents.adapters import (
    KindAdapter,
    UnknownKindError,
    ADAPTERS,
    get_adapters,
)
from replicator._core.intents.logins import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)
from replicator._core.reactor.reconciling import (
    reconcile_object,
)
from replicator._core.reactor.resyncing import (
    reconcile_namespace,
)
from replicator._core.reactor.running import (
    spawn_tasks,
    run_tasks,
    operator,
    run,
)

__all__ = [
    'APIError', 'APIClientError', 'APIServerError',
    'APIUnauthorizedError', 'APIForbiddenError', 'APINotFoundError', 'APIConflictError',
    'ObjectStore', 'APIStore',
    'OperatorSettings',
    'ConfigError', 'FileConfig', 'load_config',
    'Logger',
    'LoginError', 'ConnectionInfo',
    'Markers',
    'ObjectKey', 'Resource',
    'ReplicationError', 'MalformedReplicaError',
    'UnexpectedMarkerError', 'AggregateReplicationError',
    'configure', 'LogFormat', 'ObjectLogger',
    'is_eligible',
    'KindAdapter', 'UnknownKindError', 'ADAPTERS', 'get_adapters',
    'login', 'login_with_kubeconfig', 'login_with_service_account',
    'reconcile_object', 'reconcile_namespace',
    'spawn_tasks', 'run_tasks', 'operator', 'run',
]
