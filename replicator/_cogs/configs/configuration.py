"""
All configuration flags, options, settings to fine-tune the replicator.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults). The settings
are filled from the CLI options, the environment, and the config file
(see :mod:`replicator.cli` and :mod:`replicator._cogs.configs.loading`).
"""
import dataclasses
import logging
import os
import socket
from collections.abc import Iterable

from replicator._cogs.structs import markers


@dataclasses.dataclass
class ProcessSettings:
    """
    Settings for the replicator's OS process: e.g. when started via CLI.
    """

    ultimate_exiting_timeout: float | None = 10 * 60
    """
    How long to wait for the graceful exit before SIGKILL'ing the operator.

    The countdown goes from when a graceful signal arrives (SIGTERM/SIGINT),
    regardless of what is happening in the graceful exiting routine.

    Measured in seconds. Set to `None` to disable (on your own risk).
    """


@dataclasses.dataclass
class PostingSettings:

    enabled: bool = True
    """
    Should the replicas' creations/updates/deletions be posted as K8s Events
    on their source objects. The events can be seen in ``kubectl describe``.
    """

    level: int = logging.INFO
    """
    A minimal level of events that will be posted as K8s Events.
    The default is ``logging.INFO`` (i.e. all info, warning, errors are posted).
    """

    reporting_component: str = 'replicator'
    """
    A name of the component to be shown in the events' "From" column.
    """

    reporting_instance: str = dataclasses.field(default_factory=socket.gethostname)
    """
    An identifier of the running instance (usually the pod name).
    """

    event_name_prefix: str = 'replicator-event-'
    """
    A prefix for the generated names of the events.
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: float | None = None
    """
    The maximum duration of one streaming request. Patched in some tests.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    client_timeout: float | None = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: float | None = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the regular (non-streaming) API requests.
    """

    connect_timeout: float | None = None
    """
    A timeout for establishing the connections to the API (both regular & streaming).
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13)
    """
    Backoff intervals for the retries of the API requests on the connection
    errors and on the server-side 5xx errors. Once exhausted, the error
    is escalated to the caller (e.g. to the reconciliation, which is re-queued).
    """


@dataclasses.dataclass
class QueueingSettings:
    """
    Settings for the work queues and the workers of the reconciliations.
    """

    worker_limit: int = 100
    """
    How many reconciliations of one kind can run simultaneously.
    The same object is never reconciled by two workers at the same time.
    """

    requeue_base_delay: float = 0.005
    """
    The first delay before a failed reconciliation is retried (in seconds).
    Every next consecutive failure of the same object doubles the delay.
    """

    requeue_max_delay: float = 1000.0
    """
    The ceiling of the exponentially growing delays of the re-queued objects.
    """

    exit_timeout: float | None = 30.0
    """
    How long the in-flight reconciliations are awaited on the operator's exit
    before they are cancelled. ``None`` means waiting for as long as needed.
    """


@dataclasses.dataclass
class RetryingSettings:
    """
    Settings for the optimistic-concurrency retries of read-mutate-write cycles.
    """

    conflict_backoffs: Iterable[float] = (0.1, 0.2)
    """
    Delays between the attempts when a write conflicts with a concurrent change
    (i.e. the object's resource version has changed since it was read).
    The number of attempts is one more than the number of delays.
    Once exhausted, the conflict is escalated to the caller.
    """


@dataclasses.dataclass
class ReplicationSettings:

    prefix: str = markers.DEFAULT_PREFIX
    """
    The common prefix of all labels/annotations/finalizers of the replicator.
    """

    operator_namespace: str | None = dataclasses.field(
        default_factory=lambda: os.environ.get('OPERATOR_NAMESPACE') or None)
    """
    The namespace of the replicator's own deployment. It receives no replicas
    unless it is explicitly labelled as managed.
    """

    system_prefix: str = 'kube-'
    """
    The namespaces with this name prefix receive no replicas
    unless they are explicitly labelled as managed.
    """

    @property
    def markers(self) -> markers.Markers:
        return markers.Markers(prefix=self.prefix)


@dataclasses.dataclass
class OperatorSettings:
    process: ProcessSettings = dataclasses.field(default_factory=ProcessSettings)
    posting: PostingSettings = dataclasses.field(default_factory=PostingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    queueing: QueueingSettings = dataclasses.field(default_factory=QueueingSettings)
    retrying: RetryingSettings = dataclasses.field(default_factory=RetryingSettings)
    replication: ReplicationSettings = dataclasses.field(default_factory=ReplicationSettings)
