"""
Failures of the reconciliation.

None of them is fatal for the operator: the failed object is re-queued
with the exponentially growing delays and reconciled again, while all
other objects are served as usual.
"""
from collections.abc import Mapping


class ReplicationError(Exception):
    """ A base class for all reconciliation failures (except the API errors). """


class MalformedReplicaError(ReplicationError):
    """ A replica-marked object does not tell the namespace of its source. """


class UnexpectedMarkerError(ReplicationError):
    """ The object believed to be a source is marked unexpectedly. """


class AggregateReplicationError(ReplicationError):
    """
    Some namespaces have failed in a multi-namespace propagation or cleanup.

    The effects in other namespaces are left in place: they are idempotent,
    and will be re-applied with no changes when the whole set is retried.
    """

    def __init__(self, what: str, errors: Mapping[str, BaseException]) -> None:
        self.errors = dict(errors)
        details = '; '.join(f'{namespace}: {exc!r}' for namespace, exc in self.errors.items())
        super().__init__(f"Failed to {what} in {len(self.errors)} namespace(s): {details}")
