"""
All the functions to manipulate the object finalization and deletion.

The replicator puts its own finalizer on every source and every replica
it is responsible for. While the finalizer is there, K8s only marks
the object as being deleted (``deletionTimestamp``), but keeps it in place,
so that the replicator sees the deletion and cleans up after the object.

The functions only mutate the in-memory bodies. Storing them is done
by the finalizer manager (see :mod:`replicator._core.engines.finalizing`).
"""
from replicator._cogs.structs import bodies


def is_deletion_ongoing(body: bodies.RawBody) -> bool:
    return body.get('metadata', {}).get('deletionTimestamp') is not None


def is_deletion_blocked(body: bodies.RawBody, finalizer: str) -> bool:
    return finalizer in (body.get('metadata', {}).get('finalizers') or [])


def block_deletion(body: bodies.RawBody, finalizer: str) -> None:
    """ Add the finalizer unless it is there, or unless K8s forbids it already. """
    if is_deletion_ongoing(body):
        return  # K8s rejects new finalizers on the objects being deleted.
    if not is_deletion_blocked(body, finalizer):
        body.setdefault('metadata', {}).setdefault('finalizers', []).append(finalizer)


def allow_deletion(body: bodies.RawBody, finalizer: str) -> None:
    meta = body.get('metadata', {})
    remaining = [value for value in meta.get('finalizers') or [] if value != finalizer]
    if remaining:
        meta['finalizers'] = remaining
    else:
        meta.pop('finalizers', None)
