import asyncio
import datetime

import aiohttp

from replicator._cogs.clients import api, errors
from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies, references

MAX_MESSAGE_LENGTH = 1024
CUT_MESSAGE_INFIX = '...'


def shorten_message(message: str) -> str:
    """ Cut the message in the middle if it is too long for K8s events. """
    if len(message) <= MAX_MESSAGE_LENGTH:
        return message
    infix = CUT_MESSAGE_INFIX
    prefix = message[:MAX_MESSAGE_LENGTH // 2 - (len(infix) // 2)]
    suffix = message[-MAX_MESSAGE_LENGTH // 2 + (len(infix) - len(infix) // 2):]
    return f'{prefix}{infix}{suffix}'


async def post_event(
        *,
        ref: bodies.ObjectReference,
        type: str,
        reason: str,
        message: str = '',
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> None:
    """
    Issue an event for the object.

    Events are helpful but auxiliary: the failures are logged and ignored,
    so that the reconciliation is never failed because of them.
    """

    # Only the namespaced objects are replicated, so only they get the events.
    namespace_name = ref.get('namespace')
    if not namespace_name:
        logger.debug(f"Skipping an event for a cluster-scoped object: {ref.get('name')!r}.")
        return
    namespace = references.NamespaceName(namespace_name)
    message = shorten_message(message)

    now = datetime.datetime.now(datetime.timezone.utc)
    body = {
        'metadata': {
            'namespace': namespace,
            'generateName': settings.posting.event_name_prefix,
        },

        'action': 'Replicate',
        'type': type,
        'reason': reason,
        'message': message,

        'reportingComponent': settings.posting.reporting_component,
        'reportingInstance': settings.posting.reporting_instance,
        'source': {'component': settings.posting.reporting_component},  # used in the "From" column in `kubectl describe`.

        'involvedObject': ref,

        'firstTimestamp': now.isoformat(),  # seen in `kubectl describe ...`
        'lastTimestamp': now.isoformat(),  # seen in `kubectl get events`
        'eventTime': now.isoformat(),
    }

    try:
        await api.post(
            url=references.EVENTS.get_url(namespace=namespace),
            headers={'Content-Type': 'application/json'},
            payload=body,
            logger=logger,
            settings=settings,
        )

    # Yet we want to notice that something went wrong (in logs).
    except errors.APIError as e:
        logger.warning(f"Failed to post an event. Ignoring and continuing. "
                       f"Code: {e.code}. Message: {e.message}. Details: {e.details}. "
                       f"Event: type={type!r}, reason={reason!r}, message={message!r}.")
    except (aiohttp.ClientConnectionError, aiohttp.ClientResponseError, asyncio.TimeoutError) as e:
        logger.warning(f"Failed to post an event. Ignoring and continuing. "
                       f"Error: {e!r}. "
                       f"Event: type={type!r}, reason={reason!r}, message={message!r}.")
