"""
Logging of the replicator: per-object loggers and the formatters.

Every reconciliation logs through a per-object logger, which carries
the object's reference. The formatters use the reference to prefix
the messages with ``[namespace/name]`` (in the text formats),
or to put it into a dedicated field (in the JSON format).
"""
import copy
import enum
import logging
from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any, TextIO

from pythonjsonlogger.core import RESERVED_ATTRS
from pythonjsonlogger.json import JsonFormatter

from replicator._cogs.configs import configuration
from replicator._cogs.helpers import typedefs
from replicator._cogs.structs import bodies

logger = logging.getLogger('replicator.objects')

# A key for object references in JSON logs, as seen by the log parsers.
DEFAULT_JSON_REFKEY = 'object'

# Severities as understood by the usual log collectors (e.g. Stackdriver).
SEVERITIES: dict[int, str] = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # not used for formatting, only for detection


def _prefixed(record: logging.LogRecord) -> logging.LogRecord:
    """ Put the object's ``[namespace/name]`` in front of the message, if it is an object's record. """
    ref = getattr(record, 'k8s_ref', None)
    if not ref:
        return record
    namespace, name = ref.get('namespace'), ref.get('name')
    prefix = f"[{namespace}/{name}]" if namespace else f"[{name}]"
    record = copy.copy(record)  # shallow: other handlers must see the original message.
    record.msg = f"{prefix} {record.msg}"
    return record


class ObjectTextFormatter(logging.Formatter):
    def __init__(self, *args: Any, prefixed: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.prefixed = prefixed

    def format(self, record: logging.LogRecord) -> str:
        return super().format(_prefixed(record) if self.prefixed else record)


class ObjectJsonFormatter(JsonFormatter):
    """
    JSON logs with the object reference in a dedicated field (``object`` by default).

    The object-related extras of the records are not serialised as they are:
    the settings are useless in the logs, and the reference goes to the refkey.
    """

    def __init__(
            self,
            *args: Any,
            refkey: str | None = None,
            prefixed: bool = False,
            **kwargs: Any,
    ) -> None:
        reserved_attrs = set(kwargs.pop('reserved_attrs', RESERVED_ATTRS)) | {'k8s_ref', 'settings'}
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, reserved_attrs=reserved_attrs, **kwargs)
        self.refkey: str = refkey or DEFAULT_JSON_REFKEY
        self.prefixed = prefixed

    def format(self, record: logging.LogRecord) -> str:
        return super().format(_prefixed(record) if self.prefixed else record)

    def add_fields(
            self,
            log_record: dict[str, Any],
            record: logging.LogRecord,
            message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        if hasattr(record, 'k8s_ref'):
            log_record[self.refkey] = getattr(record, 'k8s_ref')
        log_record.setdefault('severity', SEVERITIES.get(record.levelno, record.levelname.lower()))


ObjectFormatter = ObjectTextFormatter | ObjectJsonFormatter


class ObjectLogger(typedefs.LoggerAdapter):
    """
    A logger/adapter to carry the object identifiers for formatting.

    Constructed in the reconciliation of each individual object.
    The kind is included, since same-named objects of different kinds
    are reconciled independently and must be distinguishable in the logs.
    """

    def __init__(self, *, body: bodies.RawBody, settings: configuration.OperatorSettings) -> None:
        super().__init__(logger, dict(
            settings=settings,
            k8s_ref=dict(
                apiVersion=body.get('apiVersion'),
                kind=body.get('kind'),
                name=body.get('metadata', {}).get('name'),
                uid=body.get('metadata', {}).get('uid'),
                namespace=body.get('metadata', {}).get('namespace'),
            ),
        ))

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> tuple[str, MutableMapping[str, Any]]:
        # Native logging overwrites the message's extra with the adapter's extra.
        # We merge them, so that both message's & adapter's extras are available.
        kwargs["extra"] = dict(self.extra or {}) | kwargs.get('extra', {})
        return msg, kwargs


# Used to identify and remove our own handlers on re-runs (e.g. in CLI tests).
if TYPE_CHECKING:
    class _ReplicatorStreamHandler(logging.StreamHandler[TextIO]):
        pass
else:
    class _ReplicatorStreamHandler(logging.StreamHandler):
        pass


def configure(
        debug: bool | None = None,
        verbose: bool | None = None,
        quiet: bool | None = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: bool | None = False,
        log_refkey: str | None = None,
) -> None:
    log_level = 'DEBUG' if debug or verbose else 'WARNING' if quiet else 'INFO'
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix, log_refkey=log_refkey)
    handler = _ReplicatorStreamHandler()
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.handlers[:] = [h for h in logger.handlers if not isinstance(h, _ReplicatorStreamHandler)]
    logger.addHandler(handler)
    logger.setLevel(log_level)

    # Prevent the low-level logging unless in the debug mode. Keep only the replicator's messages.
    # For no-propagation loggers, add a dummy null handler to prevent printing the messages.
    for name in ['asyncio', 'aiohttp']:
        logger = logging.getLogger(name)
        logger.propagate = bool(debug)
        if not debug:
            logger.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: bool | None = False,
        log_refkey: str | None = None,
) -> ObjectFormatter:
    log_prefix = log_prefix if log_prefix is not None else bool(log_format is not LogFormat.JSON)
    match log_format:
        case LogFormat.JSON:
            return ObjectJsonFormatter(refkey=log_refkey, prefixed=log_prefix)
        case LogFormat():
            return ObjectTextFormatter(log_format.value, prefixed=log_prefix)
        case _:
            raise ValueError(f"Unsupported log format: {log_format!r}")
