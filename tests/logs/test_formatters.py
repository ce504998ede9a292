import io
import json
import logging

import pytest

from replicator._core.actions.loggers import LogFormat, ObjectJsonFormatter, ObjectLogger, \
                                             ObjectTextFormatter, configure, make_formatter

BODY = {'apiVersion': 'v1', 'kind': 'Secret',
        'metadata': {'namespace': 'ns1', 'name': 'name1', 'uid': 'uid1'}}


@pytest.fixture()
def logstream(settings):
    """ Intercept the formatted output of the per-object logger. """
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    objlogger = ObjectLogger(body=BODY, settings=settings)
    objlogger.logger.addHandler(handler)
    old_level = objlogger.logger.level
    objlogger.logger.setLevel(logging.DEBUG)
    try:
        yield stream, handler, objlogger
    finally:
        objlogger.logger.removeHandler(handler)
        objlogger.logger.setLevel(old_level)


def test_prefixing_text(logstream):
    stream, handler, objlogger = logstream
    handler.setFormatter(ObjectTextFormatter('%(message)s', prefixed=True))
    objlogger.info("hello %s", "world")
    assert stream.getvalue() == "[ns1/name1] hello world\n"


def test_plain_text(logstream):
    stream, handler, objlogger = logstream
    handler.setFormatter(ObjectTextFormatter('%(message)s'))
    objlogger.info("hello")
    assert stream.getvalue() == "hello\n"


def test_json_with_reference(logstream):
    stream, handler, objlogger = logstream
    handler.setFormatter(ObjectJsonFormatter())
    objlogger.warning("hello")
    record = json.loads(stream.getvalue())
    assert record['message'] == 'hello'
    assert record['severity'] == 'warn'
    assert record['object'] == {'apiVersion': 'v1', 'kind': 'Secret', 'name': 'name1',
                                'uid': 'uid1', 'namespace': 'ns1'}
    assert 'settings' not in record
    assert 'k8s_ref' not in record


def test_json_with_custom_refkey(logstream):
    stream, handler, objlogger = logstream
    handler.setFormatter(ObjectJsonFormatter(refkey='k8s'))
    objlogger.error("hello")
    record = json.loads(stream.getvalue())
    assert record['severity'] == 'error'
    assert record['k8s']['name'] == 'name1'


def test_extras_are_merged(logstream):
    stream, handler, objlogger = logstream
    handler.setFormatter(ObjectJsonFormatter())
    objlogger.info("hello", extra={'custom': 'value'})
    record = json.loads(stream.getvalue())
    assert record['custom'] == 'value'
    assert record['object']['name'] == 'name1'


def test_json_with_prefix(logstream):
    stream, handler, objlogger = logstream
    handler.setFormatter(ObjectJsonFormatter(prefixed=True))
    objlogger.info("hello")
    record = json.loads(stream.getvalue())
    assert record['message'] == '[ns1/name1] hello'
    assert record['object']['name'] == 'name1'


def test_prefix_does_not_leak_to_other_handlers(logstream):
    stream, handler, objlogger = logstream
    handler.setFormatter(ObjectTextFormatter('%(message)s', prefixed=True))
    other_stream = io.StringIO()
    other_handler = logging.StreamHandler(other_stream)
    other_handler.setFormatter(logging.Formatter('%(message)s'))
    objlogger.logger.addHandler(other_handler)
    try:
        objlogger.info("hello")
    finally:
        objlogger.logger.removeHandler(other_handler)
    assert stream.getvalue() == "[ns1/name1] hello\n"
    assert other_stream.getvalue() == "hello\n"


@pytest.mark.parametrize('log_format, log_prefix, expected_cls, expected_prefixed', [
    (LogFormat.FULL, None, ObjectTextFormatter, True),
    (LogFormat.PLAIN, False, ObjectTextFormatter, False),
    (LogFormat.JSON, None, ObjectJsonFormatter, False),
    (LogFormat.JSON, True, ObjectJsonFormatter, True),
])
def test_formatter_selection(log_format, log_prefix, expected_cls, expected_prefixed):
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix)
    assert type(formatter) is expected_cls
    assert formatter.prefixed == expected_prefixed


@pytest.mark.parametrize('flags, level', [
    (dict(), logging.INFO),
    (dict(verbose=True), logging.DEBUG),
    (dict(debug=True), logging.DEBUG),
    (dict(quiet=True), logging.WARNING),
])
def test_configuring_levels(flags, level):
    root = logging.getLogger()
    handlers, old_level = list(root.handlers), root.level
    noisy = {name: (logging.getLogger(name).propagate, list(logging.getLogger(name).handlers))
             for name in ['asyncio', 'aiohttp']}
    try:
        configure(**flags)
        assert root.level == level
    finally:
        root.handlers[:] = handlers
        root.setLevel(old_level)
        for name, (propagate, noisy_handlers) in noisy.items():
            logging.getLogger(name).propagate = propagate
            logging.getLogger(name).handlers[:] = noisy_handlers
