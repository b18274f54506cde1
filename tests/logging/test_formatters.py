import json
import logging.handlers

import pytest

from terrapin._core.engines.loggers import ObjectJsonFormatter, ObjectLogger, \
                                           ObjectPrefixingJsonFormatter, \
                                           ObjectPrefixingTextFormatter, ObjectTextFormatter


@pytest.fixture()
def record():
    handler = logging.handlers.BufferingHandler(capacity=100)
    logger = ObjectLogger(type='kubernetes_role', name='reader', id='ns1/name1')
    logger.logger.addHandler(handler)
    try:
        logger.info("hello")
    finally:
        logger.logger.removeHandler(handler)
    return handler.buffer[0]


@pytest.fixture()
def plain_record():
    return logging.LogRecord('some.logger', logging.INFO, __file__, 1, "hello", (), None)


def test_prefixing_text_formatter_adds_prefixes(record):
    formatter = ObjectPrefixingTextFormatter()
    formatted = formatter.format(record)
    assert formatted == '[kubernetes_role.reader] hello'


def test_prefixing_text_formatter_ignores_non_object_records(plain_record):
    formatter = ObjectPrefixingTextFormatter()
    formatted = formatter.format(plain_record)
    assert formatted == 'hello'


def test_prefixing_json_formatter_adds_prefixes(record):
    formatter = ObjectPrefixingJsonFormatter()
    formatted = formatter.format(record)
    decoded = json.loads(formatted)
    assert decoded['message'] == '[kubernetes_role.reader] hello'


def test_regular_text_formatter_omits_prefixes(record):
    formatter = ObjectTextFormatter()
    formatted = formatter.format(record)
    assert formatted == 'hello'


def test_regular_json_formatter_omits_prefixes(record):
    formatter = ObjectJsonFormatter()
    formatted = formatter.format(record)
    decoded = json.loads(formatted)
    assert decoded['message'] == 'hello'


@pytest.mark.parametrize('cls', [ObjectJsonFormatter, ObjectPrefixingJsonFormatter])
@pytest.mark.parametrize('levelno, expected_severity', [
    (0,  'debug'),
    (logging.DEBUG, 'debug'),
    (logging.DEBUG + 1, 'info'),
    (logging.INFO, 'info'),
    (logging.INFO + 1, 'warn'),
    (logging.WARNING, 'warn'),
    (logging.WARNING + 1, 'error'),
    (logging.ERROR, 'error'),
    (logging.ERROR + 1, 'fatal'),
    (logging.FATAL, 'fatal'),
    (999, 'fatal'),
])
def test_json_formatters_add_severity(record, cls, levelno, expected_severity):
    record.levelno = levelno
    record.levelname = 'must-be-irrelevant'
    formatter = cls()
    formatted = formatter.format(record)
    decoded = json.loads(formatted)
    assert decoded['severity'] == expected_severity


@pytest.mark.parametrize('cls', [ObjectJsonFormatter, ObjectPrefixingJsonFormatter])
def test_json_formatters_add_refkey_with_default_key(record, cls):
    formatter = cls()
    formatted = formatter.format(record)
    decoded = json.loads(formatted)
    assert decoded['resource'] == {'type': 'kubernetes_role', 'name': 'reader', 'id': 'ns1/name1'}
    assert 'resource_ref' not in decoded


@pytest.mark.parametrize('cls', [ObjectJsonFormatter, ObjectPrefixingJsonFormatter])
def test_json_formatters_add_refkey_with_custom_key(record, cls):
    formatter = cls(refkey='tf-obj')
    formatted = formatter.format(record)
    decoded = json.loads(formatted)
    assert decoded['tf-obj'] == {'type': 'kubernetes_role', 'name': 'reader', 'id': 'ns1/name1'}
