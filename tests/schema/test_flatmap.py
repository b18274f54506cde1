import pytest

from terrapin._core.schema.flatmap import SENSITIVE_MASK, flatten, format_scalar
from terrapin._core.schema.schemas import Block, Schema, ValueType

SCHEMA = {
    'metadata': Schema(ValueType.LIST, required=True, elem=Block({
        'name': Schema(ValueType.STRING, required=True),
        'labels': Schema(ValueType.MAP, optional=True),
    })),
    'verbs': Schema(ValueType.SET, optional=True),
    'size': Schema(ValueType.INT, optional=True),
    'enabled': Schema(ValueType.BOOL, optional=True),
    'key': Schema(ValueType.STRING, optional=True, sensitive=True),
}


def test_empty():
    assert flatten(SCHEMA, {}) == {}


def test_id_goes_first():
    flat = flatten(SCHEMA, {'size': 1}, id='id1')
    assert list(flat.items()) == [('id', 'id1'), ('size', '1')]


def test_everything_flattened():
    attributes = {
        'metadata': [{'name': 'n1', 'labels': {'a': 'b', 'c': 'd'}}],
        'verbs': ['get', 'list'],
        'size': 10,
        'enabled': False,
        'key': 'secret',
        'unknown': 'ignored',
    }
    assert flatten(SCHEMA, attributes) == {
        'metadata.#': '1',
        'metadata.0.name': 'n1',
        'metadata.0.labels.%': '2',
        'metadata.0.labels.a': 'b',
        'metadata.0.labels.c': 'd',
        'verbs.#': '2',
        'verbs.0': 'get',
        'verbs.1': 'list',
        'size': '10',
        'enabled': 'false',
        'key': 'secret',
    }


def test_empty_collections_are_counted():
    flat = flatten(SCHEMA, {'metadata': [{'name': 'n1', 'labels': {}}], 'verbs': []})
    assert flat == {'metadata.#': '1', 'metadata.0.name': 'n1', 'metadata.0.labels.%': '0', 'verbs.#': '0'}


def test_sensitive_values_are_masked():
    flat = flatten(SCHEMA, {'key': 'secret', 'size': 1}, mask_sensitive=True)
    assert flat == {'key': SENSITIVE_MASK, 'size': '1'}


@pytest.mark.parametrize('value, expected', [
    (None, ''),
    (True, 'true'),
    (False, 'false'),
    (0, '0'),
    (1.5, '1.5'),
    ('x', 'x'),
])
def test_scalars(value, expected):
    assert format_scalar(value) == expected
