import pytest

from terrapin.providers.kubernetes.structures import IdentifierError, build_id, diff_metadata, \
                                                     expand_metadata, expand_role_ref, \
                                                     expand_rules, expand_subjects, \
                                                     flatten_metadata, flatten_role_ref, \
                                                     flatten_rules, flatten_subjects, \
                                                     is_internal_key, parse_id


def test_build_id():
    assert build_id({'namespace': 'ns1', 'name': 'n1'}) == 'ns1/n1'


def test_parse_id():
    assert parse_id('ns1/n1') == ('ns1', 'n1')


@pytest.mark.parametrize('id', ['', 'n1', '/n1', 'ns1/', 'a/b/c'])
def test_parse_malformed_id(id):
    with pytest.raises(IdentifierError, match=r"expected 'namespace/name'"):
        parse_id(id)


def test_expand_metadata_omits_empty_values():
    block = {'name': 'n1', 'namespace': 'ns1', 'generate_name': '', 'labels': {}, 'annotations': {}}
    assert expand_metadata(block) == {'name': 'n1', 'namespace': 'ns1'}


def test_expand_metadata_full():
    block = {'generate_name': 'n-', 'namespace': 'ns1', 'labels': {'a': 'b'}, 'annotations': {'c': 'd'}}
    assert expand_metadata(block) == {
        'generateName': 'n-',
        'namespace': 'ns1',
        'labels': {'a': 'b'},
        'annotations': {'c': 'd'},
    }


def test_flatten_metadata():
    metadata = {
        'name': 'n1',
        'namespace': 'ns1',
        'uid': 'uid1',
        'resourceVersion': '123',
        'generation': 2,
        'selfLink': '/apis/x',
        'labels': {'a': 'b'},
    }
    assert flatten_metadata(metadata) == {
        'annotations': {},
        'generate_name': '',
        'generation': 2,
        'labels': {'a': 'b'},
        'name': 'n1',
        'namespace': 'ns1',
        'resource_version': '123',
        'self_link': '/apis/x',
        'uid': 'uid1',
    }


def test_flatten_metadata_hides_internal_keys_unless_configured():
    metadata = {
        'annotations': {
            'kubectl.kubernetes.io/last-applied-configuration': '{}',
            'kubernetes.io/description': 'x',
            'example.com/team': 'core',
        },
        'labels': {'kubernetes.io/os': 'linux', 'app': 'x'},
    }
    configured = {'labels': {'kubernetes.io/os': 'linux'}}
    flat = flatten_metadata(metadata, configured)
    assert flat['annotations'] == {'example.com/team': 'core'}
    assert flat['labels'] == {'kubernetes.io/os': 'linux', 'app': 'x'}


@pytest.mark.parametrize('key, expected', [
    ('kubernetes.io/os', True),
    ('kubectl.kubernetes.io/last-applied-configuration', True),
    ('example.com/team', False),
    ('kubernetes.io', False),
    ('app', False),
])
def test_internal_keys(key, expected):
    assert is_internal_key(key) is expected


def test_diff_metadata():
    old = {'name': 'n1', 'labels': {'a': 'b'}, 'annotations': {'c': 'd'}}
    new = {'name': 'n2', 'labels': {'a': 'x'}, 'annotations': {'c': 'd'}}
    assert diff_metadata(old, new) == {'labels': {'a': 'x'}}


def test_role_ref_round_trip_defaults():
    assert expand_role_ref({'kind': 'Role', 'name': 'r1'}) == {
        'apiGroup': 'rbac.authorization.k8s.io', 'kind': 'Role', 'name': 'r1',
    }
    assert flatten_role_ref({'apiGroup': 'g', 'kind': 'ClusterRole', 'name': 'r1'}) == {
        'api_group': 'g', 'kind': 'ClusterRole', 'name': 'r1',
    }


def test_expand_subjects_with_kind_specific_defaults():
    blocks = [
        {'kind': 'User', 'name': 'u1'},
        {'kind': 'Group', 'name': 'g1', 'api_group': 'custom.group'},
        {'kind': 'ServiceAccount', 'name': 'sa1'},
        {'kind': 'ServiceAccount', 'name': 'sa2', 'namespace': 'other'},
    ]
    assert expand_subjects(blocks, namespace='ns1') == [
        {'kind': 'User', 'name': 'u1', 'apiGroup': 'rbac.authorization.k8s.io'},
        {'kind': 'Group', 'name': 'g1', 'apiGroup': 'custom.group'},
        {'kind': 'ServiceAccount', 'name': 'sa1', 'namespace': 'ns1'},
        {'kind': 'ServiceAccount', 'name': 'sa2', 'namespace': 'other'},
    ]


def test_flatten_subjects():
    subjects = [{'kind': 'ServiceAccount', 'name': 'sa1', 'namespace': 'ns1'}]
    assert flatten_subjects(subjects) == [
        {'api_group': '', 'kind': 'ServiceAccount', 'name': 'sa1', 'namespace': 'ns1'},
    ]


def test_expand_rules():
    blocks = [
        {'api_groups': [''], 'resources': ['pods'], 'verbs': ['get', 'list']},
        {'api_groups': ['apps'], 'resources': ['deployments'], 'verbs': ['get'],
         'resource_names': ['d1']},
    ]
    assert expand_rules(blocks) == [
        {'apiGroups': [''], 'resources': ['pods'], 'verbs': ['get', 'list']},
        {'apiGroups': ['apps'], 'resources': ['deployments'], 'verbs': ['get'], 'resourceNames': ['d1']},
    ]


def test_flatten_rules():
    rules = [{'apiGroups': [''], 'resources': ['pods'], 'verbs': ['get']}]
    assert flatten_rules(rules) == [
        {'api_groups': [''], 'resource_names': [], 'resources': ['pods'], 'verbs': ['get']},
    ]
