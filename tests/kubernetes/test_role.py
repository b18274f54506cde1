import pytest

from terrapin._core.schema.data import ResourceData
from terrapin._core.schema.schemas import ConfigurationError, validate
from terrapin.providers.kubernetes.role import SCHEMA, role

COLLECTION = '/apis/rbac.authorization.k8s.io/v1/namespaces/ns1/roles'
OBJECT = f'{COLLECTION}/r1'

CONFIG = {
    'metadata': {'name': 'r1', 'namespace': 'ns1', 'labels': {'team': 'core'}},
    'rule': [{'api_groups': [''], 'resources': ['pods'], 'verbs': ['get', 'list']}],
}

REMOTE = {
    'metadata': {'name': 'r1', 'namespace': 'ns1', 'uid': 'uid1', 'resourceVersion': '7',
                 'labels': {'team': 'core'}},
    'rules': [{'apiGroups': [''], 'resources': ['pods'], 'verbs': ['get', 'list']}],
}


def make_data(config=None, state=None, id=None):
    config = None if config is None else validate(SCHEMA, config)
    return ResourceData(SCHEMA, config=config, state=state, id=id)


async def created_state(fake_api, k8s_client, logger):
    fake_api.add('post', COLLECTION, status=201, json=REMOTE)
    fake_api.add('get', OBJECT, json=REMOTE)
    data = make_data(CONFIG)
    await role.create(data=data, meta=k8s_client, logger=logger)
    return data.collect_state()


def test_rules_are_required():
    with pytest.raises(ConfigurationError) as e:
        validate(SCHEMA, {'metadata': {'name': 'r1'}, 'rule': []})
    assert e.value.problems == ["rule: at least 1 item(s) expected, got 0"]


async def test_create(fake_api, k8s_client, logger):
    state = await created_state(fake_api, k8s_client, logger)

    posted = fake_api.find('post', COLLECTION)
    assert posted[0].data == {
        'apiVersion': 'rbac.authorization.k8s.io/v1',
        'kind': 'Role',
        'metadata': {'name': 'r1', 'namespace': 'ns1', 'labels': {'team': 'core'}},
        'rules': [{'apiGroups': [''], 'resources': ['pods'], 'verbs': ['get', 'list']}],
    }
    assert state['rule'] == [{'api_groups': [''], 'resource_names': [], 'resources': ['pods'],
                              'verbs': ['get', 'list']}]
    assert state['metadata'][0]['uid'] == 'uid1'
    assert state['metadata'][0]['labels'] == {'team': 'core'}


async def test_update_of_rules(fake_api, k8s_client, logger):
    state = await created_state(fake_api, k8s_client, logger)
    fake_api.add('patch', OBJECT, json=REMOTE)
    config = dict(CONFIG, rule=[{'api_groups': ['apps'], 'resources': ['deployments'], 'verbs': ['get'],
                                 'resource_names': ['d1']}])
    data = make_data(config, state=state, id='ns1/r1')

    await role.update(data=data, meta=k8s_client, logger=logger)

    patched = fake_api.find('patch', OBJECT)
    assert patched[0].data == [
        {'op': 'replace', 'path': '/rules', 'value': [
            {'apiGroups': ['apps'], 'resources': ['deployments'], 'verbs': ['get'], 'resourceNames': ['d1']},
        ]},
    ]


async def test_update_of_labels(fake_api, k8s_client, logger):
    state = await created_state(fake_api, k8s_client, logger)
    fake_api.add('patch', OBJECT, json=REMOTE)
    config = dict(CONFIG, metadata={'name': 'r1', 'namespace': 'ns1'})
    data = make_data(config, state=state, id='ns1/r1')

    await role.update(data=data, meta=k8s_client, logger=logger)

    patched = fake_api.find('patch', OBJECT)
    assert patched[0].data == [
        {'op': 'remove', 'path': '/metadata/labels/team'},
    ]


async def test_read_of_a_gone_object(fake_api, k8s_client, logger):
    fake_api.add('get', OBJECT, status=404)
    data = make_data(id='ns1/r1')
    await role.read(data=data, meta=k8s_client, logger=logger)
    assert data.id == ''


async def test_delete(fake_api, k8s_client, logger):
    fake_api.add('delete', OBJECT, json={})
    data = make_data(id='ns1/r1')
    await role.delete(data=data, meta=k8s_client, logger=logger)
    assert data.id == ''
    assert len(fake_api.find('delete', OBJECT)) == 1


async def test_exists(fake_api, k8s_client, logger):
    fake_api.add('get', OBJECT, status=404)
    data = make_data(id='ns1/r1')
    assert not await role.exists(data=data, meta=k8s_client, logger=logger)
    assert data.id == ''
