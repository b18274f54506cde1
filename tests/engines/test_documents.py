import pytest

from terrapin._core.engines.documents import Configuration, DocumentError, ResourceConfig, \
                                             StateEntry, dump_state, load_configuration, \
                                             load_state, parse_configuration, \
                                             parse_configuration_text, parse_state, save_state

TEXT = """
provider:
  kubernetes:
    config_context: minikube
  google:
resource:
  kubernetes_role:
    reader:
      metadata: {name: reader}
  kubernetes_role_binding:
    readers:
      metadata: {name: readers}
      role_ref: {kind: Role, name: reader}
    writers:
"""


def test_parsing():
    config = parse_configuration_text(TEXT)
    assert config.providers == {'kubernetes': {'config_context': 'minikube'}, 'google': {}}
    assert config.resources == [
        ResourceConfig(type='kubernetes_role', name='reader', raw={'metadata': {'name': 'reader'}}),
        ResourceConfig(type='kubernetes_role_binding', name='readers',
                       raw={'metadata': {'name': 'readers'}, 'role_ref': {'kind': 'Role', 'name': 'reader'}}),
        ResourceConfig(type='kubernetes_role_binding', name='writers', raw={}),
    ]
    assert config.resources[1].address == 'kubernetes_role_binding.readers'


def test_lookup_of_resources():
    config = parse_configuration_text(TEXT)
    assert config.get_resource('kubernetes_role', 'reader') is config.resources[0]
    assert config.get_resource('kubernetes_role', 'writer') is None


@pytest.mark.parametrize('raw', [None, {}, {'provider': None, 'resource': None}])
def test_empty_configurations(raw):
    assert parse_configuration(raw) == Configuration()


@pytest.mark.parametrize('raw, message', [
    ([], r"The configuration must be a mapping, got list"),
    ({'output': {}}, r"Unknown sections in the configuration: \['output'\]"),
    ({'provider': []}, r"The section 'provider' must be a mapping, got list"),
    ({'resource': ''}, r"The section 'resource' must be a mapping, got str"),
    ({'resource': 0}, r"The section 'resource' must be a mapping, got int"),
    ({'provider': {'x': 'y'}}, r"The provider 'x' must be a mapping"),
    ({'resource': {'x_y': ['z']}}, r"The resources of 'x_y' must be a mapping by names"),
    ({'resource': {'x_y': {'z': 1}}}, r"The resource x_y.z must be a mapping"),
])
def test_malformed_configurations(raw, message):
    with pytest.raises(DocumentError, match=message):
        parse_configuration(raw)


def test_loading_configuration(tmp_path):
    path = tmp_path / 'terrapin.yaml'
    path.write_text(TEXT)
    assert load_configuration(path) == parse_configuration_text(TEXT)


def test_parsing_state():
    raw = [
        {'type': 'fake_thing', 'name': 'one', 'id': 'id-1', 'attributes': {'size': 1}},
        {'type': 'fake_thing', 'name': 'two', 'id': 2},
    ]
    assert parse_state(raw) == [
        StateEntry(type='fake_thing', name='one', id='id-1', attributes={'size': 1}),
        StateEntry(type='fake_thing', name='two', id='2', attributes={}),
    ]
    assert parse_state(raw)[0].address == 'fake_thing.one'


@pytest.mark.parametrize('raw', ['text', {'type': 'x'}, [{'type': 'x', 'name': 'y'}], ['x']])
def test_malformed_state(raw):
    with pytest.raises(DocumentError):
        parse_state(raw)


def test_absent_state_file(tmp_path):
    assert load_state(tmp_path / 'absent.yaml') == []


def test_empty_state_file(tmp_path):
    path = tmp_path / 'state.yaml'
    path.write_text('')
    assert load_state(path) == []


def test_saving_and_loading_state(tmp_path):
    path = tmp_path / 'state.yaml'
    entries = [
        StateEntry(type='fake_thing', name='b', id='id-2', attributes={'tags': {'x': 'y'}, 'size': 2}),
        StateEntry(type='fake_thing', name='a', id='id-1'),
    ]
    save_state(path, entries)
    assert load_state(path) == entries
    assert not (tmp_path / 'state.yaml.tmp').exists()


def test_dumped_state_keeps_the_order():
    text = dump_state([StateEntry(type='t', name='n', id='i', attributes={'z': 1, 'a': 2})])
    assert text == "- type: t\n  name: n\n  id: i\n  attributes:\n    z: 1\n    a: 2\n"
