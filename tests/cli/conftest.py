import click.testing
import pytest
import yaml

from terrapin.cli import CLIControls, main


@pytest.fixture(autouse=True)
def no_logging_configuration(mocker):
    """ The CLI configures the root logger; the tests must not leave the handlers behind. """
    return mocker.patch('terrapin._core.engines.loggers.configure')


@pytest.fixture()
def config_path(tmp_path):
    return tmp_path / 'terrapin.yaml'


@pytest.fixture()
def state_path(tmp_path):
    return tmp_path / 'terrapin.state.yaml'


@pytest.fixture()
def write_config(config_path):
    def fn(resources, providers=None):
        raw = {'resource': {'fake_thing': resources}}
        if providers is not None:
            raw['provider'] = providers
        config_path.write_text(yaml.safe_dump(raw))
    return fn


@pytest.fixture()
def invoke(fake_provider, registry, settings, config_path, state_path):
    runner = click.testing.CliRunner()

    def fn(args, *, input=None, paths=True):
        extra = ['-c', str(config_path), '-s', str(state_path)] if paths else []
        controls = CLIControls(registry=registry, settings=settings)
        return runner.invoke(main, list(args) + extra, input=input, obj=controls)

    return fn
