import pytest

from terrapin._core.registries import SmartProviderRegistry


@pytest.fixture(autouse=True)
def registry():
    """ The acceptance tests use the real built-in providers. """
    return SmartProviderRegistry()


@pytest.fixture(autouse=True)
def clean_environment():
    """ The acceptance tests take the clusters & projects from the environment. """
    pass
