"""
A registry of the providers and their resource types.

The engines never import the providers directly. Instead, they look up
the resource types in a registry: either the explicitly passed one
(e.g. in tests with fake providers), or the default one, which is
pre-populated with the built-in providers.
"""
from typing import Iterator

from terrapin._core.schema import schemas


class RegistryError(LookupError):
    """ Raised when a provider or a resource type is not known. """


class ProviderRegistry:
    """
    Providers by their names, and their resources by the resource types' names.

    As a convention, a resource type's name starts with its provider's name
    followed by an underscore: e.g. ``kubernetes_role_binding``.
    """

    def __init__(self) -> None:
        super().__init__()
        self._providers: dict[str, schemas.Provider] = {}

    def __iter__(self) -> Iterator[schemas.Provider]:
        return iter(self._providers.values())

    def register(self, provider: schemas.Provider) -> None:
        if provider.name in self._providers:
            raise RegistryError(f"Provider {provider.name!r} is already registered.")
        for type_name in provider.resources:
            if not type_name.startswith(f'{provider.name}_'):
                raise RegistryError(f"Resource type {type_name!r} must be prefixed "
                                    f"with its provider's name {provider.name!r}.")
        self._providers[provider.name] = provider

    def get_provider(self, name: str) -> schemas.Provider:
        try:
            return self._providers[name]
        except KeyError:
            raise RegistryError(f"Unknown provider: {name!r}.") from None

    def get_resource(self, type_name: str) -> tuple[schemas.Provider, schemas.Resource]:
        for provider in self._providers.values():
            if type_name in provider.resources:
                return provider, provider.resources[type_name]
        raise RegistryError(f"Unknown resource type: {type_name!r}.")


class SmartProviderRegistry(ProviderRegistry):
    def __init__(self) -> None:
        super().__init__()
        from terrapin.providers import google, kubernetes
        self.register(google.provider)
        self.register(kubernetes.provider)


_default_registry: ProviderRegistry | None = None


def get_default_registry() -> ProviderRegistry:
    """
    Get the default registry to be used by the engines and the CLI
    unless the explicit registry is provided to them.
    """
    global _default_registry
    if _default_registry is None:
        _default_registry = SmartProviderRegistry()
    return _default_registry


def set_default_registry(registry: ProviderRegistry) -> None:
    """
    Set the default registry to be used by the engines and the CLI
    unless the explicit registry is provided to them.
    """
    global _default_registry
    _default_registry = registry
