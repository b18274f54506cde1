"""
The configuration & state documents, as stored in YAML files.

The configuration document declares the providers' settings and
the desired resources, grouped by their types and named uniquely
within each type::

    provider:
      kubernetes:
        config_context: minikube
    resource:
      kubernetes_role_binding:
        readers:
          metadata: {name: readers}
          role_ref: {kind: Role, name: reader}
          subject: [{kind: User, name: alice}]

The state document is a list of the resources as they were after the last run:
their types, names, identifiers, and attributes (including the computed ones).
The order of the resources is preserved in both documents.
"""
import collections.abc
import dataclasses
import os
from typing import Any, Iterable, Mapping

import yaml


class DocumentError(Exception):
    """ Raised when a document is malformed (not the values, but the structure). """


@dataclasses.dataclass(frozen=True)
class ResourceConfig:
    type: str
    name: str
    raw: Mapping[str, Any]

    @property
    def address(self) -> str:
        return f'{self.type}.{self.name}'


@dataclasses.dataclass(frozen=True)
class Configuration:
    providers: Mapping[str, Mapping[str, Any]] = dataclasses.field(default_factory=dict)
    resources: list[ResourceConfig] = dataclasses.field(default_factory=list)

    def get_resource(self, type: str, name: str) -> ResourceConfig | None:
        for resource in self.resources:
            if resource.type == type and resource.name == name:
                return resource
        return None


@dataclasses.dataclass
class StateEntry:
    type: str
    name: str
    id: str
    attributes: dict[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def address(self) -> str:
        return f'{self.type}.{self.name}'


def parse_configuration(raw: object) -> Configuration:
    if raw is None:
        raw = {}
    if not isinstance(raw, collections.abc.Mapping):
        raise DocumentError(f"The configuration must be a mapping, got {type(raw).__name__}.")
    unknown = set(raw) - {'provider', 'resource'}
    if unknown:
        raise DocumentError(f"Unknown sections in the configuration: {sorted(unknown)!r}")

    providers: dict[str, Mapping[str, Any]] = {}
    for name, provider_raw in _get_mapping(raw, 'provider').items():
        if provider_raw is not None and not isinstance(provider_raw, collections.abc.Mapping):
            raise DocumentError(f"The provider {name!r} must be a mapping.")
        providers[str(name)] = provider_raw or {}

    resources: list[ResourceConfig] = []
    for type_name, named in _get_mapping(raw, 'resource').items():
        if not isinstance(named, collections.abc.Mapping):
            raise DocumentError(f"The resources of {type_name!r} must be a mapping by names.")
        for name, resource_raw in named.items():
            if resource_raw is not None and not isinstance(resource_raw, collections.abc.Mapping):
                raise DocumentError(f"The resource {type_name}.{name} must be a mapping.")
            resources.append(ResourceConfig(type=str(type_name), name=str(name), raw=resource_raw or {}))

    return Configuration(providers=providers, resources=resources)


def _get_mapping(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, collections.abc.Mapping):
        raise DocumentError(f"The section {key!r} must be a mapping, got {type(value).__name__}.")
    return value


def load_configuration(path: str | os.PathLike[str]) -> Configuration:
    with open(path, encoding='utf-8') as f:
        return parse_configuration(yaml.safe_load(f))


def parse_configuration_text(text: str) -> Configuration:
    return parse_configuration(yaml.safe_load(text))


def parse_state(raw: object) -> list[StateEntry]:
    if raw is None:
        return []
    if not isinstance(raw, collections.abc.Sequence) or isinstance(raw, str):
        raise DocumentError(f"The state must be a list, got {type(raw).__name__}.")
    entries: list[StateEntry] = []
    for item in raw:
        if not isinstance(item, collections.abc.Mapping) or not {'type', 'name', 'id'} <= set(item):
            raise DocumentError(f"Each state entry must have a type, a name, and an id: {item!r}")
        entries.append(StateEntry(
            type=str(item['type']),
            name=str(item['name']),
            id=str(item['id']),
            attributes=dict(item.get('attributes') or {}),
        ))
    return entries


def load_state(path: str | os.PathLike[str]) -> list[StateEntry]:
    """ Load the state; an absent file means that nothing was created yet. """
    if not os.path.exists(path):
        return []
    with open(path, encoding='utf-8') as f:
        return parse_state(yaml.safe_load(f))


def dump_state(entries: Iterable[StateEntry]) -> str:
    raw = [dataclasses.asdict(entry) for entry in entries]
    return yaml.safe_dump(raw, sort_keys=False, default_flow_style=False)


def save_state(path: str | os.PathLike[str], entries: Iterable[StateEntry]) -> None:
    # Write it fully or not at all: a half-written state is worse than an outdated one.
    text = dump_state(entries)
    tmp_path = f'{os.fspath(path)}.tmp'
    with open(tmp_path, 'w', encoding='utf-8') as f:
        f.write(text)
    os.replace(tmp_path, path)
