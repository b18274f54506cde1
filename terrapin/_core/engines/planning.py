"""
Planning: what should be done to bring the resources to the desired state.

The plan is made by comparing the validated configuration of every resource
with its last known state (preferably, a freshly refreshed one):

* a configured resource absent in the state is to be created;
* a resource with changed fields is to be updated in place, unless some of
  the changed fields are "force-new": then, it is to be replaced, i.e. deleted
  and created anew (as a new remote object, with a new identifier);
* a resource in the state but not in the configuration is to be deleted;
* everything else is left as is.

The computed fields are never compared: they are not ours to decide. The
optional-computed fields are compared only if they are configured explicitly.
"""
import dataclasses
import enum
from typing import Any, Iterable, Mapping

from terrapin._core import registries
from terrapin._core.engines import documents
from terrapin._core.schema import data, schemas


class Action(enum.Enum):
    CREATE = 'create'
    UPDATE = 'update'
    REPLACE = 'replace'
    DELETE = 'delete'
    NOOP = 'noop'


@dataclasses.dataclass(frozen=True)
class Change:
    action: Action
    type: str
    name: str
    desired: Mapping[str, Any] | None = None  # validated & normalised; None for deletions.
    entry: documents.StateEntry | None = None  # None for creations.
    changed: tuple[str, ...] = ()
    forced_by: tuple[str, ...] = ()

    @property
    def address(self) -> str:
        return f'{self.type}.{self.name}'


def plan(
        *,
        configuration: documents.Configuration,
        state: Iterable[documents.StateEntry],
        registry: registries.ProviderRegistry,
) -> list[Change]:
    """
    Plan the changes: deletions of the orphans first, then all other resources in order.
    """
    state = list(state)
    entries = {(entry.type, entry.name): entry for entry in state}
    configured = {(resource.type, resource.name) for resource in configuration.resources}

    changes: list[Change] = []
    for entry in reversed(state):
        if (entry.type, entry.name) not in configured:
            changes.append(Change(action=Action.DELETE, type=entry.type, name=entry.name, entry=entry))

    for resource_config in configuration.resources:
        _, resource = registry.get_resource(resource_config.type)
        desired = schemas.validate(resource.schema, resource_config.raw, what=resource_config.address)
        entry = entries.get((resource_config.type, resource_config.name))
        changes.append(plan_resource(resource, resource_config, desired=desired, entry=entry))

    return changes


def plan_resource(
        resource: schemas.Resource,
        resource_config: documents.ResourceConfig,
        *,
        desired: Mapping[str, Any],
        entry: documents.StateEntry | None,
) -> Change:
    kwargs: dict[str, Any] = dict(type=resource_config.type, name=resource_config.name,
                                  desired=desired, entry=entry)
    if entry is None:
        return Change(action=Action.CREATE, **kwargs)

    merged = data.merge_computed(resource.schema, desired, entry.attributes)
    changed, forced_by = diff_block(resource.schema, entry.attributes, merged)
    if forced_by or (changed and resource.update is None):
        return Change(action=Action.REPLACE, changed=changed, forced_by=forced_by or changed, **kwargs)
    elif changed:
        return Change(action=Action.UPDATE, changed=changed, **kwargs)
    else:
        return Change(action=Action.NOOP, **kwargs)


def diff_block(
        schema: Mapping[str, schemas.Schema],
        old: Mapping[str, Any],
        new: Mapping[str, Any],
        *,
        prefix: str = '',
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """
    Compare two values of a block and return the changed & the force-new paths.
    """
    changed: list[str] = []
    forced: list[str] = []
    for key, field in schema.items():
        if not field.configurable:
            continue
        path = f'{prefix}{key}'
        sub_changed, sub_forced = diff_value(field, old.get(key), new.get(key), path=path)
        changed.extend(sub_changed)
        forced.extend(sub_forced)
    return tuple(changed), tuple(forced)


def diff_value(
        field: schemas.Schema,
        old: Any,
        new: Any,
        *,
        path: str,
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    old = field.zero() if old is None else old
    new = field.zero() if new is None else new
    block = field.block
    if block is not None and len(old) == len(new):
        changed: list[str] = []
        forced: list[str] = []
        for idx, (old_item, new_item) in enumerate(zip(old, new)):
            sub_changed, sub_forced = diff_block(block.schema, old_item or {}, new_item or {},
                                                 prefix=f'{path}.{idx}.')
            changed.extend(sub_changed)
            forced.extend(sub_changed if field.force_new else sub_forced)
        return tuple(changed), tuple(forced)
    elif old != new:
        return (path,), ((path,) if field.force_new else ())
    else:
        return (), ()
