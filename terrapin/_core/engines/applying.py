"""
Orchestration of the resources' operations: apply, refresh, destroy, import.

All functions modify the state (a list of entries) in place as they go,
so that whatever was done remains in the state even if the run fails midway:
the caller is expected to save the state in all cases, successful or not.
The same is true for the resources themselves: a failed operation keeps
the fields it has committed (see the partial mode of :class:`ResourceData`).

The providers are configured lazily, only when the first of their resources
is touched, and are closed at the end of the run (see :class:`Metas`).
"""
import logging
from typing import Any, Awaitable, Callable, Mapping

from terrapin._cogs.configs import configuration as settings_
from terrapin._core import registries
from terrapin._core.engines import documents, loggers, planning
from terrapin._core.schema import data, schemas

logger = logging.getLogger(__name__)


class ResourceError(Exception):
    """ An operation on a resource has failed; the cause is chained. """

    def __init__(self, address: str, operation: str) -> None:
        super().__init__(f"{address}: {operation} failed")
        self.address = address
        self.operation = operation


class StateError(Exception):
    """ The state does not allow the operation, e.g. an already imported resource. """


class Metas:
    """
    The configured providers' "metas" for the duration of one run.

    Usage::

        async with Metas(configuration=..., registry=..., settings=...) as metas:
            meta = await metas.get(provider)
    """

    def __init__(
            self,
            *,
            configuration: documents.Configuration,
            registry: registries.ProviderRegistry,
            settings: settings_.ProviderSettings,
    ) -> None:
        super().__init__()
        self.configuration = configuration
        self.registry = registry
        self.settings = settings
        self._metas: dict[str, schemas.ProviderMeta] = {}

    async def __aenter__(self) -> 'Metas':
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def get(self, provider: schemas.Provider) -> schemas.ProviderMeta:
        if provider.name not in self._metas:
            raw = self.configuration.providers.get(provider.name, {})
            config = schemas.validate(provider.schema, raw, what=f"provider {provider.name!r}")
            provider_data = data.ResourceData(provider.schema, config=config)
            provider_logger = logging.getLogger(f'terrapin.providers.{provider.name}')
            logger.debug(f"Configuring the provider {provider.name!r}.")
            self._metas[provider.name] = await provider.configure(
                data=provider_data,
                settings=self.settings,
                logger=provider_logger,
            )
        return self._metas[provider.name]

    async def close(self) -> None:
        metas, self._metas = self._metas, {}
        for meta in metas.values():
            await meta.close()


async def invoke(
        fn: schemas.ResourceFn,
        operation: str,
        *,
        address: str,
        resource_data: data.ResourceData,
        meta: schemas.ProviderMeta,
        logger: loggers.ObjectLogger,
) -> Any:
    try:
        return await fn(data=resource_data, meta=meta, logger=logger)
    except Exception as e:
        logger.error(f"{operation.capitalize()} has failed: {e}")
        raise ResourceError(address, operation) from e


def commit(
        state: list[documents.StateEntry],
        *,
        type: str,
        name: str,
        resource_data: data.ResourceData,
) -> None:
    """ Store the resource's new state into the state list, or remove it if it is gone. """
    attributes = resource_data.collect_state()
    index = _find(state, type=type, name=name)
    if attributes is None:
        if index is not None:
            del state[index]
    elif index is None:
        state.append(documents.StateEntry(type=type, name=name, id=resource_data.id, attributes=attributes))
    else:
        state[index] = documents.StateEntry(type=type, name=name, id=resource_data.id, attributes=attributes)


def _find(state: list[documents.StateEntry], *, type: str, name: str) -> int | None:
    for idx, entry in enumerate(state):
        if entry.type == type and entry.name == name:
            return idx
    return None


async def refresh(
        *,
        state: list[documents.StateEntry],
        metas: Metas,
) -> None:
    """
    Re-read all the resources in the state; drop those that are gone.
    """
    for entry in list(state):
        provider, resource = metas.registry.get_resource(entry.type)
        meta = await metas.get(provider)
        object_logger = loggers.ObjectLogger(type=entry.type, name=entry.name, id=entry.id)
        resource_data = data.ResourceData(resource.schema, state=entry.attributes, id=entry.id)
        try:
            found = True
            if resource.exists is not None:
                found = await invoke(resource.exists, 'exists', address=entry.address,
                                     resource_data=resource_data, meta=meta, logger=object_logger)
            if not found:
                resource_data.set_id(None)
            else:
                await invoke(resource.read, 'read', address=entry.address,
                             resource_data=resource_data, meta=meta, logger=object_logger)
            if not resource_data.id:
                object_logger.warning("The resource is gone; removing it from the state.")
        finally:
            commit(state, type=entry.type, name=entry.name, resource_data=resource_data)


async def make_plan(
        *,
        configuration: documents.Configuration,
        state: list[documents.StateEntry],
        metas: Metas,
) -> list[planning.Change]:
    if metas.settings.planning.refresh:
        await refresh(state=state, metas=metas)
    return planning.plan(configuration=configuration, state=state, registry=metas.registry)


async def apply(
        *,
        configuration: documents.Configuration,
        state: list[documents.StateEntry],
        metas: Metas,
        changes: list[planning.Change] | None = None,
) -> list[planning.Change]:
    """
    Bring the resources to the desired state. Return the changes made (planned).
    """
    if changes is None:
        changes = await make_plan(configuration=configuration, state=state, metas=metas)

    for change in changes:
        provider, resource = metas.registry.get_resource(change.type)
        meta = await metas.get(provider)
        match change.action:
            case planning.Action.CREATE:
                await _create(change, resource=resource, meta=meta, state=state)
            case planning.Action.UPDATE:
                await _update(change, resource=resource, meta=meta, state=state)
            case planning.Action.REPLACE:
                await _delete(change, resource=resource, meta=meta, state=state)
                await _create(change, resource=resource, meta=meta, state=state)
            case planning.Action.DELETE:
                await _delete(change, resource=resource, meta=meta, state=state)
            case planning.Action.NOOP:
                pass

    _reorder(state, configuration)
    return changes


async def destroy(
        *,
        state: list[documents.StateEntry],
        metas: Metas,
) -> None:
    """ Delete all resources in the state, in the reverse order. """
    for entry in reversed(list(state)):
        provider, resource = metas.registry.get_resource(entry.type)
        meta = await metas.get(provider)
        change = planning.Change(action=planning.Action.DELETE, type=entry.type, name=entry.name, entry=entry)
        await _delete(change, resource=resource, meta=meta, state=state)


async def import_resource(
        *,
        type: str,
        name: str,
        id: str,
        state: list[documents.StateEntry],
        metas: Metas,
) -> documents.StateEntry:
    """ Adopt an existing remote object as a resource by its identifier. """
    address = f'{type}.{name}'
    if _find(state, type=type, name=name) is not None:
        raise StateError(f"{address} is already in the state.")

    provider, resource = metas.registry.get_resource(type)
    meta = await metas.get(provider)
    object_logger = loggers.ObjectLogger(type=type, name=name, id=id)
    resource_data = data.ResourceData(resource.schema, id=id)
    if resource.importer is not None:
        await invoke(resource.importer, 'import', address=address,
                     resource_data=resource_data, meta=meta, logger=object_logger)
    await invoke(resource.read, 'read', address=address,
                 resource_data=resource_data, meta=meta, logger=object_logger)
    if not resource_data.id:
        raise StateError(f"{address}: cannot import a non-existent object {id!r}.")

    commit(state, type=type, name=name, resource_data=resource_data)
    object_logger.info(f"Imported as {resource_data.id!r}.")
    index = _find(state, type=type, name=name)
    assert index is not None
    return state[index]


async def _create(
        change: planning.Change,
        *,
        resource: schemas.Resource,
        meta: schemas.ProviderMeta,
        state: list[documents.StateEntry],
) -> None:
    object_logger = loggers.ObjectLogger(type=change.type, name=change.name)
    resource_data = data.ResourceData(resource.schema, config=change.desired or {})
    object_logger.info("Creating.")
    try:
        await invoke(resource.create, 'create', address=change.address,
                     resource_data=resource_data, meta=meta, logger=object_logger)
    finally:
        commit(state, type=change.type, name=change.name, resource_data=resource_data)
    object_logger.info(f"Created as {resource_data.id!r}.")


async def _update(
        change: planning.Change,
        *,
        resource: schemas.Resource,
        meta: schemas.ProviderMeta,
        state: list[documents.StateEntry],
) -> None:
    assert change.entry is not None
    assert resource.update is not None
    object_logger = loggers.ObjectLogger(type=change.type, name=change.name, id=change.entry.id)
    resource_data = data.ResourceData(resource.schema, state=change.entry.attributes,
                                      config=change.desired or {}, id=change.entry.id)
    object_logger.info(f"Updating: {', '.join(change.changed)}.")
    try:
        await invoke(resource.update, 'update', address=change.address,
                     resource_data=resource_data, meta=meta, logger=object_logger)
    finally:
        commit(state, type=change.type, name=change.name, resource_data=resource_data)
    object_logger.info("Updated.")


async def _delete(
        change: planning.Change,
        *,
        resource: schemas.Resource,
        meta: schemas.ProviderMeta,
        state: list[documents.StateEntry],
) -> None:
    assert change.entry is not None
    object_logger = loggers.ObjectLogger(type=change.type, name=change.name, id=change.entry.id)
    resource_data = data.ResourceData(resource.schema, state=change.entry.attributes, id=change.entry.id)
    object_logger.info("Deleting.")
    try:
        await invoke(resource.delete, 'delete', address=change.address,
                     resource_data=resource_data, meta=meta, logger=object_logger)
        resource_data.set_id(None)  # even if the function forgot to clear it.
    finally:
        commit(state, type=change.type, name=change.name, resource_data=resource_data)
    object_logger.info("Deleted.")


def _reorder(state: list[documents.StateEntry], configuration: documents.Configuration) -> None:
    order = {(resource.type, resource.name): idx for idx, resource in enumerate(configuration.resources)}
    state.sort(key=lambda entry: order.get((entry.type, entry.name), len(order)))


RunFn = Callable[[Metas], Awaitable[Any]]


async def run(
        fn: RunFn,
        *,
        configuration: documents.Configuration,
        registry: registries.ProviderRegistry | None = None,
        settings: settings_.ProviderSettings | None = None,
) -> Any:
    """ Run one operation with the providers configured and closed afterwards. """
    async with Metas(
        configuration=configuration,
        registry=registry if registry is not None else registries.get_default_registry(),
        settings=settings if settings is not None else settings_.ProviderSettings(),
    ) as metas:
        return await fn(metas)


def summarize(changes: list[planning.Change]) -> Mapping[planning.Action, int]:
    counts = {action: 0 for action in planning.Action}
    for change in changes:
        counts[change.action] += 1
    return counts
