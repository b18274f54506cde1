import asyncio
import dataclasses
import functools
from typing import Any, Awaitable, Callable, Iterator

import click

from terrapin._cogs.configs import configuration
from terrapin._cogs.structs import credentials
from terrapin._core import registries
from terrapin._core.engines import applying, documents, loggers, planning
from terrapin._core.schema import flatmap, schemas

# The errors which are the user's problems, not ours: no need for the stack traces.
EXPECTED_ERRORS = (
    applying.ResourceError,
    applying.StateError,
    credentials.LoginError,
    documents.DocumentError,
    registries.RegistryError,
    schemas.ConfigurationError,
)


@dataclasses.dataclass()
class CLIControls:
    """ Controls, which are impossible to pass via CLI (e.g. from tests). """
    registry: registries.ProviderRegistry | None = None
    settings: configuration.ProviderSettings | None = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = False,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def document_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator for the paths of the configuration & state documents."""
    @click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False),
                  default='terrapin.yaml', show_default=True)
    @click.option('-s', '--state', 'state_path', type=click.Path(dir_okay=False),
                  default='terrapin.state.yaml', show_default=True)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(prog_name='terrapin')
@click.group(name='terrapin', context_settings=dict(
    auto_envvar_prefix='TERRAPIN',
))
def main() -> None:
    pass


@main.command()
@logging_options
@document_options
@click.option('--refresh/--no-refresh', default=True)
@click.make_pass_decorator(CLIControls, ensure=True)
def plan(
        __controls: CLIControls,
        config_path: str,
        state_path: str,
        refresh: bool,
) -> None:
    """ Show what would be done to reach the declared state. """
    config = _load_configuration(config_path)
    state = _load_state(state_path)
    settings = _get_settings(__controls, refresh=refresh)

    async def fn(metas: applying.Metas) -> list[planning.Change]:
        return await applying.make_plan(configuration=config, state=state, metas=metas)

    changes = _run(fn, config=config, controls=__controls, settings=settings)
    for line in format_changes(changes, registry=_get_registry(__controls)):
        click.echo(line)


@main.command()
@logging_options
@document_options
@click.option('--refresh/--no-refresh', default=True)
@click.make_pass_decorator(CLIControls, ensure=True)
def apply(
        __controls: CLIControls,
        config_path: str,
        state_path: str,
        refresh: bool,
) -> None:
    """ Create, update, or delete the resources to reach the declared state. """
    config = _load_configuration(config_path)
    state = _load_state(state_path)
    settings = _get_settings(__controls, refresh=refresh)

    async def fn(metas: applying.Metas) -> list[planning.Change]:
        return await applying.apply(configuration=config, state=state, metas=metas)

    try:
        changes = _run(fn, config=config, controls=__controls, settings=settings)
    finally:
        documents.save_state(state_path, state)

    counts = applying.summarize(changes)
    click.echo(f"Apply complete! Resources: "
               f"{counts[planning.Action.CREATE]} created, "
               f"{counts[planning.Action.UPDATE]} updated, "
               f"{counts[planning.Action.REPLACE]} replaced, "
               f"{counts[planning.Action.DELETE]} destroyed.")


@main.command()
@logging_options
@document_options
@click.make_pass_decorator(CLIControls, ensure=True)
def refresh(
        __controls: CLIControls,
        config_path: str,
        state_path: str,
) -> None:
    """ Re-read the resources in the state from the remote systems. """
    config = _load_configuration(config_path)
    state = _load_state(state_path)

    async def fn(metas: applying.Metas) -> None:
        await applying.refresh(state=state, metas=metas)

    try:
        _run(fn, config=config, controls=__controls)
    finally:
        documents.save_state(state_path, state)


@main.command()
@logging_options
@document_options
@click.option('-y', '--yes', is_flag=True, help="Do not ask for confirmation.")
@click.make_pass_decorator(CLIControls, ensure=True)
def destroy(
        __controls: CLIControls,
        config_path: str,
        state_path: str,
        yes: bool,
) -> None:
    """ Delete all the resources in the state. """
    config = _load_configuration(config_path)
    state = _load_state(state_path)
    if not yes:
        click.confirm(f"Destroy all {len(state)} resource(s)?", abort=True)

    async def fn(metas: applying.Metas) -> None:
        await applying.destroy(state=state, metas=metas)

    try:
        _run(fn, config=config, controls=__controls)
    finally:
        documents.save_state(state_path, state)
    click.echo("Destroy complete!")


@main.command(name='import')
@logging_options
@document_options
@click.argument('address')
@click.argument('id')
@click.make_pass_decorator(CLIControls, ensure=True)
def import_(
        __controls: CLIControls,
        config_path: str,
        state_path: str,
        address: str,
        id: str,
) -> None:
    """ Adopt an existing remote object as the resource TYPE.NAME. """
    type_name, dot, name = address.partition('.')
    if not dot or not type_name or not name:
        raise click.BadParameter("The address must be TYPE.NAME.", param_hint='ADDRESS')
    config = _load_configuration(config_path)
    state = _load_state(state_path)

    async def fn(metas: applying.Metas) -> documents.StateEntry:
        return await applying.import_resource(type=type_name, name=name, id=id, state=state, metas=metas)

    try:
        entry = _run(fn, config=config, controls=__controls)
    finally:
        documents.save_state(state_path, state)
    click.echo(f"Imported {entry.address} as {entry.id!r}.")


@main.command()
@document_options
@click.option('--show-sensitive', is_flag=True)
@click.make_pass_decorator(CLIControls, ensure=True)
def show(
        __controls: CLIControls,
        config_path: str,
        state_path: str,
        show_sensitive: bool,
) -> None:
    """ Print the resources in the state as flat attributes. """
    state = _load_state(state_path)
    registry = _get_registry(__controls)
    for entry in state:
        try:
            _, resource = registry.get_resource(entry.type)
        except registries.RegistryError as e:
            raise click.ClickException(str(e))
        click.echo(f"{entry.address}:")
        flat = flatmap.flatten(resource.schema, entry.attributes, id=entry.id,
                               mask_sensitive=not show_sensitive)
        for key, val in flat.items():
            click.echo(f"  {key} = {val}")


def format_changes(
        changes: list[planning.Change],
        *,
        registry: registries.ProviderRegistry,
) -> Iterator[str]:
    signs = {
        planning.Action.CREATE: '+',
        planning.Action.UPDATE: '~',
        planning.Action.REPLACE: '-/+',
        planning.Action.DELETE: '-',
    }
    for change in changes:
        if change.action is planning.Action.NOOP:
            continue
        yield f"{signs[change.action]} {change.address}"
        if change.desired is not None:
            _, resource = registry.get_resource(change.type)
            before = flatmap.flatten(resource.schema, change.entry.attributes if change.entry else {},
                                     mask_sensitive=True)
            after = flatmap.flatten(resource.schema, change.desired, mask_sensitive=True)
            for key in sorted(set(before) | set(after)):
                if before.get(key) != after.get(key) and key in after:
                    forced = " (forces new resource)" if _is_forced(key, change.forced_by) else ""
                    old = f"{before[key]!r} => " if key in before else ""
                    yield f"    {key}: {old}{after[key]!r}{forced}"

    counts = applying.summarize(changes)
    if not any(counts[action] for action in signs):
        yield "No changes. The resources match the configuration."
    else:
        yield (f"Plan: {counts[planning.Action.CREATE]} to add, "
               f"{counts[planning.Action.UPDATE]} to change, "
               f"{counts[planning.Action.REPLACE]} to replace, "
               f"{counts[planning.Action.DELETE]} to destroy.")


def _is_forced(key: str, forced_by: tuple[str, ...]) -> bool:
    return any(key == path or key.startswith(f'{path}.') for path in forced_by)


def _load_configuration(path: str) -> documents.Configuration:
    try:
        return documents.load_configuration(path)
    except OSError as e:
        raise click.ClickException(f"Cannot read the configuration: {e}")
    except documents.DocumentError as e:
        raise click.ClickException(str(e))


def _load_state(path: str) -> list[documents.StateEntry]:
    try:
        return documents.load_state(path)
    except documents.DocumentError as e:
        raise click.ClickException(str(e))


def _get_registry(controls: CLIControls) -> registries.ProviderRegistry:
    return controls.registry if controls.registry is not None else registries.get_default_registry()


def _get_settings(controls: CLIControls, *, refresh: bool = True) -> configuration.ProviderSettings:
    settings = controls.settings if controls.settings is not None else configuration.ProviderSettings()
    planning = dataclasses.replace(settings.planning, refresh=refresh)
    return dataclasses.replace(settings, planning=planning)


def _run(
        fn: Callable[[applying.Metas], Awaitable[Any]],
        *,
        config: documents.Configuration,
        controls: CLIControls,
        settings: configuration.ProviderSettings | None = None,
) -> Any:
    try:
        return asyncio.run(applying.run(
            fn,
            configuration=config,
            registry=_get_registry(controls),
            settings=settings if settings is not None else _get_settings(controls),
        ))
    except EXPECTED_ERRORS as e:
        cause = f": {e.__cause__}" if e.__cause__ is not None else ""
        raise click.ClickException(f"{e}{cause}") from e
