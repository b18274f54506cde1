"""
The acceptance-testing harness for the providers' resources.

An acceptance test runs against the real APIs (a real cluster, a real cloud),
so it is skipped unless ``$TERRAPIN_ACC`` is set. A test case is a sequence
of steps. Every configuration step applies its configuration and checks
the resulting state; then, the configuration is planned again, and the plan
must be empty (i.e. the resources are stable and match their configuration).
Every import step adopts an already created resource by its identifier and
compares the imported attributes with the ones in the state.

At the end, successful or not, everything is destroyed, and the case's
destroy-check verifies that the remote objects are really gone.

Example::

    def test_role_binding():
        name = random_name('tf-acc-test-')
        run(Case(steps=[
            Step(config=f'...', check=compose_aggregate_check(
                check_resource_attr('kubernetes_role_binding.test', 'subject.#', '1'),
            )),
        ]))
"""
import asyncio
import dataclasses
import inspect
import os
import random
import re
import string
import unittest
from typing import Any, Awaitable, Callable, Iterable, Sequence

from terrapin._cogs.configs import configuration
from terrapin._core import registries
from terrapin._core.engines import applying, documents, loggers, planning
from terrapin._core.schema import data, flatmap, schemas

ACCEPTANCE_ENV = 'TERRAPIN_ACC'
ALPHANUMERIC = string.ascii_lowercase + string.digits


class StateView:
    """ The state of a test case as seen by the checks. """

    def __init__(
            self,
            entries: Iterable[documents.StateEntry],
            *,
            metas: applying.Metas,
    ) -> None:
        super().__init__()
        self.entries = list(entries)
        self.metas = metas

    def get(self, address: str) -> documents.StateEntry:
        for entry in self.entries:
            if entry.address == address:
                return entry
        raise AssertionError(f"Not found: {address}")

    def flat(self, address: str) -> dict[str, str]:
        entry = self.get(address)
        _, resource = self.metas.registry.get_resource(entry.type)
        return flatmap.flatten(resource.schema, entry.attributes, id=entry.id)

    async def meta(self, provider_name: str) -> schemas.ProviderMeta:
        """ The configured provider's client, e.g. to check the remote objects directly. """
        return await self.metas.get(self.metas.registry.get_provider(provider_name))


CheckFn = Callable[[StateView], Awaitable[None] | None]


@dataclasses.dataclass(frozen=True)
class Step:
    config: str = ''
    check: CheckFn | None = None
    resource_name: str = ''
    import_state: bool = False
    import_state_id: str | None = None
    import_state_verify: bool = False
    import_state_verify_ignore: Sequence[str] = ()
    expect_error: str | re.Pattern[str] | None = None


@dataclasses.dataclass(frozen=True)
class Case:
    steps: Sequence[Step]
    registry: registries.ProviderRegistry | None = None
    settings: configuration.ProviderSettings | None = None
    pre_check: Callable[[], None] | None = None
    check_destroy: CheckFn | None = None
    id_refresh_name: str = ''
    always_run: bool = False  # even without $TERRAPIN_ACC, e.g. against fake servers.


def random_name(prefix: str = '', length: int = 10) -> str:
    return prefix + ''.join(random.choice(ALPHANUMERIC) for _ in range(length))


def run(case: Case) -> None:
    """ Run the test case synchronously (in a new event loop). """
    if not case.always_run and not os.environ.get(ACCEPTANCE_ENV):
        raise unittest.SkipTest(f"Acceptance tests are skipped unless ${ACCEPTANCE_ENV} is set.")
    asyncio.run(run_async(case))


async def run_async(case: Case) -> None:
    """ Run the test case in the current event loop (with no skipping). """
    if case.pre_check is not None:
        case.pre_check()

    state: list[documents.StateEntry] = []
    last_config = documents.Configuration()
    try:
        for idx, step in enumerate(case.steps, start=1):
            try:
                if step.import_state:
                    await _run_import_step(case, step, state=state, config=last_config)
                else:
                    last_config = documents.parse_configuration_text(step.config)
                    await _run_config_step(case, step, state=state, config=last_config)
            except AssertionError as e:
                raise AssertionError(f"Step {idx}/{len(case.steps)} error: {e}") from e
    finally:
        await _destroy(case, state=state, config=last_config)


async def _run_config_step(
        case: Case,
        step: Step,
        *,
        state: list[documents.StateEntry],
        config: documents.Configuration,
) -> None:
    async with _make_metas(case, config) as metas:
        try:
            await applying.apply(configuration=config, state=state, metas=metas)
        except Exception as e:
            if step.expect_error is None:
                raise
            if not _matches_error(step.expect_error, e):
                raise AssertionError(f"Expected an error matching {step.expect_error!r}, got: {e!r}") from e
            return
        else:
            if step.expect_error is not None:
                raise AssertionError(f"Expected an error matching {step.expect_error!r}, got none.")

        if step.check is not None:
            await _call_check(step.check, StateView(state, metas=metas))

        old_id = _get_id(state, case.id_refresh_name)
        changes = await applying.make_plan(configuration=config, state=state, metas=metas)
        pending = [change for change in changes if change.action is not planning.Action.NOOP]
        if pending:
            details = ', '.join(f"{change.action.value} {change.address} {list(change.changed)!r}"
                                for change in pending)
            raise AssertionError(f"After applying this step, the plan was not empty: {details}")

        new_id = _get_id(state, case.id_refresh_name)
        if case.id_refresh_name and old_id != new_id:
            raise AssertionError(f"The id of {case.id_refresh_name} has changed on refresh: "
                                 f"{old_id!r} => {new_id!r}")


async def _run_import_step(
        case: Case,
        step: Step,
        *,
        state: list[documents.StateEntry],
        config: documents.Configuration,
) -> None:
    type_name, _, name = step.resource_name.partition('.')
    original = _find(state, step.resource_name)
    if step.import_state_id is not None:
        import_id = step.import_state_id
    elif original is not None:
        import_id = original.id
    else:
        raise AssertionError(f"Cannot import {step.resource_name}: it is not in the state.")

    async with _make_metas(case, config) as metas:
        imported: list[documents.StateEntry] = []
        entry = await applying.import_resource(type=type_name, name=name, id=import_id,
                                               state=imported, metas=metas)
        if step.check is not None:
            await _call_check(step.check, StateView(imported, metas=metas))
        if not step.import_state_verify:
            return
        if original is None:
            raise AssertionError(f"Cannot verify {step.resource_name}: it is not in the state.")

        _, resource = metas.registry.get_resource(type_name)
        expected = _without(flatmap.flatten(resource.schema, original.attributes, id=original.id),
                            step.import_state_verify_ignore)
        actual = _without(flatmap.flatten(resource.schema, entry.attributes, id=entry.id),
                          step.import_state_verify_ignore)
        if expected != actual:
            diffs = sorted(key for key in set(expected) | set(actual) if expected.get(key) != actual.get(key))
            details = '; '.join(f"{key}: {expected.get(key)!r} != {actual.get(key)!r}" for key in diffs)
            raise AssertionError(f"ImportStateVerify attributes not equivalent: {details}")


async def _destroy(
        case: Case,
        *,
        state: list[documents.StateEntry],
        config: documents.Configuration,
) -> None:
    async with _make_metas(case, config) as metas:
        remembered = list(state)
        await applying.destroy(state=state, metas=metas)
        if state:
            raise AssertionError(f"Resources left after destroying: {[entry.address for entry in state]!r}")
        if case.check_destroy is not None:
            await _call_check(case.check_destroy, StateView(remembered, metas=metas))


def _make_metas(case: Case, config: documents.Configuration) -> applying.Metas:
    return applying.Metas(
        configuration=config,
        registry=case.registry if case.registry is not None else registries.get_default_registry(),
        settings=case.settings if case.settings is not None else configuration.ProviderSettings(),
    )


async def _call_check(fn: CheckFn, view: StateView) -> None:
    result = fn(view)
    if inspect.isawaitable(result):
        await result


def _find(state: Iterable[documents.StateEntry], address: str) -> documents.StateEntry | None:
    for entry in state:
        if entry.address == address:
            return entry
    return None


def _get_id(state: Iterable[documents.StateEntry], address: str) -> str | None:
    entry = _find(state, address) if address else None
    return entry.id if entry is not None else None


def _without(flat: dict[str, str], prefixes: Sequence[str]) -> dict[str, str]:
    return {key: val for key, val in flat.items()
            if not any(key == prefix or key.startswith(f'{prefix}.') for prefix in prefixes)}


def _matches_error(expected: str | re.Pattern[str], error: BaseException) -> bool:
    messages: list[str] = []
    cause: BaseException | None = error
    while cause is not None:
        messages.append(str(cause))
        cause = cause.__cause__
    text = ': '.join(messages)
    return re.search(expected, text) is not None


def check_resource_attr(address: str, key: str, value: str) -> CheckFn:
    def check(state: StateView) -> None:
        flat = state.flat(address)
        actual = flat.get(key)
        if actual is None and value == '0' and (key.endswith('.#') or key.endswith('.%')):
            return  # empty collections are absent in the flat form.
        if actual != value:
            raise AssertionError(f"{address}: Attribute {key!r} expected {value!r}, got {actual!r}")
    return check


def check_resource_attr_set(address: str, key: str) -> CheckFn:
    def check(state: StateView) -> None:
        flat = state.flat(address)
        if not flat.get(key):
            raise AssertionError(f"{address}: Attribute {key!r} expected to be set")
    return check


def check_no_resource_attr(address: str, key: str) -> CheckFn:
    def check(state: StateView) -> None:
        flat = state.flat(address)
        actual = flat.get(key)
        if actual is None or ((key.endswith('.#') or key.endswith('.%')) and actual == '0'):
            return
        raise AssertionError(f"{address}: Attribute {key!r} found when not expected: {actual!r}")
    return check


def compose_check(*checks: CheckFn) -> CheckFn:
    """ Run the checks in order, and stop at the first failure. """
    async def check(state: StateView) -> None:
        for idx, fn in enumerate(checks, start=1):
            try:
                await _call_check(fn, state)
            except AssertionError as e:
                raise AssertionError(f"Check {idx}/{len(checks)} error: {e}") from e
    return check


def compose_aggregate_check(*checks: CheckFn) -> CheckFn:
    """ Run all the checks, and report all the failures at once. """
    async def check(state: StateView) -> None:
        failures: list[str] = []
        for idx, fn in enumerate(checks, start=1):
            try:
                await _call_check(fn, state)
            except AssertionError as e:
                failures.append(f"Check {idx}/{len(checks)} error: {e}")
        if failures:
            raise AssertionError('\n'.join(failures))
    return check


def exists_check(address: str) -> CheckFn:
    """ Verify that the remote object exists, using the resource's own ``exists``/``read``. """
    async def check(state: StateView) -> None:
        entry = state.get(address)
        provider, resource = state.metas.registry.get_resource(entry.type)
        await _verify_existence(state, entry, provider=provider, resource=resource, expected=True)
    return check


def destroyed_check(*types: str) -> CheckFn:
    """ Verify that the remote objects of the resources (of the given types, if any) are gone. """
    async def check(state: StateView) -> None:
        for entry in state.entries:
            if types and entry.type not in types:
                continue
            provider, resource = state.metas.registry.get_resource(entry.type)
            await _verify_existence(state, entry, provider=provider, resource=resource, expected=False)
    return check


async def _verify_existence(
        state: StateView,
        entry: documents.StateEntry,
        *,
        provider: schemas.Provider,
        resource: schemas.Resource,
        expected: bool,
) -> None:
    meta = await state.metas.get(provider)
    resource_data = data.ResourceData(resource.schema, state=entry.attributes, id=entry.id)
    logger = loggers.ObjectLogger(type=entry.type, name=entry.name, id=entry.id)
    if resource.exists is not None:
        found: Any = await resource.exists(data=resource_data, meta=meta, logger=logger)
    else:
        await resource.read(data=resource_data, meta=meta, logger=logger)
        found = bool(resource_data.id)
    if found and not expected:
        raise AssertionError(f"{entry.address} still exists: {entry.id}")
    if not found and expected:
        raise AssertionError(f"{entry.address} does not exist: {entry.id}")
