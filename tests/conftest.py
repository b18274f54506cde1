import dataclasses
import io
import json
import logging
import re
import sys
from typing import Any

import aiohttp.web
import pytest
from aiohttp.test_utils import TestServer

import terrapin
from terrapin._cogs.configs.configuration import ProviderSettings
from terrapin._cogs.structs.credentials import ConnectionInfo
from terrapin._core.engines.loggers import ObjectPrefixingTextFormatter, configure
from terrapin._core.registries import ProviderRegistry
from terrapin._core.schema.schemas import Provider, Resource, Schema, ValueType
from terrapin.providers.google.clients import GoogleClient
from terrapin.providers.kubernetes.clients import KubernetesClient


def pytest_configure(config):
    config.addinivalue_line('markers', "acceptance: tests against the real APIs.")


def pytest_addoption(parser):
    parser.addoption("--with-acceptance", action="store_true", help="Include the acceptance tests.")


def pytest_collection_modifyitems(config, items):

    def _is_acceptance(item):
        path = item.location[0]
        return path.startswith('tests/acceptance/')

    # Acceptance tests need a real cluster and a real cloud project. Skip them by default,
    # so that the contributors can run pytest without initial tweaks.
    mark_acceptance = pytest.mark.acceptance
    mark_skip = pytest.mark.skip(reason="Acceptance tests are not enabled. "
                                        "Use --with-acceptance to enable.")
    for item in items:
        if _is_acceptance(item):
            item.add_marker(mark_acceptance)
            if not config.getoption('--with-acceptance'):
                item.add_marker(mark_skip)


@pytest.fixture()
def settings():
    settings = ProviderSettings()
    settings.networking.error_backoffs = [0, 0]
    settings.operations.delay = 0
    settings.operations.interval = 0
    settings.operations.timeout = 5
    return settings


@pytest.fixture(autouse=True)
def registry():
    """
    Ensure that the tests have a fresh new global (not re-used) registry.
    For most tests: not the smart one with the built-in providers, but an empty one!
    """
    old_registry = terrapin.get_default_registry()
    new_registry = ProviderRegistry()
    terrapin.set_default_registry(new_registry)
    yield new_registry
    terrapin.set_default_registry(old_registry)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """ The providers read the env vars for their defaults; the tests must not depend on them. """
    for name in ['KUBE_HOST', 'KUBE_TOKEN', 'KUBE_USER', 'KUBE_PASSWORD', 'KUBE_INSECURE',
                 'KUBE_CONFIG', 'KUBECONFIG', 'KUBE_CTX', 'KUBE_LOAD_CONFIG_FILE',
                 'KUBE_CLIENT_CERT_DATA', 'KUBE_CLIENT_KEY_DATA', 'KUBE_CLUSTER_CA_CERT_DATA',
                 'GOOGLE_OAUTH_ACCESS_TOKEN', 'GOOGLE_PROJECT', 'GOOGLE_CLOUD_PROJECT',
                 'CLOUDSDK_CORE_PROJECT', 'GOOGLE_REGION', 'CLOUDSDK_COMPUTE_REGION',
                 'GOOGLE_ZONE', 'CLOUDSDK_COMPUTE_ZONE', 'GOOGLE_COMPUTE_CUSTOM_ENDPOINT',
                 'TERRAPIN_ACC']:
        monkeypatch.delenv(name, raising=False)


#
# A fake HTTP API for all the clients. Reasons:
# 1. We do not test the remote systems, we test our layers on top of them,
#    so the APIs should be simulated and assumed to be functional.
# 2. No external calls must be made under any circumstances.
#    The unit-tests must be fully isolated from the environment.
#
@dataclasses.dataclass(frozen=True)
class FakeRequest:
    method: str
    path: str
    query: dict[str, str]
    headers: dict[str, str]
    data: Any


class FakeAPI:
    """
    A fake HTTP server with pre-programmed responses and recorded requests.

    The responses are queued per method & path: every request takes the next
    response from the queue, the last response is repeated for all the next
    requests. Unrouted requests get HTTP 418, so that they are noticeable.

    Sample usage::

        async def test_me(fake_api):
            fake_api.add('get', '/path', json={'a': 'b'})
            fake_api.add('get', '/path', status=404)
            do_something(fake_api.url)
            assert fake_api.requests[0].method == 'GET'
    """

    def __init__(self) -> None:
        super().__init__()
        self.url = ''
        self.routes: dict[tuple[str, str], list[tuple[int, Any]]] = {}
        self.requests: list[FakeRequest] = []

    def add(self, method: str, path: str, *, status: int = 200, json: Any = None) -> None:
        path = '/' + path.lstrip('/')
        self.routes.setdefault((method.upper(), path), []).append((status, json))

    def find(self, method: str, path: str | None = None) -> list[FakeRequest]:
        return [request for request in self.requests
                if request.method == method.upper()
                and (path is None or request.path == '/' + path.lstrip('/'))]

    async def handle(self, request: aiohttp.web.Request) -> aiohttp.web.Response:
        text = await request.text()
        try:
            data = json.loads(text) if text else None
        except json.JSONDecodeError:
            data = text
        self.requests.append(FakeRequest(
            method=request.method,
            path=request.path,
            query=dict(request.query),
            headers=dict(request.headers),
            data=data,
        ))

        queue = self.routes.get((request.method, request.path))
        if not queue:
            return aiohttp.web.json_response({'message': f"Unrouted: {request.method} {request.path}"},
                                             status=418)
        status, payload = queue.pop(0) if len(queue) > 1 else queue[0]
        return aiohttp.web.json_response(payload if payload is not None else {}, status=status)


@pytest.fixture()
async def fake_api():
    api = FakeAPI()
    app = aiohttp.web.Application()
    app.router.add_route('*', '/{tail:.*}', api.handle)
    server = TestServer(app)
    await server.start_server()
    api.url = str(server.make_url('/'))
    try:
        yield api
    finally:
        await server.close()


@pytest.fixture()
async def k8s_client(fake_api, settings):
    client = KubernetesClient(ConnectionInfo(server=fake_api.url, token='k8s-token'), settings=settings)
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture()
async def google_client(fake_api, settings):
    info = ConnectionInfo(server=fake_api.url, token='gcp-token')
    client = GoogleClient(info, settings=settings, project='proj', zone='us-central1-a')
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture()
def logger():
    return logging.getLogger('terrapin.tests')


#
# Helpers for the logging checks.
#
@pytest.fixture()
def logstream(caplog):
    """ Prefixing is done at the final output. We have to intercept it. """

    logger = logging.getLogger()
    handlers = list(logger.handlers)

    # Setup all log levels of sub-libraries. A side-effect: the handlers are also added.
    configure(verbose=True)

    # Remove any stream handlers added in the step above. But keep the caplog's handlers.
    for handler in list(logger.handlers):
        if isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr:
            logger.removeHandler(handler)

    # Inject our stream-intercepting handler.
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    formatter = ObjectPrefixingTextFormatter('prefix %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    try:
        with caplog.at_level(logging.DEBUG):
            yield stream
    finally:
        logger.removeHandler(handler)
        logger.handlers[:] = handlers  # undo `configure()`


@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    caplog.set_level(logging.DEBUG)

    def assert_logs_fn(patterns, prohibited=[]):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            if remaining_patterns and re.search(remaining_patterns[0], message):
                remaining_patterns[:1] = []
            for pattern in prohibited:
                if re.search(pattern, message):
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")
    return assert_logs_fn


#
# A fake in-memory provider for the engines, the CLI, and the testing harness.
# The remote objects are stored in a dict, the failures are injected per object name.
#
class FakeCloud:

    def __init__(self) -> None:
        super().__init__()
        self.objects: dict[str, dict[str, Any]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}  # (operation, name) -> error
        self.calls: list[tuple[str, str]] = []  # (operation, id or name)
        self.configured: list[dict[str, Any]] = []
        self.closed = 0
        self._counter = 0

    def fail(self, operation: str, name: str, error: Exception | None = None) -> None:
        self.failures[(operation, name)] = error or RuntimeError(f"{operation} of {name} is broken")

    def check(self, operation: str, name: str) -> None:
        self.calls.append((operation, name))
        if (operation, name) in self.failures:
            raise self.failures[(operation, name)]

    def next_id(self) -> str:
        self._counter += 1
        return f'id-{self._counter}'


class FakeMeta:
    def __init__(self, cloud: FakeCloud) -> None:
        self.cloud = cloud

    async def close(self) -> None:
        self.cloud.closed += 1


FAKE_SCHEMA = {
    'name': Schema(ValueType.STRING, required=True, force_new=True),
    'size': Schema(ValueType.INT, optional=True),
    'tags': Schema(ValueType.MAP, optional=True),
    'secret': Schema(ValueType.STRING, optional=True, sensitive=True),
    'uid': Schema(ValueType.STRING, computed=True),
}


async def fake_create(*, data, meta, logger):
    name = data.get('name')
    meta.cloud.check('create', name)
    id = meta.cloud.next_id()
    meta.cloud.objects[id] = {'name': name, 'size': data.get('size'),
                              'tags': data.get('tags'), 'secret': data.get('secret')}
    data.set_id(id)
    await fake_read(data=data, meta=meta, logger=logger)


async def fake_read(*, data, meta, logger):
    meta.cloud.check('read', data.id)
    obj = meta.cloud.objects.get(data.id)
    if obj is None:
        data.set_id(None)
        return
    data.set('name', obj['name'])
    data.set('size', obj['size'])
    data.set('tags', obj['tags'])
    data.set('secret', obj['secret'])
    data.set('uid', f'uid-{data.id}')


async def fake_update(*, data, meta, logger):
    obj = meta.cloud.objects[data.id]
    data.partial(True)
    if data.has_change('size'):
        meta.cloud.check('update-size', obj['name'])
        obj['size'] = data.get('size')
        data.set_partial('size')
    if data.has_change('tags'):
        meta.cloud.check('update-tags', obj['name'])
        obj['tags'] = data.get('tags')
        data.set_partial('tags')
    data.partial(False)
    await fake_read(data=data, meta=meta, logger=logger)


async def fake_delete(*, data, meta, logger):
    meta.cloud.check('delete', data.get('name'))
    meta.cloud.objects.pop(data.id, None)
    data.set_id(None)


async def fake_exists(*, data, meta, logger):
    meta.cloud.check('exists', data.id)
    return data.id in meta.cloud.objects


@pytest.fixture()
def fake_cloud():
    return FakeCloud()


@pytest.fixture()
def fake_provider(registry, fake_cloud):

    async def configure(*, data, settings, logger):
        fake_cloud.configured.append({'endpoint': data.get('endpoint')})
        return FakeMeta(fake_cloud)

    provider = Provider(
        name='fake',
        schema={'endpoint': Schema(ValueType.STRING, optional=True, default='memory')},
        resources={
            'fake_thing': Resource(schema=FAKE_SCHEMA, create=fake_create, read=fake_read,
                                   update=fake_update, delete=fake_delete, exists=fake_exists),
        },
        configure=configure,
    )
    registry.register(provider)
    return provider
