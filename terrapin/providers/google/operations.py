"""
Waiting for the long-running operations of the Compute Engine API.

Every mutating call (insert, delete, createSnapshot, setLabels, etc)
returns an operation instead of the result. The operation belongs to
a zone, a region, or is global -- depending on the affected resource.
It is polled at its scope's URL until its status is ``DONE``.

A finished operation can still be a failed one: then, it contains
the errors, which are raised as :class:`OperationError`.
"""
import asyncio
from typing import Any, Mapping

from terrapin._cogs.helpers import typedefs
from terrapin.providers.google.clients import GoogleClient

RawOperation = Mapping[str, Any]


class OperationError(Exception):
    """ The operation has finished, but has failed. """

    def __init__(self, activity: str, errors: list[Mapping[str, Any]]) -> None:
        messages = [str(error.get('message') or error.get('code') or error) for error in errors]
        super().__init__(f"{activity} failed: " + '; '.join(messages))
        self.errors = errors


class OperationTimeoutError(Exception):
    """ The operation has not finished in the allowed time. """


def get_scope_url(op: RawOperation, *, project: str) -> str:
    """ The URL of the operation depending on its scope: zonal, regional, or global. """
    name = op['name']
    if op.get('zone'):
        zone = str(op['zone']).rstrip('/').rsplit('/', 1)[-1]
        return f'projects/{project}/zones/{zone}/operations/{name}'
    if op.get('region'):
        region = str(op['region']).rstrip('/').rsplit('/', 1)[-1]
        return f'projects/{project}/regions/{region}/operations/{name}'
    return f'projects/{project}/global/operations/{name}'


async def wait(
        op: RawOperation,
        *,
        meta: GoogleClient,
        project: str,
        activity: str,
        logger: typedefs.Logger,
) -> RawOperation:
    settings = meta.settings.operations
    loop = asyncio.get_running_loop()
    deadline = None if settings.timeout is None else loop.time() + settings.timeout
    url = get_scope_url(op, project=project)

    delay = settings.delay
    while op.get('status') != 'DONE':
        if deadline is not None and loop.time() + delay > deadline:
            raise OperationTimeoutError(
                f"{activity} has not finished in {settings.timeout} seconds "
                f"(operation {op['name']!r} is {op.get('status')!r}).")
        await asyncio.sleep(delay)
        delay = settings.interval

        op = await meta.get(url, logger=logger)
        logger.debug(f"{activity}: operation {op['name']!r} is {op.get('status')!r}.")

    errors = (op.get('error') or {}).get('errors') or []
    if errors:
        raise OperationError(activity, errors)
    return op
