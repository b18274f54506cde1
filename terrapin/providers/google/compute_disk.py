"""
The ``google_compute_disk`` resource: zonal persistent disks.

Only the basics are supported: the size, the type, the source image, and
the labels. Everything except the labels requires a new disk when changed.
"""
import urllib.parse
from typing import Any

from terrapin._cogs.clients import errors
from terrapin._cogs.helpers import typedefs
from terrapin._core.schema.data import ResourceData
from terrapin._core.schema.schemas import Resource, Schema, ValueType
from terrapin.providers.google import operations
from terrapin.providers.google.clients import GoogleClient

SCHEMA = {
    'name': Schema(ValueType.STRING, required=True, force_new=True),
    'zone': Schema(ValueType.STRING, required=True, force_new=True),
    'size': Schema(ValueType.INT, optional=True, computed=True, force_new=True,
                   description="The size in GB; by default, the size of the image."),
    'type': Schema(ValueType.STRING, optional=True, computed=True, force_new=True,
                   description="The disk type's name, e.g. pd-standard or pd-ssd."),
    'image': Schema(ValueType.STRING, optional=True, force_new=True),
    'project': Schema(ValueType.STRING, optional=True, force_new=True),
    'labels': Schema(ValueType.MAP, optional=True),
    'self_link': Schema(ValueType.STRING, computed=True),
    'label_fingerprint': Schema(ValueType.STRING, computed=True),
}


def get_url(project: str, zone: str, name: str | None = None) -> str:
    url = f'projects/{project}/zones/{zone}/disks'
    return f'{url}/{name}' if name else url


async def create(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> None:
    project = meta.get_project(data)
    zone = data.get('zone')

    disk: dict[str, Any] = {'name': data.get('name')}
    size, ok = data.get_ok('size')
    if ok:
        disk['sizeGb'] = str(size)
    disk_type, ok = data.get_ok('type')
    if ok:
        disk['type'] = f'projects/{project}/zones/{zone}/diskTypes/{disk_type}'
    labels, ok = data.get_ok('labels')
    if ok:
        disk['labels'] = labels

    url = get_url(project, zone)
    image, ok = data.get_ok('image')
    if ok:
        url += '?' + urllib.parse.urlencode({'sourceImage': image})

    logger.info(f"Creating a disk {disk['name']!r} in {zone!r}.")
    op = await meta.post(url, body=disk, logger=logger)

    data.set_id(disk['name'])
    await operations.wait(op, meta=meta, project=project, activity="Creating Disk", logger=logger)
    await read(data=data, meta=meta, logger=logger)


async def read(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> None:
    project = meta.get_project(data)
    try:
        disk = await meta.get(get_url(project, data.get('zone'), data.id), logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Removing disk {data.get('name')!r} because it's gone.")
        data.set_id(None)
        return

    data.set('name', disk.get('name'))
    data.set('self_link', disk.get('selfLink'))
    data.set('size', int(disk.get('sizeGb') or 0))
    data.set('type', str(disk.get('type') or '').rsplit('/', 1)[-1])
    data.set('labels', disk.get('labels'))
    data.set('label_fingerprint', disk.get('labelFingerprint'))


async def update(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> None:
    project = meta.get_project(data)
    zone = data.get('zone')

    data.partial(True)

    if data.has_change('labels'):
        body = {'labels': data.get('labels'), 'labelFingerprint': data.get('label_fingerprint')}
        logger.info(f"Setting labels on disk {data.id!r}: {body['labels']!r}")
        op = await meta.post(f'{get_url(project, zone, data.id)}/setLabels', body=body, logger=logger)
        await operations.wait(op, meta=meta, project=project, activity="Setting labels on disk", logger=logger)
        data.set_partial('labels')

    data.partial(False)

    await read(data=data, meta=meta, logger=logger)


async def delete(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> None:
    project = meta.get_project(data)
    try:
        op = await meta.delete(get_url(project, data.get('zone'), data.id), logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Removing disk {data.get('name')!r} because it's gone.")
        data.set_id(None)
        return

    await operations.wait(op, meta=meta, project=project, activity="Deleting Disk", logger=logger)
    data.set_id(None)


async def exists(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> bool:
    project = meta.get_project(data)
    try:
        await meta.get(get_url(project, data.get('zone'), data.id), logger=logger)
    except errors.APINotFoundError:
        data.set_id(None)
        return False
    return True


compute_disk = Resource(
    schema=SCHEMA,
    create=create,
    read=read,
    update=update,
    delete=delete,
    exists=exists,
)
