"""
The ``google_compute_snapshot`` resource: point-in-time copies of zonal disks.

The snapshots are global, while their source disks are zonal: so the creation
is a zonal operation (``disks/{disk}/createSnapshot``), while all other calls
are global. The labels cannot be set on creation, so they are set afterwards
with a separate call, which needs the snapshot's current label fingerprint.
"""
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
    'snapshot_encryption_key_raw': Schema(ValueType.STRING, optional=True, force_new=True, sensitive=True),
    'snapshot_encryption_key_sha256': Schema(ValueType.STRING, computed=True),
    'source_disk_encryption_key_raw': Schema(ValueType.STRING, optional=True, force_new=True, sensitive=True),
    'source_disk_encryption_key_sha256': Schema(ValueType.STRING, computed=True),
    'source_disk': Schema(ValueType.STRING, required=True, force_new=True,
                          description="The disk's name or self-link."),
    'source_disk_link': Schema(ValueType.STRING, computed=True),
    'project': Schema(ValueType.STRING, optional=True, force_new=True),
    'self_link': Schema(ValueType.STRING, computed=True),
    'labels': Schema(ValueType.MAP, optional=True),
    'label_fingerprint': Schema(ValueType.STRING, computed=True),
}


def get_url(project: str, name: str) -> str:
    return f'projects/{project}/global/snapshots/{name}'


def short_name(name_or_link: str) -> str:
    return name_or_link.rstrip('/').rsplit('/', 1)[-1]


async def create(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> None:
    project = meta.get_project(data)
    zone = data.get('zone')
    disk = short_name(data.get('source_disk'))

    snapshot: dict[str, Any] = {'name': data.get('name')}
    key, ok = data.get_ok('snapshot_encryption_key_raw')
    if ok:
        snapshot['snapshotEncryptionKey'] = {'rawKey': key}
    key, ok = data.get_ok('source_disk_encryption_key_raw')
    if ok:
        snapshot['sourceDiskEncryptionKey'] = {'rawKey': key}

    logger.info(f"Creating a snapshot {snapshot['name']!r} of the disk {disk!r} in {zone!r}.")
    op = await meta.post(f'projects/{project}/zones/{zone}/disks/{disk}/createSnapshot',
                         body=snapshot, logger=logger)

    # The snapshot is probably being created, so remember it even if the waiting fails.
    data.set_id(snapshot['name'])
    await operations.wait(op, meta=meta, project=project, activity="Creating Snapshot", logger=logger)

    labels = data.get('labels')
    if labels:
        remote = await meta.get(get_url(project, data.id), logger=logger)
        await update_labels(meta, project=project, name=data.id, labels=labels,
                            fingerprint=remote.get('labelFingerprint', ''), logger=logger)

    await read(data=data, meta=meta, logger=logger)


async def read(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> None:
    project = meta.get_project(data)
    try:
        snapshot = await meta.get(get_url(project, data.id), logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Removing snapshot {data.get('name')!r} because it's gone.")
        data.set_id(None)
        return

    data.set('self_link', snapshot.get('selfLink'))
    data.set('source_disk_link', snapshot.get('sourceDisk'))
    data.set('name', snapshot.get('name'))

    sha256 = (snapshot.get('snapshotEncryptionKey') or {}).get('sha256')
    if sha256:
        data.set('snapshot_encryption_key_sha256', sha256)
    sha256 = (snapshot.get('sourceDiskEncryptionKey') or {}).get('sha256')
    if sha256:
        data.set('source_disk_encryption_key_sha256', sha256)

    data.set('labels', snapshot.get('labels'))
    data.set('label_fingerprint', snapshot.get('labelFingerprint'))


async def update(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> None:
    project = meta.get_project(data)

    data.partial(True)

    if data.has_change('labels'):
        await update_labels(meta, project=project, name=data.id, labels=data.get('labels'),
                            fingerprint=data.get('label_fingerprint'), logger=logger)
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
        op = await meta.delete(get_url(project, data.id), logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Removing snapshot {data.get('name')!r} because it's gone.")
        data.set_id(None)
        return

    await operations.wait(op, meta=meta, project=project, activity="Deleting Snapshot", logger=logger)
    data.set_id(None)


async def exists(
        *,
        data: ResourceData,
        meta: GoogleClient,
        logger: typedefs.Logger,
) -> bool:
    project = meta.get_project(data)
    try:
        await meta.get(get_url(project, data.id), logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Removing snapshot {data.get('name')!r} because it's gone.")
        data.set_id(None)
        return False
    return True


async def update_labels(
        meta: GoogleClient,
        *,
        project: str,
        name: str,
        labels: dict[str, str],
        fingerprint: str,
        logger: typedefs.Logger,
) -> None:
    body = {'labels': labels, 'labelFingerprint': fingerprint}
    logger.info(f"Setting labels on snapshot {name!r}: {labels!r}")
    op = await meta.post(f'{get_url(project, name)}/setLabels', body=body, logger=logger)
    await operations.wait(op, meta=meta, project=project, activity="Setting labels on snapshot", logger=logger)


compute_snapshot = Resource(
    schema=SCHEMA,
    create=create,
    read=read,
    update=update,
    delete=delete,
    exists=exists,
)
