"""
The ``kubernetes_role`` resource: RBAC v1 Roles, a namespaced set of permissions.
"""
from terrapin._cogs.clients import errors
from terrapin._cogs.helpers import typedefs
from terrapin._cogs.structs import patches, references
from terrapin._core.schema.data import ResourceData
from terrapin._core.schema.schemas import Block, Resource, Schema, ValueType
from terrapin.providers.kubernetes import structures
from terrapin.providers.kubernetes.clients import KubernetesClient

RESOURCE = references.ROLES

STRINGS = Schema(ValueType.STRING, optional=True)

SCHEMA = {
    'metadata': structures.metadata_schema('role'),
    'rule': Schema(ValueType.LIST, required=True, min_items=1, elem=Block({
        'api_groups': Schema(ValueType.LIST, required=True, elem=STRINGS),
        'resource_names': Schema(ValueType.LIST, optional=True, elem=STRINGS),
        'resources': Schema(ValueType.LIST, required=True, elem=STRINGS),
        'verbs': Schema(ValueType.LIST, required=True, elem=STRINGS),
    })),
}


async def create(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    body = {
        'apiVersion': RESOURCE.api_version,
        'kind': RESOURCE.kind,
        'metadata': structures.expand_metadata(data.get('metadata.0')),
        'rules': structures.expand_rules(data.get('rule')),
    }
    logger.info(f"Creating new role: {body!r}")
    created = await meta.create_obj(RESOURCE, body=body, logger=logger)
    logger.info(f"Submitted new role: {created!r}")

    data.set_id(structures.build_id(created.get('metadata', {})))
    await read(data=data, meta=meta, logger=logger)


async def read(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    namespace, name = structures.parse_id(data.id)
    logger.info(f"Reading role {name!r}")
    try:
        body = await meta.read_obj(RESOURCE, namespace=namespace, name=name, logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Removing role {data.id!r} because it's gone.")
        data.set_id(None)
        return

    data.set('metadata', [structures.flatten_metadata(body.get('metadata', {}), data.get('metadata.0'))])
    data.set('rule', structures.flatten_rules(body.get('rules') or []))


async def update(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    namespace, name = structures.parse_id(data.id)

    old_metadata, new_metadata = data.get_change('metadata.0')
    old_rules = structures.expand_rules(data.get_old('rule'))
    new_rules = structures.expand_rules(data.get('rule'))
    original = {
        'metadata': structures.expand_metadata(old_metadata),
        'rules': old_rules,
    }

    patch = patches.Patch(body=original)
    metadata_changes = structures.diff_metadata(old_metadata, new_metadata)
    if metadata_changes:
        patch['metadata'] = metadata_changes
    if old_rules != new_rules:
        patch['rules'] = new_rules

    json_patch = patch.as_json_patch()
    if json_patch:
        logger.info(f"Updating role {name!r}: {json_patch!r}")
        await meta.patch_obj(RESOURCE, namespace=namespace, name=name, patch=json_patch, logger=logger)

    await read(data=data, meta=meta, logger=logger)


async def delete(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    namespace, name = structures.parse_id(data.id)
    logger.info(f"Deleting role: {name!r}")
    try:
        await meta.delete_obj(RESOURCE, namespace=namespace, name=name, logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Role {data.id!r} is already gone.")
    data.set_id(None)


async def exists(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> bool:
    namespace, name = structures.parse_id(data.id)
    try:
        await meta.read_obj(RESOURCE, namespace=namespace, name=name, logger=logger)
    except errors.APINotFoundError:
        data.set_id(None)
        return False
    return True


async def importer(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    structures.parse_id(data.id)


role = Resource(
    schema=SCHEMA,
    create=create,
    read=read,
    update=update,
    delete=delete,
    exists=exists,
    importer=importer,
)
