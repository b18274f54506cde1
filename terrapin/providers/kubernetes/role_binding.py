"""
The ``kubernetes_role_binding`` resource: RBAC v1 RoleBindings.

A role binding grants the permissions of a Role (or a ClusterRole) to a list
of subjects (users, groups, service accounts) within a namespace. The role
reference cannot be changed in Kubernetes once the binding is created,
so a changed ``role_ref`` means a new binding. The subjects, labels and
annotations are patched in place.
"""
from terrapin._cogs.clients import errors
from terrapin._cogs.helpers import typedefs
from terrapin._cogs.structs import patches, references
from terrapin._core.schema.data import ResourceData
from terrapin._core.schema.schemas import Block, Resource, Schema, ValueType
from terrapin.providers.kubernetes import structures
from terrapin.providers.kubernetes.clients import KubernetesClient

RESOURCE = references.ROLE_BINDINGS

SCHEMA = {
    'metadata': structures.metadata_schema('role binding'),
    'role_ref': Schema(ValueType.LIST, required=True, force_new=True, min_items=1, max_items=1, elem=Block({
        'api_group': Schema(ValueType.STRING, optional=True, default=structures.RBAC_GROUP),
        'kind': Schema(ValueType.STRING, required=True, choices=['Role', 'ClusterRole']),
        'name': Schema(ValueType.STRING, required=True),
    })),
    'subject': Schema(ValueType.LIST, required=True, min_items=1, elem=Block({
        'api_group': Schema(ValueType.STRING, optional=True, computed=True),
        'kind': Schema(ValueType.STRING, required=True, choices=['User', 'Group', 'ServiceAccount']),
        'name': Schema(ValueType.STRING, required=True),
        'namespace': Schema(ValueType.STRING, optional=True, computed=True),
    })),
}


def build_body(data: ResourceData) -> dict:
    metadata = structures.expand_metadata(data.get('metadata.0'))
    return {
        'apiVersion': RESOURCE.api_version,
        'kind': RESOURCE.kind,
        'metadata': metadata,
        'roleRef': structures.expand_role_ref(data.get('role_ref.0')),
        'subjects': structures.expand_subjects(data.get('subject'), namespace=metadata['namespace']),
    }


async def create(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    body = build_body(data)
    logger.info(f"Creating new role binding: {body!r}")
    created = await meta.create_obj(RESOURCE, body=body, logger=logger)
    logger.info(f"Submitted new role binding: {created!r}")

    data.set_id(structures.build_id(created.get('metadata', {})))
    await read(data=data, meta=meta, logger=logger)


async def read(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    namespace, name = structures.parse_id(data.id)
    logger.info(f"Reading role binding {name!r}")
    try:
        body = await meta.read_obj(RESOURCE, namespace=namespace, name=name, logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Removing role binding {data.id!r} because it's gone.")
        data.set_id(None)
        return
    logger.debug(f"Received role binding: {body!r}")

    data.set('metadata', [structures.flatten_metadata(body.get('metadata', {}), data.get('metadata.0'))])
    data.set('role_ref', [structures.flatten_role_ref(body.get('roleRef', {}))])
    data.set('subject', structures.flatten_subjects(body.get('subjects') or []))


async def update(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    namespace, name = structures.parse_id(data.id)

    old_metadata, new_metadata = data.get_change('metadata.0')
    old_subjects, new_subjects = data.get_change('subject')
    original = {
        'metadata': structures.expand_metadata(old_metadata),
        'subjects': structures.expand_subjects(old_subjects, namespace=namespace),
    }

    patch = patches.Patch(body=original)
    metadata_changes = structures.diff_metadata(old_metadata, new_metadata)
    if metadata_changes:
        patch['metadata'] = metadata_changes
    if data.has_change('subject'):
        patch['subjects'] = structures.expand_subjects(new_subjects, namespace=namespace)

    json_patch = patch.as_json_patch()
    if json_patch:
        logger.info(f"Updating role binding {name!r}: {json_patch!r}")
        updated = await meta.patch_obj(RESOURCE, namespace=namespace, name=name,
                                       patch=json_patch, logger=logger)
        logger.info(f"Submitted updated role binding: {updated!r}")

    await read(data=data, meta=meta, logger=logger)


async def delete(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> None:
    namespace, name = structures.parse_id(data.id)
    logger.info(f"Deleting role binding: {name!r}")
    try:
        await meta.delete_obj(RESOURCE, namespace=namespace, name=name, logger=logger)
    except errors.APINotFoundError:
        logger.warning(f"Role binding {data.id!r} is already gone.")
    else:
        logger.info(f"Role binding {name!r} deleted")
    data.set_id(None)


async def exists(
        *,
        data: ResourceData,
        meta: KubernetesClient,
        logger: typedefs.Logger,
) -> bool:
    namespace, name = structures.parse_id(data.id)
    logger.info(f"Checking role binding {name!r}")
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
    structures.parse_id(data.id)  # fail early on malformed identifiers.


role_binding = Resource(
    schema=SCHEMA,
    create=create,
    read=read,
    update=update,
    delete=delete,
    exists=exists,
    importer=importer,
)
