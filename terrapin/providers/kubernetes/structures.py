"""
Conversions between the resources' fields and the Kubernetes objects' bodies.

The "expand" functions convert the configured fields into the API structures
(snake_case into camelCase, empty values omitted). The "flatten" functions do
the reverse, for storing the remote state into the resources' fields.
"""
from typing import Any, Mapping

from terrapin._cogs.structs import patches
from terrapin._core.schema.schemas import Block, Schema, ValueType

RBAC_GROUP = 'rbac.authorization.k8s.io'


class IdentifierError(ValueError):
    """ Raised when the identifier of a namespaced object is malformed. """


def build_id(metadata: Mapping[str, Any]) -> str:
    return f"{metadata.get('namespace', '')}/{metadata.get('name', '')}"


def parse_id(id: str) -> tuple[str, str]:
    parts = id.split('/')
    if len(parts) != 2 or not all(parts):
        raise IdentifierError(f"Unexpected ID format ({id!r}), expected 'namespace/name'.")
    namespace, name = parts
    return namespace, name


def metadata_schema(kind: str) -> Schema:
    return Schema(ValueType.LIST, required=True, max_items=1, elem=Block({
        'annotations': Schema(ValueType.MAP, optional=True,
                              description=f"An unstructured key value map stored with the {kind}."),
        'generate_name': Schema(ValueType.STRING, optional=True, force_new=True,
                                description="Prefix for the server-generated unique name."),
        'generation': Schema(ValueType.INT, computed=True),
        'labels': Schema(ValueType.MAP, optional=True,
                         description=f"Map of string keys and values to organize the {kind}."),
        'name': Schema(ValueType.STRING, optional=True, computed=True, force_new=True),
        'namespace': Schema(ValueType.STRING, optional=True, force_new=True, default='default'),
        'resource_version': Schema(ValueType.STRING, computed=True),
        'self_link': Schema(ValueType.STRING, computed=True),
        'uid': Schema(ValueType.STRING, computed=True),
    }))


def expand_metadata(block: Mapping[str, Any]) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if block.get('name'):
        metadata['name'] = block['name']
    if block.get('generate_name'):
        metadata['generateName'] = block['generate_name']
    if block.get('namespace'):
        metadata['namespace'] = block['namespace']
    if block.get('labels'):
        metadata['labels'] = dict(block['labels'])
    if block.get('annotations'):
        metadata['annotations'] = dict(block['annotations'])
    return metadata


def flatten_metadata(
        metadata: Mapping[str, Any],
        configured: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    configured = configured or {}
    return {
        'annotations': _remove_internal_keys(metadata.get('annotations'), configured.get('annotations')),
        'generate_name': metadata.get('generateName', ''),
        'generation': metadata.get('generation', 0),
        'labels': _remove_internal_keys(metadata.get('labels'), configured.get('labels')),
        'name': metadata.get('name', ''),
        'namespace': metadata.get('namespace', ''),
        'resource_version': metadata.get('resourceVersion', ''),
        'self_link': metadata.get('selfLink', ''),
        'uid': metadata.get('uid', ''),
    }


def _remove_internal_keys(
        remote: Mapping[str, str] | None,
        configured: Mapping[str, str] | None,
) -> dict[str, str]:
    # The keys added by Kubernetes itself are not ours to manage -- unless declared explicitly.
    configured = configured or {}
    return {key: val for key, val in (remote or {}).items()
            if key in configured or not is_internal_key(key)}


def is_internal_key(key: str) -> bool:
    prefix, _, _ = key.rpartition('/')
    return prefix == 'kubernetes.io' or prefix.endswith('.kubernetes.io')


def diff_metadata(old: Mapping[str, Any], new: Mapping[str, Any]) -> dict[str, Any]:
    """ A merge-patch-like diff of the mutable metadata fields: labels & annotations. """
    changes: dict[str, Any] = {}
    for key in ['labels', 'annotations']:
        diff = patches.diff_mappings(old.get(key), new.get(key))
        if diff:
            changes[key] = diff
    return changes


def expand_role_ref(block: Mapping[str, Any]) -> dict[str, Any]:
    return {
        'apiGroup': block.get('api_group') or RBAC_GROUP,
        'kind': block.get('kind', ''),
        'name': block.get('name', ''),
    }


def flatten_role_ref(role_ref: Mapping[str, Any]) -> dict[str, Any]:
    return {
        'api_group': role_ref.get('apiGroup', ''),
        'kind': role_ref.get('kind', ''),
        'name': role_ref.get('name', ''),
    }


def expand_subjects(
        blocks: list[Mapping[str, Any]],
        *,
        namespace: str,
) -> list[dict[str, Any]]:
    subjects = []
    for block in blocks:
        kind = block.get('kind', '')
        is_account = kind == 'ServiceAccount'
        subject: dict[str, Any] = {'kind': kind, 'name': block.get('name', '')}
        api_group = block.get('api_group') or ('' if is_account else RBAC_GROUP)
        if api_group:
            subject['apiGroup'] = api_group
        subject_namespace = block.get('namespace') or (namespace if is_account else '')
        if subject_namespace:
            subject['namespace'] = subject_namespace
        subjects.append(subject)
    return subjects


def flatten_subjects(subjects: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            'api_group': subject.get('apiGroup', ''),
            'kind': subject.get('kind', ''),
            'name': subject.get('name', ''),
            'namespace': subject.get('namespace', ''),
        }
        for subject in subjects
    ]


def expand_rules(blocks: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    rules = []
    for block in blocks:
        rule: dict[str, Any] = {
            'apiGroups': list(block.get('api_groups', [])),
            'resources': list(block.get('resources', [])),
            'verbs': list(block.get('verbs', [])),
        }
        if block.get('resource_names'):
            rule['resourceNames'] = list(block['resource_names'])
        rules.append(rule)
    return rules


def flatten_rules(rules: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            'api_groups': list(rule.get('apiGroups') or []),
            'resource_names': list(rule.get('resourceNames') or []),
            'resources': list(rule.get('resources') or []),
            'verbs': list(rule.get('verbs') or []),
        }
        for rule in rules
    ]
