"""
Flattening of the nested attributes into a single-level string mapping.

The flat form is used to check the attributes in the acceptance tests,
to compare the imported resources with the created ones, and to show
the state in the CLI. The keys are dotted paths, with the counters
of the lists (``subject.#``) and of the maps (``labels.%``)::

    {'id': 'default/binding',
     'role_ref.#': '1',
     'role_ref.0.kind': 'Role',
     'labels.%': '1',
     'labels.team': 'core'}
"""
from typing import Any, Mapping

from terrapin._core.schema import schemas

SENSITIVE_MASK = '(sensitive)'


def flatten(
        schema: Mapping[str, schemas.Schema],
        attributes: Mapping[str, Any],
        *,
        id: str | None = None,
        mask_sensitive: bool = False,
) -> dict[str, str]:
    result: dict[str, str] = {}
    if id is not None:
        result['id'] = id
    _flatten_block(schema, attributes, prefix='', result=result, mask_sensitive=mask_sensitive)
    return result


def _flatten_block(
        schema: Mapping[str, schemas.Schema],
        attributes: Mapping[str, Any],
        *,
        prefix: str,
        result: dict[str, str],
        mask_sensitive: bool,
) -> None:
    for key, field in schema.items():
        value = attributes.get(key)
        if value is None:
            continue
        path = f'{prefix}{key}'
        block = field.block
        if field.sensitive and mask_sensitive:
            result[path] = SENSITIVE_MASK
        elif field.type.is_collection:
            result[f'{path}.#'] = str(len(value))
            for idx, item in enumerate(value):
                if block is not None:
                    _flatten_block(block.schema, item or {}, prefix=f'{path}.{idx}.',
                                   result=result, mask_sensitive=mask_sensitive)
                else:
                    result[f'{path}.{idx}'] = format_scalar(item)
        elif field.type is schemas.ValueType.MAP:
            result[f'{path}.%'] = str(len(value))
            for subkey, item in value.items():
                result[f'{path}.{subkey}'] = format_scalar(item)
        else:
            result[path] = format_scalar(value)


def format_scalar(value: object) -> str:
    if value is None:
        return ''
    elif isinstance(value, bool):
        return 'true' if value else 'false'
    else:
        return str(value)
