"""
Declarative schemas of the resources and the providers.

A schema is a mapping of field names to field declarations (:class:`Schema`).
Every field has a type, and the flags that define how the field is treated
by the engines:

* ``required`` fields must be set in the configuration;
* ``optional`` fields can be set in the configuration, or omitted;
* ``computed`` fields are populated from the remote side; if they are also
  ``optional``, the configured value wins, but an absent one is not a change;
* ``force_new`` fields cannot be changed in place: a changed value means
  that the resource is deleted and created anew;
* ``sensitive`` fields are hidden from the plans and the logs.

Nested blocks (e.g. ``metadata { ... }``) are lists of :class:`Block` elements,
optionally limited by ``min_items``/``max_items``. A block with one element
can be configured as a mapping, without wrapping it into a list.

The configuration documents are validated and normalised against the schemas
before they get into the resources' CRUD functions, so that the functions can
rely on the types and on the defaults being applied.
"""
import collections.abc
import dataclasses
import enum
import os
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence

from terrapin._cogs.helpers import typedefs


class ConfigurationError(Exception):
    """ Raised when the configuration does not match the schema. """

    def __init__(self, problems: Sequence[str], *, what: str | None = None) -> None:
        prefix = f"Invalid configuration of {what}" if what else "Invalid configuration"
        super().__init__(f"{prefix}: " + '; '.join(problems))
        self.problems = list(problems)


class ValueType(enum.Enum):
    STRING = 'string'
    INT = 'int'
    FLOAT = 'float'
    BOOL = 'bool'
    LIST = 'list'
    SET = 'set'
    MAP = 'map'

    @property
    def is_collection(self) -> bool:
        return self in (ValueType.LIST, ValueType.SET)


@dataclasses.dataclass(frozen=True)
class Schema:
    type: ValueType
    required: bool = False
    optional: bool = False
    computed: bool = False
    force_new: bool = False
    sensitive: bool = False
    default: Any = None
    env: Sequence[str] = ()
    elem: 'Schema | Block | None' = None
    min_items: int = 0
    max_items: int = 0
    choices: Sequence[str] = ()
    description: str = ''

    def __post_init__(self) -> None:
        if self.required and (self.optional or self.computed):
            raise ValueError("A required field cannot be optional or computed.")
        if not (self.required or self.optional or self.computed):
            raise ValueError("A field must be either required, optional, or computed.")
        if self.default is not None and not self.optional:
            raise ValueError("Only optional fields can have defaults.")
        if isinstance(self.elem, Block) and not self.type.is_collection:
            raise ValueError("Nested blocks must be declared as lists or sets.")

    @property
    def block(self) -> 'Block | None':
        return self.elem if isinstance(self.elem, Block) else None

    @property
    def item(self) -> 'Schema':
        """ The schema of the scalar items of lists, sets and maps. """
        return self.elem if isinstance(self.elem, Schema) else STRING_ITEM

    @property
    def configurable(self) -> bool:
        return self.required or self.optional

    def zero(self) -> Any:
        if self.type.is_collection:
            return []
        if self.type is ValueType.MAP:
            return {}
        return ZEROES[self.type]


@dataclasses.dataclass(frozen=True)
class Block:
    """ A nested set of fields, as used in the nested blocks and resources. """
    schema: Mapping[str, Schema]


STRING_ITEM = Schema(ValueType.STRING, optional=True)
ZEROES: Mapping[ValueType, Any] = {
    ValueType.STRING: '',
    ValueType.INT: 0,
    ValueType.FLOAT: 0.0,
    ValueType.BOOL: False,
}


class ResourceFn(Protocol):
    def __call__(self, *, data: Any, meta: Any, logger: typedefs.Logger) -> Awaitable[Any]: ...


@dataclasses.dataclass(frozen=True)
class Resource(Block):
    """
    A resource type: its schema and the functions to reconcile the remote state.

    All functions are called with keyword arguments ``data`` (:class:`ResourceData`),
    ``meta`` (whatever the provider's ``configure`` returned), and ``logger``.

    ``exists`` returns a boolean; all other functions return nothing and store
    their results into ``data`` (including its identifier, where applicable).
    An empty identifier after ``read`` means that the resource is gone.
    """
    create: ResourceFn
    read: ResourceFn
    delete: ResourceFn
    update: ResourceFn | None = None
    exists: ResourceFn | None = None
    importer: ResourceFn | None = None

    def __post_init__(self) -> None:
        if self.update is None:
            mutable = [key for key, field in self.schema.items()
                       if field.configurable and not field.force_new]
            if mutable:
                raise ValueError(f"Fields {mutable!r} must be force-new, as there is no update.")


class ProviderMeta(Protocol):
    async def close(self) -> None: ...


ConfigureFn = Callable[..., Awaitable[ProviderMeta]]


@dataclasses.dataclass(frozen=True)
class Provider:
    """
    A provider: a named collection of resource types sharing the same API client.

    ``configure`` is called once per run with the provider's own configuration
    as ``data``, plus ``settings`` and ``logger``, and returns the "meta" object:
    the pre-configured client passed to every CRUD function of the resources.
    """
    name: str
    schema: Mapping[str, Schema]
    resources: Mapping[str, Resource]
    configure: ConfigureFn


def validate(
        schema: Mapping[str, Schema],
        raw: object,
        *,
        what: str | None = None,
) -> dict[str, Any]:
    """
    Validate the raw configuration and return its normalised version.

    All problems are collected and reported at once, each with its dotted path.
    """
    problems: list[str] = []
    result = _normalize_block(schema, raw, path='', problems=problems)
    if problems:
        raise ConfigurationError(problems, what=what)
    return result


def _normalize_block(
        schema: Mapping[str, Schema],
        raw: object,
        *,
        path: str,
        problems: list[str],
) -> dict[str, Any]:
    if raw is None:
        raw = {}
    if not isinstance(raw, collections.abc.Mapping):
        problems.append(f"{path or '.'}: expected a mapping, got {type(raw).__name__}")
        return {}

    for key in raw:
        if key not in schema:
            problems.append(f"{path}{key}: unknown field")

    result: dict[str, Any] = {}
    for key, field in schema.items():
        value = raw.get(key)
        if value is not None and not field.configurable:
            problems.append(f"{path}{key}: computed field cannot be set")
            continue
        if value is None and field.configurable:
            value = _get_default(field)
        if value is None:
            if field.required:
                problems.append(f"{path}{key}: required field is not set")
            continue
        result[key] = _normalize_value(field, value, path=f"{path}{key}", problems=problems)
    return result


def _get_default(field: Schema) -> Any:
    for name in field.env:
        if os.environ.get(name):
            return os.environ[name]
    return field.default


def _normalize_value(
        field: Schema,
        value: object,
        *,
        path: str,
        problems: list[str],
) -> Any:
    block = field.block
    if field.type.is_collection:
        if block is not None and isinstance(value, collections.abc.Mapping):
            value = [value]
        if not isinstance(value, collections.abc.Sequence) or isinstance(value, str):
            problems.append(f"{path}: expected a list, got {type(value).__name__}")
            return []
        if field.min_items and len(value) < field.min_items:
            problems.append(f"{path}: at least {field.min_items} item(s) expected, got {len(value)}")
        if field.max_items and len(value) > field.max_items:
            problems.append(f"{path}: at most {field.max_items} item(s) expected, got {len(value)}")
        if block is not None:
            return [_normalize_block(block.schema, item, path=f"{path}.{idx}.", problems=problems)
                    for idx, item in enumerate(value)]
        items = [_normalize_scalar(field.item, item, path=f"{path}.{idx}", problems=problems)
                 for idx, item in enumerate(value)]
        return sorted(set(items)) if field.type is ValueType.SET else items
    elif field.type is ValueType.MAP:
        if not isinstance(value, collections.abc.Mapping):
            problems.append(f"{path}: expected a mapping, got {type(value).__name__}")
            return {}
        return {str(key): _normalize_scalar(field.item, val, path=f"{path}.{key}", problems=problems)
                for key, val in value.items()}
    else:
        return _normalize_scalar(field, value, path=path, problems=problems)


def _normalize_scalar(
        field: Schema,
        value: object,
        *,
        path: str,
        problems: list[str],
) -> Any:
    try:
        result = convert(field.type, value)
    except (TypeError, ValueError):
        problems.append(f"{path}: expected {field.type.value}, got {value!r}")
        return field.zero()
    if field.choices and result not in field.choices:
        problems.append(f"{path}: expected one of {list(field.choices)!r}, got {result!r}")
    return result


def convert(vtype: ValueType, value: object) -> Any:
    """ Convert a scalar to its declared type, as loosely as YAML & env vars need it. """
    match vtype, value:
        case ValueType.STRING, bool():
            return 'true' if value else 'false'
        case ValueType.STRING, str() | int() | float():
            return str(value)
        case ValueType.INT, bool():
            raise TypeError(f"Booleans are not integers: {value!r}")
        case ValueType.INT, int() | str():
            return int(value)
        case ValueType.FLOAT, bool():
            raise TypeError(f"Booleans are not floats: {value!r}")
        case ValueType.FLOAT, int() | float() | str():
            return float(value)
        case ValueType.BOOL, bool():
            return value
        case ValueType.BOOL, str() if value.lower() in ('true', 'yes', '1'):
            return True
        case ValueType.BOOL, str() if value.lower() in ('false', 'no', '0'):
            return False
        case _:
            raise TypeError(f"Cannot convert {value!r} to {vtype.value}.")
