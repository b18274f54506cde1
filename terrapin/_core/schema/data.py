"""
The data of one resource as seen by its CRUD functions.

The resource's functions never see the raw configuration or the raw state.
Instead, they get a :class:`ResourceData`, which combines three layers:

* the values set by the function itself during the operation (``set()``);
* the desired values from the configuration (if the resource is configured);
* the prior state as remembered after the previous operations.

The reading goes top-down through these layers. The computed fields absent
in the configuration are taken from the state, including the computed fields
of the nested blocks (e.g. ``metadata.0.uid``). At the end of the operation,
the new state is collected from the same layers -- unless the "partial" mode
is on: then, only the fields committed with ``set_partial()`` or explicitly
``set()`` are taken from the upper layers, and all other fields remain as
they were in the prior state.
"""
import collections.abc
import copy
import itertools
from typing import Any, Iterable, Mapping

from terrapin._core.schema import schemas


class ResourceData:

    def __init__(
            self,
            schema: Mapping[str, schemas.Schema],
            *,
            state: Mapping[str, Any] | None = None,
            config: Mapping[str, Any] | None = None,
            id: str | None = None,
    ) -> None:
        super().__init__()
        self._schema = schema
        self._state: dict[str, Any] = copy.deepcopy(dict(state or {}))
        self._config: dict[str, Any] | None = (
            None if config is None else merge_computed(schema, config, self._state))
        self._set: dict[str, Any] = {}
        self._id = id or ''
        self._partial = False
        self._partial_keys: set[str] = set()

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} id={self._id!r}>'

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, id: str | None) -> None:
        self._id = id or ''

    def get(self, key: str) -> Any:
        """
        Get the current value by a dotted path, e.g. ``metadata.0.name``.

        The special keys ``#`` and ``%`` give the lengths of lists and maps.
        Missing values are returned as the zero values of their declared types.
        """
        top, *rest = key.split('.')
        found, value = self._get_desired(top)
        return self._walk(top, rest, value if found else None)

    def get_ok(self, key: str) -> tuple[Any, bool]:
        """ Same as :meth:`get`, but also say if the value is set and non-zero. """
        value = self.get(key)
        return value, value is not None and value != self._zero(key.split('.'))

    def get_old(self, key: str) -> Any:
        """ Get the value from the prior state, ignoring the desired changes. """
        top, *rest = key.split('.')
        return self._walk(top, rest, self._state.get(top))

    def get_change(self, key: str) -> tuple[Any, Any]:
        return self.get_old(key), self.get(key)

    def has_change(self, key: str) -> bool:
        old, new = self.get_change(key)
        return old != new

    def set(self, key: str, value: Any) -> None:
        if key not in self._schema:
            raise KeyError(f"Unknown field: {key!r}")
        field = self._schema[key]
        if value is None:
            value = field.zero()
        elif field.type is schemas.ValueType.MAP:
            value = dict(value)
        elif field.type.is_collection:
            value = list(value)
        self._set[key] = value

    def partial(self, on: bool) -> None:
        """
        Turn the partial mode on or off.

        In the partial mode, the new state takes the desired values only of the fields
        committed with :meth:`set_partial` and of the fields explicitly :meth:`set`
        by the function; all other fields keep their prior values.
        The functions turn it on before a multi-step update and turn it off
        when all steps succeed. If a step fails in between, the state reflects
        only the steps that succeeded.
        """
        self._partial = on
        if not on:
            self._partial_keys.clear()

    def set_partial(self, key: str) -> None:
        self._partial_keys.add(key)

    def collect_state(self) -> dict[str, Any] | None:
        """
        Build the new state after an operation (successful or not).

        ``None`` means that the resource is gone (i.e. has no identifier).
        """
        if not self._id:
            return None
        state: dict[str, Any] = {}
        for key in self._schema:
            if self._partial and key not in self._partial_keys and key not in self._set:
                found, value = key in self._state, self._state.get(key)
            else:
                found, value = self._get_desired(key)
            if found and value is not None:
                state[key] = copy.deepcopy(value)
        return state

    def _get_desired(self, key: str) -> tuple[bool, Any]:
        if key in self._set:
            return True, self._set[key]
        if self._config is not None:
            if key in self._config:
                return True, self._config[key]
            if not self._schema[key].computed:  # i.e. removed from the configuration.
                return False, None
        if key in self._state:
            return True, self._state[key]
        return False, None

    def _zero(self, parts: list[str]) -> Any:
        field = lookup(self._schema, parts)
        if len(parts) > 1 and parts[-1].isdigit() and field.block is not None:
            return {}  # an element of a nested block, not the block itself.
        return field.zero()

    def _walk(self, top: str, rest: list[str], value: Any) -> Any:
        zero = self._zero([top] + rest)
        for part in rest:
            if part in ('#', '%'):
                return len(value) if value else 0
            elif isinstance(value, collections.abc.Mapping):
                value = value.get(part)
            elif isinstance(value, collections.abc.Sequence) and not isinstance(value, str):
                try:
                    value = value[int(part)]
                except (IndexError, ValueError):
                    value = None
            else:
                value = None
            if value is None:
                break
        return zero if value is None else value


def lookup(schema: Mapping[str, schemas.Schema], parts: Iterable[str]) -> schemas.Schema:
    """
    Find the declaration of a field by its dotted path's parts.

    The indexes of lists and the keys of maps are skipped when descending.
    The counters (``#`` & ``%``) are declared as integers.
    """
    field: schemas.Schema | None = None
    fields: Mapping[str, schemas.Schema] | None = schema
    for part in parts:
        if part in ('#', '%'):
            return schemas.Schema(schemas.ValueType.INT, computed=True)
        if field is not None and field.block is None:  # a scalar list or a map: skip the index/key.
            field = field.item
            continue
        if field is not None and field.block is not None and part.isdigit():
            fields = field.block.schema
            continue
        if fields is None or part not in fields:
            raise KeyError(f"Unknown field: {'.'.join(parts)!r}")
        field, fields = fields[part], None
    if field is None:
        raise KeyError("An empty path to a field.")
    return field


def merge_computed(
        schema: Mapping[str, schemas.Schema],
        config: Mapping[str, Any],
        state: Mapping[str, Any],
) -> dict[str, Any]:
    """
    Fill the computed fields absent in the configuration from the state.

    It goes into the nested blocks too, element by element (by their positions).
    """
    result: dict[str, Any] = {}
    for key, field in schema.items():
        if key in config:
            value = config[key]
            block = field.block
            if block is not None and isinstance(value, collections.abc.Sequence):
                olds = state.get(key) or []
                value = [
                    merge_computed(block.schema, new or {}, old or {})
                    for new, old in itertools.zip_longest(value, olds[:len(value)])
                ]
            result[key] = copy.deepcopy(value)
        elif field.computed and key in state:
            result[key] = copy.deepcopy(state[key])
    return result
