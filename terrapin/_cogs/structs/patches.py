"""
All the structures needed for Kubernetes patching.

The intended changes are accumulated as a dictionary of field overrides, with
``None`` for field deletions -- the same as in a JSON merge-patch (RFC 7386).
They are then converted to a JSON patch (RFC 6902) against the original body,
so that e.g. the added labels are ``add``-ed and the removed ones ``remove``-d,
while the lists (which cannot be merged) are ``replace``-d as a whole.
"""
import collections.abc
from typing import Any, Mapping

from typing_extensions import Literal, TypedDict

JSONPatchOp = Literal["add", "replace", "remove"]


def _escaped_path(keys: list[str]) -> str:
    """Provides an appropriately escaped path for JSON Patches.

    See https://datatracker.ietf.org/doc/html/rfc6901#section-3 for more details.
    """
    return '/'.join(map(lambda key: key.replace('~', '~0').replace('/', '~1'), keys))


class JSONPatchItem(TypedDict, total=False):
    op: JSONPatchOp
    path: str
    value: Any | None


JSONPatch = list[JSONPatchItem]


def diff_mappings(
        old: Mapping[str, Any] | None,
        new: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """
    Calculate the merge-patch-like changes from one mapping to another.

    The changed & added keys get their new values, the removed keys get ``None``.
    """
    old = old or {}
    new = new or {}
    changes: dict[str, Any] = {key: None for key in old if key not in new}
    changes.update({key: val for key, val in new.items() if old.get(key) != val})
    return changes


class Patch(dict[str, Any]):

    def __init__(
        self,
        __src: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(__src or {})
        self._original = body

    def as_json_patch(self) -> JSONPatch:
        return [] if not self else self._as_json_patch(self, keys=[''])

    def _as_json_patch(self, value: object, keys: list[str]) -> JSONPatch:
        result: JSONPatch = []
        if value is None:
            if self._is_in_original_path(keys):
                result.append(JSONPatchItem(op='remove', path=_escaped_path(keys)))
        elif len(keys) > 1 and not self._is_in_original_path(keys):
            result.append(JSONPatchItem(op='add', path=_escaped_path(keys), value=value))
        elif isinstance(value, collections.abc.Mapping) and value:
            for key, val in value.items():
                result.extend(self._as_json_patch(val, keys + [key]))
        else:
            result.append(JSONPatchItem(op='replace', path=_escaped_path(keys), value=value))
        return result

    def _is_in_original_path(self, keys: list[str]) -> bool:
        _search = self._original
        if _search is None:
            return False
        for key in keys:
            if key == '':
                continue
            try:
                _search = _search[key]  # type: ignore
            except (KeyError, TypeError):
                return False
        return True
