"""Where each container module type keeps the ids of its child modules.

Container modules do not point at their children through a column; the ids
live inside the module's JSON settings, in a shape that depends on the type:

    row        {"columns": [{"modules": [12, 13]}, ...]}
    tabs       {"tabs": [{"id": "tab1", "panelModules": [14]}, ...]}
    container  {"modules": [15, 16]}

A ``ReferenceSchema`` knows those paths for one type. Types without a
registered schema are leaves.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional

# Path step meaning "every element of the list at this position".
EACH = "*"


# Upper bound of the ``Integer`` id column.
MAX_MODULE_ID = 2**31 - 1


def coerce_module_id(value: Any) -> Optional[int]:
    """Module id held by a reference value, or None when the value is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            return None
        value = int(text)
    if not isinstance(value, int):
        return None
    if value < 1 or value > MAX_MODULE_ID:
        return None
    return value


def _walk_path(node: Any, path: tuple[str, ...]) -> Iterator[Any]:
    if not path:
        yield node
        return
    step, rest = path[0], path[1:]
    if step == EACH:
        if isinstance(node, list):
            for item in node:
                yield from _walk_path(item, rest)
    elif isinstance(node, dict) and step in node:
        yield from _walk_path(node[step], rest)


def _replace_at_path(node: Any, path: tuple[str, ...], replace: Callable[[Any], Any]) -> None:
    # ``node`` is already a private copy; leaves are swapped in their containers.
    step, rest = path[0], path[1:]
    if step == EACH:
        if not isinstance(node, list):
            return
        for index, item in enumerate(node):
            if rest:
                _replace_at_path(item, rest, replace)
            else:
                node[index] = replace(item)
    elif isinstance(node, dict) and step in node:
        if rest:
            _replace_at_path(node[step], rest, replace)
        else:
            node[step] = replace(node[step])


class ReferenceSchema:
    def extract_child_ids(self, settings: Any) -> list[int]:
        raise NotImplementedError

    def rewrite(self, settings: Any, id_map: Mapping[int, int]) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class PathReferenceSchema(ReferenceSchema):
    """Child ids found at one or more fixed paths through the settings tree."""

    paths: tuple[tuple[str, ...], ...]

    def extract_child_ids(self, settings: Any) -> list[int]:
        if not isinstance(settings, dict):
            return []
        ids: list[int] = []
        for path in self.paths:
            for value in _walk_path(settings, path):
                module_id = coerce_module_id(value)
                if module_id is not None:
                    ids.append(module_id)
        return ids

    def rewrite(self, settings: Any, id_map: Mapping[int, int]) -> Any:
        cloned = deepcopy(settings)
        if not isinstance(cloned, dict):
            return cloned

        def replace(value: Any) -> Any:
            module_id = coerce_module_id(value)
            if module_id is None or module_id not in id_map:
                return value
            return id_map[module_id]

        for path in self.paths:
            _replace_at_path(cloned, path, replace)
        return cloned


_SCHEMAS: dict[str, ReferenceSchema] = {}


def register_schema(module_type: str, schema: ReferenceSchema) -> None:
    _SCHEMAS[module_type] = schema


def unregister_schema(module_type: str) -> None:
    _SCHEMAS.pop(module_type, None)


def schema_for(module_type: str) -> Optional[ReferenceSchema]:
    return _SCHEMAS.get(module_type)


def container_types() -> list[str]:
    return sorted(_SCHEMAS)


def extract_child_ids(module_type: str, settings: Any) -> list[int]:
    schema = schema_for(module_type)
    if schema is None:
        return []
    return schema.extract_child_ids(settings)


def rewrite_settings(module_type: str, settings: Any, id_map: Mapping[int, int]) -> Any:
    """Deep copy of ``settings`` with every known child reference remapped."""
    schema = schema_for(module_type)
    if schema is None:
        return deepcopy(settings)
    return schema.rewrite(settings, id_map)


register_schema("row", PathReferenceSchema(paths=(("columns", EACH, "modules", EACH),)))
register_schema("tabs", PathReferenceSchema(paths=(("tabs", EACH, "panelModules", EACH),)))
register_schema("container", PathReferenceSchema(paths=(("modules", EACH),)))
