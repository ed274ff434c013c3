"""Module catalog: static per-type metadata consumed by the decoder.

The catalog document (``ModuleIndex.json``) maps string type ids to module
entries::

    {
      "1": {
        "name": "Audio Input", "category": "Interface", "cpu": 0.4,
        "description": "...", "min_blocks": 1, "max_blocks": 2,
        "default_blocks": 2, "params": 0,
        "blocks": {"input_L": {"isDefault": true, "isParam": false, "position": 0}, ...},
        "options": [{"channels": ["stereo", "left", "right"]}]
      },
      ...
    }

Blocks are keyed by name and ordered by ``position``; options are a list of
single-key objects in slot order.  A catalog is an immutable value passed to
the decoder explicitly.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Tuple, Union

from .errors import CatalogError


OptionValue = Union[str, int]

_DESCRIPTION_WS = re.compile(r"\n\s+")


@dataclass(frozen=True)
class Block:
    """One jack or parameter of a module type."""

    name: str
    is_default: bool
    is_param: bool
    position: int  # index within the type's full block list


@dataclass(frozen=True)
class OptionGroup:
    name: str
    values: Tuple[OptionValue, ...]

    def __len__(self) -> int:
        return len(self.values)

    def value_at(self, index: int) -> OptionValue:
        return self.values[index]


@dataclass(frozen=True)
class ModuleSchema:
    type_id: int
    name: str
    description: str
    category: str
    cpu: float
    min_blocks: int
    max_blocks: int
    default_blocks: int
    params: int
    blocks: Tuple[Block, ...]
    options: Tuple[OptionGroup, ...]

    def block(self, name: str) -> Block | None:
        for block in self.blocks:
            if block.name == name:
                return block
        return None


@dataclass(frozen=True)
class ModuleCatalog:
    modules: Tuple[ModuleSchema, ...]

    def __post_init__(self) -> None:
        for index, schema in enumerate(self.modules):
            if schema.type_id != index:
                raise CatalogError(
                    f"catalog entry {index} has type id {schema.type_id}; "
                    "type ids must be contiguous from 0"
                )

    def __len__(self) -> int:
        return len(self.modules)

    def __iter__(self) -> Iterator[ModuleSchema]:
        return iter(self.modules)

    def __contains__(self, type_id: object) -> bool:
        return isinstance(type_id, int) and 0 <= type_id < len(self.modules)

    def lookup(self, type_id: int) -> ModuleSchema:
        if type_id not in self:
            raise KeyError(type_id)
        return self.modules[type_id]

    @classmethod
    def from_mapping(cls, raw: object) -> "ModuleCatalog":
        obj = _require_dict(raw, where="catalog")
        entries: Dict[int, ModuleSchema] = {}
        for key, entry in obj.items():
            try:
                type_id = int(key)
            except (TypeError, ValueError):
                raise CatalogError(f"catalog key {key!r} is not an integer type id") from None
            entries[type_id] = _parse_schema(type_id, entry, where=f"catalog[{key!r}]")
        expected = list(range(len(entries)))
        if sorted(entries) != expected:
            missing = sorted(set(expected) - set(entries))
            raise CatalogError(f"catalog type ids are not contiguous from 0 (missing {missing})")
        return cls(modules=tuple(entries[i] for i in expected))

    @classmethod
    def from_json(cls, path: Path | str) -> "ModuleCatalog":
        text = Path(path).read_text(encoding="utf-8")
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as err:
            raise CatalogError(f"{path}: {err}") from err
        return cls.from_mapping(raw)


def clean_description(text: str) -> str:
    """Collapse the catalog's wrapped, indented description text."""
    return _DESCRIPTION_WS.sub(" ", text).strip()


def _require_dict(value: object, *, where: str) -> dict:
    if not isinstance(value, dict):
        raise CatalogError(f"{where} must be an object")
    return value


def _require_list(value: object, *, where: str) -> list:
    if not isinstance(value, list):
        raise CatalogError(f"{where} must be an array")
    return value


def _require_str(value: object, *, where: str) -> str:
    if not isinstance(value, str):
        raise CatalogError(f"{where} must be a string")
    return value


def _require_int(value: object, *, where: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise CatalogError(f"{where} must be an integer")
    return value


def _require_bool(value: object, *, where: str) -> bool:
    if not isinstance(value, bool):
        raise CatalogError(f"{where} must be a boolean")
    return value


def _require_number(value: object, *, where: str) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise CatalogError(f"{where} must be a number")
    return float(value)


def _parse_blocks(raw: object, *, where: str) -> Tuple[Block, ...]:
    obj = _require_dict(raw, where=where)
    blocks = []
    for name, entry in obj.items():
        entry_obj = _require_dict(entry, where=f"{where}.{name}")
        blocks.append(
            Block(
                name=name,
                is_default=_require_bool(entry_obj.get("isDefault"), where=f"{where}.{name}.isDefault"),
                is_param=_require_bool(entry_obj.get("isParam"), where=f"{where}.{name}.isParam"),
                position=_require_int(entry_obj.get("position"), where=f"{where}.{name}.position"),
            )
        )
    blocks.sort(key=lambda block: block.position)
    return tuple(blocks)


def _parse_options(raw: object, *, where: str) -> Tuple[OptionGroup, ...]:
    groups = []
    for slot, entry in enumerate(_require_list(raw, where=where)):
        slot_where = f"{where}[{slot}]"
        obj = _require_dict(entry, where=slot_where)
        if len(obj) != 1:
            raise CatalogError(f"{slot_where} must have exactly one key")
        ((name, values),) = obj.items()
        parsed = []
        for idx, value in enumerate(_require_list(values, where=f"{slot_where}.{name}")):
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise CatalogError(f"{slot_where}.{name}[{idx}] must be a string or integer")
            parsed.append(value)
        groups.append(OptionGroup(name=name, values=tuple(parsed)))
    return tuple(groups)


def _parse_schema(type_id: int, raw: object, *, where: str) -> ModuleSchema:
    obj = _require_dict(raw, where=where)
    return ModuleSchema(
        type_id=type_id,
        name=_require_str(obj.get("name"), where=f"{where}.name"),
        description=clean_description(
            _require_str(obj.get("description", ""), where=f"{where}.description")
        ),
        category=_require_str(obj.get("category", ""), where=f"{where}.category"),
        cpu=_require_number(obj.get("cpu", 0), where=f"{where}.cpu"),
        min_blocks=_require_int(obj.get("min_blocks", 0), where=f"{where}.min_blocks"),
        max_blocks=_require_int(obj.get("max_blocks", 0), where=f"{where}.max_blocks"),
        default_blocks=_require_int(obj.get("default_blocks", 0), where=f"{where}.default_blocks"),
        params=_require_int(obj.get("params", 0), where=f"{where}.params"),
        blocks=_parse_blocks(obj.get("blocks", {}), where=f"{where}.blocks"),
        options=_parse_options(obj.get("options", []), where=f"{where}.options"),
    )
