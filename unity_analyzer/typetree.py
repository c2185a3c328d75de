"""
Type tree accessor over JSON dumps of Unity serialized files.

The binary deserializer lives outside this package. It is expected to write one
JSON document per serialized file:

    {
        "name": "sharedassets0.assets",
        "externals": ["globalgamemanagers.assets", ...],
        "objects": [
            {"path_id": 1, "type": "Shader", "typetree": {...}},
            ...
        ]
    }

Each ``typetree`` mirrors the engine's type tree: objects for structs, arrays for
vectors, scalars for leaves. TypeTreeNode wraps one value of that tree and exposes
field-presence probing, iteration and typed leaf extraction.
"""

import json
from pathlib import Path
from typing import Any, Iterator

from .errors import DumpFormatError, LeafTypeError, MissingFieldError

# std::pair dumped as a two-element array
_PAIR_FIELDS = {"first": 0, "second": 1}

_INT_RANGES = {
    "int8": (-(2**7), 2**7 - 1),
    "uint16": (0, 2**16 - 1),
    "int32": (-(2**31), 2**31 - 1),
    "uint32": (0, 2**32 - 1),
}


class TypeTreeNode:
    """One node of a decoded asset tree."""

    __slots__ = ("_value", "path")

    def __init__(self, value: Any, path: str = ""):
        self._value = value
        self.path = path

    def __repr__(self) -> str:
        return f"TypeTreeNode({self.path or '<root>'})"

    @property
    def value(self) -> Any:
        return self._value

    def _child_path(self, name: str) -> str:
        return f"{self.path}.{name}" if self.path else name

    def _is_pair_array(self) -> bool:
        return isinstance(self._value, list) and len(self._value) == 2

    def has_child(self, name: str) -> bool:
        if isinstance(self._value, dict):
            return name in self._value
        return name in _PAIR_FIELDS and self._is_pair_array()

    def __getitem__(self, name: str) -> "TypeTreeNode":
        if isinstance(self._value, dict):
            if name in self._value:
                return TypeTreeNode(self._value[name], self._child_path(name))
        elif name in _PAIR_FIELDS and self._is_pair_array():
            return TypeTreeNode(self._value[_PAIR_FIELDS[name]], self._child_path(name))
        raise MissingFieldError(self.path, name)

    def child(self, name: str) -> "TypeTreeNode":
        return self[name]

    def _require_array(self) -> list:
        if not isinstance(self._value, list):
            raise LeafTypeError(
                f"expected an array, got {type(self._value).__name__}", self.path
            )
        return self._value

    def array_size(self) -> int:
        return len(self._require_array())

    def __len__(self) -> int:
        return self.array_size()

    def __iter__(self) -> Iterator["TypeTreeNode"]:
        for i, item in enumerate(self._require_array()):
            yield TypeTreeNode(item, f"{self.path}[{i}]")

    def elements_are_leaves(self) -> bool:
        """True if this array's element type is a scalar.

        An empty array reports True: there is no element to say otherwise.
        """
        items = self._require_array()
        if not items:
            return True
        return not isinstance(items[0], (list, dict))

    # -------------------------------------------------------------------------
    # Typed leaf extraction
    # -------------------------------------------------------------------------

    def as_str(self) -> str:
        if not isinstance(self._value, str):
            raise LeafTypeError(
                f"expected string, got {type(self._value).__name__}", self.path
            )
        return self._value

    def _as_integer(self, value: Any, kind: str, path: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise LeafTypeError(
                f"expected {kind}, got {type(value).__name__}", path
            )
        low, high = _INT_RANGES[kind]
        if not low <= value <= high:
            raise LeafTypeError(f"{value} out of range for {kind}", path)
        return value

    def as_int(self) -> int:
        return self._as_integer(self._value, "int32", self.path)

    def as_uint(self) -> int:
        return self._as_integer(self._value, "uint32", self.path)

    def as_sbyte(self) -> int:
        return self._as_integer(self._value, "int8", self.path)

    def as_u16_array(self) -> list[int]:
        return [
            self._as_integer(v, "uint16", f"{self.path}[{i}]")
            for i, v in enumerate(self._require_array())
        ]

    def as_i32_array(self) -> list[int]:
        return [
            self._as_integer(v, "int32", f"{self.path}[{i}]")
            for i, v in enumerate(self._require_array())
        ]


def load_dump(path: str | Path) -> dict:
    """Read and validate a serialized-file dump.

    Returns the parsed document with ``name`` defaulted to the file stem and
    ``externals`` defaulted to an empty list.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DumpFormatError(f"Cannot read dump {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("objects"), list):
        raise DumpFormatError(f"Dump {path} has no 'objects' array")

    data.setdefault("name", path.stem)
    data.setdefault("externals", [])

    for i, obj in enumerate(data["objects"]):
        if not isinstance(obj, dict) or not {"path_id", "type", "typetree"} <= obj.keys():
            raise DumpFormatError(
                f"Dump {path}: object #{i} needs 'path_id', 'type' and 'typetree'"
            )

    return data
