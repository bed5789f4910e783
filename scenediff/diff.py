# scenediff/diff.py
import enum
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from scenediff import notices
from scenediff.paths import EntityPath


class EntityKind(enum.Enum):
    RENDER_SETTINGS = notices.RENDER_SETTINGS
    MESH = notices.MESH
    SPHERE_LIGHT = notices.SPHERE_LIGHT
    DISTANT_LIGHT = notices.DISTANT_LIGHT
    CAMERA = notices.CAMERA
    MATERIAL = notices.MATERIAL


class Operation(enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


@dataclass(frozen=True, eq=False)
class DiffEntry:
    kind: EntityKind
    path: EntityPath
    attrs: Mapping[str, Any] = field(default_factory=dict)

    op = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"op": self.op.value, "kind": self.kind.value, "path": str(self.path)}
        if self.op is not Operation.DESTROY:
            out["attrs"] = {k: _jsonable(v) for k, v in self.attrs.items()}
        return out


@dataclass(frozen=True, eq=False)
class CreateEntity(DiffEntry):
    op = Operation.CREATE


@dataclass(frozen=True, eq=False)
class UpdateEntity(DiffEntry):
    op = Operation.UPDATE


@dataclass(frozen=True, eq=False)
class DestroyEntity(DiffEntry):
    op = Operation.DESTROY


def _jsonable(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, EntityPath):
        return str(value)
    if isinstance(value, Mapping):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class Diff:
    """Ordered create/update/destroy operations for one time sample."""

    def __init__(self, time_code_range: Optional[Tuple[float, float]] = None):
        self.entries: List[DiffEntry] = []
        self.time_code_range = time_code_range

    def append(self, entry: DiffEntry):
        self.entries.append(entry)

    def extend(self, entries):
        self.entries.extend(entries)

    def __iter__(self) -> Iterator[DiffEntry]:
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    def __bool__(self):
        return bool(self.entries)

    def for_path(self, path) -> List[DiffEntry]:
        path = EntityPath.coerce(path)
        return [e for e in self.entries if e.path == path]

    def of_kind(self, kind: EntityKind) -> List[DiffEntry]:
        return [e for e in self.entries if e.kind is kind]

    def counts(self) -> Dict[str, Dict[str, int]]:
        counter = Counter((e.kind.value, e.op.value) for e in self.entries)
        out: Dict[str, Dict[str, int]] = {}
        for (kind, op), n in counter.items():
            out.setdefault(kind, {})[op] = n
        return out

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"operations": [e.to_dict() for e in self.entries]}
        if self.time_code_range is not None:
            out["time_code_range"] = list(self.time_code_range)
        return out
