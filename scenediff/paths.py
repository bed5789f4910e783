# scenediff/paths.py
from functools import total_ordering
from typing import Tuple, Union

from scenediff.errors import InvalidPathError


@total_ordering
class EntityPath:
    """Absolute, slash-delimited path of an entity in the scene graph.

    Immutable and hashable so it can key every tracking set. Ordering is
    segment-wise, which keeps parents ahead of their children.
    """

    __slots__ = ("_segments",)

    def __init__(self, text: str):
        if isinstance(text, EntityPath):
            segments = text._segments
        else:
            if not isinstance(text, str) or not text.startswith("/"):
                raise InvalidPathError(f"entity paths must be absolute: {text!r}")
            segments = tuple(s for s in text.split("/") if s)
        object.__setattr__(self, "_segments", segments)

    def __setattr__(self, name, value):
        raise AttributeError("EntityPath is immutable")

    @classmethod
    def coerce(cls, value: Union[str, "EntityPath"]) -> "EntityPath":
        if isinstance(value, EntityPath):
            return value
        return cls(str(value))

    @classmethod
    def _from_segments(cls, segments: Tuple[str, ...]) -> "EntityPath":
        path = cls.__new__(cls)
        object.__setattr__(path, "_segments", tuple(segments))
        return path

    @property
    def segments(self) -> Tuple[str, ...]:
        return self._segments

    @property
    def name(self) -> str:
        return self._segments[-1] if self._segments else ""

    @property
    def parent(self) -> "EntityPath":
        return EntityPath._from_segments(self._segments[:-1])

    def is_root(self) -> bool:
        return not self._segments

    def append_child(self, name: str) -> "EntityPath":
        if not name or "/" in name:
            raise InvalidPathError(f"invalid child name: {name!r}")
        return EntityPath._from_segments(self._segments + (name,))

    def has_prefix(self, other: "EntityPath") -> bool:
        other = EntityPath.coerce(other)
        n = len(other._segments)
        return self._segments[:n] == other._segments

    def __eq__(self, other):
        if isinstance(other, EntityPath):
            return self._segments == other._segments
        return NotImplemented

    def __lt__(self, other):
        if not isinstance(other, EntityPath):
            return NotImplemented
        return self._segments < other._segments

    def __hash__(self):
        return hash(self._segments)

    def __str__(self):
        return "/" + "/".join(self._segments)

    def __repr__(self):
        return f"EntityPath({str(self)!r})"


ROOT = EntityPath("/")
