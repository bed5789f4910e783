# scenediff/graph.py
"""Scene-graph side of the notification protocol.

``SceneGraph`` holds the observer list and delivers notification batches;
concrete graphs answer ``lookup(path, locator)``. ``InMemorySceneGraph`` is a
dictionary-backed graph used by tests and by callers that build scenes in
code.
"""
import contextlib
import logging
from bisect import bisect_right
from typing import Any, Dict, Iterable, List, Optional

from scenediff.errors import UnknownEntityError
from scenediff.locators import Locator
from scenediff.notices import AddedEntry, DirtiedEntry, RemovedEntry, RenamedEntry
from scenediff.paths import EntityPath

logger = logging.getLogger(__name__)

_HANDLERS = {
    AddedEntry: "on_added",
    RemovedEntry: "on_removed",
    DirtiedEntry: "on_dirtied",
    RenamedEntry: "on_renamed",
}


class SceneGraph:
    def __init__(self):
        self._observers = []
        self._pending: Optional[List[Any]] = None

    def add_observer(self, observer):
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer):
        if observer in self._observers:
            self._observers.remove(observer)

    def lookup(self, path: EntityPath, locator: Locator):
        raise NotImplementedError()

    def close(self):
        pass

    @contextlib.contextmanager
    def batch(self):
        """Collect notifications and deliver them on exit.

        Consecutive entries of the same kind are delivered together, in the
        order they were produced.
        """
        if self._pending is not None:
            yield
            return
        self._pending = []
        try:
            yield
        finally:
            pending, self._pending = self._pending, None
            self._deliver(pending)

    def _send(self, entries: Iterable[Any]):
        entries = list(entries)
        if not entries:
            return
        if self._pending is not None:
            self._pending.extend(entries)
            return
        self._deliver(entries)

    def _deliver(self, entries: List[Any]):
        group: List[Any] = []
        for entry in entries:
            if group and type(group[-1]) is not type(entry):
                self._notify(group)
                group = []
            group.append(entry)
        if group:
            self._notify(group)

    def _notify(self, group: List[Any]):
        handler = _HANDLERS[type(group[0])]
        logger.debug("Delivering %d %s entries", len(group), type(group[0]).__name__)
        for observer in list(self._observers):
            getattr(observer, handler)(group)


class TimeSamples:
    """Held (step) interpolation over time-sampled values."""

    def __init__(self, samples: Dict[float, Any]):
        if not samples:
            raise ValueError("TimeSamples needs at least one sample")
        self._times = sorted(float(t) for t in samples)
        self._values = [samples[t] for t in sorted(samples)]

    @property
    def times(self) -> List[float]:
        return list(self._times)

    def is_varying(self) -> bool:
        return len(self._times) > 1

    def at(self, time_code: float):
        i = bisect_right(self._times, time_code) - 1
        return self._values[max(i, 0)]


class InMemorySceneGraph(SceneGraph):
    def __init__(self):
        super().__init__()
        self._types: Dict[EntityPath, str] = {}
        self._values: Dict[EntityPath, Dict[Locator, Any]] = {}
        self.time_code = 0.0

    def paths(self) -> List[EntityPath]:
        return sorted(self._types)

    def type_of(self, path) -> Optional[str]:
        return self._types.get(EntityPath.coerce(path))

    def _subtree(self, root: EntityPath) -> List[EntityPath]:
        return sorted(p for p in self._types if p.has_prefix(root))

    def add_entity(self, path, type_tag: str, values: Dict[Locator, Any] = None):
        path = EntityPath.coerce(path)
        self._types[path] = type_tag
        self._values[path] = dict(values or {})
        self._send([AddedEntry(path, type_tag)])

    def remove_entity(self, path):
        removed = self._subtree(EntityPath.coerce(path))
        for p in removed:
            del self._types[p]
            del self._values[p]
        self._send(RemovedEntry(p) for p in removed)

    def rename_entity(self, old_path, new_path):
        old_path = EntityPath.coerce(old_path)
        new_path = EntityPath.coerce(new_path)
        entries = []
        for p in self._subtree(old_path):
            moved = EntityPath._from_segments(new_path.segments + p.segments[len(old_path.segments):])
            self._types[moved] = self._types.pop(p)
            self._values[moved] = self._values.pop(p)
            entries.append(RenamedEntry(p, moved))
        self._send(entries)

    def _entity_values(self, path: EntityPath) -> Dict[Locator, Any]:
        try:
            return self._values[path]
        except KeyError:
            raise UnknownEntityError(path) from None

    def set_value(self, path, locator: Locator, value):
        path = EntityPath.coerce(path)
        self._entity_values(path)[locator] = value
        self._send([DirtiedEntry(path, (locator,))])

    def clear_value(self, path, locator: Locator):
        path = EntityPath.coerce(path)
        self._entity_values(path).pop(locator, None)
        self._send([DirtiedEntry(path, (locator,))])

    def touch(self, path, *locators: Locator):
        self._send([DirtiedEntry(EntityPath.coerce(path), locators)])

    def lookup(self, path, locator):
        values = self._values.get(EntityPath.coerce(path))
        if values is None:
            return None
        value = values.get(locator)
        if isinstance(value, TimeSamples):
            return value.at(self.time_code)
        return value

    def populate(self):
        self._send(AddedEntry(p, self._types[p]) for p in self.paths())

    def _sample_times(self) -> List[float]:
        return [t for values in self._values.values() for v in values.values()
                if isinstance(v, TimeSamples) for t in v.times]

    @property
    def start_time_code(self) -> float:
        return min(self._sample_times(), default=0.0)

    @property
    def end_time_code(self) -> float:
        return max(self._sample_times(), default=0.0)

    def set_time_code(self, time_code: float):
        if time_code == self.time_code:
            return
        self.time_code = time_code
        entries = []
        for path in self.paths():
            varying = tuple(loc for loc, v in self._values[path].items()
                            if isinstance(v, TimeSamples) and v.is_varying())
            if varying:
                entries.append(DirtiedEntry(path, varying))
        self._send(entries)
