# scenediff/tracker.py
"""Per-entity-type coalescing of graph notifications into a pending diff.

A tracker remembers which paths of its type exist (the known set) and, for
the current batch, which of them were added, removed or dirtied since the
last ``clear_diff``. Notifications for the same path within one batch are
folded together so that ``get_diff`` reports what changed since the diff was
last consumed:

==========================  =========================================
sequence in one batch        pending state
==========================  =========================================
added, removed               nothing
removed, added               added (fresh create)
dirtied, added               added
added, dirtied               added
dirtied, removed             removed
renamed p -> q               removed p, added q
==========================  =========================================
"""
import enum
import logging
from typing import Dict, Iterable, Set

from scenediff.diff import Diff
from scenediff.notices import AddedEntry, DirtiedEntry, RemovedEntry, RenamedEntry
from scenediff.paths import EntityPath

logger = logging.getLogger(__name__)


class DirtyFlag(enum.Flag):
    TRANSFORM_ONLY = enum.auto()
    FULL_MESH_DATA = enum.auto()

    ALL = TRANSFORM_ONLY | FULL_MESH_DATA


NO_FLAGS = DirtyFlag(0)


class BatchDiffState:
    def __init__(self):
        self.added: Set[EntityPath] = set()
        self.removed: Set[EntityPath] = set()
        self.dirtied: Dict[EntityPath, DirtyFlag] = {}

    def clear(self):
        self.added.clear()
        self.removed.clear()
        self.dirtied.clear()

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.dirtied)


class EntityTracker:
    """Coalescing state machine for one entity type.

    ``policy`` supplies the type tag to filter on, the dirty-locator
    classifier and the attribute extraction (see ``scenediff.extractors``).
    """

    def __init__(self, policy):
        self.policy = policy
        self.known: Set[EntityPath] = set()
        self.state = BatchDiffState()
        # paths the consumer holds a create for
        self.emitted: Set[EntityPath] = set()

    @property
    def kind(self):
        return self.policy.kind

    @property
    def type_tag(self) -> str:
        return self.policy.type_tag

    def _add_transition(self, path: EntityPath):
        state = self.state
        if path in state.removed:
            state.removed.discard(path)
        else:
            state.dirtied.pop(path, None)
        state.added.add(path)

    def _remove_transition(self, path: EntityPath):
        state = self.state
        if path in state.added:
            state.added.discard(path)
            return
        state.dirtied.pop(path, None)
        state.removed.add(path)

    def _check_invariants(self):
        state = self.state
        assert not (state.added & state.removed), "path both added and removed"
        assert not (state.added & state.dirtied.keys()), "path both added and dirtied"

    def on_added(self, entries: Iterable[AddedEntry]):
        for entry in entries:
            if entry.type_tag != self.type_tag:
                if entry.path in self.known:
                    # re-added under another type
                    logger.debug("%s %s changed type to %s", self.type_tag, entry.path, entry.type_tag)
                    self.known.discard(entry.path)
                    self._remove_transition(entry.path)
                continue
            self.known.add(entry.path)
            self._add_transition(entry.path)
        self._check_invariants()

    def on_removed(self, entries: Iterable[RemovedEntry]):
        for entry in entries:
            if entry.path not in self.known:
                continue
            self.known.discard(entry.path)
            self._remove_transition(entry.path)
        self._check_invariants()

    def on_dirtied(self, entries: Iterable[DirtiedEntry]):
        state = self.state
        for entry in entries:
            if entry.path not in self.known:
                continue
            if entry.path in state.added:
                continue
            flags = self.policy.classify(entry.locators)
            if not flags:
                continue
            state.dirtied[entry.path] = state.dirtied.get(entry.path, NO_FLAGS) | flags
        self._check_invariants()

    def on_renamed(self, entries: Iterable[RenamedEntry]):
        for entry in entries:
            if entry.old_path not in self.known:
                continue
            self.known.discard(entry.old_path)
            self.known.add(entry.new_path)
            self._remove_transition(entry.old_path)
            self._add_transition(entry.new_path)
        self._check_invariants()

    def clear_diff(self):
        self.emitted -= self.state.removed
        self.state.clear()

    def get_diff(self, graph, diff: Diff):
        """Append the pending operations for this type to ``diff``.

        A policy may decline to extract an entity (an unsupported material).
        Such a path gets no destroy, and its first successful update is sent
        as a create. Destroyed paths leave ``emitted`` on ``clear_diff``.
        """
        policy = self.policy
        for path in sorted(self.state.added):
            self._emit_create(graph, path, diff)
        for path in sorted(self.state.removed):
            if path not in self.emitted:
                logger.debug("No destroy for %s %s: never created", self.type_tag, path)
                continue
            diff.append(policy.destroy(path))
        for path in sorted(self.state.dirtied):
            if path not in self.emitted:
                self._emit_create(graph, path, diff)
                continue
            entry = policy.update(graph, path, self.state.dirtied[path])
            if entry is not None:
                diff.append(entry)

    def _emit_create(self, graph, path: EntityPath, diff: Diff):
        entry = self.policy.create(graph, path)
        if entry is None:
            if path in self.emitted:
                # re-created as something the policy no longer extracts
                self.emitted.discard(path)
                diff.append(self.policy.destroy(path))
            return
        self.emitted.add(path)
        diff.append(entry)
