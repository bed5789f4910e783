# scenediff/subsets.py
import logging
from typing import Iterable, List, Set

from scenediff import locators, notices
from scenediff.notices import AddedEntry, DirtiedEntry, RemovedEntry, RenamedEntry
from scenediff.paths import EntityPath

logger = logging.getLogger(__name__)

# subset changes the owning mesh has to re-read
SUBSET_DATA_PREFIXES = (
    locators.GEOM_SUBSET_LOCATORS["indices"],
    locators.GEOM_SUBSET_LOCATORS["type"],
    locators.MATERIAL_BINDINGS,
)


class GeomSubsetFolder:
    """Redirects geometry-subset notifications onto the owning mesh.

    Subsets are never diffed on their own: every relevant change to one
    becomes a ``mesh/geomSubsets`` dirty entry on its parent path, which
    the mesh tracker treats as a full mesh-data change.
    """

    def __init__(self):
        self.known: Set[EntityPath] = set()

    def subsets_of(self, mesh_path: EntityPath) -> List[EntityPath]:
        return sorted(p for p in self.known if p.parent == mesh_path)

    @staticmethod
    def _dirty_parent(path: EntityPath) -> DirtiedEntry:
        return DirtiedEntry(path.parent, (locators.GEOM_SUBSETS,))

    def fold_added(self, entries: Iterable[AddedEntry]) -> List[DirtiedEntry]:
        folded = []
        for entry in entries:
            if entry.type_tag == notices.GEOM_SUBSET:
                self.known.add(entry.path)
                folded.append(self._dirty_parent(entry.path))
            elif entry.path in self.known:
                self.known.discard(entry.path)
                folded.append(self._dirty_parent(entry.path))
        return folded

    def fold_removed(self, entries: Iterable[RemovedEntry]) -> List[DirtiedEntry]:
        folded = []
        for entry in entries:
            if entry.path in self.known:
                self.known.discard(entry.path)
                folded.append(self._dirty_parent(entry.path))
        return folded

    def fold_dirtied(self, entries: Iterable[DirtiedEntry]) -> List[DirtiedEntry]:
        folded = []
        for entry in entries:
            if entry.path not in self.known:
                continue
            if locators.intersects_any(entry.locators, SUBSET_DATA_PREFIXES):
                folded.append(self._dirty_parent(entry.path))
        return folded

    def fold_renamed(self, entries: Iterable[RenamedEntry]) -> List[DirtiedEntry]:
        folded = []
        for entry in entries:
            if entry.old_path not in self.known:
                continue
            self.known.discard(entry.old_path)
            self.known.add(entry.new_path)
            folded.append(self._dirty_parent(entry.old_path))
            if entry.new_path.parent != entry.old_path.parent:
                folded.append(self._dirty_parent(entry.new_path))
        return folded
