# scenediff/observer.py
import logging
from typing import Dict, Iterable, List

from scenediff.diff import Diff, EntityKind
from scenediff.errors import ProtocolError
from scenediff.extractors import (
    CameraPolicy,
    DistantLightPolicy,
    MaterialPolicy,
    MeshPolicy,
    RenderSettingsPolicy,
    SphereLightPolicy,
)
from scenediff.notices import AddedEntry, DirtiedEntry, RemovedEntry, RenamedEntry
from scenediff.subsets import GeomSubsetFolder
from scenediff.tracker import EntityTracker

logger = logging.getLogger(__name__)


class CompositeObserver:
    """Fans notification batches out to one tracker per entity type.

    Diffs are emitted in a fixed order of entity types: render settings,
    meshes, sphere lights, distant lights, cameras, materials. Within a type
    added entries come first, then removed, then dirtied.

    ``get_diff`` must be followed by exactly one ``clear_diff`` before the
    next batch. With ``strict`` a second ``get_diff`` raises
    :class:`ProtocolError`; otherwise it is logged and answered again.
    """

    def __init__(self, strict=False):
        self.strict = strict
        self.subsets = GeomSubsetFolder()
        self.render_settings = EntityTracker(RenderSettingsPolicy())
        self.mesh = EntityTracker(MeshPolicy(self.subsets))
        self.sphere_light = EntityTracker(SphereLightPolicy())
        self.distant_light = EntityTracker(DistantLightPolicy())
        self.camera = EntityTracker(CameraPolicy())
        self.material = EntityTracker(MaterialPolicy())
        self._diff_taken = False

    @property
    def trackers(self) -> List[EntityTracker]:
        return [
            self.render_settings,
            self.mesh,
            self.sphere_light,
            self.distant_light,
            self.camera,
            self.material,
        ]

    def tracker_for(self, kind: EntityKind) -> EntityTracker:
        by_kind: Dict[EntityKind, EntityTracker] = {t.kind: t for t in self.trackers}
        return by_kind[kind]

    def _check_batch_allowed(self):
        if self._diff_taken:
            self._violation("notification batch delivered before clear_diff")

    def _violation(self, message):
        if self.strict:
            raise ProtocolError(message)
        logger.warning("Protocol violation: %s", message)

    def _dispatch_folded(self, folded: List[DirtiedEntry]):
        if folded:
            self.mesh.on_dirtied(folded)

    def on_added(self, entries: Iterable[AddedEntry]):
        entries = list(entries)
        self._check_batch_allowed()
        folded = self.subsets.fold_added(entries)
        for tracker in self.trackers:
            tracker.on_added(entries)
        self._dispatch_folded(folded)

    def on_removed(self, entries: Iterable[RemovedEntry]):
        entries = list(entries)
        self._check_batch_allowed()
        folded = self.subsets.fold_removed(entries)
        for tracker in self.trackers:
            tracker.on_removed(entries)
        self._dispatch_folded(folded)

    def on_dirtied(self, entries: Iterable[DirtiedEntry]):
        entries = list(entries)
        self._check_batch_allowed()
        folded = self.subsets.fold_dirtied(entries)
        for tracker in self.trackers:
            tracker.on_dirtied(entries)
        self._dispatch_folded(folded)

    def on_renamed(self, entries: Iterable[RenamedEntry]):
        entries = list(entries)
        self._check_batch_allowed()
        folded = self.subsets.fold_renamed(entries)
        for tracker in self.trackers:
            tracker.on_renamed(entries)
        self._dispatch_folded(folded)

    def get_diff(self, graph, diff: Diff = None) -> Diff:
        if self._diff_taken:
            self._violation("get_diff called twice without clear_diff")
        if diff is None:
            diff = Diff()
        for tracker in self.trackers:
            tracker.get_diff(graph, diff)
        self._diff_taken = True
        logger.debug("Materialized diff with %d operations", len(diff))
        return diff

    def clear_diff(self):
        for tracker in self.trackers:
            tracker.clear_diff()
        self._diff_taken = False

    def has_pending_changes(self) -> bool:
        return any(not t.state.is_empty() for t in self.trackers)
