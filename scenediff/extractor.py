# scenediff/extractor.py
import logging
from typing import Iterator, List, Optional

from scenediff import notices
from scenediff.attributes import as_path
from scenediff.diff import Diff
from scenediff.errors import NoActiveRenderSettingsError, UnknownEntityError
from scenediff.extractors import render_products
from scenediff.locators import RENDER_PRODUCTS
from scenediff.observer import CompositeObserver
from scenediff.paths import EntityPath

logger = logging.getLogger(__name__)


def iter_time_codes(start: float, end: float, step: float = 1.0) -> Iterator[float]:
    """Sample times from ``start`` to ``end`` inclusive."""
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    n = int(round((end - start) / step)) if end > start else 0
    for i in range(n + 1):
        t = start + i * step
        if t > end + 1e-9:
            break
        yield t


class UsdDataExtractor:
    """Drives a scene graph through time and hands out one diff per sample.

    The first ``extract`` populates the graph, so its diff creates every
    supported entity; later calls only report what changed since the
    previous diff was consumed.
    """

    def __init__(self, graph, strict=False):
        self.graph = graph
        self.observer = CompositeObserver(strict=strict)
        graph.add_observer(self.observer)
        self._populated = False
        self._render_settings_path: Optional[EntityPath] = None
        self._render_product_path: Optional[EntityPath] = None

    @classmethod
    def open(cls, stage_path, strict=False):
        from scenediff.usd_graph import UsdStageSceneGraph

        return cls(UsdStageSceneGraph.open(stage_path), strict=strict)

    def close(self):
        """Stop listening to the graph and release it."""
        self.graph.remove_observer(self.observer)
        self.graph.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def start_time_code(self) -> float:
        return self.graph.start_time_code

    @property
    def end_time_code(self) -> float:
        return self.graph.end_time_code

    def time_codes(self, step: float = 1.0) -> Iterator[float]:
        return iter_time_codes(self.start_time_code, self.end_time_code, step)

    def extract(self, time_code: float) -> Diff:
        self.graph.set_time_code(time_code)
        if not self._populated:
            self.graph.populate()
            self._populated = True
        diff = Diff(time_code_range=(self.start_time_code, self.end_time_code))
        self.observer.get_diff(self.graph, diff)
        self.observer.clear_diff()
        logger.info("Extracted %d operations at time code %s", len(diff), time_code)
        return diff

    # -- render settings selection -------------------------------------------

    def render_settings_paths(self) -> List[EntityPath]:
        return sorted(self.observer.render_settings.known)

    def set_render_settings_path(self, path):
        path = EntityPath.coerce(path)
        if path not in self.observer.render_settings.known:
            raise UnknownEntityError(path, notices.RENDER_SETTINGS)
        if path != self._render_settings_path:
            self._render_product_path = None
        self._render_settings_path = path

    def clear_render_settings_path(self):
        self._render_settings_path = None
        self._render_product_path = None

    @property
    def render_settings_path(self) -> Optional[EntityPath]:
        path = self._render_settings_path
        if path is not None and path not in self.observer.render_settings.known:
            logger.warning("Active render settings %s no longer exist", path)
            self.clear_render_settings_path()
            return None
        return path

    def _render_products(self):
        settings = self.render_settings_path
        if settings is None:
            raise NoActiveRenderSettingsError("no render settings selected")
        return render_products(self.graph.lookup(settings, RENDER_PRODUCTS)) or []

    def render_product_paths(self) -> List[EntityPath]:
        return [p["path"] for p in self._render_products()]

    def set_render_product_path(self, path):
        path = EntityPath.coerce(path)
        if path not in self.render_product_paths():
            raise UnknownEntityError(path, notices.RENDER_PRODUCT)
        self._render_product_path = path

    def clear_render_product_path(self):
        self._render_product_path = None

    @property
    def render_product_path(self) -> Optional[EntityPath]:
        return self._render_product_path

    def active_camera_path(self) -> Optional[EntityPath]:
        if self._render_product_path is None or self.render_settings_path is None:
            return None
        for product in self._render_products():
            if product["path"] == self._render_product_path:
                return as_path(product.get("camera"))
        return None
