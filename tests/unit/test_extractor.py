import numpy as np
import pytest
from scenes import CAMERA, MESH, PRODUCT, SETTINGS, build_scene

from scenediff import locators
from scenediff.diff import Operation
from scenediff.errors import NoActiveRenderSettingsError, UnknownEntityError
from scenediff.extractor import UsdDataExtractor, iter_time_codes
from scenediff.graph import TimeSamples
from scenediff.paths import EntityPath


class TestIterTimeCodes:
    def test_inclusive_range(self):
        assert list(iter_time_codes(1, 3)) == [1, 2, 3]

    def test_fractional_step(self):
        assert list(iter_time_codes(0, 1, 0.5)) == [0, 0.5, 1]

    def test_single_sample(self):
        assert list(iter_time_codes(0, 0)) == [0]

    def test_step_must_be_positive(self):
        with pytest.raises(ValueError):
            list(iter_time_codes(0, 1, 0))


class TestUsdDataExtractor:
    def setup_method(self, method):
        self.graph = build_scene()
        self.graph.set_value(MESH, locators.TRANSFORM_MATRIX, TimeSamples({
            1: np.eye(4),
            2: np.diag([2.0, 2.0, 2.0, 1.0]),
            3: np.diag([2.0, 2.0, 2.0, 1.0]),
        }))
        self.extractor = UsdDataExtractor(self.graph)

    def test_first_extract_creates_everything(self):
        diff = self.extractor.extract(1)
        assert diff.time_code_range == (1.0, 3.0)
        assert {e.op for e in diff} == {Operation.CREATE}
        assert len(diff) == 6

    def test_later_extracts_report_changes(self):
        self.extractor.extract(1)
        diff = self.extractor.extract(2)
        (entry,) = diff
        assert entry.op is Operation.UPDATE
        assert entry.path == EntityPath(MESH)
        assert set(entry.attrs) == {"transform"}
        assert entry.attrs["transform"][0] == 2.0

    def test_same_time_code_is_empty(self):
        self.extractor.extract(1)
        self.extractor.extract(2)
        assert len(self.extractor.extract(2)) == 0

    def test_edits_between_samples(self):
        self.extractor.extract(1)
        self.graph.remove_entity(CAMERA)
        diff = self.extractor.extract(1)
        assert [(e.op, str(e.path)) for e in diff] == [(Operation.DESTROY, CAMERA)]

    def test_close_detaches_observer(self):
        self.extractor.extract(1)
        self.extractor.close()
        self.graph.remove_entity(CAMERA)
        assert not self.extractor.observer.has_pending_changes()

    def test_to_dict(self):
        out = self.extractor.extract(1).to_dict()
        assert out["time_code_range"] == [1.0, 3.0]
        mesh = next(op for op in out["operations"] if op["path"] == MESH)
        assert mesh["op"] == "create"
        assert mesh["kind"] == "mesh"
        assert mesh["attrs"]["face_vertex_counts"] == [4]
        assert mesh["attrs"]["material_binding"] == "/Looks/Red"


class TestRenderSettingsSelection:
    def setup_method(self, method):
        self.extractor = UsdDataExtractor(build_scene())
        self.extractor.extract(0)

    def test_settings_paths(self):
        assert self.extractor.render_settings_paths() == [EntityPath(SETTINGS)]

    def test_products_need_active_settings(self):
        with pytest.raises(NoActiveRenderSettingsError):
            self.extractor.render_product_paths()

    def test_unknown_settings(self):
        with pytest.raises(UnknownEntityError) as e:
            self.extractor.set_render_settings_path("/Render/Nope")
        assert "renderSettings" in str(e.value)

    def test_select_product_and_camera(self):
        self.extractor.set_render_settings_path(SETTINGS)
        assert self.extractor.render_product_paths() == [EntityPath(PRODUCT)]
        assert self.extractor.active_camera_path() is None
        self.extractor.set_render_product_path(PRODUCT)
        assert self.extractor.active_camera_path() == EntityPath(CAMERA)

    def test_unknown_product(self):
        self.extractor.set_render_settings_path(SETTINGS)
        with pytest.raises(UnknownEntityError):
            self.extractor.set_render_product_path("/Render/Other")

    def test_clear_settings_clears_product(self):
        self.extractor.set_render_settings_path(SETTINGS)
        self.extractor.set_render_product_path(PRODUCT)
        self.extractor.clear_render_settings_path()
        assert self.extractor.render_product_path is None
        assert self.extractor.active_camera_path() is None

    def test_removed_settings_deactivate(self):
        self.extractor.set_render_settings_path(SETTINGS)
        self.extractor.graph.remove_entity(SETTINGS)
        self.extractor.extract(0)
        assert self.extractor.render_settings_path is None
