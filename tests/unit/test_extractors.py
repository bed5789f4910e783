import numpy as np
from scenes import BULB, CAMERA, MATERIAL, MESH, PRODUCT, SETTINGS, SUN, build_scene

from scenediff import locators, notices
from scenediff.diff import EntityKind, Operation
from scenediff.extractors import (
    DistantLightPolicy,
    MaterialPolicy,
    MeshPolicy,
    RenderSettingsPolicy,
    SphereLightPolicy,
    render_products,
)
from scenediff.notices import AddedEntry
from scenediff.paths import EntityPath
from scenediff.subsets import GeomSubsetFolder
from scenediff.tracker import DirtyFlag


class TestMeshPolicy:
    def setup_method(self, method):
        self.graph = build_scene()
        self.subsets = GeomSubsetFolder()
        self.subsets.fold_added([AddedEntry("/World/Mesh/red", notices.GEOM_SUBSET)])
        self.policy = MeshPolicy(self.subsets)
        self.path = EntityPath(MESH)

    def test_full_fetch(self):
        entry = self.policy.create(self.graph, self.path)
        assert entry.op is Operation.CREATE
        assert entry.kind is EntityKind.MESH
        attrs = entry.attrs
        assert attrs["transform"].shape == (16,)
        assert attrs["transform"][12:15].tolist() == [1, 2, 3]
        assert attrs["left_handed"] is False
        assert attrs["points"].dtype == np.float32
        assert attrs["points"].shape == (12,)
        assert attrs["uvs"].shape == (8,)
        assert attrs["uvs_interpolation"] == "faceVarying"
        assert attrs["face_vertex_indices"].dtype == np.uint32
        assert attrs["material_binding"] == EntityPath(MATERIAL)
        assert len(attrs["geom_subsets"]) == 1

    def test_optional_attributes_omitted(self):
        self.graph.clear_value(MESH, locators.MESH_LOCATORS["uvs"])
        self.graph.clear_value(MESH, locators.MESH_LOCATORS["normals"])
        attrs = self.policy.create(self.graph, self.path).attrs
        assert "uvs" not in attrs
        assert "normals" not in attrs
        assert "points" in attrs

    def test_bad_data_omitted(self):
        self.graph.set_value(MESH, locators.MESH_LOCATORS["points"], "not points")
        self.graph.set_value(MESH, locators.MESH_LOCATORS["points_interpolation"], "sideways")
        attrs = self.policy.create(self.graph, self.path).attrs
        assert "points" not in attrs
        assert "points_interpolation" not in attrs

    def test_left_handed(self):
        self.graph.set_value(MESH, locators.MESH_LOCATORS["orientation"], "leftHanded")
        assert self.policy.create(self.graph, self.path).attrs["left_handed"] is True

    def test_subset_without_type_skipped(self):
        self.graph.clear_value("/World/Mesh/red", locators.GEOM_SUBSET_LOCATORS["type"])
        assert self.policy.create(self.graph, self.path).attrs["geom_subsets"] == []

    def test_classify(self):
        classify = self.policy.classify
        assert classify([locators.TRANSFORM]) == DirtyFlag.TRANSFORM_ONLY
        assert classify([locators.MATERIAL_BINDINGS]) == DirtyFlag.FULL_MESH_DATA
        assert classify([locators.primvar("st", "indices")]) == DirtyFlag.FULL_MESH_DATA
        assert classify([locators.EMPTY]) == DirtyFlag.ALL
        assert not classify([locators.Locator("visibility")])

    def test_update_by_flags(self):
        update = self.policy.update(self.graph, self.path, DirtyFlag.TRANSFORM_ONLY)
        assert set(update.attrs) == {"transform"}
        update = self.policy.update(self.graph, self.path, DirtyFlag.ALL)
        assert set(update.attrs) == set(self.policy.fetch(self.graph, self.path))


class TestLightPolicies:
    def setup_method(self, method):
        self.graph = build_scene()

    def test_distant_light(self):
        attrs = DistantLightPolicy().create(self.graph, EntityPath(SUN)).attrs
        assert set(attrs) == {"transform", "color", "intensity", "angle"}
        assert attrs["color"].tolist() == [1, 1, 1]
        assert attrs["angle"] == 0.53

    def test_sphere_light_missing_shaping(self):
        attrs = SphereLightPolicy().create(self.graph, EntityPath(BULB)).attrs
        assert attrs["intensity"] == 10.0
        assert attrs["radius"] == 0.5
        assert "cone_angle" not in attrs
        assert "cone_softness" not in attrs

    def test_sphere_light_shaping(self):
        self.graph.set_value(BULB, locators.node_parameter(BULB, "shaping:cone:angle"), 45.0)
        attrs = SphereLightPolicy().create(self.graph, EntityPath(BULB)).attrs
        assert attrs["cone_angle"] == 45.0

    def test_update_refetches_everything(self):
        update = DistantLightPolicy().update(self.graph, EntityPath(SUN), DirtyFlag.ALL)
        assert update.op is Operation.UPDATE
        assert "color" in update.attrs


class TestMaterialPolicy:
    def setup_method(self, method):
        self.graph = build_scene()
        self.policy = MaterialPolicy()

    def test_preview_surface(self):
        attrs = self.policy.create(self.graph, EntityPath(MATERIAL)).attrs
        assert attrs["diffuse_color"].tolist() == [1, 0, 0]
        assert attrs["roughness"] == 0.4
        assert attrs["diffuse_color_file"] == "textures/red.png"
        assert "roughness_file" not in attrs
        assert "opacity" not in attrs

    def test_unsupported_surface(self):
        self.graph.set_value(MATERIAL, locators.node_identifier("/Looks/Red/pbr"), "MdlSurface")
        assert self.policy.create(self.graph, EntityPath(MATERIAL)) is None

    def test_no_surface_terminal(self):
        self.graph.clear_value(MATERIAL, locators.SURFACE_TERMINAL)
        assert self.policy.update(self.graph, EntityPath(MATERIAL), DirtyFlag.ALL) is None

    def test_destroy_needs_no_lookup(self):
        entry = self.policy.destroy(EntityPath(MATERIAL))
        assert entry.op is Operation.DESTROY
        assert "attrs" not in entry.to_dict()


class TestRenderSettingsPolicy:
    def test_products(self):
        attrs = RenderSettingsPolicy().create(build_scene(), EntityPath(SETTINGS)).attrs
        assert attrs["render_products"] == [{"path": EntityPath(PRODUCT), "camera": EntityPath(CAMERA)}]

    def test_products_reader(self):
        assert render_products("nope") is None
        assert render_products([{"path": "/p"}, {"cameraPrim": "/c"}, 3]) == [{"path": EntityPath("/p")}]
