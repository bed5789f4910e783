# scenediff/extractors.py
"""Attribute extraction policies, one per supported entity type.

A policy tells the generic tracker which type tag it follows, how a dirty
notification's locators map onto dirty flags and which attributes to read
for a create or an update. Only the mesh grades its updates; every other
type re-reads its full attribute set whenever it is dirtied.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from scenediff import notices
from scenediff.attributes import (
    ORIENTATIONS,
    as_color,
    as_float,
    as_float_buffer,
    as_index_buffer,
    as_interpolation,
    as_matrix,
    as_path,
    as_token,
    fetch,
    put,
)
from scenediff.diff import CreateEntity, DestroyEntity, EntityKind, UpdateEntity
from scenediff.locators import (
    CAMERA_LOCATORS,
    DISTANT_LIGHT_PARAMETERS,
    GEOM_SUBSET_LOCATORS,
    LIGHT_TERMINAL,
    MATERIAL_PARAMETERS,
    MATERIAL_TEXTURE_INPUTS,
    MESH_DATA_PREFIXES,
    MESH_LOCATORS,
    MESH_TRANSFORM_PREFIXES,
    PREVIEW_SURFACE,
    RENDER_PRODUCTS,
    SPHERE_LIGHT_PARAMETERS,
    SURFACE_TERMINAL,
    TRANSFORM_MATRIX,
    node_connection,
    node_identifier,
    node_parameter,
)
from scenediff.paths import EntityPath
from scenediff.tracker import NO_FLAGS, DirtyFlag

logger = logging.getLogger(__name__)


class ExtractPolicy:
    kind: EntityKind = None
    type_tag: str = None

    def classify(self, locators) -> DirtyFlag:
        return DirtyFlag.ALL

    def fetch(self, graph, path: EntityPath) -> Optional[Dict[str, Any]]:
        raise NotImplementedError()

    def create(self, graph, path: EntityPath):
        attrs = self.fetch(graph, path)
        if attrs is None:
            return None
        return CreateEntity(self.kind, path, attrs)

    def update(self, graph, path: EntityPath, flags: DirtyFlag):
        attrs = self.fetch(graph, path)
        if attrs is None:
            return None
        return UpdateEntity(self.kind, path, attrs)

    def destroy(self, path: EntityPath):
        return DestroyEntity(self.kind, path)


def _vec3_buffer(value):
    return as_float_buffer(value, 3)


def _vec2_buffer(value):
    return as_float_buffer(value, 2)


class MeshPolicy(ExtractPolicy):
    kind = EntityKind.MESH
    type_tag = notices.MESH

    def __init__(self, subsets):
        self.subsets = subsets

    def classify(self, locators) -> DirtyFlag:
        flags = NO_FLAGS
        for locator in locators:
            if any(locator.intersects(p) for p in MESH_TRANSFORM_PREFIXES):
                flags |= DirtyFlag.TRANSFORM_ONLY
            if any(locator.intersects(p) for p in MESH_DATA_PREFIXES):
                flags |= DirtyFlag.FULL_MESH_DATA
        return flags

    def fetch(self, graph, path):
        attrs = {}
        self._read_transform(graph, path, attrs)
        self._read_mesh_data(graph, path, attrs)
        return attrs

    def update(self, graph, path, flags):
        attrs = {}
        if DirtyFlag.TRANSFORM_ONLY in flags:
            self._read_transform(graph, path, attrs)
        if DirtyFlag.FULL_MESH_DATA in flags:
            self._read_mesh_data(graph, path, attrs)
        return UpdateEntity(self.kind, path, attrs)

    def _read_transform(self, graph, path, attrs):
        put(attrs, "transform", fetch(graph, path, MESH_LOCATORS["transform"], as_matrix))

    def _read_mesh_data(self, graph, path, attrs):
        loc = MESH_LOCATORS
        orientation = fetch(graph, path, loc["orientation"], lambda v: as_token(v, ORIENTATIONS))
        if orientation is not None:
            attrs["left_handed"] = orientation == "leftHanded"

        put(attrs, "points", fetch(graph, path, loc["points"], _vec3_buffer))
        put(attrs, "points_interpolation", fetch(graph, path, loc["points_interpolation"], as_interpolation))
        put(attrs, "normals", fetch(graph, path, loc["normals"], _vec3_buffer))
        put(attrs, "normals_interpolation", fetch(graph, path, loc["normals_interpolation"], as_interpolation))
        put(attrs, "uvs", fetch(graph, path, loc["uvs"], _vec2_buffer))
        put(attrs, "uvs_interpolation", fetch(graph, path, loc["uvs_interpolation"], as_interpolation))
        put(attrs, "uvs_indices", fetch(graph, path, loc["uvs_indices"], as_index_buffer))
        put(attrs, "face_vertex_indices", fetch(graph, path, loc["face_vertex_indices"], as_index_buffer))
        put(attrs, "face_vertex_counts", fetch(graph, path, loc["face_vertex_counts"], as_index_buffer))
        put(attrs, "material_binding", fetch(graph, path, loc["material_binding"], as_path))
        attrs["geom_subsets"] = self._read_subsets(graph, path)

    def _read_subsets(self, graph, path) -> List[Dict[str, Any]]:
        out = []
        for subset_path in self.subsets.subsets_of(path):
            indices = fetch(graph, subset_path, GEOM_SUBSET_LOCATORS["indices"], as_index_buffer)
            subset_type = fetch(graph, subset_path, GEOM_SUBSET_LOCATORS["type"], as_token)
            if indices is None or subset_type is None:
                logger.debug("Skipping geom subset %s without type or indices", subset_path)
                continue
            subset = {"name": subset_path.name, "type": subset_type, "indices": indices}
            put(subset, "material_binding",
                fetch(graph, subset_path, GEOM_SUBSET_LOCATORS["material_binding"], as_path))
            out.append(subset)
        return out


class CameraPolicy(ExtractPolicy):
    kind = EntityKind.CAMERA
    type_tag = notices.CAMERA

    def fetch(self, graph, path):
        attrs = {}
        put(attrs, "transform", fetch(graph, path, CAMERA_LOCATORS["transform"], as_matrix))
        put(attrs, "focal_length", fetch(graph, path, CAMERA_LOCATORS["focal_length"], as_float))
        put(attrs, "vertical_aperture", fetch(graph, path, CAMERA_LOCATORS["vertical_aperture"], as_float))
        return attrs


class LightPolicy(ExtractPolicy):
    """Lights carry their parameters on the node behind the light terminal."""

    parameters: Mapping[str, str] = {}

    def fetch(self, graph, path):
        attrs = {}
        put(attrs, "transform", fetch(graph, path, TRANSFORM_MATRIX, as_matrix))
        node = fetch(graph, path, LIGHT_TERMINAL, as_token)
        if node is None:
            return attrs
        for key, name in self.parameters.items():
            convert = as_color if key == "color" else as_float
            put(attrs, key, fetch(graph, path, node_parameter(node, name), convert))
        return attrs


class DistantLightPolicy(LightPolicy):
    kind = EntityKind.DISTANT_LIGHT
    type_tag = notices.DISTANT_LIGHT
    parameters = DISTANT_LIGHT_PARAMETERS


class SphereLightPolicy(LightPolicy):
    kind = EntityKind.SPHERE_LIGHT
    type_tag = notices.SPHERE_LIGHT
    parameters = SPHERE_LIGHT_PARAMETERS


class MaterialPolicy(ExtractPolicy):
    """Only UsdPreviewSurface materials are emitted."""

    kind = EntityKind.MATERIAL
    type_tag = notices.MATERIAL

    def fetch(self, graph, path):
        node = fetch(graph, path, SURFACE_TERMINAL, as_token)
        if node is None:
            logger.debug("Skipping material %s: no surface terminal", path)
            return None
        identifier = fetch(graph, path, node_identifier(node), as_token)
        if identifier != PREVIEW_SURFACE:
            logger.debug("Skipping material %s: unsupported surface %s", path, identifier)
            return None

        attrs = {}
        for key, name in MATERIAL_PARAMETERS.items():
            convert = as_color if key in ("diffuse_color", "emissive") else as_float
            put(attrs, key, fetch(graph, path, node_parameter(node, name), convert))
        for key, name in MATERIAL_TEXTURE_INPUTS.items():
            put(attrs, key + "_file", self._texture_file(graph, path, node, name))
        return attrs

    def _texture_file(self, graph, path, node, input_name) -> Optional[str]:
        upstream = graph.lookup(path, node_connection(node, input_name))
        if not isinstance(upstream, (list, tuple)) or not upstream:
            return None
        source = as_token(upstream[0])
        if source is None:
            return None
        return fetch(graph, path, node_parameter(source, "file"), as_token)


def render_products(value) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(value, (list, tuple)):
        return None
    products = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        product_path = as_path(item.get("path"))
        if product_path is None:
            continue
        product = {"path": product_path}
        put(product, "camera", as_path(item.get("cameraPrim")))
        products.append(product)
    return products


class RenderSettingsPolicy(ExtractPolicy):
    kind = EntityKind.RENDER_SETTINGS
    type_tag = notices.RENDER_SETTINGS

    def fetch(self, graph, path):
        attrs = {}
        put(attrs, "render_products", fetch(graph, path, RENDER_PRODUCTS, render_products))
        return attrs
