"""Small in-memory scenes shared by the unit tests."""
import numpy as np

from scenediff import locators, notices
from scenediff.graph import InMemorySceneGraph

MESH = "/World/Mesh"
SUBSET = "/World/Mesh/red"
CAMERA = "/World/Cam"
SUN = "/World/Sun"
BULB = "/World/Bulb"
MATERIAL = "/Looks/Red"
SURFACE = "/Looks/Red/pbr"
TEXTURE = "/Looks/Red/tex"
SETTINGS = "/Render/Settings"
PRODUCT = "/Render/Settings/product"


def translation(x, y, z):
    m = np.eye(4)
    m[3, :3] = (x, y, z)
    return m


def mesh_values():
    loc = locators.MESH_LOCATORS
    return {
        loc["transform"]: translation(1, 2, 3),
        loc["orientation"]: "rightHanded",
        loc["points"]: [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]],
        loc["points_interpolation"]: "vertex",
        loc["normals"]: [[0, 0, 1]] * 4,
        loc["normals_interpolation"]: "vertex",
        loc["uvs"]: [[0, 0], [1, 0], [1, 1], [0, 1]],
        loc["uvs_interpolation"]: "faceVarying",
        loc["uvs_indices"]: [0, 1, 2, 3],
        loc["face_vertex_indices"]: [0, 1, 2, 3],
        loc["face_vertex_counts"]: [4],
        loc["material_binding"]: MATERIAL,
    }


def subset_values():
    loc = locators.GEOM_SUBSET_LOCATORS
    return {
        loc["indices"]: [0],
        loc["type"]: "face",
        loc["material_binding"]: MATERIAL,
    }


def material_values(identifier=locators.PREVIEW_SURFACE):
    return {
        locators.SURFACE_TERMINAL: SURFACE,
        locators.node_identifier(SURFACE): identifier,
        locators.node_parameter(SURFACE, "diffuseColor"): (1.0, 0.0, 0.0),
        locators.node_parameter(SURFACE, "roughness"): 0.4,
        locators.node_parameter(SURFACE, "metallic"): 0.0,
        locators.node_connection(SURFACE, "diffuseColor"): [TEXTURE],
        locators.node_parameter(TEXTURE, "file"): "textures/red.png",
    }


def light_values(path, **params):
    values = {
        locators.TRANSFORM_MATRIX: np.eye(4),
        locators.LIGHT_TERMINAL: path,
    }
    for name, value in params.items():
        values[locators.node_parameter(path, name)] = value
    return values


def build_scene(graph=None):
    graph = graph or InMemorySceneGraph()
    with graph.batch():
        graph.add_entity("/World", "xform", {locators.TRANSFORM_MATRIX: np.eye(4)})
        graph.add_entity(MESH, notices.MESH, mesh_values())
        graph.add_entity(SUBSET, notices.GEOM_SUBSET, subset_values())
        graph.add_entity(CAMERA, notices.CAMERA, {
            locators.TRANSFORM_MATRIX: np.eye(4),
            locators.CAMERA_LOCATORS["focal_length"]: 50.0,
            locators.CAMERA_LOCATORS["vertical_aperture"]: 15.2908,
        })
        graph.add_entity(SUN, notices.DISTANT_LIGHT, light_values(SUN, color=(1, 1, 1), intensity=3.0, angle=0.53))
        graph.add_entity(BULB, notices.SPHERE_LIGHT, light_values(BULB, color=(1, 0.5, 0.2), intensity=10, radius=0.5))
        graph.add_entity(MATERIAL, notices.MATERIAL, material_values())
        graph.add_entity(SURFACE, "shader")
        graph.add_entity(SETTINGS, notices.RENDER_SETTINGS, {
            locators.RENDER_PRODUCTS: [{"path": PRODUCT, "cameraPrim": CAMERA}],
        })
        graph.add_entity(PRODUCT, notices.RENDER_PRODUCT)
    return graph
