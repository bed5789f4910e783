# scenediff/locators.py
from typing import Iterable, Tuple, Union


class Locator:
    """Structured key naming an attribute (or attribute subtree) of an entity.

    The empty locator names the whole entity.
    """

    __slots__ = ("_tokens",)

    def __init__(self, *tokens: str):
        object.__setattr__(self, "_tokens", tuple(str(t) for t in tokens))

    def __setattr__(self, name, value):
        raise AttributeError("Locator is immutable")

    @property
    def tokens(self) -> Tuple[str, ...]:
        return self._tokens

    def is_empty(self) -> bool:
        return not self._tokens

    def has_prefix(self, prefix: "Locator") -> bool:
        n = len(prefix._tokens)
        return self._tokens[:n] == prefix._tokens

    def intersects(self, other: "Locator") -> bool:
        return self.has_prefix(other) or other.has_prefix(self)

    def append(self, *parts: Union[str, "Locator"]) -> "Locator":
        tokens = list(self._tokens)
        for part in parts:
            if isinstance(part, Locator):
                tokens.extend(part._tokens)
            else:
                tokens.append(str(part))
        return Locator(*tokens)

    def __eq__(self, other):
        if not isinstance(other, Locator):
            return NotImplemented
        return self._tokens == other._tokens

    def __hash__(self):
        return hash(("Locator",) + self._tokens)

    def __len__(self):
        return len(self._tokens)

    def __str__(self):
        return "/".join(self._tokens)

    def __repr__(self):
        return f"Locator{self._tokens!r}"


def intersects_any(locators: Iterable[Locator], targets: Iterable[Locator]) -> bool:
    targets = tuple(targets)
    return any(loc.intersects(t) for loc in locators for t in targets)


EMPTY = Locator()

# dirty-notification prefixes
TRANSFORM = Locator("xform")
PRIMVARS = Locator("primvars")
MATERIAL_BINDINGS = Locator("materialBindings")
MESH = Locator("mesh")
MATERIAL = Locator("material")
CAMERA = Locator("camera")
GEOM_SUBSET = Locator("geomSubset")
RENDER_SETTINGS = Locator("renderSettings")

TRANSFORM_MATRIX = TRANSFORM.append("matrix")
MATERIAL_BINDING_PATH = MATERIAL_BINDINGS.append("", "path")
GEOM_SUBSETS = MESH.append("geomSubsets")
TOPOLOGY = MESH.append("topology")


def primvar(name: str, field: str = "primvarValue") -> Locator:
    return PRIMVARS.append(name, field)


# material network
MATERIAL_NETWORK = MATERIAL.append("")
MATERIAL_NODES = MATERIAL_NETWORK.append("nodes")
SURFACE_TERMINAL = MATERIAL_NETWORK.append("terminals", "surface", "upstreamNodePath")
LIGHT_TERMINAL = MATERIAL_NETWORK.append("terminals", "light", "upstreamNodePath")
NODE_IDENTIFIER = Locator("nodeIdentifier")


def node_identifier(node: str) -> Locator:
    return MATERIAL_NODES.append(node, NODE_IDENTIFIER)


def node_parameter(node: str, name: str) -> Locator:
    return MATERIAL_NODES.append(node, "parameters", name, "value")


def node_connection(node: str, name: str) -> Locator:
    return MATERIAL_NODES.append(node, "inputConnections", name)


# logical attribute name -> locator, one table per entity type
MESH_LOCATORS = {
    "transform": TRANSFORM_MATRIX,
    "orientation": TOPOLOGY.append("orientation"),
    "points": primvar("points"),
    "points_interpolation": primvar("points", "interpolation"),
    "normals": primvar("normals"),
    "normals_interpolation": primvar("normals", "interpolation"),
    "uvs": primvar("st"),
    "uvs_interpolation": primvar("st", "interpolation"),
    "uvs_indices": primvar("st", "indices"),
    "face_vertex_indices": TOPOLOGY.append("faceVertexIndices"),
    "face_vertex_counts": TOPOLOGY.append("faceVertexCounts"),
    "material_binding": MATERIAL_BINDING_PATH,
}

# dirty prefixes deciding which mesh flag a notification raises
MESH_TRANSFORM_PREFIXES = (TRANSFORM,)
MESH_DATA_PREFIXES = (PRIMVARS, MATERIAL_BINDINGS, MESH)

GEOM_SUBSET_LOCATORS = {
    "indices": GEOM_SUBSET.append("indices"),
    "type": GEOM_SUBSET.append("type"),
    "material_binding": MATERIAL_BINDING_PATH,
}

CAMERA_LOCATORS = {
    "transform": TRANSFORM_MATRIX,
    "focal_length": CAMERA.append("focalLength"),
    "vertical_aperture": CAMERA.append("verticalAperture"),
}

# light parameters live on the node behind the light terminal
DISTANT_LIGHT_PARAMETERS = {
    "color": "color",
    "intensity": "intensity",
    "angle": "angle",
}

SPHERE_LIGHT_PARAMETERS = {
    "color": "color",
    "intensity": "intensity",
    "radius": "radius",
    "cone_angle": "shaping:cone:angle",
    "cone_softness": "shaping:cone:softness",
}

PREVIEW_SURFACE = "UsdPreviewSurface"

MATERIAL_PARAMETERS = {
    "diffuse_color": "diffuseColor",
    "emissive": "emissiveColor",
    "metallic": "metallic",
    "opacity": "opacity",
    "roughness": "roughness",
}

# inputs whose upstream texture file is reported as <attr>_file
MATERIAL_TEXTURE_INPUTS = {
    "diffuse_color": "diffuseColor",
    "emissive": "emissiveColor",
    "metallic": "metallic",
    "normal": "normal",
    "opacity": "opacity",
    "roughness": "roughness",
}

RENDER_PRODUCTS = RENDER_SETTINGS.append("renderProducts")
