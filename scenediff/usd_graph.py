# scenediff/usd_graph.py
"""OpenUSD stage exposed as a notifying scene graph.

Prims are announced with a type tag derived from their schema type name
(``Mesh`` -> ``mesh``, ``GeomSubset`` -> ``geomSubset``). Stage edits arrive
through ``Usd.Notice.ObjectsChanged`` and are translated into Removed, Added
and Dirtied batches; moving the time code dirties whatever might vary over
time. ``lookup`` answers the Hydra-style locators of ``scenediff.locators``
from the composed stage at the current time code.
"""
import logging
from typing import Dict, List, Optional, Set

import numpy as np
from pxr import Sdf, Tf, Usd, UsdGeom, UsdLux, UsdRender, UsdShade

from scenediff import locators, notices
from scenediff.errors import StageOpenError
from scenediff.graph import SceneGraph
from scenediff.locators import Locator
from scenediff.notices import AddedEntry, DirtiedEntry, RemovedEntry
from scenediff.paths import EntityPath

logger = logging.getLogger(__name__)

SUBSET_PROPERTIES = {
    "indices": locators.GEOM_SUBSET_LOCATORS["indices"],
    "elementType": locators.GEOM_SUBSET_LOCATORS["type"],
}
TOPOLOGY_PROPERTIES = ("orientation", "faceVertexIndices", "faceVertexCounts")
CAMERA_PROPERTIES = ("focalLength", "verticalAperture")


def _type_tag(prim) -> str:
    name = str(prim.GetTypeName())
    return name[:1].lower() + name[1:]


def _entity_path(sdf_path) -> EntityPath:
    return EntityPath(str(sdf_path))


def _plain(value):
    """Vt/Gf/Sdf values to plain python and numpy."""
    if value is None:
        return None
    if isinstance(value, Sdf.AssetPath):
        return value.resolvedPath or value.path
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Sdf.Path):
        return str(value)
    return np.array(value)


def _is_light(prim) -> bool:
    return (prim.IsA(UsdLux.BoundableLightBase) or prim.IsA(UsdLux.NonboundableLightBase)
            or prim.HasAPI(UsdLux.LightAPI))


def _matrix(m) -> np.ndarray:
    return np.array([[m[i][j] for j in range(4)] for i in range(4)], dtype=np.float64)


class UsdStageSceneGraph(SceneGraph):
    def __init__(self, stage):
        super().__init__()
        self.stage = stage
        self.time_code = stage.GetStartTimeCode()
        self._known: Dict[EntityPath, str] = {}
        self._listener = None

    @classmethod
    def open(cls, stage_path):
        try:
            stage = Usd.Stage.Open(str(stage_path))
        except Tf.ErrorException as e:
            logger.debug("Usd.Stage.Open failed: %s", e)
            raise StageOpenError(stage_path) from e
        if not stage:
            raise StageOpenError(stage_path)
        return cls(stage)

    @property
    def start_time_code(self) -> float:
        return self.stage.GetStartTimeCode()

    @property
    def end_time_code(self) -> float:
        return self.stage.GetEndTimeCode()

    @property
    def populated(self) -> bool:
        return self._listener is not None

    def known_paths(self, type_tag: str = None) -> List[EntityPath]:
        return sorted(p for p, t in self._known.items() if type_tag is None or t == type_tag)

    def close(self):
        if self._listener is not None:
            self._listener.Revoke()
            self._listener = None

    # -- notifications -------------------------------------------------------

    def populate(self):
        entries = []
        for prim in self.stage.Traverse():
            path = _entity_path(prim.GetPath())
            tag = _type_tag(prim)
            self._known[path] = tag
            entries.append(AddedEntry(path, tag))
        if self._listener is None:
            self._listener = Tf.Notice.Register(Usd.Notice.ObjectsChanged, self._on_objects_changed, self.stage)
        logger.info("Populated %d prims from %s", len(entries), self.stage.GetRootLayer().identifier)
        self._send(entries)

    def set_time_code(self, time_code: float):
        if time_code == self.time_code:
            return
        self.time_code = time_code
        if not self.populated:
            return
        dirtied: Dict[EntityPath, Set[Locator]] = {}
        for path in self.known_paths():
            prim = self.stage.GetPrimAtPath(str(path))
            if not prim:
                continue
            if prim.IsA(UsdGeom.Xformable) and self._transform_might_vary(prim):
                dirtied.setdefault(path, set()).add(locators.TRANSFORM)
            for attr in prim.GetAttributes():
                if attr.ValueMightBeTimeVarying():
                    self._dirty_property(prim, attr.GetName(), dirtied)
        self._send(self._dirtied_entries(dirtied))

    @staticmethod
    def _transform_might_vary(prim) -> bool:
        while prim and not prim.IsPseudoRoot():
            if prim.IsA(UsdGeom.Xformable) and UsdGeom.Xformable(prim).TransformMightBeTimeVarying():
                return True
            prim = prim.GetParent()
        return False

    def _on_objects_changed(self, notice, sender):
        removed: List[RemovedEntry] = []
        added: List[AddedEntry] = []
        dirtied: Dict[EntityPath, Set[Locator]] = {}

        for sdf_path in notice.GetResyncedPaths():
            if sdf_path.IsPropertyPath():
                self._dirty_sdf_property(sdf_path, dirtied)
            else:
                self._resync(sdf_path.GetPrimPath(), removed, added)
        for sdf_path in notice.GetChangedInfoOnlyPaths():
            if sdf_path.IsPropertyPath():
                self._dirty_sdf_property(sdf_path, dirtied)

        logger.debug("Stage change: %d removed, %d added, %d dirtied", len(removed), len(added), len(dirtied))
        with self.batch():
            self._send(removed)
            self._send(added)
            self._send(self._dirtied_entries(dirtied))

    def _resync(self, sdf_path, removed, added):
        root = _entity_path(sdf_path)
        for path in sorted(p for p in self._known if p.has_prefix(root)):
            del self._known[path]
            removed.append(RemovedEntry(path))
        prim = self.stage.GetPrimAtPath(sdf_path)
        if not prim:
            return
        for child in Usd.PrimRange(prim):
            if child.IsPseudoRoot():
                continue
            path = _entity_path(child.GetPath())
            tag = _type_tag(child)
            self._known[path] = tag
            added.append(AddedEntry(path, tag))

    def _dirty_sdf_property(self, sdf_path, dirtied):
        prim = self.stage.GetPrimAtPath(sdf_path.GetPrimPath())
        if not prim:
            return
        self._dirty_property(prim, sdf_path.name, dirtied)

    def _dirty_property(self, prim, name: str, dirtied: Dict[EntityPath, Set[Locator]]):
        path = _entity_path(prim.GetPath())
        locator = self._property_locator(prim, name)
        if locator is None:
            return

        if locator == locators.TRANSFORM:
            # world transforms of everything below move too
            for known in self._known:
                if known.has_prefix(path):
                    dirtied.setdefault(known, set()).add(locators.TRANSFORM)
            return

        if prim.IsA(UsdShade.Shader) or (prim.IsA(UsdShade.NodeGraph) and not prim.IsA(UsdShade.Material)):
            material = self._owning_material(prim)
            if material is not None:
                dirtied.setdefault(material, set()).add(locators.MATERIAL)
            return

        if prim.IsA(UsdRender.Product) and name == "camera":
            for settings in self.known_paths(notices.RENDER_SETTINGS):
                dirtied.setdefault(settings, set()).add(locators.RENDER_PRODUCTS)
            return

        dirtied.setdefault(path, set()).add(locator)

    @staticmethod
    def _property_locator(prim, name: str) -> Optional[Locator]:
        if name.startswith("xformOp"):
            return locators.TRANSFORM
        if name.startswith("material:binding"):
            return locators.MATERIAL_BINDINGS
        if name.startswith("inputs:") or name.startswith("outputs:") or name == "info:id":
            return locators.MATERIAL
        if prim.IsA(UsdGeom.Subset):
            return SUBSET_PROPERTIES.get(name)
        if prim.IsA(UsdGeom.Mesh):
            if name in ("points", "normals"):
                return locators.PRIMVARS.append(name)
            if name.startswith("primvars:"):
                return locators.PRIMVARS.append(name.split(":")[1])
            if name in TOPOLOGY_PROPERTIES:
                return locators.TOPOLOGY.append(name)
            return None
        if prim.IsA(UsdGeom.Camera) and name in CAMERA_PROPERTIES:
            return locators.CAMERA.append(name)
        if prim.IsA(UsdRender.Settings) and name == "products":
            return locators.RENDER_PRODUCTS
        if prim.IsA(UsdRender.Product) and name == "camera":
            return locators.RENDER_PRODUCTS
        return None

    def _owning_material(self, prim) -> Optional[EntityPath]:
        while prim and not prim.IsPseudoRoot():
            if prim.IsA(UsdShade.Material):
                path = _entity_path(prim.GetPath())
                return path if path in self._known else None
            prim = prim.GetParent()
        return None

    @staticmethod
    def _dirtied_entries(dirtied) -> List[DirtiedEntry]:
        return [
            DirtiedEntry(path, sorted(dirtied[path], key=lambda loc: loc.tokens))
            for path in sorted(dirtied)
        ]

    # -- lookup --------------------------------------------------------------

    def lookup(self, path, locator):
        prim = self.stage.GetPrimAtPath(str(path))
        if not prim or locator.is_empty():
            return None
        head, rest = locator.tokens[0], locator.tokens[1:]
        reader = {
            "xform": self._read_xform,
            "mesh": self._read_mesh,
            "primvars": self._read_primvar,
            "materialBindings": self._read_binding,
            "geomSubset": self._read_subset,
            "camera": self._read_camera,
            "material": self._read_material,
            "renderSettings": self._read_render_settings,
        }.get(head)
        if reader is None:
            return None
        return reader(prim, rest)

    def _get(self, attr):
        if not attr or not attr.HasValue():
            return None
        return _plain(attr.Get(Usd.TimeCode(self.time_code)))

    def _read_xform(self, prim, rest):
        if rest != ("matrix",) or not prim.IsA(UsdGeom.Xformable):
            return None
        xformable = UsdGeom.Xformable(prim)
        return _matrix(xformable.ComputeLocalToWorldTransform(Usd.TimeCode(self.time_code)))

    def _read_mesh(self, prim, rest):
        if not prim.IsA(UsdGeom.Mesh) or len(rest) != 2 or rest[0] != "topology":
            return None
        mesh = UsdGeom.Mesh(prim)
        attr = {
            "orientation": mesh.GetOrientationAttr(),
            "faceVertexIndices": mesh.GetFaceVertexIndicesAttr(),
            "faceVertexCounts": mesh.GetFaceVertexCountsAttr(),
        }.get(rest[1])
        if rest[1] == "orientation":
            # schema fallback applies when unauthored
            return str(attr.Get())
        return self._get(attr)

    def _read_primvar(self, prim, rest):
        if not prim.IsA(UsdGeom.Mesh) or len(rest) != 2:
            return None
        name, field = rest
        mesh = UsdGeom.Mesh(prim)
        primvar = UsdGeom.PrimvarsAPI(prim).GetPrimvar(name)
        if primvar and primvar.HasValue():
            if field == "primvarValue":
                return self._get(primvar.GetAttr())
            if field == "interpolation":
                return str(primvar.GetInterpolation())
            if field == "indices":
                if not primvar.IsIndexed():
                    return None
                return _plain(primvar.GetIndices(Usd.TimeCode(self.time_code)))
            return None

        # points and normals are plain attributes on point-based prims
        if name == "points":
            attr, interpolation = mesh.GetPointsAttr(), UsdGeom.Tokens.vertex
        elif name == "normals":
            attr, interpolation = mesh.GetNormalsAttr(), mesh.GetNormalsInterpolation()
        else:
            return None
        if field == "primvarValue":
            return self._get(attr)
        if field == "interpolation" and attr.HasValue():
            return str(interpolation)
        return None

    def _read_binding(self, prim, rest):
        if rest != ("", "path"):
            return None
        targets = UsdShade.MaterialBindingAPI(prim).GetDirectBindingRel().GetTargets()
        return str(targets[0]) if targets else None

    def _read_subset(self, prim, rest):
        if not prim.IsA(UsdGeom.Subset) or len(rest) != 1:
            return None
        subset = UsdGeom.Subset(prim)
        if rest[0] == "indices":
            return self._get(subset.GetIndicesAttr())
        if rest[0] == "type":
            return str(subset.GetElementTypeAttr().Get())
        return None

    def _read_camera(self, prim, rest):
        if not prim.IsA(UsdGeom.Camera) or len(rest) != 1:
            return None
        camera = UsdGeom.Camera(prim)
        attr = {
            "focalLength": camera.GetFocalLengthAttr(),
            "verticalAperture": camera.GetVerticalApertureAttr(),
        }.get(rest[0])
        if attr is None:
            return None
        return _plain(attr.Get(Usd.TimeCode(self.time_code)))

    def _read_material(self, prim, rest):
        if len(rest) < 3 or rest[0] != "":
            return None
        if rest[1] == "terminals" and rest[3:] == ("upstreamNodePath",):
            return self._terminal(prim, rest[2])
        if rest[1] != "nodes" or len(rest) < 4:
            return None

        node = self.stage.GetPrimAtPath(rest[2])
        if not node:
            return None
        what = rest[3:]
        if what == ("nodeIdentifier",):
            if not node.IsA(UsdShade.Shader):
                return None
            shader_id = UsdShade.Shader(node).GetIdAttr().Get()
            return str(shader_id) if shader_id else None
        if len(what) == 3 and what[0] == "parameters" and what[2] == "value":
            attr = node.GetAttribute("inputs:" + what[1])
            if not attr:
                return None
            return _plain(attr.Get(Usd.TimeCode(self.time_code)))
        if len(what) == 2 and what[0] == "inputConnections":
            attr = node.GetAttribute("inputs:" + what[1])
            if not attr:
                return None
            return [str(p.GetPrimPath()) for p in attr.GetConnections()]
        return None

    def _terminal(self, prim, terminal):
        if terminal == "light":
            if _is_light(prim):
                return str(prim.GetPath())
            return None
        if terminal != "surface" or not prim.IsA(UsdShade.Material):
            return None
        source = UsdShade.Material(prim).ComputeSurfaceSource()
        shader = source[0] if isinstance(source, tuple) else source
        if not shader:
            return None
        return str(shader.GetPath())

    def _read_render_settings(self, prim, rest):
        if rest != ("renderProducts",) or not prim.IsA(UsdRender.Settings):
            return None
        products = []
        for target in UsdRender.Settings(prim).GetProductsRel().GetForwardedTargets():
            product_prim = self.stage.GetPrimAtPath(target)
            item = {"path": str(target)}
            if product_prim and product_prim.IsA(UsdRender.Product):
                cameras = UsdRender.Product(product_prim).GetCameraRel().GetForwardedTargets()
                if cameras:
                    item["cameraPrim"] = str(cameras[0])
            products.append(item)
        return products
