# scenediff/notices.py
from dataclasses import dataclass, field
from typing import Tuple

from scenediff.locators import Locator
from scenediff.paths import EntityPath

MESH = "mesh"
GEOM_SUBSET = "geomSubset"
CAMERA = "camera"
DISTANT_LIGHT = "distantLight"
SPHERE_LIGHT = "sphereLight"
MATERIAL = "material"
RENDER_SETTINGS = "renderSettings"
RENDER_PRODUCT = "renderProduct"


@dataclass(frozen=True)
class AddedEntry:
    path: EntityPath
    type_tag: str

    def __post_init__(self):
        object.__setattr__(self, "path", EntityPath.coerce(self.path))


@dataclass(frozen=True)
class RemovedEntry:
    path: EntityPath

    def __post_init__(self):
        object.__setattr__(self, "path", EntityPath.coerce(self.path))


@dataclass(frozen=True)
class DirtiedEntry:
    path: EntityPath
    locators: Tuple[Locator, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "path", EntityPath.coerce(self.path))
        object.__setattr__(self, "locators", tuple(self.locators))


@dataclass(frozen=True)
class RenamedEntry:
    old_path: EntityPath
    new_path: EntityPath

    def __post_init__(self):
        object.__setattr__(self, "old_path", EntityPath.coerce(self.old_path))
        object.__setattr__(self, "new_path", EntityPath.coerce(self.new_path))
