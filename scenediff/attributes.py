# scenediff/attributes.py
"""Best-effort readers turning scene-graph lookups into diff field values.

Every reader returns ``None`` when the graph has no data for a locator or the
data cannot be read as the expected type; callers leave such fields out of
the diff entry. Numeric arrays are flattened into contiguous per-component
buffers: vec3 arrays become 3N float32, vec2 arrays 2N float32, matrices 16
float32 in row-major order and index arrays uint32.
"""
import logging
import numbers
from typing import Any, Callable, Dict, Optional

import numpy as np

from scenediff.errors import InvalidPathError
from scenediff.paths import EntityPath

logger = logging.getLogger(__name__)

INTERPOLATIONS = frozenset({"constant", "uniform", "varying", "vertex", "faceVarying", "instance"})
ORIENTATIONS = frozenset({"rightHanded", "leftHanded"})


def as_float(value) -> Optional[float]:
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (numbers.Real, np.integer, np.floating)):
        return float(value)
    return None


def as_float_buffer(value, width: int) -> Optional[np.ndarray]:
    try:
        arr = np.asarray(value, dtype=np.float32)
    except (TypeError, ValueError):
        return None
    if arr.ndim == 2 and arr.shape[1] != width:
        return None
    if arr.ndim > 2 or arr.ndim == 0:
        return None
    if arr.size % width:
        return None
    return np.ascontiguousarray(arr.reshape(-1))


def as_color(value) -> Optional[np.ndarray]:
    buf = as_float_buffer(value, 3)
    if buf is None or buf.size != 3:
        return None
    return buf


def as_matrix(value) -> Optional[np.ndarray]:
    try:
        arr = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if arr.size != 16 or arr.ndim not in (1, 2):
        return None
    return np.ascontiguousarray(arr.astype(np.float32).reshape(-1))


def as_index_buffer(value) -> Optional[np.ndarray]:
    if isinstance(value, (str, bytes)):
        return None
    arr = np.asarray(value)
    if arr.ndim != 1:
        return None
    if arr.size == 0:
        return np.zeros(0, dtype=np.uint32)
    if not np.issubdtype(arr.dtype, np.integer) or arr.min() < 0:
        return None
    return arr.astype(np.uint32)


def as_token(value, allowed=None) -> Optional[str]:
    if not isinstance(value, str):
        return None
    if allowed is not None and value not in allowed:
        return None
    return value


def as_interpolation(value) -> Optional[str]:
    return as_token(value, INTERPOLATIONS)


def as_path(value) -> Optional[EntityPath]:
    if isinstance(value, EntityPath):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return EntityPath(value)
    except InvalidPathError:
        return None


def fetch(graph, path: EntityPath, locator, convert: Callable[[Any], Any]):
    value = graph.lookup(path, locator)
    if value is None:
        return None
    result = convert(value)
    if result is None:
        logger.debug("Ignoring %s on %s: cannot read %s", locator, path, type(value).__name__)
    return result


def put(attrs: Dict[str, Any], key: str, value):
    if value is not None:
        attrs[key] = value
