from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
import math
import numpy as np


# Fixed header of every descriptor; downstream 3D-tile readers key on these.
ASSET_VERSION = "0.0"
GLTF_UP_AXIS = "Y"
REFINE_REPLACE = "REPLACE"


@dataclass(frozen=True, slots=True)
class GeodeticAnchor:
    """
    Geodetic origin of a tile's local frame.

    Attributes:
        longitude_rad, latitude_rad: WGS84 angles in radians.
        height_m: offset along the local "up" direction (meters).
    """
    longitude_rad: float
    latitude_rad: float
    height_m: float = 0.0

    @classmethod
    def from_degrees(cls, lon_deg: float, lat_deg: float, height_m: float = 0.0) -> "GeodeticAnchor":
        return cls(math.radians(lon_deg), math.radians(lat_deg), float(height_m))


@dataclass(slots=True)
class AffineTransform:
    """
    4x4 local-to-ECEF matrix.

    Columns 0..2 are the east/north/up basis vectors in ECEF, column 3 the
    translation. Row 3 is the homogeneous row [0, 0, 0, 1].
    """
    matrix: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        m = np.asarray(self.matrix, dtype=float)
        if m.shape != (4, 4):
            raise ValueError("matrix must be 4x4")
        self.matrix = m

    @classmethod
    def from_columns(
        cls,
        east: Sequence[float],
        north: Sequence[float],
        up: Sequence[float],
        translation: Sequence[float],
    ) -> "AffineTransform":
        m = np.eye(4, dtype=float)
        m[:3, 0] = east
        m[:3, 1] = north
        m[:3, 2] = up
        m[:3, 3] = translation
        return cls(m)

    @property
    def east(self) -> np.ndarray:
        return self.matrix[:3, 0].copy()

    @property
    def north(self) -> np.ndarray:
        return self.matrix[:3, 1].copy()

    @property
    def up(self) -> np.ndarray:
        return self.matrix[:3, 2].copy()

    @property
    def translation(self) -> np.ndarray:
        return self.matrix[:3, 3].copy()

    def column_major(self) -> List[Union[float, int]]:
        """16 values, column by column; the last one is always the literal 1."""
        values: List[Union[float, int]] = [float(v) for v in self.matrix.flatten(order="F")[:15]]
        values.append(1)
        return values

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.matrix)))


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Oriented box: center (3) followed by the x, y and z half-axis vectors (3 each).
    """
    values: tuple

    def __post_init__(self) -> None:
        vals = tuple(float(v) for v in self.values)
        if len(vals) != 12:
            raise ValueError("box needs exactly 12 numbers")
        object.__setattr__(self, "values", vals)

    @property
    def center(self) -> tuple:
        return self.values[:3]

    def to_dict(self) -> Dict[str, Any]:
        return {"box": list(self.values)}


@dataclass(frozen=True, slots=True)
class BoundingRegion:
    """
    Axis-aligned geodetic region.

    Attributes:
        west, south, east, north: radians.
        min_height, max_height: meters.
    """
    west: float
    south: float
    east: float
    north: float
    min_height: float
    max_height: float

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "BoundingRegion":
        if len(values) != 6:
            raise ValueError("region needs exactly 6 numbers")
        return cls(*(float(v) for v in values))

    @property
    def values(self) -> tuple:
        return (self.west, self.south, self.east, self.north, self.min_height, self.max_height)

    def to_dict(self) -> Dict[str, Any]:
        return {"region": [float(v) for v in self.values]}


BoundingVolume = Union[BoundingBox, BoundingRegion]


@dataclass(slots=True)
class TileDescriptor:
    """
    Everything needed to emit one tileset.json.

    Attributes:
        geometric_error: screen-space error tolerance of the tile.
        bounding_volume: BoundingBox or BoundingRegion.
        content_uri: payload reference, written verbatim.
        transform: optional local-to-ECEF matrix.
    """
    geometric_error: float
    bounding_volume: BoundingVolume
    content_uri: str
    transform: Optional[AffineTransform] = None

    def __post_init__(self) -> None:
        if not isinstance(self.bounding_volume, (BoundingBox, BoundingRegion)):
            raise TypeError("bounding_volume must be a BoundingBox or BoundingRegion")
        self.geometric_error = float(self.geometric_error)
        self.content_uri = str(self.content_uri)

    def to_dict(self) -> Dict[str, Any]:
        """Document tree in tileset.json key order."""
        root: Dict[str, Any] = {}
        if self.transform is not None:
            root["transform"] = self.transform.column_major()
        root["boundingVolume"] = self.bounding_volume.to_dict()
        # same value as the document-level geometricError
        root["geometricError"] = self.geometric_error
        root["refine"] = REFINE_REPLACE
        root["content"] = {"uri": self.content_uri}
        return {
            "asset": {"version": ASSET_VERSION, "gltfUpAxis": GLTF_UP_AXIS},
            "geometricError": self.geometric_error,
            "root": root,
        }
