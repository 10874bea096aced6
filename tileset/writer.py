"""
tileset.json writers.

Every entry point builds a TileDescriptor, serializes it with json.dumps and hands
the UTF-8 bytes to an injected `persist(path, data) -> bool`. Write failures are
reported as a False return plus an error log line. Malformed bounding volumes
raise ValueError before anything is written.

Usage:
    ok = write_box_descriptor(None, [0, 0, 0, 10, 0, 0, 0, 10, 0, 0, 0, 10], 16.0,
                              "tile.b3dm", "out/tileset.json")
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence, Union

from common.geo import (
    LEGACY_SCALED,
    NORMALIZED,
    lat_meters_to_radians,
    lon_meters_to_radians,
)
from common.types import (
    AffineTransform,
    BoundingBox,
    BoundingRegion,
    GeodeticAnchor,
    TileDescriptor,
)
from tileset.persist import Persist, write_file


log = logging.getLogger(__name__)

TransformArg = Union[AffineTransform, GeodeticAnchor, None]


def resolve_transform(transform: TransformArg) -> Optional[AffineTransform]:
    """An anchor becomes a NormalizedTangentFrame matrix; matrices pass through."""
    if transform is None or isinstance(transform, AffineTransform):
        return transform
    if isinstance(transform, GeodeticAnchor):
        return NORMALIZED.build(transform)
    raise TypeError(f"unsupported transform: {type(transform).__name__}")


def serialize_descriptor(descriptor: TileDescriptor, indent: Optional[int] = None) -> bytes:
    """
    UTF-8 JSON for one descriptor. Deterministic for equal inputs.
    Raises ValueError when the document holds NaN or infinity.
    """
    text = json.dumps(descriptor.to_dict(), indent=indent, allow_nan=False, ensure_ascii=False)
    return text.encode("utf-8")


def write_descriptor(
    descriptor: TileDescriptor,
    output_path: str,
    persist: Persist = write_file,
    indent: Optional[int] = None,
) -> bool:
    try:
        data = serialize_descriptor(descriptor, indent=indent)
    except ValueError as e:
        log.error("refusing to write %s: %s", output_path, e, extra={"path": str(output_path)})
        return False

    ok = bool(persist(str(output_path), data))
    if not ok:
        log.error("write file %s fail", output_path, extra={"path": str(output_path)})
    else:
        log.info("tileset written", extra={"path": str(output_path), "uri": descriptor.content_uri})
    return ok


def write_box_descriptor(
    transform: TransformArg,
    box: Union[BoundingBox, Sequence[float]],
    geometric_error: float,
    content_uri: str,
    output_path: str,
    persist: Persist = write_file,
    indent: Optional[int] = None,
) -> bool:
    """Tileset with an oriented-box bounding volume (12 numbers)."""
    if not isinstance(box, BoundingBox):
        box = BoundingBox(tuple(box))
    descriptor = TileDescriptor(
        geometric_error=geometric_error,
        bounding_volume=box,
        content_uri=content_uri,
        transform=resolve_transform(transform),
    )
    return write_descriptor(descriptor, output_path, persist, indent)


def write_region_descriptor(
    transform: TransformArg,
    region: Union[BoundingRegion, Sequence[float]],
    geometric_error: float,
    content_uri: str,
    output_path: str,
    persist: Persist = write_file,
    indent: Optional[int] = None,
) -> bool:
    """Tileset with a geodetic region bounding volume (w, s, e, n rad; min, max m)."""
    if not isinstance(region, BoundingRegion):
        region = BoundingRegion.from_sequence(region)
    descriptor = TileDescriptor(
        geometric_error=geometric_error,
        bounding_volume=region,
        content_uri=content_uri,
        transform=resolve_transform(transform),
    )
    return write_descriptor(descriptor, output_path, persist, indent)


def anchored_region(
    longitude_rad: float,
    latitude_rad: float,
    tile_width_m: float,
    tile_height_m: float,
    height_max_m: float,
    true_scale: bool = False,
) -> BoundingRegion:
    """
    Region of a tile_width_m x tile_height_m footprint centered on the anchor.

    The floor is the anchor surface (0 m); the anchor height only lifts the
    transform.
    """
    half_lon = lon_meters_to_radians(tile_width_m / 2.0, latitude_rad, true_scale=true_scale)
    half_lat = lat_meters_to_radians(tile_height_m / 2.0)
    return BoundingRegion(
        west=longitude_rad - half_lon,
        south=latitude_rad - half_lat,
        east=longitude_rad + half_lon,
        north=latitude_rad + half_lat,
        min_height=0.0,
        max_height=float(height_max_m),
    )


def write_anchored_region_descriptor(
    longitude_rad: float,
    latitude_rad: float,
    tile_width_m: float,
    tile_height_m: float,
    height_min_m: float,
    height_max_m: float,
    geometric_error: float,
    content_uri: str,
    output_path: str,
    persist: Persist = write_file,
    true_scale: bool = False,
    indent: Optional[int] = None,
) -> bool:
    """
    Tileset for a single tile centered on a geodetic anchor.

    The transform is built with LegacyScaledTangentFrame at height_min_m and the
    region spans the tile footprint around the anchor.
    """
    anchor = GeodeticAnchor(float(longitude_rad), float(latitude_rad), float(height_min_m))
    descriptor = TileDescriptor(
        geometric_error=geometric_error,
        bounding_volume=anchored_region(
            anchor.longitude_rad, anchor.latitude_rad, tile_width_m, tile_height_m, height_max_m, true_scale
        ),
        content_uri=content_uri,
        transform=LEGACY_SCALED.build(anchor),
    )
    return write_descriptor(descriptor, output_path, persist, indent)
