from __future__ import annotations

from typing import Tuple
import logging
import math
import numpy as np

from common.types import AffineTransform, GeodeticAnchor


log = logging.getLogger(__name__)


# --- WGS84 constants ---
_WGS84_A = 6378137.0              # semi-major axis (m)
_WGS84_F = 1.0 / 298.257223563    # flattening
_WGS84_E2 = _WGS84_F * (2.0 - _WGS84_F)  # first eccentricity squared

# Squared radii (x, y, z) of the reference ellipsoid; x == y (biaxial).
ELLIPSOID_RADII_SQUARED = np.array([40680631590769.0, 40680631590769.0, 40408299984661.4])

DEG2RAD = 0.017453292519943295

# Meridian radius of curvature at the equator, a * (1 - e^2), in m/rad.
LAT_TO_METER = 6335439.327292462

# Parallel scale is taken at a fixed reference latitude, not at the tile's own.
REFERENCE_LATITUDE_DEG = 30.0
LON_TO_METER = _WGS84_A * math.cos(REFERENCE_LATITUDE_DEG * DEG2RAD)


# -------------------------
# Unit conversion
# -------------------------
def to_radians(degrees: float) -> float:
    return degrees * DEG2RAD


def to_degrees(radians: float) -> float:
    return radians / DEG2RAD


def lat_meters_to_radians(meters: float) -> float:
    """Meters along a meridian -> latitude span (rad)."""
    return meters / LAT_TO_METER


def radians_to_lat_meters(radians: float) -> float:
    return radians * LAT_TO_METER


def _lon_scale(latitude_rad: float, true_scale: bool) -> float:
    if true_scale:
        return _WGS84_A * math.cos(latitude_rad)
    return LON_TO_METER


def lon_meters_to_radians(meters: float, latitude_rad: float = 0.0, true_scale: bool = False) -> float:
    """
    Meters along a parallel -> longitude span (rad).

    By default the scale is the one at REFERENCE_LATITUDE_DEG and `latitude_rad`
    is ignored, which is only accurate near 30 degrees. Pass true_scale=True to
    scale by cos(latitude_rad) instead.
    """
    return meters / _lon_scale(latitude_rad, true_scale)


def radians_to_lon_meters(radians: float, latitude_rad: float = 0.0, true_scale: bool = False) -> float:
    return radians * _lon_scale(latitude_rad, true_scale)


# -------------------------
# LLA <-> ECEF
# -------------------------
def geodetic_normal(longitude_rad: float, latitude_rad: float) -> np.ndarray:
    """Unit outward ellipsoid normal (local "up") in ECEF."""
    cos_lat = math.cos(latitude_rad)
    return np.array(
        [
            cos_lat * math.cos(longitude_rad),
            cos_lat * math.sin(longitude_rad),
            math.sin(latitude_rad),
        ],
        dtype=float,
    )


def surface_point(longitude_rad: float, latitude_rad: float) -> np.ndarray:
    """
    Point on the ellipsoid surface below (longitude, latitude), ECEF meters.

    With n the geodetic normal and k = radii^2 * n, the surface point is
    k / sqrt(n . k).
    """
    n = geodetic_normal(longitude_rad, latitude_rad)
    k = ELLIPSOID_RADII_SQUARED * n
    return k / math.sqrt(float(n @ k))


def geodetic_to_ecef(longitude_rad: float, latitude_rad: float, height_m: float) -> np.ndarray:
    """WGS84 geodetic (radians, meters) to ECEF (x,y,z) meters."""
    sinp = math.sin(latitude_rad)
    cosp = math.cos(latitude_rad)
    N = _WGS84_A / math.sqrt(1.0 - _WGS84_E2 * sinp * sinp)
    x = (N + height_m) * cosp * math.cos(longitude_rad)
    y = (N + height_m) * cosp * math.sin(longitude_rad)
    z = (N * (1.0 - _WGS84_E2) + height_m) * sinp
    return np.array([x, y, z], dtype=float)


def ecef_to_geodetic(x: float, y: float, z: float) -> Tuple[float, float, float]:
    """
    ECEF (x,y,z) to WGS84 geodetic (lon_rad, lat_rad, height_m). Bowring's method.
    """
    lon = math.atan2(y, x)
    b = _WGS84_A * (1 - _WGS84_F)
    ep2 = (_WGS84_A ** 2 - b ** 2) / (b ** 2)
    p = math.hypot(x, y)
    th = math.atan2(_WGS84_A * z, b * p)
    cth, sth = math.cos(th), math.sin(th)
    lat = math.atan2(z + ep2 * b * sth ** 3, p - _WGS84_E2 * _WGS84_A * cth ** 3)
    sinp = math.sin(lat)
    N = _WGS84_A / math.sqrt(1.0 - _WGS84_E2 * sinp * sinp)
    height = p / math.cos(lat) - N
    return (lon, lat, float(height))


# -------------------------
# ENU -> ECEF tangent frames
# -------------------------
def _unit(v: np.ndarray) -> np.ndarray:
    # zero-length input (pole) yields NaN, which is passed through
    with np.errstate(invalid="ignore", divide="ignore"):
        return v / np.linalg.norm(v)


class TangentFrame:
    """
    Builds the local ENU -> ECEF matrix at an anchor.

    Subclasses choose the "up" column and how the anchor height moves the
    origin off the ellipsoid surface. East is always the unit parallel
    direction and north completes the right-handed basis.
    """
    name = "tangent"

    def up_axis(self, normal: np.ndarray, origin: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def height_offset(self, up: np.ndarray, scaled: np.ndarray, height_m: float) -> np.ndarray:
        raise NotImplementedError

    def build(self, anchor: GeodeticAnchor) -> AffineTransform:
        normal = geodetic_normal(anchor.longitude_rad, anchor.latitude_rad)
        scaled = ELLIPSOID_RADII_SQUARED * normal
        origin = surface_point(anchor.longitude_rad, anchor.latitude_rad)

        up = self.up_axis(normal, origin)
        east = _unit(np.array([-scaled[1], scaled[0], 0.0]))
        north = _unit(np.cross(up, east))
        translation = origin + self.height_offset(up, scaled, anchor.height_m)

        transform = AffineTransform.from_columns(east, north, up, translation)
        if not transform.is_finite():
            log.warning(
                "non-finite %s frame at lon=%r lat=%r rad", self.name, anchor.longitude_rad, anchor.latitude_rad
            )
        return transform


class NormalizedTangentFrame(TangentFrame):
    """Up = direction of the surface point; origin = surface point + height along up."""
    name = "normalized"

    def up_axis(self, normal: np.ndarray, origin: np.ndarray) -> np.ndarray:
        return _unit(origin)

    def height_offset(self, up: np.ndarray, scaled: np.ndarray, height_m: float) -> np.ndarray:
        return height_m * up


class LegacyScaledTangentFrame(TangentFrame):
    """
    Up = geodetic normal; origin = surface point + height times the
    radii^2-scaled normal.

    Matches the numbers historically written by the anchored-region tileset
    writer; for height 0 its origin coincides with NormalizedTangentFrame.
    """
    name = "legacy-scaled"

    def up_axis(self, normal: np.ndarray, origin: np.ndarray) -> np.ndarray:
        return normal

    def height_offset(self, up: np.ndarray, scaled: np.ndarray, height_m: float) -> np.ndarray:
        return height_m * scaled


NORMALIZED = NormalizedTangentFrame()
LEGACY_SCALED = LegacyScaledTangentFrame()


def build_transform(
    longitude_rad: float,
    latitude_rad: float,
    height_m: float,
    strategy: TangentFrame = NORMALIZED,
) -> AffineTransform:
    """ENU -> ECEF matrix at (longitude, latitude) radians, lifted by height_m."""
    return strategy.build(GeodeticAnchor(float(longitude_rad), float(latitude_rad), float(height_m)))
