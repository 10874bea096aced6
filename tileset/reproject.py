from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import rasterio
from rasterio.crs import CRS
from rasterio.errors import CRSError
from rasterio.warp import transform as warp_transform


log = logging.getLogger(__name__)

WGS84_EPSG = 4326


class ReprojectionContext:
    """
    Converts projected coordinates to WGS84 lon/lat (degrees) through GDAL.

    Holds the WGS84 target CRS and, between open() and close(), a rasterio
    environment carrying GDAL options such as GDAL_DATA. Usable as a context
    manager:

        with ReprojectionContext(gdal_data="/usr/share/gdal") as ctx:
            lonlat = ctx.epsg_to_wgs84(3857, x, y)
    """

    def __init__(self, gdal_data: Optional[str] = None):
        self.gdal_data = gdal_data
        self._dst = CRS.from_epsg(WGS84_EPSG)
        self._env: Optional[rasterio.Env] = None

    # -------- lifecycle --------

    def open(self) -> "ReprojectionContext":
        if self._env is None:
            self._env = rasterio.Env()
            self._env.__enter__()
            # Env.start() replaces GDAL_DATA with the bundled path, so set it afterwards
            if self.gdal_data:
                rasterio.env.setenv(GDAL_DATA=self.gdal_data)
        return self

    def close(self) -> None:
        if self._env is not None:
            self._env.__exit__(None, None, None)
            self._env = None

    @property
    def is_open(self) -> bool:
        return self._env is not None

    def __enter__(self) -> "ReprojectionContext":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------- public API --------

    def epsg_to_wgs84(self, epsg: int, x: float, y: float) -> Optional[Tuple[float, float]]:
        """(x, y) in EPSG:`epsg` -> (lon, lat) degrees, or None on failure."""
        try:
            src = CRS.from_epsg(int(epsg))
        except ValueError as e:
            log.error("unknown EPSG code %s: %s", epsg, e)
            return None
        return self._to_wgs84(src, x, y)

    def wkt_to_wgs84(self, wkt: str, x: float, y: float) -> Optional[Tuple[float, float]]:
        """(x, y) in the CRS described by `wkt` -> (lon, lat) degrees, or None on failure."""
        try:
            src = CRS.from_wkt(wkt)
        except CRSError as e:
            log.error("invalid WKT: %s", e)
            return None
        return self._to_wgs84(src, x, y)

    # -------- internals --------

    def _to_wgs84(self, src: CRS, x: float, y: float) -> Optional[Tuple[float, float]]:
        try:
            xs, ys = warp_transform(src, self._dst, [float(x)], [float(y)])
        except Exception as e:  # GDAL surfaces failures as CPLE_* errors
            log.error("reprojection from %s failed: %s", src, e)
            return None
        lon, lat = float(xs[0]), float(ys[0])
        if not (math.isfinite(lon) and math.isfinite(lat)):
            log.error("reprojection from %s produced no result for (%r, %r)", src, x, y)
            return None
        return lon, lat
