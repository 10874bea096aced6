"""
Tileset descriptor writer

- Builds tileset.json for a single tile (box or region bounding volume)
- Optional ENU -> ECEF root transform from a geodetic anchor (see common.geo)
- Persists through an injected `persist(path, data) -> bool` (default: filesystem)
- Optional reprojection of projected anchors to WGS84 via rasterio/GDAL
"""
