#!/usr/bin/env python3
"""
Write a single-tile tileset.json next to a tile payload.

Anchors are lon/lat in degrees (WGS84) unless --epsg or --wkt-file says the
coordinates are projected; they are then reprojected through GDAL first.

Examples:
  python scripts/write_tileset.py box --box 0 0 0 10 0 0 0 10 0 0 0 10 --error 16 --uri tile.b3dm --out out/tileset.json
  python scripts/write_tileset.py box --box ... --anchor 116.39 39.91 0 --uri tile.b3dm --out out/tileset.json
  python scripts/write_tileset.py region --region -0.01 -0.01 0.01 0.01 0 100 --error 8 --uri tile.b3dm --out out/tileset.json
  python scripts/write_tileset.py anchored --anchor 12958000 4852000 20 --epsg 3857 --size 1000 1000 --max-height 100 \\
      --error 8 --uri tile.b3dm --out out/tileset.json
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

# Add the project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.logging_setup import get_logger, setup_logging
from common.types import GeodeticAnchor
from tileset.config import load_config
from tileset.reproject import ReprojectionContext
from tileset.writer import (
    write_anchored_region_descriptor,
    write_box_descriptor,
    write_region_descriptor,
)


log = get_logger("write_tileset")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    ap.add_argument("--config", default=None, help="YAML settings (default config/tileset.yaml)")
    ap.add_argument("--log-level", default=None, help="Overrides logging.level from the config")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--error", type=float, required=True, help="Geometric error of the tile")
    common.add_argument("--uri", required=True, help="Content URI recorded verbatim")
    common.add_argument("--out", default="tileset.json", help="Output tileset.json path")
    common.add_argument("--indent", type=int, default=None, help="Pretty-print JSON with this indent")
    common.add_argument("--epsg", type=int, default=None, help="EPSG code of the anchor coordinates")
    common.add_argument("--wkt-file", default=None, help="File with the WKT of the anchor coordinates")

    sub = ap.add_subparsers(dest="command", required=True)

    p_box = sub.add_parser("box", parents=[common], help="Oriented box bounding volume")
    p_box.add_argument("--box", nargs=12, type=float, required=True, metavar="V", help="center + 3 half-axes")
    p_box.add_argument("--anchor", nargs=3, type=float, default=None, metavar=("X", "Y", "H"),
                       help="Optional transform anchor (lon lat height)")

    p_region = sub.add_parser("region", parents=[common], help="Geodetic region bounding volume")
    p_region.add_argument("--region", nargs=6, type=float, required=True, metavar="V",
                          help="west south east north (rad) min max (m)")
    p_region.add_argument("--anchor", nargs=3, type=float, default=None, metavar=("X", "Y", "H"),
                          help="Optional transform anchor (lon lat height)")

    p_anch = sub.add_parser("anchored", parents=[common], help="Region and transform from one anchor")
    p_anch.add_argument("--anchor", nargs=3, type=float, required=True, metavar=("X", "Y", "H"),
                        help="Tile center (lon lat) and minimum height")
    p_anch.add_argument("--size", nargs=2, type=float, required=True, metavar=("W", "H"),
                        help="Tile footprint in meters")
    p_anch.add_argument("--max-height", type=float, required=True, help="Region ceiling (m)")
    p_anch.add_argument("--true-scale", action="store_true", default=None,
                        help="Scale longitude meters by cos(latitude) instead of the fixed 30 degree scale")
    return ap


def resolve_anchor(args: argparse.Namespace, gdal_data: Optional[str]) -> Optional[GeodeticAnchor]:
    """Anchor in radians, reprojecting first when the input CRS is not WGS84."""
    if args.anchor is None:
        return None
    x, y, h = args.anchor
    if args.epsg is None and args.wkt_file is None:
        return GeodeticAnchor.from_degrees(x, y, h)

    with ReprojectionContext(gdal_data=gdal_data) as ctx:
        if args.wkt_file:
            lonlat = ctx.wkt_to_wgs84(Path(args.wkt_file).read_text(), x, y)
        else:
            lonlat = ctx.epsg_to_wgs84(args.epsg, x, y)
    if lonlat is None:
        return None
    return GeodeticAnchor.from_degrees(lonlat[0], lonlat[1], h)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(args.log_level or cfg["logging"]["level"])

    indent = args.indent if args.indent is not None else cfg["output"]["indent"]
    anchor = resolve_anchor(args, cfg["reprojection"]["gdal_data"])
    if args.anchor is not None and anchor is None:
        log.error("cannot reproject anchor", extra={"anchor": args.anchor})
        return 2

    if args.command == "box":
        ok = write_box_descriptor(anchor, args.box, args.error, args.uri, args.out, indent=indent)
    elif args.command == "region":
        ok = write_region_descriptor(anchor, args.region, args.error, args.uri, args.out, indent=indent)
    else:
        true_scale = args.true_scale if args.true_scale is not None else bool(cfg["units"]["true_longitude_scale"])
        ok = write_anchored_region_descriptor(
            anchor.longitude_rad,
            anchor.latitude_rad,
            args.size[0],
            args.size[1],
            anchor.height_m,
            args.max_height,
            args.error,
            args.uri,
            args.out,
            true_scale=true_scale,
            indent=indent,
        )

    if not ok:
        return 1
    print(f"[ok] wrote {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
