"""
Unit tests for tileset.json writers (tileset.writer)
"""

import json
import math
import os
import sys
from unittest.mock import Mock

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.geo import LEGACY_SCALED, build_transform, lat_meters_to_radians, lon_meters_to_radians
from common.types import AffineTransform, BoundingBox, GeodeticAnchor, TileDescriptor
from tileset.persist import MemoryStore
from tileset.writer import (
    anchored_region,
    resolve_transform,
    serialize_descriptor,
    write_anchored_region_descriptor,
    write_box_descriptor,
    write_descriptor,
    write_region_descriptor,
)


BOX = [0, 0, 0, 10, 0, 0, 0, 10, 0, 0, 0, 10]
REGION = [-0.01, -0.02, 0.01, 0.02, 0.0, 50.0]


class TestWriteBoxDescriptor:
    """Test cases for write_box_descriptor"""

    def test_example_without_transform(self):
        store = MemoryStore()
        ok = write_box_descriptor(None, BOX, 16.0, "tile.b3dm", "tileset.json", persist=store)

        assert ok is True
        doc = store.load_json("tileset.json")
        assert "transform" not in doc["root"]
        assert doc["root"]["boundingVolume"]["box"] == BOX
        assert doc["root"]["content"]["uri"] == "tile.b3dm"
        assert doc["geometricError"] == 16.0
        assert doc["root"]["geometricError"] == 16.0

    def test_schema_shape(self):
        store = MemoryStore()
        write_box_descriptor(None, BOX, 1.0, "t.b3dm", "out.json", persist=store)
        doc = store.load_json("out.json")
        assert set(doc) == {"asset", "geometricError", "root"}
        assert doc["asset"] == {"version": "0.0", "gltfUpAxis": "Y"}
        assert {"boundingVolume", "geometricError", "refine", "content"} <= set(doc["root"])
        assert doc["root"]["refine"] == "REPLACE"

    def test_anchor_transform(self):
        store = MemoryStore()
        anchor = GeodeticAnchor.from_degrees(116.39, 39.91, 0.0)
        write_box_descriptor(anchor, BOX, 2.0, "t.b3dm", "out.json", persist=store)
        doc = store.load_json("out.json")

        expected = build_transform(anchor.longitude_rad, anchor.latitude_rad, 0.0).column_major()
        assert doc["root"]["transform"] == pytest.approx(expected)
        assert doc["root"]["transform"][15] == 1
        assert list(doc["root"]) == ["transform", "boundingVolume", "geometricError", "refine", "content"]

    def test_matrix_transform_passes_through(self):
        store = MemoryStore()
        m = np.eye(4)
        m[:3, 3] = [1.5, -2.5, 3.25]
        write_box_descriptor(AffineTransform(m), BOX, 2.0, "t.b3dm", "out.json", persist=store)
        assert store.load_json("out.json")["root"]["transform"][12:] == [1.5, -2.5, 3.25, 1]

    def test_idempotent_bytes(self):
        store = MemoryStore()
        anchor = GeodeticAnchor(0.3, 0.6, 15.0)
        write_box_descriptor(anchor, BOX, 5.0, "t.b3dm", "a.json", persist=store)
        write_box_descriptor(anchor, BOX, 5.0, "t.b3dm", "b.json", persist=store)
        assert store.files["a.json"] == store.files["b.json"]

    def test_persist_failure_returns_false(self, caplog):
        store = MemoryStore(fail=True)
        with caplog.at_level("ERROR", logger="tileset.writer"):
            ok = write_box_descriptor(None, BOX, 1.0, "t.b3dm", "out.json", persist=store)
        assert ok is False
        assert store.calls == [("out.json", store.calls[0][1])]
        assert any("out.json" in r.getMessage() for r in caplog.records)

    def test_no_retry_on_failure(self):
        persist = Mock(return_value=False)
        assert write_box_descriptor(None, BOX, 1.0, "t.b3dm", "out.json", persist=persist) is False
        persist.assert_called_once()

    def test_bad_box_length(self):
        with pytest.raises(ValueError):
            write_box_descriptor(None, [0.0] * 11, 1.0, "t.b3dm", "out.json", persist=MemoryStore())


class TestWriteRegionDescriptor:
    """Test cases for write_region_descriptor"""

    def test_region_without_transform(self):
        store = MemoryStore()
        assert write_region_descriptor(None, REGION, 4.0, "r.b3dm", "r.json", persist=store)
        doc = store.load_json("r.json")
        assert doc["root"]["boundingVolume"] == {"region": REGION}
        assert "transform" not in doc["root"]

    def test_region_with_transform(self):
        store = MemoryStore()
        anchor = GeodeticAnchor(0.0, 0.0, 10.0)
        write_region_descriptor(anchor, REGION, 4.0, "r.b3dm", "r.json", persist=store)
        transform = store.load_json("r.json")["root"]["transform"]
        assert len(transform) == 16
        # translation = surface point + 10 m up at (0, 0)
        assert transform[12] == pytest.approx(6378137.0 + 10.0)
        assert transform[15] == 1

    def test_content_uri_verbatim(self):
        store = MemoryStore()
        uri = "../data/tiles/0/0/0.b3dm?v=2&x=é"
        write_region_descriptor(None, REGION, 1.0, uri, "r.json", persist=store)
        assert store.load_json("r.json")["root"]["content"]["uri"] == uri


class TestWriteAnchoredRegionDescriptor:
    """Test cases for write_anchored_region_descriptor"""

    def test_example_at_origin(self):
        store = MemoryStore()
        ok = write_anchored_region_descriptor(0.0, 0.0, 1000.0, 1000.0, 0.0, 100.0, 8.0, "t.b3dm", "t.json", persist=store)
        assert ok
        doc = store.load_json("t.json")
        region = doc["root"]["boundingVolume"]["region"]
        assert region[0] < 0 and region[1] < 0
        assert region[2] > 0 and region[3] > 0
        assert region[4:] == [0, 100]
        assert doc["geometricError"] == 8.0
        assert len(doc["root"]["transform"]) == 16

    def test_region_is_centered_on_anchor(self):
        lon, lat = math.radians(116.39), math.radians(39.91)
        region = anchored_region(lon, lat, 400.0, 200.0, 30.0)
        assert region.west == pytest.approx(lon - lon_meters_to_radians(200.0))
        assert region.east == pytest.approx(lon + lon_meters_to_radians(200.0))
        assert region.south == pytest.approx(lat - lat_meters_to_radians(100.0))
        assert region.north == pytest.approx(lat + lat_meters_to_radians(100.0))
        assert (region.min_height, region.max_height) == (0.0, 30.0)

    def test_true_scale_changes_longitude_span_only(self):
        lat = math.radians(60.0)
        fixed = anchored_region(0.0, lat, 1000.0, 1000.0, 10.0)
        true = anchored_region(0.0, lat, 1000.0, 1000.0, 10.0, true_scale=True)
        assert true.east - true.west > fixed.east - fixed.west
        assert true.north == fixed.north

    def test_uses_legacy_scaled_frame(self):
        store = MemoryStore()
        lon, lat = math.radians(10.0), math.radians(20.0)
        write_anchored_region_descriptor(lon, lat, 100.0, 100.0, 1.5, 20.0, 2.0, "t.b3dm", "t.json", persist=store)
        expected = LEGACY_SCALED.build(GeodeticAnchor(lon, lat, 1.5)).column_major()
        assert store.load_json("t.json")["root"]["transform"] == pytest.approx(expected, rel=1e-15)

    def test_persist_failure(self):
        ok = write_anchored_region_descriptor(
            0.0, 0.0, 10.0, 10.0, 0.0, 1.0, 1.0, "t.b3dm", "t.json", persist=MemoryStore(fail=True)
        )
        assert ok is False


class TestSerialization:
    """Test cases for serialize_descriptor / write_descriptor"""

    def test_utf8_json_bytes(self):
        desc = TileDescriptor(1.0, BoundingBox((0.0,) * 12), "tüle.b3dm")
        data = serialize_descriptor(desc)
        assert isinstance(data, bytes)
        assert json.loads(data.decode("utf-8"))["root"]["content"]["uri"] == "tüle.b3dm"

    def test_indent(self):
        desc = TileDescriptor(1.0, BoundingBox((0.0,) * 12), "t.b3dm")
        assert b"\n" not in serialize_descriptor(desc)
        assert b"\n  " in serialize_descriptor(desc, indent=2)

    def test_non_finite_transform_is_refused(self, caplog):
        m = np.eye(4)
        m[0, 0] = float("nan")
        desc = TileDescriptor(1.0, BoundingBox((0.0,) * 12), "t.b3dm", transform=AffineTransform(m))
        persist = Mock(return_value=True)
        with caplog.at_level("ERROR", logger="tileset.writer"):
            ok = write_descriptor(desc, "t.json", persist=persist)
        assert ok is False
        persist.assert_not_called()
        assert any("refusing" in r.getMessage() for r in caplog.records)

    def test_resolve_transform(self):
        assert resolve_transform(None) is None
        t = AffineTransform(np.eye(4))
        assert resolve_transform(t) is t
        with pytest.raises(TypeError):
            resolve_transform([1, 2, 3])

    def test_writes_to_disk_by_default(self, tmp_path):
        out = tmp_path / "nested" / "tileset.json"
        assert write_box_descriptor(None, BOX, 16.0, "tile.b3dm", str(out))
        assert json.loads(out.read_text(encoding="utf-8"))["root"]["boundingVolume"]["box"] == BOX
