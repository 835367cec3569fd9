"""
Unit tests for obstacle_sensing.types
-------------------------------------
Run with:
    python -m pytest tests/test_types.py -v
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from obstacle_sensing.types import DepthFrame, ObstacleZone, ZoneType


class TestObstacleZone:

    def test_valid_zone(self):
        z = ObstacleZone("a", 0.1, 0.2, 0.3, 0.4, depth=1.5)
        assert z.type is ZoneType.OBJECT
        assert z.center == pytest.approx((0.25, 0.4))

    @pytest.mark.parametrize("kwargs", [
        dict(x=0.1, y=0.1, width=0.0, height=0.2),
        dict(x=-0.1, y=0.1, width=0.2, height=0.2),
        dict(x=0.9, y=0.1, width=0.2, height=0.2),
        dict(x=0.1, y=0.1, width=0.2, height=0.2, depth=0.0),
        dict(x=0.1, y=0.1, width=0.2, height=0.2, depth=float("nan")),
    ])
    def test_invalid_zone_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ObstacleZone(id="bad", **kwargs)

    def test_string_type_is_coerced(self):
        z = ObstacleZone("h", 0, 0, 0.5, 0.5, type="hand")
        assert z.type is ZoneType.HAND

    def test_label_defaults_to_type(self):
        assert ObstacleZone("p", 0, 0, 0.1, 0.1, type="person").label == "person"
        assert ObstacleZone("d", 0, 0, 0.1, 0.1).label == "object"
        assert ObstacleZone("o", 0, 0, 0.1, 0.1, label="cup").label == "cup"

    def test_from_bounds_pads_and_clips(self):
        z = ObstacleZone.from_bounds("c", 0.02, 0.5, 0.98, 0.99, padding=0.05)
        assert z.x == pytest.approx(0.0)
        assert z.y == pytest.approx(0.45)
        assert z.x + z.width == pytest.approx(1.0)
        assert z.y + z.height == pytest.approx(1.0)

    def test_from_bounds_outside_frame_is_none(self):
        assert ObstacleZone.from_bounds("n", 1.2, 0.2, 1.5, 0.4) is None

    def test_contains_with_padding(self):
        z = ObstacleZone("c", 0.4, 0.4, 0.2, 0.2)
        assert z.contains(0.5, 0.5)
        assert not z.contains(0.63, 0.5)
        assert z.contains(0.63, 0.5, padding=0.05)


class TestDepthFrame:

    def test_size_mismatch_rejected(self):
        with pytest.raises(ValueError):
            DepthFrame(width=4, height=4, data=np.zeros(10, dtype=np.float32))

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            DepthFrame(width=1, height=1, data=np.zeros(1), format="float16")

    def test_uint16_sample_in_metres(self):
        arr = np.full((3, 4), 1500, dtype=np.uint16)
        arr[1, 2] = 750
        frame = DepthFrame.from_array(arr, format="uint16")
        assert frame.sample(2, 1) == pytest.approx(0.75)
        assert frame.sample(0, 0) == pytest.approx(1.5)
        assert frame.to_meters().shape == (3, 4)

    def test_uint8_has_no_metric_view(self):
        frame = DepthFrame.from_array(np.zeros((2, 2), dtype=np.uint8), format="uint8")
        with pytest.raises(ValueError):
            frame.to_meters()
