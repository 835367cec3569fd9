"""
Unit tests for obstacle_sensing.geometry
----------------------------------------
Synthetic cameras with analytic ground truths.

Run with:
    python -m pytest tests/test_geometry.py -v
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from obstacle_sensing.geometry import (
    AVOIDANCE_GAIN,
    Camera,
    calculate_avoidance_vector,
    check_collision,
    world_to_screen,
)
from obstacle_sensing.types import ObstacleZone


@pytest.fixture
def camera() -> Camera:
    return Camera.perspective(fov_deg=75.0, aspect=16 / 9)


class TestWorldToScreen:

    @pytest.mark.parametrize("distance", [0.5, 2.0, 50.0])
    def test_forward_axis_hits_centre(self, camera, distance):
        assert world_to_screen((0.0, 0.0, -distance), camera) == pytest.approx((0.5, 0.5))

    def test_y_is_flipped(self, camera):
        _, y_up = world_to_screen((0.0, 0.5, -2.0), camera)
        _, y_down = world_to_screen((0.0, -0.5, -2.0), camera)
        assert y_up < 0.5 < y_down

    def test_right_is_larger_x(self, camera):
        x, _ = world_to_screen((0.5, 0.0, -2.0), camera)
        assert x > 0.5

    def test_translated_camera(self):
        cam = Camera.perspective(position=(1.0, 2.0, 0.0))
        assert world_to_screen((1.0, 2.0, -3.0), cam) == pytest.approx((0.5, 0.5))

    def test_non_square_matrix_rejected(self):
        with pytest.raises(ValueError):
            Camera(projection_matrix=np.eye(3))


class TestCheckCollision:

    def test_empty_zone_list(self, camera):
        assert check_collision((0, 0, -1), camera, []) is None

    def test_hit_and_miss(self, camera):
        centre = ObstacleZone("c", 0.4, 0.4, 0.2, 0.2)
        corner = ObstacleZone("k", 0.0, 0.0, 0.1, 0.1)
        assert check_collision((0, 0, -1), camera, [corner, centre]) is centre
        assert check_collision((0, 0, -1), camera, [corner]) is None

    def test_first_match_in_list_order(self, camera):
        a = ObstacleZone("a", 0.3, 0.3, 0.4, 0.4)
        b = ObstacleZone("b", 0.45, 0.45, 0.1, 0.1)
        assert check_collision((0, 0, -1), camera, [a, b]) is a
        assert check_collision((0, 0, -1), camera, [b, a]) is b

    def test_padding_extends_zone(self, camera):
        near_miss = ObstacleZone("n", 0.53, 0.4, 0.2, 0.2)
        assert check_collision((0, 0, -1), camera, [near_miss], padding=0.05) is near_miss
        assert check_collision((0, 0, -1), camera, [near_miss], padding=0.0) is None


class TestAvoidanceVector:

    def test_pushes_away_from_obstacle_centre(self, camera):
        obstacle = ObstacleZone("o", 0.55, 0.4, 0.2, 0.2)  # centre (0.65, 0.5)
        pos = np.array([0.0, 0.0, -2.0])
        out = calculate_avoidance_vector(pos, obstacle, camera, rng=np.random.default_rng(0))
        assert out[0] == pytest.approx((0.5 - 0.65) * AVOIDANCE_GAIN)
        assert out[1] == pytest.approx(0.0)
        assert -2.5 <= out[2] < -1.5

    def test_seeded_jitter_is_reproducible(self, camera):
        obstacle = ObstacleZone("o", 0.1, 0.1, 0.2, 0.2)
        a = calculate_avoidance_vector((0, 0, -2), obstacle, camera, rng=np.random.default_rng(7))
        b = calculate_avoidance_vector((0, 0, -2), obstacle, camera, rng=np.random.default_rng(7))
        np.testing.assert_allclose(a, b)
