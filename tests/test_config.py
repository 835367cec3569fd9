"""
Tests for obstacle_sensing.config and obstacle_sensing.errors.

Run with:
    python -m pytest tests/test_config.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from obstacle_sensing.config import SensingConfig
from obstacle_sensing.errors import (
    AssetUnavailable,
    InitializationFailed,
    ProcessingError,
    SensorError,
    SessionError,
    UnsupportedPlatform,
)
from obstacle_sensing.types import SensingMode


class TestSensingConfig:

    def test_explicit_device_passes_through(self):
        assert SensingConfig(device="cpu").resolve_device() == "cpu"

    def test_frame_intervals_per_mode(self):
        cfg = SensingConfig()
        assert cfg.frame_interval(SensingMode.MONOCULAR) == pytest.approx(0.5)
        assert cfg.frame_interval("multi_model") == pytest.approx(0.066)
        assert cfg.frame_interval(SensingMode.HANDS) == pytest.approx(1 / 30)
        assert cfg.frame_interval(SensingMode.NONE) == 0.0

    def test_asset_cache_dir_created(self, tmp_path):
        target = tmp_path / "nested" / "cache"
        cfg = SensingConfig(asset_cache_dir=str(target))
        assert cfg.resolve_asset_cache_dir() == target
        assert target.is_dir()

    def test_list_defaults_are_not_shared(self):
        a, b = SensingConfig(), SensingConfig()
        a.hand_model_sources.append("file:///tmp/x.task")
        assert "file:///tmp/x.task" not in b.hand_model_sources


class TestErrors:

    @pytest.mark.parametrize("cls", [
        InitializationFailed, ProcessingError, AssetUnavailable, SessionError,
    ])
    def test_taxonomy_carries_mode(self, cls):
        err = cls("boom", mode="hands")
        assert isinstance(err, SensorError)
        assert err.mode == "hands"
        assert "boom" in str(err)

    def test_unsupported_platform_is_sensor_error(self):
        assert issubclass(UnsupportedPlatform, SensorError)
