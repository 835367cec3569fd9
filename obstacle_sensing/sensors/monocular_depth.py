"""
obstacle_sensing.sensors.monocular_depth
----------------------------------------
Obstacles from a single RGB frame via a relative-depth network.

Pipeline
--------
1. BGR → RGB, resize to a square network input, scale to [0, 1].
2. Network → raw inverse-depth map (larger = closer).
3. Normalize: ``raw / max(raw) * 255`` (so 255 = nearest pixel in view).
4. Grid: average the normalized map over sparse sample points in each cell,
   convert with ``depth_m = (255 - avg) / 255 * range_m``, and keep cells
   nearer than ``near_m`` as ``object`` zones.

The relative map has no metric scale, so depths are coarse by construction.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np

from ..config import SensingConfig
from ..models import DepthNetwork, create_depth_network
from ..types import DepthFrame, ObstacleZone, SensingMode, ZoneType
from . import FrameResult, SensorBackend

_logger = logging.getLogger(__name__)

MIN_DEPTH_M = 0.01


def preprocess_frame(frame: np.ndarray, size: int = 252) -> np.ndarray:
    """BGR uint8 (H, W, 3) → RGB float32 batch (1, size, size, 3) in [0, 1]."""
    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    resized = cv2.resize(rgb, (size, size), interpolation=cv2.INTER_LINEAR)
    return (resized.astype(np.float32) / 255.0)[np.newaxis]


def normalize_depth(raw: np.ndarray) -> np.ndarray:
    """Scale a raw inverse-depth map to float32 0..255 by its maximum."""
    raw = np.asarray(raw, dtype=np.float32)
    peak = float(raw.max()) if raw.size else 0.0
    if not np.isfinite(peak) or peak <= 0:
        return np.zeros_like(raw)
    return np.clip(raw / peak * 255.0, 0.0, 255.0)


def grid_obstacles(
    normalized: np.ndarray,
    grid_size: int = 8,
    stride: int = 4,
    range_m: float = 5.0,
    near_m: float = 2.0,
) -> List[ObstacleZone]:
    """Turn a normalized (0..255, 255 = nearest) map into per-cell zones."""
    h, w = normalized.shape[:2]
    cell_h = h / grid_size
    cell_w = w / grid_size

    zones: List[ObstacleZone] = []
    for gy in range(grid_size):
        y0, y1 = int(gy * cell_h), int((gy + 1) * cell_h)
        for gx in range(grid_size):
            x0, x1 = int(gx * cell_w), int((gx + 1) * cell_w)
            samples = normalized[y0:y1:stride, x0:x1:stride]
            if samples.size == 0:
                continue
            avg = float(samples.mean())
            depth_m = (255.0 - avg) / 255.0 * range_m
            if depth_m >= near_m:
                continue
            zone = ObstacleZone.from_bounds(
                f"mono-{gx}-{gy}",
                gx / grid_size, gy / grid_size,
                (gx + 1) / grid_size, (gy + 1) / grid_size,
                type=ZoneType.OBJECT,
                depth=max(depth_m, MIN_DEPTH_M),
                confidence=min((near_m - depth_m) / near_m, 1.0),
            )
            if zone is not None:
                zones.append(zone)
    return zones


class MonocularDepthSensor(SensorBackend):
    """
    Parameters
    ----------
    config : shared configuration.
    network : pre-built depth network; Depth Anything V2 is loaded otherwise.
    """

    mode = SensingMode.MONOCULAR

    def __init__(
        self,
        config: Optional[SensingConfig] = None,
        network: Optional[DepthNetwork] = None,
    ) -> None:
        super().__init__(config)
        self._network = network

    def _load(self) -> None:
        if self._network is None:
            self._network = create_depth_network(
                "depth_anything_v2",
                model_id=self.config.depth_model_id,
                device=self.config.resolve_device(),
                fp16=self.config.fp16,
            )
        load = getattr(self._network, "load", None)
        if callable(load):
            load()

    def _infer(self, frame: np.ndarray) -> FrameResult:
        cfg = self.config
        batch = preprocess_frame(frame, cfg.depth_input_size)
        raw = self._network.predict(batch)
        normalized = normalize_depth(raw)
        del batch, raw

        zones = grid_obstacles(
            normalized,
            grid_size=cfg.monocular_grid_size,
            stride=cfg.monocular_sample_stride,
            range_m=cfg.monocular_range_m,
            near_m=cfg.monocular_near_m,
        )
        depth_frame = DepthFrame.from_array(normalized.astype(np.uint8), format="uint8")
        del normalized
        return zones, depth_frame

    async def _process(self, frame: np.ndarray) -> FrameResult:
        return await self._run_blocking(self._infer, frame)

    def _release(self) -> None:
        if self._network is not None:
            self._network.close()
            self._network = None
