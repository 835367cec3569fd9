"""
obstacle_sensing.sensors.hand_landmarks
---------------------------------------
Landmark-based hand tracking.

Each detected hand becomes one ``hand`` zone: the min/max box of its 2-D
landmarks, padded and clipped to the frame.  When the model supplies metric
world landmarks the zone depth is the mean landmark distance from the model
origin; otherwise ``config.hand_fallback_depth`` is used (``None`` leaves the
depth unset).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np

from ..assets import fetch_asset
from ..config import SensingConfig
from ..models import HandDetection, HandLandmarkModel, create_hand_model
from ..types import ObstacleZone, SensingMode, ZoneType
from . import FrameResult, SensorBackend

_logger = logging.getLogger(__name__)

WORLD_LANDMARK_CONFIDENCE = 0.95
DEFAULT_HAND_CONFIDENCE = 0.9


def hand_to_zone(
    zone_id: str,
    hand: HandDetection,
    padding: float = 0.05,
    fallback_depth: Optional[float] = None,
    world_confidence: Optional[float] = None,
    default_confidence: float = DEFAULT_HAND_CONFIDENCE,
) -> Optional[ObstacleZone]:
    """Convert one hand detection into a ``hand`` zone.

    Parameters
    ----------
    zone_id : id of the produced zone.
    hand : detection with normalized 2-D landmarks.
    padding : added on every side of the landmark box before clipping.
    fallback_depth : depth (m) when no usable world landmarks exist.
    world_confidence : confidence to report when world landmarks were used;
        ``None`` always reports the model score.
    default_confidence : used when the model gave no score.

    Returns ``None`` when the hand lies entirely outside the frame.
    """
    pts = np.asarray(hand.landmarks_2d, dtype=np.float32)
    if pts.size == 0:
        return None
    x1, y1 = pts.min(axis=0)
    x2, y2 = pts.max(axis=0)

    confidence = hand.score if hand.score is not None else default_confidence
    depth = fallback_depth
    if hand.landmarks_3d is not None and len(hand.landmarks_3d):
        world_depth = float(np.linalg.norm(np.asarray(hand.landmarks_3d), axis=1).mean())
        if np.isfinite(world_depth) and world_depth > 0:
            depth = world_depth
            if world_confidence is not None:
                confidence = world_confidence

    return ObstacleZone.from_bounds(
        zone_id,
        float(x1), float(y1), float(x2), float(y2),
        padding=padding,
        type=ZoneType.HAND,
        depth=depth,
        label=hand.handedness.lower() + " hand" if hand.handedness else None,
        confidence=confidence,
    )


class HandLandmarkSensor(SensorBackend):
    """
    Parameters
    ----------
    config : shared configuration.
    hand_model : pre-built model; skips asset download when given.
    model_factory : ``path -> HandLandmarkModel``; defaults to MediaPipe.
    """

    mode = SensingMode.HANDS

    def __init__(
        self,
        config: Optional[SensingConfig] = None,
        hand_model: Optional[HandLandmarkModel] = None,
        model_factory: Optional[Callable[[Path], HandLandmarkModel]] = None,
    ) -> None:
        super().__init__(config)
        self._model = hand_model
        self._model_factory = model_factory or self._default_factory

    def _default_factory(self, model_path: Path) -> HandLandmarkModel:
        return create_hand_model(
            "mediapipe",
            model_path=model_path,
            max_hands=self.config.max_hands,
            min_confidence=self.config.hand_min_confidence,
        )

    def _load(self) -> None:
        if self._model is not None:
            return
        cfg = self.config
        model_path = fetch_asset(
            cfg.hand_model_sources,
            cfg.resolve_asset_cache_dir(),
            timeout=cfg.asset_timeout_s,
        )
        self._model = self._model_factory(model_path)

    async def _process(self, frame: np.ndarray) -> FrameResult:
        hands = await self._run_blocking(self._model.detect, frame)
        zones: List[ObstacleZone] = []
        for idx, hand in enumerate(hands[: self.config.max_hands]):
            zone = hand_to_zone(
                f"hand-{idx}",
                hand,
                padding=self.config.hand_padding,
                fallback_depth=self.config.hand_fallback_depth,
                world_confidence=WORLD_LANDMARK_CONFIDENCE,
            )
            if zone is not None:
                zones.append(zone)
        return zones, None

    def _release(self) -> None:
        if self._model is not None:
            self._model.close()
            self._model = None
