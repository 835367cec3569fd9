"""
obstacle_sensing.sensors.multi_model
------------------------------------
Hands, faces and generic objects from three independent models per frame.

Depth heuristics
----------------
Faces   : apparent width shrinks with distance, so
          ``depth = clamp(k / face_width_px, lo, hi)``.
Objects : relative box area (box area / frame area) is bucketed into coarse
          distance bands; larger boxes are nearer.
Hands   : same conversion as the landmark hand backend.

Zones are emitted hands first, then faces, then objects.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..assets import fetch_asset
from ..config import SensingConfig
from ..models import (
    FaceDetection,
    FaceDetectionModel,
    HandLandmarkModel,
    ObjectDetection,
    ObjectDetectionModel,
    create_face_model,
    create_hand_model,
    create_object_model,
)
from ..types import ObstacleZone, SensingMode, ZoneType
from . import FrameResult, SensorBackend
from .hand_landmarks import DEFAULT_HAND_CONFIDENCE, hand_to_zone

_logger = logging.getLogger(__name__)

DEFAULT_FACE_CONFIDENCE = 0.9


def face_depth(width_px: float, k: float = 150.0, depth_range: Tuple[float, float] = (0.3, 3.0)) -> float:
    """Distance (m) estimated from the apparent face width in pixels."""
    lo, hi = depth_range
    if width_px <= 0:
        return hi
    return float(min(max(k / width_px, lo), hi))


def object_depth(
    relative_area: float,
    bands: Sequence[Tuple[float, float]] = ((0.30, 0.5), (0.10, 1.0), (0.05, 1.5)),
    far_depth: float = 2.5,
) -> float:
    """Distance (m) bucketed from the box's share of the frame area."""
    for min_area, depth in bands:
        if relative_area > min_area:
            return depth
    return far_depth


def face_to_zone(
    zone_id: str,
    face: FaceDetection,
    frame_w: int,
    frame_h: int,
    config: SensingConfig,
) -> Optional[ObstacleZone]:
    return ObstacleZone.from_bounds(
        zone_id,
        face.x / frame_w,
        face.y / frame_h,
        (face.x + face.width) / frame_w,
        (face.y + face.height) / frame_h,
        padding=config.face_padding,
        type=ZoneType.PERSON,
        depth=face_depth(face.width, config.face_depth_k, config.face_depth_range),
        label="face",
        confidence=face.score if face.score is not None else DEFAULT_FACE_CONFIDENCE,
    )


def object_to_zone(
    zone_id: str,
    obj: ObjectDetection,
    frame_w: int,
    frame_h: int,
    config: SensingConfig,
) -> Optional[ObstacleZone]:
    relative_area = (obj.width * obj.height) / float(frame_w * frame_h)
    return ObstacleZone.from_bounds(
        zone_id,
        obj.x / frame_w,
        obj.y / frame_h,
        (obj.x + obj.width) / frame_w,
        (obj.y + obj.height) / frame_h,
        padding=config.object_padding,
        type=ZoneType.OBJECT,
        depth=object_depth(relative_area, config.object_depth_bands, config.object_far_depth),
        label=obj.label,
        confidence=obj.score,
    )


class MultiModelSensor(SensorBackend):
    """
    Parameters
    ----------
    config : shared configuration.
    hand_model, face_model, object_model : pre-built models; any left as
        ``None`` is created during ``initialize``.
    hand_factory, face_factory : ``path -> model`` builders for the
        MediaPipe assets.
    """

    mode = SensingMode.MULTI_MODEL
    max_workers = 3

    def __init__(
        self,
        config: Optional[SensingConfig] = None,
        hand_model: Optional[HandLandmarkModel] = None,
        face_model: Optional[FaceDetectionModel] = None,
        object_model: Optional[ObjectDetectionModel] = None,
        hand_factory: Optional[Callable[[Path], HandLandmarkModel]] = None,
        face_factory: Optional[Callable[[Path], FaceDetectionModel]] = None,
    ) -> None:
        super().__init__(config)
        self._hand_model = hand_model
        self._face_model = face_model
        self._object_model = object_model
        self._hand_factory = hand_factory or self._default_hand_factory
        self._face_factory = face_factory or self._default_face_factory

    def _default_hand_factory(self, model_path: Path) -> HandLandmarkModel:
        return create_hand_model(
            "mediapipe",
            model_path=model_path,
            max_hands=self.config.max_hands,
            min_confidence=self.config.hand_min_confidence,
        )

    def _default_face_factory(self, model_path: Path) -> FaceDetectionModel:
        return create_face_model("mediapipe", model_path=model_path, max_faces=self.config.max_faces)

    def _load(self) -> None:
        cfg = self.config
        cache_dir = cfg.resolve_asset_cache_dir()
        if self._hand_model is None:
            path = fetch_asset(cfg.hand_model_sources, cache_dir, timeout=cfg.asset_timeout_s)
            self._hand_model = self._hand_factory(path)
        if self._face_model is None:
            path = fetch_asset(cfg.face_model_sources, cache_dir, timeout=cfg.asset_timeout_s)
            self._face_model = self._face_factory(path)
        if self._object_model is None:
            self._object_model = create_object_model(
                "ultralytics",
                model_name=cfg.object_model_name,
                conf=cfg.object_conf,
                device=cfg.resolve_device(),
            )

    async def _process(self, frame: np.ndarray) -> FrameResult:
        hands, faces, objects = await asyncio.gather(
            self._run_blocking(self._hand_model.detect, frame),
            self._run_blocking(self._face_model.detect, frame),
            self._run_blocking(self._object_model.detect, frame),
        )
        frame_h, frame_w = frame.shape[:2]
        cfg = self.config

        zones: List[ObstacleZone] = []
        for idx, hand in enumerate(hands[: cfg.max_hands]):
            zones.append(hand_to_zone(
                f"hand-{idx}",
                hand,
                padding=cfg.hand_padding,
                fallback_depth=cfg.hand_fallback_depth,
                default_confidence=DEFAULT_HAND_CONFIDENCE,
            ))
        for idx, face in enumerate(faces[: cfg.max_faces]):
            zones.append(face_to_zone(f"face-{idx}", face, frame_w, frame_h, cfg))
        for idx, obj in enumerate(objects):
            zones.append(object_to_zone(f"object-{idx}", obj, frame_w, frame_h, cfg))
        return [z for z in zones if z is not None], None

    def _release(self) -> None:
        for attr in ("_hand_model", "_face_model", "_object_model"):
            model = getattr(self, attr)
            setattr(self, attr, None)
            if model is None:
                continue
            try:
                model.close()
            except Exception:
                _logger.warning("Closing %s failed", type(model).__name__, exc_info=True)
