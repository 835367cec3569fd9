"""
obstacle_sensing.models.mediapipe_hands
---------------------------------------
MediaPipe Tasks ``HandLandmarker`` wrapper.

The landmarker yields, per hand:
    hand_landmarks        21 image landmarks, x/y normalized to [0, 1]
    hand_world_landmarks  21 metric landmarks (metres) around the hand's
                          geometric center
    handedness            Left/Right category with a score

The ``.task`` bundle must already be on disk; use
:func:`obstacle_sensing.assets.fetch_asset` to resolve it from a list of
sources first.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Union

import cv2
import numpy as np

from . import HandDetection, HandLandmarkModel

_logger = logging.getLogger(__name__)


class MediaPipeHandLandmarker(HandLandmarkModel):
    """Hand landmarks + metric world landmarks from MediaPipe.

    Parameters
    ----------
    model_path : path to ``hand_landmarker.task``.
    max_hands : maximum hands per frame.
    min_confidence : detection, presence and tracking threshold.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        max_hands: int = 2,
        min_confidence: float = 0.5,
    ) -> None:
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise ImportError(
                "Hand landmarks require 'mediapipe'. Install with: pip install mediapipe"
            ) from e

        self._mp = mp
        self.model_path = str(model_path)
        self.max_hands = max_hands

        options = vision.HandLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=self.model_path),
            running_mode=vision.RunningMode.IMAGE,
            num_hands=max_hands,
            min_hand_detection_confidence=min_confidence,
            min_hand_presence_confidence=min_confidence,
            min_tracking_confidence=min_confidence,
        )
        self._landmarker = vision.HandLandmarker.create_from_options(options)
        _logger.info("HandLandmarker ready (%s, max_hands=%d)", self.model_path, max_hands)

    def detect(self, frame: np.ndarray) -> List[HandDetection]:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        result = self._landmarker.detect(image)

        hands: List[HandDetection] = []
        world = result.hand_world_landmarks or []
        for idx, landmarks in enumerate(result.hand_landmarks or []):
            pts_2d = np.array([[lm.x, lm.y] for lm in landmarks], dtype=np.float32)
            pts_3d = None
            if idx < len(world) and world[idx]:
                pts_3d = np.array([[lm.x, lm.y, lm.z] for lm in world[idx]], dtype=np.float32)

            score = None
            handedness = None
            if result.handedness and idx < len(result.handedness) and result.handedness[idx]:
                category = result.handedness[idx][0]
                score = float(category.score)
                handedness = category.category_name

            hands.append(HandDetection(
                landmarks_2d=pts_2d,
                landmarks_3d=pts_3d,
                score=score,
                handedness=handedness,
            ))
        return hands

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
