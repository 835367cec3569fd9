"""
obstacle_sensing.models.mediapipe_faces
---------------------------------------
MediaPipe Tasks ``FaceDetector`` (BlazeFace short-range) wrapper.
Boxes come back in original-frame pixels.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Union

import cv2
import numpy as np

from . import FaceDetection, FaceDetectionModel

_logger = logging.getLogger(__name__)


class MediaPipeFaceDetector(FaceDetectionModel):

    def __init__(
        self,
        model_path: Union[str, Path],
        max_faces: int = 2,
        min_confidence: float = 0.5,
    ) -> None:
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise ImportError(
                "Face detection requires 'mediapipe'. Install with: pip install mediapipe"
            ) from e

        self._mp = mp
        self.model_path = str(model_path)
        self.max_faces = max_faces

        options = vision.FaceDetectorOptions(
            base_options=mp_python.BaseOptions(model_asset_path=self.model_path),
            running_mode=vision.RunningMode.IMAGE,
            min_detection_confidence=min_confidence,
        )
        self._detector = vision.FaceDetector.create_from_options(options)
        _logger.info("FaceDetector ready (%s)", self.model_path)

    def detect(self, frame: np.ndarray) -> List[FaceDetection]:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        result = self._detector.detect(image)

        faces: List[FaceDetection] = []
        for det in result.detections[: self.max_faces]:
            box = det.bounding_box
            score = float(det.categories[0].score) if det.categories else None
            faces.append(FaceDetection(
                x=float(box.origin_x),
                y=float(box.origin_y),
                width=float(box.width),
                height=float(box.height),
                score=score,
            ))
        return faces

    def close(self) -> None:
        if self._detector is not None:
            self._detector.close()
            self._detector = None
