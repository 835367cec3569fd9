"""
obstacle_sensing.models.yolo_objects
------------------------------------
Multi-class object detection backed by any Ultralytics detection model
(YOLOv8, YOLO11, RT-DETR, …).  All 80 COCO classes are kept; the model's
class name is passed through verbatim as the detection label.

Small models are the sensible default for the per-frame budget:
  yolov8n.pt / yolo11n.pt   fastest, fine on CPU
  yolov8s.pt / yolo11s.pt   better recall, still real-time on GPU
"""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from . import ObjectDetection, ObjectDetectionModel

_logger = logging.getLogger(__name__)


class UltralyticsObjectDetector(ObjectDetectionModel):
    """
    Examples
    --------
    UltralyticsObjectDetector("yolov8n.pt")
    UltralyticsObjectDetector("yolo11s.pt", conf=0.3, device="cuda")
    """

    def __init__(
        self,
        model_name: str = "yolov8n.pt",
        conf: float = 0.4,
        device: str = "cpu",
    ) -> None:
        try:
            from ultralytics import YOLO
        except ImportError as e:
            raise ImportError(
                "Object detection requires 'ultralytics'. Install with: pip install ultralytics"
            ) from e

        self.model_name = model_name
        self.conf = conf
        self.device = device
        _logger.info("Loading %s on %s ...", model_name, device)
        self._model = YOLO(model_name)
        self._model.to(device)

    def detect(self, frame: np.ndarray) -> List[ObjectDetection]:
        results = self._model(frame, conf=self.conf, verbose=False, device=self.device)[0]
        if results.boxes is None:
            return []

        names = results.names
        detections: List[ObjectDetection] = []
        for box in results.boxes:
            cls_id = int(box.cls[0].item())
            x1, y1, x2, y2 = box.xyxy[0].tolist()
            detections.append(ObjectDetection(
                x=x1,
                y=y1,
                width=x2 - x1,
                height=y2 - y1,
                label=str(names[cls_id]),
                score=float(box.conf[0].item()),
            ))
        return detections

    def close(self) -> None:
        # Ultralytics has no explicit dispose; drop the reference so the
        # weights (and any CUDA memory) can be reclaimed.
        self._model = None
