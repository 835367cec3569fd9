"""
obstacle_sensing.models
-----------------------
Inference-model wrappers used by the sensing backends.

Every wrapper takes a BGR uint8 frame (OpenCV convention), returns plain
detection records, and releases its native handles in :meth:`close`.
Heavy libraries are imported lazily so that importing this package never
requires mediapipe, ultralytics or torch.

Public API
----------
Detection records:
    HandDetection, FaceDetection, ObjectDetection

Base ABCs:
    HandLandmarkModel, FaceDetectionModel, ObjectDetectionModel, DepthNetwork

Dummy stubs (no dependencies, for smoke-runs):
    DummyDepthNetwork

Production models:
    MediaPipeHandLandmarker   - MediaPipe Tasks HandLandmarker
    MediaPipeFaceDetector     - MediaPipe Tasks BlazeFace detector
    UltralyticsObjectDetector - any Ultralytics detection model
    DepthAnythingV2Network    - Depth Anything V2 via HuggingFace

Factories:
    create_hand_model, create_face_model, create_object_model, create_depth_network
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np


# ---------------------------------------------------------------------------
# Detection records
# ---------------------------------------------------------------------------

@dataclass
class HandDetection:
    """One detected hand.

    landmarks_2d : (N, 2) image landmarks, normalized to [0, 1].
    landmarks_3d : (N, 3) metric landmarks in metres relative to the model's
                   local origin, or ``None`` when the model has none.
    score        : hand-presence / handedness score.
    handedness   : ``'Left'`` / ``'Right'`` when known.
    """

    landmarks_2d: np.ndarray
    landmarks_3d: Optional[np.ndarray] = None
    score: Optional[float] = None
    handedness: Optional[str] = None


@dataclass
class FaceDetection:
    """Face box in pixels: (x, y) top-left, width and height."""

    x: float
    y: float
    width: float
    height: float
    score: Optional[float] = None


@dataclass
class ObjectDetection:
    """Object box in pixels plus the detector's class label."""

    x: float
    y: float
    width: float
    height: float
    label: str
    score: float


# ---------------------------------------------------------------------------
# Abstract base classes
# ---------------------------------------------------------------------------

class HandLandmarkModel(abc.ABC):

    @abc.abstractmethod
    def detect(self, frame: np.ndarray) -> List[HandDetection]:
        """Return up to ``max_hands`` hands found in a BGR frame."""

    def close(self) -> None:
        """Release native resources."""


class FaceDetectionModel(abc.ABC):

    @abc.abstractmethod
    def detect(self, frame: np.ndarray) -> List[FaceDetection]:
        """Return face boxes in original-frame pixels."""

    def close(self) -> None:
        """Release native resources."""


class ObjectDetectionModel(abc.ABC):

    @abc.abstractmethod
    def detect(self, frame: np.ndarray) -> List[ObjectDetection]:
        """Return labelled object boxes in original-frame pixels."""

    def close(self) -> None:
        """Release native resources."""


class DepthNetwork(abc.ABC):
    """Monocular relative-depth network.

    Input is a preprocessed ``(1, S, S, 3)`` float32 RGB batch in [0, 1];
    output is an ``(h, w)`` float32 map where larger values are *closer*.
    """

    @abc.abstractmethod
    def predict(self, batch: np.ndarray) -> np.ndarray:
        """Run the network on one preprocessed batch."""

    def close(self) -> None:
        """Release native resources."""


# ---------------------------------------------------------------------------
# Dummy stubs
# ---------------------------------------------------------------------------

class DummyDepthNetwork(DepthNetwork):
    """Synthetic inverse depth: the bottom of the frame is nearest."""

    def __init__(self, near_value: float = 1.0, far_value: float = 0.1) -> None:
        self.near_value = near_value
        self.far_value = far_value

    def predict(self, batch: np.ndarray) -> np.ndarray:
        H, W = batch.shape[1:3]
        t = np.linspace(0.0, 1.0, H, dtype=np.float32).reshape(-1, 1)
        depth = self.far_value + t * (self.near_value - self.far_value)
        return np.tile(depth, (1, W)).astype(np.float32)


# ---------------------------------------------------------------------------
# Production model imports  (lazy: only fail at instantiation, not import)
# ---------------------------------------------------------------------------

from .mediapipe_hands import MediaPipeHandLandmarker  # noqa: E402
from .mediapipe_faces import MediaPipeFaceDetector  # noqa: E402
from .yolo_objects import UltralyticsObjectDetector  # noqa: E402
from .depth_anything_v2 import DepthAnythingV2Network  # noqa: E402


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------

def _create(kinds: Dict[str, type], kind: str, what: str, **kwargs):
    if kind not in kinds:
        raise ValueError(f"Unknown {what} kind '{kind}'. Choose from {list(kinds)}")
    return kinds[kind](**kwargs)


def create_hand_model(kind: str = "mediapipe", **kwargs) -> HandLandmarkModel:
    """Instantiate a hand-landmark model by name (``'mediapipe'``)."""
    return _create({"mediapipe": MediaPipeHandLandmarker}, kind, "hand model", **kwargs)


def create_face_model(kind: str = "mediapipe", **kwargs) -> FaceDetectionModel:
    """Instantiate a face detector by name (``'mediapipe'``)."""
    return _create({"mediapipe": MediaPipeFaceDetector}, kind, "face model", **kwargs)


def create_object_model(kind: str = "ultralytics", **kwargs) -> ObjectDetectionModel:
    """Instantiate an object detector by name (``'ultralytics'``).

    Examples
    --------
    >>> det = create_object_model("ultralytics", model_name="yolov8n.pt", conf=0.4)
    """
    return _create({"ultralytics": UltralyticsObjectDetector}, kind, "object model", **kwargs)


def create_depth_network(kind: str = "depth_anything_v2", **kwargs) -> DepthNetwork:
    """Instantiate a depth network by name.

    Parameters
    ----------
    kind : ``'dummy'`` or ``'depth_anything_v2'``.
    **kwargs : forwarded to the constructor.
    """
    kinds = {
        "dummy": DummyDepthNetwork,
        "depth_anything_v2": DepthAnythingV2Network,
    }
    return _create(kinds, kind, "depth network", **kwargs)


__all__ = [
    "HandDetection", "FaceDetection", "ObjectDetection",
    "HandLandmarkModel", "FaceDetectionModel", "ObjectDetectionModel", "DepthNetwork",
    "DummyDepthNetwork",
    "MediaPipeHandLandmarker", "MediaPipeFaceDetector",
    "UltralyticsObjectDetector", "DepthAnythingV2Network",
    "create_hand_model", "create_face_model", "create_object_model",
    "create_depth_network",
]
