"""
obstacle_sensing.video
----------------------
Pollable frame sources shared (read-only) with the active backend.

A source is polled once per processing cycle; ``read()`` returns the most
recent BGR uint8 frame or ``None`` when no frame is available yet.
"""

from __future__ import annotations

import abc
import logging
from pathlib import Path
from typing import List, Optional, Union

import cv2
import numpy as np

_logger = logging.getLogger(__name__)

_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff"}


class VideoSource(abc.ABC):
    """Abstract pollable frame source (BGR uint8, OpenCV convention)."""

    @abc.abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Return the current (H, W, 3) frame, or ``None`` if not ready."""

    def release(self) -> None:
        """Free the underlying device or file handles."""


class StaticFrameSource(VideoSource):
    """Always returns the same frame.  Handy for smoke-runs and tests."""

    def __init__(self, frame: np.ndarray) -> None:
        self.frame = frame

    def read(self) -> Optional[np.ndarray]:
        return self.frame


class CameraSource(VideoSource):
    """Live camera (or video file) read through ``cv2.VideoCapture``."""

    def __init__(
        self,
        camera: Union[int, str] = 0,
        width: int = 1280,
        height: int = 720,
        fps: float = 30.0,
    ) -> None:
        self.camera = camera
        self._cap = cv2.VideoCapture(camera)
        if not self._cap.isOpened():
            raise RuntimeError(f"Could not open camera {camera}")
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self._cap.set(cv2.CAP_PROP_FPS, fps)
        _logger.info(
            "Camera %s opened: %dx%d",
            camera,
            int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    def read(self) -> Optional[np.ndarray]:
        ret, frame = self._cap.read()
        return frame if ret else None

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class FramesDirSource(VideoSource):
    """Cycles through the image files of a directory (sorted by name)."""

    def __init__(self, frames_dir: Union[str, Path], loop: bool = True) -> None:
        self.paths: List[Path] = sorted(
            p for p in Path(frames_dir).iterdir() if p.suffix.lower() in _IMAGE_EXTS
        )
        if not self.paths:
            raise FileNotFoundError(f"No images found in {frames_dir}")
        self.loop = loop
        self._idx = 0

    def read(self) -> Optional[np.ndarray]:
        if self._idx >= len(self.paths):
            if not self.loop:
                return None
            self._idx = 0
        path = self.paths[self._idx]
        self._idx += 1
        frame = cv2.imread(str(path))
        if frame is None:
            _logger.warning("Unreadable image skipped: %s", path)
        return frame
