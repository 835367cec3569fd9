"""
obstacle_sensing.sessions.oak_depth
-----------------------------------
Depth sessions on a Luxonis OAK-D (DepthAI).

A session with ``depth-sensing`` builds a stereo pipeline whose depth output
is aligned to the RGB camera and streamed as uint16 millimetres.  A session
without it runs the RGB camera only, so the device is claimed but no depth is
produced.  Baseline AR features (hit-test, anchors, plane detection) have no
OAK counterpart and are simply not granted.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from ..errors import SessionError
from ..types import DepthFrame
from . import DEPTH_SENSING, DepthSession, DepthSessionProvider

_logger = logging.getLogger(__name__)


def _import_depthai():
    try:
        import depthai as dai
    except ImportError as e:
        raise ImportError(
            "OAK depth sessions require 'depthai'. Install with: pip install depthai"
        ) from e
    return dai


class OakDepthSession(DepthSession):

    def __init__(self, device, granted_features: Iterable[str]) -> None:
        super().__init__(granted_features)
        self._device = device
        self._queue = (
            device.getOutputQueue("depth", maxSize=4, blocking=False)
            if self.depth_enabled else None
        )

    def poll_depth(self) -> Optional[DepthFrame]:
        if self._queue is None:
            return None
        msg = self._queue.tryGet()
        if msg is None:
            return None
        return DepthFrame.from_array(msg.getFrame(), format="uint16", raw_value_to_meters=0.001)

    def end(self) -> None:
        if self._device is not None:
            self._device.close()
            self._device = None
            self._queue = None
            _logger.info("OAK session ended")


class OakDepthSessionProvider(DepthSessionProvider):
    """
    Parameters
    ----------
    mono_resolution : ``'400p'``, ``'480p'`` or ``'720p'`` for the stereo pair.
    fps : camera frame rate.
    """

    def __init__(self, mono_resolution: str = "400p", fps: int = 30) -> None:
        self.mono_resolution = mono_resolution
        self.fps = fps

    def is_supported(self) -> Tuple[bool, str]:
        try:
            dai = _import_depthai()
        except ImportError:
            return False, "depthai is not installed"
        if not dai.Device.getAllAvailableDevices():
            return False, "no OAK device connected"
        return True, "OAK device available"

    def _build_pipeline(self, dai, with_depth: bool):
        pipeline = dai.Pipeline()

        cam_rgb = pipeline.create(dai.node.ColorCamera)
        cam_rgb.setBoardSocket(dai.CameraBoardSocket.CAM_A)
        cam_rgb.setFps(self.fps)
        xout_rgb = pipeline.create(dai.node.XLinkOut)
        xout_rgb.setStreamName("rgb")
        cam_rgb.video.link(xout_rgb.input)

        if with_depth:
            res_map = {
                "400p": dai.MonoCameraProperties.SensorResolution.THE_400_P,
                "480p": dai.MonoCameraProperties.SensorResolution.THE_480_P,
                "720p": dai.MonoCameraProperties.SensorResolution.THE_720_P,
            }
            left = pipeline.create(dai.node.MonoCamera)
            right = pipeline.create(dai.node.MonoCamera)
            left.setBoardSocket(dai.CameraBoardSocket.CAM_B)
            right.setBoardSocket(dai.CameraBoardSocket.CAM_C)
            for mono in (left, right):
                mono.setResolution(res_map[self.mono_resolution])
                mono.setFps(self.fps)

            stereo = pipeline.create(dai.node.StereoDepth)
            stereo.setDefaultProfilePreset(dai.node.StereoDepth.PresetMode.HIGH_DENSITY)
            stereo.setDepthAlign(dai.CameraBoardSocket.CAM_A)
            left.out.link(stereo.left)
            right.out.link(stereo.right)

            xout_depth = pipeline.create(dai.node.XLinkOut)
            xout_depth.setStreamName("depth")
            stereo.depth.link(xout_depth.input)
        return pipeline

    def request_session(self, features: Iterable[str]) -> DepthSession:
        features = set(features)
        with_depth = DEPTH_SENSING in features
        try:
            dai = _import_depthai()
            pipeline = self._build_pipeline(dai, with_depth)
            device = dai.Device(pipeline)
        except Exception as e:
            raise SessionError(f"OAK session request failed: {e}", mode="depth_session") from e

        granted = {DEPTH_SENSING} if with_depth else set()
        _logger.info("OAK session opened (depth=%s)", with_depth)
        return OakDepthSession(device, granted)
