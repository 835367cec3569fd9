"""
obstacle_sensing
================
Camera-based obstacle sensing for AR occlusion and avoidance.

One of four interchangeable backends turns live frames into normalized
screen-space obstacle zones with coarse metric depth; a manager switches
between them, and geometry helpers answer "is this 3-D point behind an
obstacle?" and "which way should it move?".

Quick-start
-----------
>>> import asyncio
>>> from obstacle_sensing import SensingManager, CameraSource, SensingMode
>>> async def demo():
...     manager = SensingManager(CameraSource(0))
...     manager.subscribe(lambda zones: print(zones))
...     await manager.set_mode(SensingMode.HANDS)
...     await asyncio.sleep(5)
...     await manager.stop()
>>> asyncio.run(demo())

Choosing a mode:
----------------
>>> from obstacle_sensing import probe_capabilities, recommend_mode, detect_device_class
>>> recommend_mode(probe_capabilities(), detect_device_class())

Geometry:
---------
>>> from obstacle_sensing import Camera, world_to_screen, check_collision
>>> cam = Camera.perspective(fov_deg=75, aspect=16 / 9)
>>> world_to_screen((0, 0, -2), cam)
(0.5, 0.5)
"""

from .config import SensingConfig
from .types import DepthFrame, ObstacleZone, SensingMode, ZoneType
from .errors import (
    AssetUnavailable,
    InitializationFailed,
    ProcessingError,
    SensorError,
    SessionError,
    UnsupportedPlatform,
)
from .geometry import (
    Camera,
    calculate_avoidance_vector,
    check_collision,
    world_to_screen,
)
from .assets import fetch_asset
from .video import CameraSource, FramesDirSource, StaticFrameSource, VideoSource
from .sensors import (
    DepthSessionSensor,
    HandLandmarkSensor,
    MonocularDepthSensor,
    MultiModelSensor,
    SensorBackend,
    create_sensor,
    merge_nearby_zones,
)
from .sessions import DepthSession, DepthSessionProvider, OakDepthSessionProvider
from .capabilities import (
    DeviceClass,
    FeatureSupport,
    detect_device_class,
    probe_capabilities,
    recommend_mode,
    recommended_modes,
    require_supported,
    user_friendly_error,
)
from .manager import SensingManager
from .visualize import depth_viz, draw_obstacle_zones, make_debug_frame


__all__ = [
    # config / types
    "SensingConfig",
    "DepthFrame",
    "ObstacleZone",
    "SensingMode",
    "ZoneType",
    # errors
    "SensorError",
    "InitializationFailed",
    "ProcessingError",
    "UnsupportedPlatform",
    "AssetUnavailable",
    "SessionError",
    # geometry
    "Camera",
    "world_to_screen",
    "check_collision",
    "calculate_avoidance_vector",
    # assets / video
    "fetch_asset",
    "VideoSource",
    "CameraSource",
    "FramesDirSource",
    "StaticFrameSource",
    # backends
    "SensorBackend",
    "HandLandmarkSensor",
    "DepthSessionSensor",
    "MultiModelSensor",
    "MonocularDepthSensor",
    "create_sensor",
    "merge_nearby_zones",
    # depth sessions
    "DepthSession",
    "DepthSessionProvider",
    "OakDepthSessionProvider",
    # capabilities
    "DeviceClass",
    "FeatureSupport",
    "detect_device_class",
    "probe_capabilities",
    "recommended_modes",
    "recommend_mode",
    "require_supported",
    "user_friendly_error",
    # manager
    "SensingManager",
    # visualisation
    "depth_viz",
    "draw_obstacle_zones",
    "make_debug_frame",
]
