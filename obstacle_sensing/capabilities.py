"""
obstacle_sensing.capabilities
-----------------------------
Cheap feasibility probing for each sensing mode, plus a per-device-class
default recommendation.

Probing only checks that the required libraries are importable (and, for
depth sessions, that the provider sees a device).  No model is loaded and
no session is opened, so a probe can be run before every ``set_mode``.
"""

from __future__ import annotations

import importlib.util
import logging
import platform
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union

from .config import SensingConfig
from .errors import UnsupportedPlatform
from .sessions import DepthSessionProvider, create_session_provider
from .types import SensingMode

_logger = logging.getLogger(__name__)


class DeviceClass(str, Enum):
    HEADSET = "headset"
    MOBILE = "mobile"
    DESKTOP = "desktop"
    UNKNOWN = "unknown"


@dataclass
class FeatureSupport:
    supported: bool
    reason: Optional[str] = None
    recommendation: Optional[str] = None


Capabilities = Dict[SensingMode, FeatureSupport]

_HEADSET_TOKENS = ("quest", "headset", "hololens", "visionos")
_MOBILE_TOKENS = ("android", "iphone", "ipad", "ipod", "ios")
_DESKTOP_TOKENS = ("windows", "mac", "darwin", "linux")


def detect_device_class(signature: Optional[str] = None) -> DeviceClass:
    """Classify the host from a platform signature.

    *signature* defaults to ``platform.platform()`` plus the machine name; a
    client-supplied string (e.g. a forwarded user agent) can be passed instead.
    """
    sig = (signature or f"{platform.platform()} {platform.machine()}").lower()
    if any(tok in sig for tok in _HEADSET_TOKENS):
        return DeviceClass.HEADSET
    if any(tok in sig for tok in _MOBILE_TOKENS):
        return DeviceClass.MOBILE
    if any(tok in sig for tok in _DESKTOP_TOKENS):
        return DeviceClass.DESKTOP
    return DeviceClass.UNKNOWN


def _missing(*modules: str) -> List[str]:
    return [m for m in modules if importlib.util.find_spec(m) is None]


# ─────────────────────────────────────────────────────────────────────────────
# Per-mode checks
# ─────────────────────────────────────────────────────────────────────────────

def _check_hands() -> FeatureSupport:
    if _missing("mediapipe"):
        return FeatureSupport(False, "mediapipe is not installed", "pip install mediapipe")
    return FeatureSupport(True, "MediaPipe hand landmarks available")


def _check_multi_model() -> FeatureSupport:
    missing = _missing("mediapipe", "ultralytics")
    if missing:
        return FeatureSupport(
            False,
            f"missing: {', '.join(missing)}",
            f"pip install {' '.join(missing)}",
        )
    return FeatureSupport(True, "MediaPipe + Ultralytics available")


def _check_monocular(config: SensingConfig) -> FeatureSupport:
    missing = _missing("torch", "transformers")
    if missing:
        return FeatureSupport(
            False,
            f"missing: {', '.join(missing)}",
            f"pip install {' '.join(missing)}",
        )
    device = config.resolve_device()
    recommendation = None
    if device == "cpu":
        recommendation = "runs on CPU; expect a low frame rate"
    return FeatureSupport(True, f"Depth Anything V2 on {device}", recommendation)


def _check_depth_session(provider: Optional[DepthSessionProvider]) -> FeatureSupport:
    if provider is None:
        provider = create_session_provider("oak")
    try:
        supported, reason = provider.is_supported()
    except Exception as e:
        _logger.warning("Depth-session probe raised: %s", e)
        return FeatureSupport(False, f"depth-session probe failed: {e}",
                              "Connect a supported depth device")
    if not supported:
        return FeatureSupport(False, reason, "Connect an OAK-D camera and install depthai")
    return FeatureSupport(True, reason)


def probe_capabilities(
    config: Optional[SensingConfig] = None,
    session_provider: Optional[DepthSessionProvider] = None,
) -> Capabilities:
    """Return a :class:`FeatureSupport` for every mode except ``none``."""
    config = config or SensingConfig()
    caps = {
        SensingMode.HANDS: _check_hands(),
        SensingMode.DEPTH_SESSION: _check_depth_session(session_provider),
        SensingMode.MULTI_MODEL: _check_multi_model(),
        SensingMode.MONOCULAR: _check_monocular(config),
    }
    for mode, support in caps.items():
        _logger.debug("capability %s: %s (%s)", mode.value, support.supported, support.reason)
    return caps


# ─────────────────────────────────────────────────────────────────────────────
# Recommendation
# ─────────────────────────────────────────────────────────────────────────────

def recommended_modes(
    capabilities: Capabilities,
    device_class: DeviceClass = DeviceClass.UNKNOWN,
) -> List[SensingMode]:
    """Supported modes in preference order for *device_class*.

    Headsets try the depth session first.  Every device then prefers hand
    landmarks, the multi-model path, and the monocular network, in that order.
    """
    chain: List[SensingMode] = []
    if device_class == DeviceClass.HEADSET:
        chain.append(SensingMode.DEPTH_SESSION)
    chain += [SensingMode.HANDS, SensingMode.MULTI_MODEL, SensingMode.MONOCULAR]
    return [m for m in chain if capabilities.get(m, FeatureSupport(False)).supported]


def recommend_mode(
    capabilities: Capabilities,
    device_class: DeviceClass = DeviceClass.UNKNOWN,
) -> SensingMode:
    """First recommended mode, or ``none`` when nothing is supported."""
    modes = recommended_modes(capabilities, device_class)
    return modes[0] if modes else SensingMode.NONE


def require_supported(mode: Union[SensingMode, str], capabilities: Capabilities) -> None:
    """Raise :class:`UnsupportedPlatform` unless *mode* probed as supported."""
    mode = SensingMode(mode)
    if mode == SensingMode.NONE:
        return
    support = capabilities.get(mode)
    if support is None or not support.supported:
        reason = support.reason if support else "not probed"
        raise UnsupportedPlatform(
            f"{mode.value} is not supported here: {reason}",
            mode=mode.value,
            recommendation=support.recommendation if support else None,
        )


def user_friendly_error(
    mode: Union[SensingMode, str],
    error: BaseException,
    device_class: Optional[DeviceClass] = None,
) -> str:
    """Short, user-facing explanation of why *mode* failed to start."""
    mode = SensingMode(mode)
    if device_class is None:
        device_class = detect_device_class()

    if mode == SensingMode.DEPTH_SESSION:
        if device_class == DeviceClass.DESKTOP:
            return ("Depth-session sensing needs a depth-capable device such as an AR "
                    "headset or a stereo depth camera. Try hand tracking instead, "
                    "which works with any camera.")
        if device_class == DeviceClass.MOBILE:
            return ("This mobile device may not support depth sessions. Try hand "
                    "tracking instead.")
        return ("Depth-session sensing is not available on this device. Try hand "
                "tracking instead.")
    if mode == SensingMode.HANDS:
        return "Hand tracking failed to start. Check camera access and that the model could be downloaded, then try again."
    if mode == SensingMode.MULTI_MODEL:
        return "Object and face detection failed to start. Check that the detection models could be downloaded, then try again."
    if mode == SensingMode.MONOCULAR:
        return ("Monocular depth estimation could not load its network. It needs "
                "PyTorch and enough memory for the model. Try hand tracking instead.")
    return str(error)
