"""
obstacle_sensing.errors
-----------------------
Error taxonomy for the sensing subsystem.

SensorError
├── InitializationFailed   model / session unreachable or rejected; fatal
│                          for one ``set_mode`` call, recoverable by trying
│                          another mode.
├── ProcessingError        one frame's inference raised; logged, the frame
│                          is skipped, the loop continues.
├── UnsupportedPlatform    the capability probe ruled the backend out on this
│                          device; raised before any activation attempt.
├── AssetUnavailable       every source of a model asset failed.
└── SessionError           a depth-session request was rejected.
"""

from __future__ import annotations

from typing import Optional


class SensorError(Exception):
    """Base class for every sensing error.  ``mode`` names the backend."""

    def __init__(self, message: str, mode: Optional[str] = None) -> None:
        super().__init__(message)
        self.mode = mode


class InitializationFailed(SensorError):
    pass


class ProcessingError(SensorError):
    pass


class UnsupportedPlatform(SensorError):
    def __init__(
        self,
        message: str,
        mode: Optional[str] = None,
        recommendation: Optional[str] = None,
    ) -> None:
        super().__init__(message, mode=mode)
        self.recommendation = recommendation


class AssetUnavailable(SensorError):
    pass


class SessionError(SensorError):
    pass
