"""
obstacle_sensing.sessions
-------------------------
Platform depth sessions: an AR / depth runtime that streams a per-pixel depth
buffer alongside the camera.

A :class:`DepthSessionProvider` negotiates sessions.  Features are requested
as *optional*: the provider grants the subset it can honour and raises
:class:`~obstacle_sensing.errors.SessionError` when it cannot open a session
for the request at all.

Feature names
-------------
``hit-test``, ``anchors``, ``plane-detection`` - baseline AR features.
``depth-sensing`` - per-pixel depth streaming.
"""

from __future__ import annotations

import abc
from typing import FrozenSet, Iterable, Optional, Tuple

from ..errors import SessionError
from ..types import DepthFrame

DEPTH_SENSING = "depth-sensing"
BASIC_FEATURES: Tuple[str, ...] = ("hit-test", "anchors", "plane-detection")
RICH_FEATURES: Tuple[str, ...] = BASIC_FEATURES + (DEPTH_SENSING,)


class DepthSession(abc.ABC):
    """An open platform session."""

    def __init__(self, granted_features: Iterable[str]) -> None:
        self.granted_features: FrozenSet[str] = frozenset(granted_features)

    @property
    def depth_enabled(self) -> bool:
        return DEPTH_SENSING in self.granted_features

    @abc.abstractmethod
    def poll_depth(self) -> Optional[DepthFrame]:
        """Return the newest depth frame, or ``None`` if none is pending."""

    @abc.abstractmethod
    def end(self) -> None:
        """Terminate the session and release the device.  Idempotent."""


class DepthSessionProvider(abc.ABC):

    @abc.abstractmethod
    def is_supported(self) -> Tuple[bool, str]:
        """Cheap feasibility check: ``(supported, reason)``."""

    @abc.abstractmethod
    def request_session(self, features: Iterable[str]) -> DepthSession:
        """Open a session granting a subset of *features*.

        Raises
        ------
        SessionError
            The runtime rejected the request.
        """


from .oak_depth import OakDepthSessionProvider  # noqa: E402


def create_session_provider(kind: str = "oak", **kwargs) -> DepthSessionProvider:
    """Instantiate a depth-session provider by name (``'oak'``)."""
    kinds = {"oak": OakDepthSessionProvider}
    if kind not in kinds:
        raise ValueError(f"Unknown session provider '{kind}'. Choose from {list(kinds)}")
    return kinds[kind](**kwargs)


__all__ = [
    "DEPTH_SENSING", "BASIC_FEATURES", "RICH_FEATURES",
    "DepthSession", "DepthSessionProvider", "SessionError",
    "OakDepthSessionProvider", "create_session_provider",
]
