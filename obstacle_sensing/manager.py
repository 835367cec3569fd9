"""
obstacle_sensing.manager
------------------------
Owns at most one active sensing backend and fans its obstacle stream out to
subscribers.

State machine
-------------
    Idle ──set_mode(m)──▶ Initializing ──ok──▶ Running(m)
      ▲                        │ fail                │
      └──────── stop() ◀───────┴─────── set_mode ────┘

``set_mode`` calls are serialised.  The previous backend is stopped and its
teardown awaited before the next backend initializes, so two backends never
hold models, sessions or the video source at the same time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Union

from .config import SensingConfig
from .errors import InitializationFailed
from .sensors import DepthFrameCallback, ObstacleCallback, SensorBackend, create_sensor
from .types import DepthFrame, ObstacleZone, SensingMode
from .video import VideoSource

_logger = logging.getLogger(__name__)

BackendFactory = Callable[[SensingMode, SensingConfig], SensorBackend]


class SensingManager:
    """
    Parameters
    ----------
    source : frame source handed to whichever backend is active.
    config : shared configuration passed to every backend.
    backend_factory : ``(mode, config) -> SensorBackend``.

    Examples
    --------
    >>> manager = SensingManager(CameraSource(0))
    >>> unsubscribe = manager.subscribe(lambda zones: print(len(zones)))
    >>> await manager.set_mode("hands")
    """

    def __init__(
        self,
        source: Optional[VideoSource],
        config: Optional[SensingConfig] = None,
        backend_factory: BackendFactory = create_sensor,
    ) -> None:
        self.source = source
        self.config = config or SensingConfig()
        self._backend_factory = backend_factory
        self._backend: Optional[SensorBackend] = None
        self._mode = SensingMode.NONE
        self._obstacle_subscribers: List[ObstacleCallback] = []
        self._depth_subscribers: List[DepthFrameCallback] = []
        self._lock = asyncio.Lock()

    # ── Subscriptions ─────────────────────────────────────────────────────────

    def subscribe(self, on_obstacles: ObstacleCallback) -> Callable[[], None]:
        """Register an obstacle callback.  Returns an unsubscribe function."""
        self._obstacle_subscribers.append(on_obstacles)

        def unsubscribe() -> None:
            if on_obstacles in self._obstacle_subscribers:
                self._obstacle_subscribers.remove(on_obstacles)

        return unsubscribe

    def subscribe_depth(self, on_depth_frame: DepthFrameCallback) -> Callable[[], None]:
        """Register a raw depth-frame callback.  Returns an unsubscribe function."""
        self._depth_subscribers.append(on_depth_frame)

        def unsubscribe() -> None:
            if on_depth_frame in self._depth_subscribers:
                self._depth_subscribers.remove(on_depth_frame)

        return unsubscribe

    def _emit_obstacles(self, zones: List[ObstacleZone]) -> None:
        for callback in list(self._obstacle_subscribers):
            callback(zones)

    def _emit_depth(self, depth: DepthFrame) -> None:
        for callback in list(self._depth_subscribers):
            callback(depth)

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def current_mode(self) -> SensingMode:
        return self._mode

    @property
    def is_running(self) -> bool:
        return self._backend is not None and self._backend.is_active

    # ── Mode switching ────────────────────────────────────────────────────────

    async def set_mode(self, mode: Union[SensingMode, str]) -> None:
        """Switch to *mode*, tearing down the current backend first.

        Raises
        ------
        InitializationFailed
            The new backend could not start.  The manager is left idle.
        """
        mode = SensingMode(mode)
        async with self._lock:
            await self._stop_backend()

            if mode == SensingMode.NONE:
                _logger.info("Sensing disabled")
                self._emit_obstacles([])
                return

            backend = self._backend_factory(mode, self.config)

            def on_obstacles(zones: List[ObstacleZone]) -> None:
                if self._backend is backend:
                    self._emit_obstacles(zones)

            def on_depth_frame(depth: DepthFrame) -> None:
                if self._backend is backend:
                    self._emit_depth(depth)

            self._backend = backend
            try:
                await backend.initialize(self.source, on_obstacles, on_depth_frame)
            except BaseException as e:
                self._backend = None
                await backend.stop()
                if isinstance(e, InitializationFailed):
                    _logger.warning("Could not start %s: %s", mode.value, e)
                raise
            self._mode = mode
            _logger.info("Sensing mode → %s", mode.value)

    async def stop(self) -> None:
        """Stop the active backend, if any, and return to idle."""
        async with self._lock:
            await self._stop_backend()

    async def _stop_backend(self) -> None:
        backend, self._backend = self._backend, None
        self._mode = SensingMode.NONE
        if backend is not None:
            await backend.stop()
