"""
obstacle_sensing.sensors
------------------------
Interchangeable obstacle-sensing backends behind one lifecycle contract.

Lifecycle
---------
    backend = create_sensor("hands", config)
    await backend.initialize(source, on_obstacles, on_depth_frame=None)
    ...                      # frame loop runs as an asyncio task
    await backend.stop()     # idempotent, safe mid-frame

Instances are single-use: once stopped (or after a failed ``initialize``)
a backend is never restarted; the manager builds a fresh one instead.

Each backend owns a small ``ThreadPoolExecutor``.  Model loading and per-frame
inference run there and are awaited, so the event loop stays responsive.  A
frame is *skipped*, never queued, while the previous one is still in flight.

Public API
----------
Base ABC:
    SensorBackend

Backends:
    HandLandmarkSensor    - MediaPipe hand landmarks          (``hands``)
    DepthSessionSensor    - platform depth-session grid       (``depth_session``)
    MultiModelSensor      - hands + faces + YOLO objects      (``multi_model``)
    MonocularDepthSensor  - Depth Anything V2 grid            (``monocular``)

Factory:
    create_sensor
"""

from __future__ import annotations

import abc
import asyncio
import contextlib
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from ..config import SensingConfig
from ..errors import InitializationFailed, ProcessingError
from ..types import DepthFrame, ObstacleZone, SensingMode
from ..video import VideoSource

_logger = logging.getLogger(__name__)

ObstacleCallback = Callable[[List[ObstacleZone]], None]
DepthFrameCallback = Callable[[DepthFrame], None]
FrameResult = Tuple[List[ObstacleZone], Optional[DepthFrame]]


class SensorBackend(abc.ABC):
    """Common lifecycle for every sensing strategy.

    Subclasses implement three hooks:

    ``_load()``      blocking; acquire models / sessions.  Runs on the executor.
    ``_process()``   async; turn one frame into ``(zones, depth_frame)``.
    ``_release()``   blocking; drop whatever ``_load`` acquired.  Must cope
                     with a partially completed ``_load``.
    """

    mode: SensingMode = SensingMode.NONE
    max_workers: int = 1
    reads_video: bool = True

    def __init__(self, config: Optional[SensingConfig] = None) -> None:
        self.config = config or SensingConfig()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._task: Optional[asyncio.Task] = None
        self._source: Optional[VideoSource] = None
        self._on_obstacles: Optional[ObstacleCallback] = None
        self._on_depth_frame: Optional[DepthFrameCallback] = None
        self._active = False
        self._in_flight = False
        self._initialized = False
        self._stopped = False
        self._released = False
        self._stop_lock = asyncio.Lock()

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def frame_interval(self) -> float:
        return self.config.frame_interval(self.mode)

    # ── Hooks ─────────────────────────────────────────────────────────────────

    @abc.abstractmethod
    def _load(self) -> None:
        ...

    @abc.abstractmethod
    async def _process(self, frame: Optional[np.ndarray]) -> Optional[FrameResult]:
        """Return ``(zones, depth_frame)``, or ``None`` when nothing new arrived."""

    @abc.abstractmethod
    def _release(self) -> None:
        ...

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(
        self,
        source: Optional[VideoSource],
        on_obstacles: ObstacleCallback,
        on_depth_frame: Optional[DepthFrameCallback] = None,
    ) -> None:
        """Acquire resources and start the frame loop.

        Raises
        ------
        InitializationFailed
            Resources could not be acquired, the instance was already used,
            or ``stop()`` was called before loading finished.
        """
        if self._initialized:
            raise InitializationFailed(
                f"{self.mode.value} backend instances are single-use", mode=self.mode.value
            )
        self._initialized = True
        self._source = source
        self._on_obstacles = on_obstacles
        self._on_depth_frame = on_depth_frame
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"sensing-{self.mode.value}",
        )

        try:
            await self._run_blocking(self._load)
        except asyncio.CancelledError:
            await self._teardown()
            raise
        except Exception as e:
            await self._teardown()
            if isinstance(e, InitializationFailed):
                raise
            raise InitializationFailed(
                f"{self.mode.value} backend failed to initialize: {e}", mode=self.mode.value
            ) from e

        if self._stopped:
            raise InitializationFailed(
                f"{self.mode.value} backend was stopped during initialization",
                mode=self.mode.value,
            )

        self._active = True
        self._task = asyncio.get_running_loop().create_task(
            self._run_loop(), name=f"sensing-{self.mode.value}"
        )
        _logger.info("%s backend started (interval %.3fs)", self.mode.value, self.frame_interval)

    async def stop(self) -> None:
        """Stop the loop, drain in-flight inference, then release resources."""
        self._active = False
        self._stopped = True
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._teardown()

    async def _teardown(self) -> None:
        async with self._stop_lock:
            executor, self._executor = self._executor, None
            if executor is not None:
                await asyncio.to_thread(executor.shutdown, True)
            if not self._released:
                self._released = True
                try:
                    self._release()
                except Exception:
                    _logger.warning("%s backend raised while releasing resources",
                                    self.mode.value, exc_info=True)
                else:
                    _logger.info("%s backend stopped", self.mode.value)

    # ── Frame loop ────────────────────────────────────────────────────────────

    async def _run_blocking(self, fn, *args):
        """Run *fn* on this backend's executor and await the result."""
        if self._executor is None:
            raise RuntimeError(f"{self.mode.value} backend has no executor")
        return await asyncio.wrap_future(self._executor.submit(fn, *args))

    async def _run_loop(self) -> None:
        while self._active:
            try:
                await self.process_next_frame()
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.exception("%s obstacle subscriber raised", self.mode.value)
            await asyncio.sleep(self.frame_interval)

    async def process_next_frame(self) -> Optional[List[ObstacleZone]]:
        """Run exactly one processing cycle.

        Returns the emitted zones, or ``None`` when the cycle was skipped
        (inactive, previous frame in flight, no frame yet, or a processing
        error that was logged and swallowed).
        """
        if not self._active or self._in_flight:
            return None
        self._in_flight = True
        try:
            frame = None
            if self.reads_video:
                if self._source is None:
                    return None
                # VideoCapture.read() blocks until the next camera frame
                frame = await self._run_blocking(self._source.read)
                if frame is None or not self._active:
                    return None

            try:
                result = await self._process(frame)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                err = ProcessingError(f"{self.mode.value} frame skipped: {e}", mode=self.mode.value)
                _logger.warning("%s", err)
                return None

            if result is None:
                return None
            zones, depth_frame = result
            if not self._active:
                return None
            if depth_frame is not None and self._on_depth_frame is not None:
                self._on_depth_frame(depth_frame)
            _logger.debug("%s emitted %d zone(s)", self.mode.value, len(zones))
            self._on_obstacles(zones)
            return zones
        finally:
            self._in_flight = False


# ---------------------------------------------------------------------------
# Backend imports
# ---------------------------------------------------------------------------

from .hand_landmarks import HandLandmarkSensor, hand_to_zone  # noqa: E402
from .depth_session import DepthSessionSensor, merge_nearby_zones, reduce_depth_grid  # noqa: E402
from .multi_model import MultiModelSensor  # noqa: E402
from .monocular_depth import MonocularDepthSensor  # noqa: E402


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_sensor(
    mode: Union[SensingMode, str],
    config: Optional[SensingConfig] = None,
    **kwargs,
) -> SensorBackend:
    """Instantiate a backend for *mode*.

    Parameters
    ----------
    mode : any :class:`SensingMode` except ``none``.
    config : shared configuration; defaults are used when ``None``.
    **kwargs : forwarded to the backend constructor (e.g. pre-built models).
    """
    mode = SensingMode(mode)
    kinds = {
        SensingMode.HANDS: HandLandmarkSensor,
        SensingMode.DEPTH_SESSION: DepthSessionSensor,
        SensingMode.MULTI_MODEL: MultiModelSensor,
        SensingMode.MONOCULAR: MonocularDepthSensor,
    }
    if mode not in kinds:
        raise ValueError(f"No backend for mode '{mode.value}'. Choose from "
                         f"{[m.value for m in kinds]}")
    return kinds[mode](config=config, **kwargs)


__all__ = [
    "SensorBackend", "ObstacleCallback", "DepthFrameCallback",
    "HandLandmarkSensor", "DepthSessionSensor", "MultiModelSensor", "MonocularDepthSensor",
    "hand_to_zone", "merge_nearby_zones", "reduce_depth_grid",
    "create_sensor",
]
