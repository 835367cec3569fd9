"""
Shared fakes and fixtures for the obstacle_sensing tests.

Nothing here touches a GPU, a camera, the network or real model weights:
models, depth sessions and video sources are replaced by small in-memory
fakes that record how they were used.
"""

import asyncio
import sys
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np
import pytest

# Allow running from the repo root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent))

from obstacle_sensing.config import SensingConfig
from obstacle_sensing.errors import SessionError
from obstacle_sensing.sessions import DEPTH_SENSING, DepthSession, DepthSessionProvider
from obstacle_sensing.types import DepthFrame


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeModel:
    """Duck-typed detector: returns canned results, records calls.

    gate  : optional threading.Event the detect call waits on.
    error : exception raised from detect instead of returning.
    """

    def __init__(self, results=None, gate: Optional[threading.Event] = None, error=None):
        self.results = list(results or [])
        self.gate = gate
        self.error = error
        self.calls = 0
        self.closed = False
        self.events: List[str] = []

    def detect(self, frame):
        self.calls += 1
        self.events.append("detect-start")
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self.events.append("detect-end")
        if self.error is not None:
            raise self.error
        return list(self.results)

    def close(self):
        self.events.append("close")
        self.closed = True


class FakeDepthNetwork:
    def __init__(self, raw: np.ndarray):
        self.raw = raw
        self.batches = []
        self.closed = False

    def predict(self, batch):
        self.batches.append(batch.shape)
        return self.raw

    def close(self):
        self.closed = True


class FakeDepthSession(DepthSession):
    def __init__(self, granted: Iterable[str], frames: Optional[List[DepthFrame]] = None):
        super().__init__(granted)
        self.frames = list(frames or [])
        self.ended = False

    def poll_depth(self):
        return self.frames.pop(0) if self.frames else None

    def end(self):
        self.ended = True


class FakeSessionProvider(DepthSessionProvider):
    """Grants requested features unless told to reject them."""

    def __init__(self, supported=True, reject_depth=False, reject_all=False, frames=None):
        self.supported = supported
        self.reject_depth = reject_depth
        self.reject_all = reject_all
        self.frames = frames or []
        self.requests: List[tuple] = []
        self.sessions: List[FakeDepthSession] = []

    def is_supported(self):
        return self.supported, "fake provider" if self.supported else "no fake device"

    def request_session(self, features):
        features = tuple(features)
        self.requests.append(features)
        if self.reject_all or (self.reject_depth and DEPTH_SENSING in features):
            raise SessionError(f"rejected {features}")
        session = FakeDepthSession(
            [f for f in features if f == DEPTH_SENSING],
            frames=list(self.frames),
        )
        self.sessions.append(session)
        return session


class ListSource:
    """Video source that serves a fixed frame; counts reads.

    gate : optional threading.Event each read waits on, like a camera
           blocking until its next frame.
    """

    def __init__(self, frame: Optional[np.ndarray], gate: Optional[threading.Event] = None):
        self.frame = frame
        self.gate = gate
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return self.frame

    def release(self):
        pass


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def frame() -> np.ndarray:
    """640×480 black BGR frame."""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def config(tmp_path) -> SensingConfig:
    """Default config with a temp asset cache and a fast frame cadence."""
    return SensingConfig(
        device="cpu",
        asset_cache_dir=str(tmp_path / "assets"),
        hand_frame_interval_s=0.01,
        session_frame_interval_s=0.01,
        multi_frame_interval_s=0.01,
        monocular_frame_interval_s=0.01,
    )


@pytest.fixture
def fakes():
    """Namespace of the fake classes above."""
    class _Fakes:
        Model = FakeModel
        DepthNetwork = FakeDepthNetwork
        DepthSession = FakeDepthSession
        SessionProvider = FakeSessionProvider
        Source = ListSource
    return _Fakes


@pytest.fixture
def wait_until():
    """``await wait_until(predicate, timeout)`` polls until predicate() is truthy."""
    async def _wait(predicate, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            await asyncio.sleep(0.005)
        return bool(predicate())
    return _wait
