"""
Tests for the landmark hand backend and the shared SensorBackend lifecycle.

Run with:
    python -m pytest tests/test_sensors_hands.py -v
"""

import asyncio
import sys
import threading
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from obstacle_sensing.errors import InitializationFailed
from obstacle_sensing.models import HandDetection
from obstacle_sensing.sensors import HandLandmarkSensor, hand_to_zone
from obstacle_sensing.types import ZoneType


def _square_hand(x1, y1, x2, y2, world=None, score=0.8):
    pts = np.array([[x1, y1], [x2, y1], [x1, y2], [x2, y2], [(x1 + x2) / 2, (y1 + y2) / 2]],
                   dtype=np.float32)
    return HandDetection(landmarks_2d=pts, landmarks_3d=world, score=score, handedness="Right")


# ---------------------------------------------------------------------------
# hand_to_zone
# ---------------------------------------------------------------------------

class TestHandToZone:

    def test_box_padding(self):
        zone = hand_to_zone("hand-0", _square_hand(0.2, 0.3, 0.4, 0.5), padding=0.05)
        assert zone.type is ZoneType.HAND
        assert zone.x == pytest.approx(0.15)
        assert zone.y == pytest.approx(0.25)
        assert zone.width == pytest.approx(0.3)
        assert zone.height == pytest.approx(0.3)

    def test_world_landmarks_give_depth(self):
        world = np.array([[0.3, 0.0, 0.4], [0.0, 0.6, 0.8]], dtype=np.float32)  # norms 0.5, 1.0
        zone = hand_to_zone("hand-0", _square_hand(0.2, 0.3, 0.4, 0.5, world=world),
                            world_confidence=0.95)
        assert zone.depth == pytest.approx(0.75)
        assert zone.confidence == pytest.approx(0.95)

    def test_without_world_landmarks_uses_fallback(self):
        hand = _square_hand(0.2, 0.3, 0.4, 0.5, score=0.7)
        assert hand_to_zone("h", hand).depth is None
        zone = hand_to_zone("h", hand, fallback_depth=0.5, world_confidence=0.95)
        assert zone.depth == pytest.approx(0.5)
        assert zone.confidence == pytest.approx(0.7)

    def test_label_from_handedness(self):
        assert hand_to_zone("h", _square_hand(0.2, 0.3, 0.4, 0.5)).label == "right hand"
        hand = HandDetection(landmarks_2d=np.array([[0.2, 0.3], [0.4, 0.5]], dtype=np.float32),
                             landmarks_3d=None, score=0.8, handedness=None)
        assert hand_to_zone("h", hand).label == "hand"

    def test_missing_score_uses_default(self):
        zone = hand_to_zone("h", _square_hand(0.2, 0.3, 0.4, 0.5, score=None))
        assert zone.confidence == pytest.approx(0.9)

    def test_clipped_at_border(self):
        zone = hand_to_zone("h", _square_hand(0.9, 0.9, 1.0, 1.0), padding=0.05)
        assert zone.x + zone.width <= 1.0 + 1e-9
        assert zone.y + zone.height <= 1.0 + 1e-9


# ---------------------------------------------------------------------------
# HandLandmarkSensor
# ---------------------------------------------------------------------------

class TestHandLandmarkSensor:

    def test_single_hand_scenario(self, config, frame, fakes, wait_until):
        model = fakes.Model([_square_hand(0.2, 0.3, 0.4, 0.5)])
        received = []

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=model)
            await sensor.initialize(fakes.Source(frame), received.append)
            assert await wait_until(lambda: received)
            await sensor.stop()

        asyncio.run(run())
        zones = received[0]
        assert len(zones) == 1
        assert zones[0].type is ZoneType.HAND
        assert zones[0].x == pytest.approx(0.15)
        assert zones[0].y == pytest.approx(0.25)
        assert model.closed

    def test_empty_frames_still_emit(self, config, frame, fakes, wait_until):
        received = []

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=fakes.Model([]))
            await sensor.initialize(fakes.Source(frame), received.append)
            assert await wait_until(lambda: len(received) >= 2)
            await sensor.stop()

        asyncio.run(run())
        assert received[0] == []

    def test_at_most_max_hands(self, config, frame, fakes, wait_until):
        hands = [_square_hand(0.1 * i, 0.1, 0.1 * i + 0.05, 0.2) for i in range(4)]
        received = []

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=fakes.Model(hands))
            await sensor.initialize(fakes.Source(frame), received.append)
            assert await wait_until(lambda: received)
            await sensor.stop()

        asyncio.run(run())
        assert [z.id for z in received[0]] == ["hand-0", "hand-1"]

    def test_asset_failure_is_initialization_failure(self, config, fakes):
        config.hand_model_sources = [str(Path(config.asset_cache_dir) / "nope.task")]
        built = []

        async def run():
            sensor = HandLandmarkSensor(config, model_factory=built.append)
            with pytest.raises(InitializationFailed) as info:
                await sensor.initialize(fakes.Source(None), lambda zones: None)
            assert not sensor.is_active
            return info.value

        err = asyncio.run(run())
        assert err.mode == "hands"
        assert err.__cause__ is not None
        assert built == []

    def test_local_asset_feeds_factory(self, config, fakes, tmp_path, wait_until, frame):
        task_file = tmp_path / "hand_landmarker.task"
        task_file.write_bytes(b"x")
        config.hand_model_sources = [str(task_file)]
        paths = []

        def factory(path):
            paths.append(path)
            return fakes.Model([])

        async def run():
            sensor = HandLandmarkSensor(config, model_factory=factory)
            await sensor.initialize(fakes.Source(frame), lambda zones: None)
            await sensor.stop()

        asyncio.run(run())
        assert paths == [task_file]

    def test_instances_are_single_use(self, config, frame, fakes):
        async def run():
            sensor = HandLandmarkSensor(config, hand_model=fakes.Model([]))
            await sensor.initialize(fakes.Source(frame), lambda zones: None)
            await sensor.stop()
            with pytest.raises(InitializationFailed):
                await sensor.initialize(fakes.Source(frame), lambda zones: None)

        asyncio.run(run())

    def test_stop_is_idempotent_and_safe_before_init(self, config, fakes):
        async def run():
            sensor = HandLandmarkSensor(config, hand_model=fakes.Model([]))
            await sensor.stop()
            await sensor.stop()

        asyncio.run(run())

    def test_frame_skipped_while_in_flight(self, config, frame, fakes, wait_until):
        gate = threading.Event()
        model = fakes.Model([], gate=gate)
        config.hand_frame_interval_s = 3600.0

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=model)
            await sensor.initialize(fakes.Source(frame), lambda zones: None)
            assert await wait_until(lambda: model.calls == 1)
            assert await sensor.process_next_frame() is None
            assert model.calls == 1
            gate.set()
            await sensor.stop()

        asyncio.run(run())

    def test_processing_error_is_swallowed(self, config, frame, fakes, wait_until):
        model = fakes.Model([], error=RuntimeError("boom"))
        received = []

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=model)
            await sensor.initialize(fakes.Source(frame), received.append)
            assert await wait_until(lambda: model.calls >= 3)
            assert sensor.is_active
            await sensor.stop()

        asyncio.run(run())
        assert received == []

    def test_no_frame_no_callback(self, config, fakes, wait_until):
        model = fakes.Model([])
        received = []
        source = fakes.Source(None)

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=model)
            await sensor.initialize(source, received.append)
            assert await wait_until(lambda: source.reads >= 3)
            await sensor.stop()

        asyncio.run(run())
        assert received == []
        assert model.calls == 0

    def test_stop_mid_frame_never_emits_and_releases_after_drain(self, config, frame, fakes, wait_until):
        gate = threading.Event()
        model = fakes.Model([_square_hand(0.2, 0.3, 0.4, 0.5)], gate=gate)
        received = []

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=model)
            await sensor.initialize(fakes.Source(frame), received.append)
            assert await wait_until(lambda: model.calls == 1)
            stopping = asyncio.ensure_future(sensor.stop())
            await asyncio.sleep(0.05)
            assert not model.closed
            gate.set()
            await stopping

        asyncio.run(run())
        assert received == []
        assert model.events == ["detect-start", "detect-end", "close"]

    def test_blocking_source_read_does_not_stall_event_loop(self, config, frame, fakes, wait_until):
        gate = threading.Event()
        source = fakes.Source(frame, gate=gate)
        model = fakes.Model([_square_hand(0.2, 0.3, 0.4, 0.5)])
        received = []
        ticks = []

        async def ticker():
            while True:
                ticks.append(None)
                await asyncio.sleep(0.005)

        async def run():
            sensor = HandLandmarkSensor(config, hand_model=model)
            await sensor.initialize(source, received.append)
            assert await wait_until(lambda: source.reads == 1)
            ticking = asyncio.ensure_future(ticker())
            await asyncio.sleep(0.05)
            assert len(ticks) > 2
            stopping = asyncio.ensure_future(sensor.stop())
            await asyncio.sleep(0.02)
            assert not stopping.done()
            gate.set()
            await asyncio.wait_for(stopping, timeout=2)
            ticking.cancel()
            assert not sensor.is_active

        asyncio.run(run())
        assert received == []
        assert model.calls == 0
        assert model.closed
