"""
obstacle_sensing.run_sensing
----------------------------
CLI entry point: probe what this machine can run, start one sensing mode
against a camera or an image directory, and report obstacles as they arrive.

Usage examples
--------------
Capability table only::

    python -m obstacle_sensing.run_sensing --probe_only

Recommended mode on the default webcam for 20 s, with a debug window::

    python -m obstacle_sensing.run_sensing --camera 0 --duration 20 --show

Monocular depth over a folder of images on CPU::

    python -m obstacle_sensing.run_sensing \\
        --frames_dir data/frames/ \\
        --mode monocular \\
        --device cpu

Depth session from a connected OAK-D (no camera frames needed)::

    python -m obstacle_sensing.run_sensing --mode depth_session --show
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from typing import List, Optional

import cv2
import numpy as np

from .capabilities import (
    detect_device_class,
    probe_capabilities,
    recommend_mode,
    user_friendly_error,
)
from .config import SensingConfig
from .errors import InitializationFailed
from .manager import SensingManager
from .types import DepthFrame, ObstacleZone, SensingMode
from .video import CameraSource, FramesDirSource, VideoSource
from .visualize import make_debug_frame

_WINDOW = "obstacle_sensing"


class _TeeSource(VideoSource):
    """Passes frames through and remembers the last one for display."""

    def __init__(self, inner: VideoSource) -> None:
        self.inner = inner
        self.last_frame: Optional[np.ndarray] = None

    def read(self) -> Optional[np.ndarray]:
        frame = self.inner.read()
        if frame is not None:
            self.last_frame = frame
        return frame

    def release(self) -> None:
        self.inner.release()


def _summarize(zones: List[ObstacleZone]) -> str:
    if not zones:
        return "clear"
    parts = []
    for z in zones:
        depth = f"{z.depth:.2f}m" if z.depth is not None else "?"
        parts.append(f"{z.label}@{depth}")
    return f"{len(zones)} zone(s): " + ", ".join(parts)


def _print_capabilities(caps, device_class) -> None:
    print(f"[ObstacleSensing] device class: {device_class.value}")
    for mode, support in caps.items():
        flag = "yes" if support.supported else "no "
        line = f"  {mode.value:<14} {flag}  {support.reason or ''}"
        if support.recommendation:
            line += f"  ({support.recommendation})"
        print(line)


async def run_sensing(
    manager: SensingManager,
    mode: SensingMode,
    duration: float,
    show: bool = False,
    tee: Optional[_TeeSource] = None,
) -> int:
    """Run *mode* for *duration* seconds.  Returns a process exit code."""
    state = {"zones": [], "depth": None, "summary": None, "callbacks": 0}

    def on_obstacles(zones: List[ObstacleZone]) -> None:
        state["zones"] = zones
        state["callbacks"] += 1
        summary = _summarize(zones)
        if summary != state["summary"]:
            state["summary"] = summary
            print(f"[ObstacleSensing] {summary}")

    def on_depth(depth: DepthFrame) -> None:
        state["depth"] = depth

    manager.subscribe(on_obstacles)
    manager.subscribe_depth(on_depth)

    try:
        await manager.set_mode(mode)
    except InitializationFailed as e:
        print(f"[ObstacleSensing] {user_friendly_error(mode, e, detect_device_class(manager.config.device_signature))}")
        print(f"[ObstacleSensing] cause: {e.__cause__ or e}")
        return 1

    t0 = time.perf_counter()
    try:
        while time.perf_counter() - t0 < duration:
            if show:
                frame = tee.last_frame if tee is not None else None
                if frame is None and state["depth"] is not None:
                    d = state["depth"]
                    frame = np.zeros((d.height, d.width, 3), dtype=np.uint8)
                if frame is not None:
                    cv2.imshow(_WINDOW, make_debug_frame(frame, state["zones"], state["depth"]))
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord("q")):
                    break
            await asyncio.sleep(0.03)
    finally:
        await manager.stop()
        if show:
            cv2.destroyWindow(_WINDOW)

    elapsed = time.perf_counter() - t0
    print(f"\n[ObstacleSensing] done: {state['callbacks']} updates in {elapsed:.1f}s")
    return 0


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="python -m obstacle_sensing.run_sensing",
        description="Live obstacle sensing with interchangeable backends.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Source
    src = p.add_mutually_exclusive_group()
    src.add_argument("--camera", type=int, default=0,
                     help="OpenCV camera index.")
    src.add_argument("--frames_dir", type=str, default=None,
                     help="Directory of image files, looped in filename order.")

    # Mode
    p.add_argument("--mode", choices=["auto"] + [m.value for m in SensingMode], default="auto",
                   help="Sensing mode.  'auto' picks the recommended one.")
    p.add_argument("--duration", type=float, default=10.0,
                   help="Seconds to run before stopping.")
    p.add_argument("--probe_only", action="store_true",
                   help="Print the capability table and exit.")
    p.add_argument("--show", action="store_true",
                   help="Open a window with zones (and depth) drawn.")

    # Models
    p.add_argument("--device", type=str, default="auto",
                   help="'auto', 'cuda', 'mps' or 'cpu'.")
    p.add_argument("--object_model", type=str, default="yolov8n.pt",
                   help="Ultralytics weights for the multi-model path.")
    p.add_argument("--depth_model", type=str,
                   default="depth-anything/Depth-Anything-V2-Small-hf",
                   help="HuggingFace id of the monocular depth network.")

    # Misc
    p.add_argument("--log_level", type=str, default="WARNING",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = SensingConfig(
        device=args.device,
        object_model_name=args.object_model,
        depth_model_id=args.depth_model,
    )

    device_class = detect_device_class(cfg.device_signature)
    caps = probe_capabilities(cfg)
    _print_capabilities(caps, device_class)
    if args.probe_only:
        return

    if args.mode == "auto":
        mode = recommend_mode(caps, device_class)
        print(f"[ObstacleSensing] recommended mode: {mode.value}")
    else:
        mode = SensingMode(args.mode)
    if mode == SensingMode.NONE:
        print("[ObstacleSensing] nothing to run")
        return

    # Depth sessions bring their own sensor; only open a camera when asked to.
    tee: Optional[_TeeSource] = None
    source_desc = "depth session"
    if args.frames_dir:
        tee = _TeeSource(FramesDirSource(args.frames_dir, loop=True))
        source_desc = args.frames_dir
    elif mode != SensingMode.DEPTH_SESSION:
        tee = _TeeSource(CameraSource(args.camera))
        source_desc = f"camera {args.camera}"
    print(f"[ObstacleSensing] mode={mode.value}  source={source_desc}")

    manager = SensingManager(tee, cfg)
    try:
        code = asyncio.run(run_sensing(manager, mode, args.duration, show=args.show, tee=tee))
    finally:
        if tee is not None:
            tee.release()
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
