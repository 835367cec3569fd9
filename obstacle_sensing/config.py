"""
obstacle_sensing.config
-----------------------
Central configuration dataclass for the obstacle-sensing subsystem.
All parameters have documented defaults.  Override only the fields you need.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .types import SensingMode


HAND_LANDMARKER_SOURCES = [
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/latest/hand_landmarker.task",
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task",
]

FACE_DETECTOR_SOURCES = [
    "https://storage.googleapis.com/mediapipe-models/face_detector/"
    "blaze_face_short_range/float16/latest/blaze_face_short_range.tflite",
    "https://storage.googleapis.com/mediapipe-models/face_detector/"
    "blaze_face_short_range/float16/1/blaze_face_short_range.tflite",
]


@dataclass
class SensingConfig:
    """Full configuration for the sensing backends and manager.

    Device & precision
    ------------------
    device : ``'auto'``, ``'cuda'``, ``'mps'`` or ``'cpu'``.
        ``'auto'`` picks CUDA, then Apple MPS, then CPU.
    fp16 : bool
        Half-precision inference for the depth network on CUDA.

    Model assets
    ------------
    hand_model_sources : ordered URLs / local paths for the MediaPipe
        ``hand_landmarker.task`` bundle.  Tried in order.
    face_model_sources : ordered URLs / local paths for the MediaPipe
        BlazeFace short-range detector.
    asset_timeout_s : per-source timeout when fetching a model asset.
    asset_cache_dir : where fetched assets are stored.  ``None`` →
        ``~/.cache/obstacle_sensing``.
    object_model_name : Ultralytics weight file for object detection.
    depth_model_id : HuggingFace Hub id (or local dir) of the depth network.

    Cadence
    -------
    hand_frame_interval_s       : delay between hand-landmark cycles.
    session_frame_interval_s    : delay between depth-session polls.
    multi_frame_interval_s      : ~15 fps throttle for the multi-model path.
    monocular_frame_interval_s  : ~2 fps throttle for the depth network.

    Hands
    -----
    max_hands : hands detected per frame.
    hand_padding : relative padding added on each side of a hand box.
    hand_min_confidence : detection / presence threshold.
    hand_fallback_depth : depth (m) used when a hand has no metric 3-D
        landmarks.  ``None`` omits depth; the consumer applies its default.

    Faces / objects (multi-model)
    -----------------------------
    face_padding, object_padding : relative box padding.
    face_depth_k : ``depth ≈ k / face_width_px``.
    face_depth_range : clamp range (m) for the face heuristic.
    object_depth_bands : ``(min_relative_area, depth_m)`` pairs, checked in
        order; ``object_far_depth`` applies when none match.
    object_conf : Ultralytics confidence threshold.

    Depth session
    -------------
    session_grid_size : cells per side of the sampling grid.
    session_near_m, session_far_m : a cell is occupied iff near < d < far.
    merge_distance : zone-center distance under which zones merge.
    session_confidence : fixed confidence for grid zones.

    Monocular
    ---------
    depth_input_size : square network input (multiple of 14 for DAv2).
    monocular_grid_size : cells per side.
    monocular_sample_stride : pixel stride of sample points inside a cell.
    monocular_range_m : normalized output 0..255 maps to 0..range metres.
    monocular_near_m : cells nearer than this become obstacles.

    Capability probing
    ------------------
    device_signature : override for the platform signature used to infer the
        device class (e.g. a user agent forwarded by a client).
    """

    # ── Device & precision ────────────────────────────────────────────────────
    device: str = "auto"
    fp16: bool = True

    # ── Model assets ──────────────────────────────────────────────────────────
    hand_model_sources: List[str] = field(
        default_factory=lambda: list(HAND_LANDMARKER_SOURCES)
    )
    face_model_sources: List[str] = field(
        default_factory=lambda: list(FACE_DETECTOR_SOURCES)
    )
    asset_timeout_s: float = 5.0
    asset_cache_dir: Optional[str] = None
    object_model_name: str = "yolov8n.pt"
    depth_model_id: str = "depth-anything/Depth-Anything-V2-Small-hf"

    # ── Cadence ───────────────────────────────────────────────────────────────
    hand_frame_interval_s: float = 1.0 / 30.0
    session_frame_interval_s: float = 1.0 / 30.0
    multi_frame_interval_s: float = 0.066
    monocular_frame_interval_s: float = 0.5

    # ── Hands ─────────────────────────────────────────────────────────────────
    max_hands: int = 2
    hand_padding: float = 0.05
    hand_min_confidence: float = 0.5
    hand_fallback_depth: Optional[float] = None

    # ── Faces / objects ───────────────────────────────────────────────────────
    max_faces: int = 2
    face_padding: float = 0.05
    face_depth_k: float = 150.0
    face_depth_range: Tuple[float, float] = (0.3, 3.0)
    object_padding: float = 0.02
    object_depth_bands: List[Tuple[float, float]] = field(
        default_factory=lambda: [(0.30, 0.5), (0.10, 1.0), (0.05, 1.5)]
    )
    object_far_depth: float = 2.5
    object_conf: float = 0.4

    # ── Depth session ─────────────────────────────────────────────────────────
    session_grid_size: int = 10
    session_near_m: float = 0.1
    session_far_m: float = 2.0
    merge_distance: float = 0.15
    session_confidence: float = 0.8

    # ── Monocular ─────────────────────────────────────────────────────────────
    depth_input_size: int = 252
    monocular_grid_size: int = 8
    monocular_sample_stride: int = 4
    monocular_range_m: float = 5.0
    monocular_near_m: float = 2.0

    # ── Capability probing ────────────────────────────────────────────────────
    device_signature: Optional[str] = None

    # ── Methods ───────────────────────────────────────────────────────────────

    def resolve_device(self) -> str:
        """Return the concrete device string (``'cuda'``, ``'mps'`` or ``'cpu'``)."""
        if self.device == "auto":
            try:
                import torch
            except ImportError:
                return "cpu"
            if torch.cuda.is_available():
                return "cuda"
            if torch.backends.mps.is_available():
                return "mps"
            return "cpu"
        return self.device

    def resolve_asset_cache_dir(self) -> Path:
        """Return the asset cache directory, creating it if needed."""
        p = (
            Path(self.asset_cache_dir)
            if self.asset_cache_dir
            else Path.home() / ".cache" / "obstacle_sensing"
        )
        p.mkdir(parents=True, exist_ok=True)
        return p

    def frame_interval(self, mode: SensingMode) -> float:
        """Delay (seconds) between processing cycles for *mode*."""
        return {
            SensingMode.HANDS: self.hand_frame_interval_s,
            SensingMode.DEPTH_SESSION: self.session_frame_interval_s,
            SensingMode.MULTI_MODEL: self.multi_frame_interval_s,
            SensingMode.MONOCULAR: self.monocular_frame_interval_s,
        }.get(SensingMode(mode), 0.0)
