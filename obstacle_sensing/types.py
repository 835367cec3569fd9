"""
obstacle_sensing.types
----------------------
Value types shared by every sensing backend and by the consumer.

ObstacleZone
    A normalized screen-space rectangle (top-left origin, all values in
    [0, 1]) plus an optional metric depth.  Produced fresh every frame;
    ``id`` is only unique within one callback batch.

DepthFrame
    A raw per-pixel depth payload produced by the depth-session and
    monocular paths.  Consumed within one processing cycle.

SensingMode
    The four backend strategies plus ``none``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np


# Small tolerance for floating-point drift at the image borders.
BOUNDS_EPS = 1e-6


class SensingMode(str, Enum):
    HANDS = "hands"
    DEPTH_SESSION = "depth_session"
    MULTI_MODEL = "multi_model"
    MONOCULAR = "monocular"
    NONE = "none"


class ZoneType(str, Enum):
    HAND = "hand"
    PERSON = "person"
    OBJECT = "object"


# ─────────────────────────────────────────────────────────────────────────────
# ObstacleZone
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ObstacleZone:
    """One detected obstacle in normalized screen space.

    Attributes
    ----------
    id         : unique within one frame batch only.
    x, y       : top-left corner, in [0, 1].
    width, height : > 0, with ``x + width <= 1`` and ``y + height <= 1``.
    depth      : estimated distance from the camera in metres, or ``None``
                 when the backend could not estimate it.
    type       : coarse class (``hand`` / ``person`` / ``object``).
    label      : fine-grained class name when the model provides one,
                 otherwise the type name.
    confidence : source-model score in [0, 1], if any.
    """

    id: str
    x: float
    y: float
    width: float
    height: float
    type: ZoneType = ZoneType.OBJECT
    depth: Optional[float] = None
    label: Optional[str] = None
    confidence: Optional[float] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"zone {self.id!r} has non-positive size "
                             f"({self.width}, {self.height})")
        if self.x < -BOUNDS_EPS or self.y < -BOUNDS_EPS:
            raise ValueError(f"zone {self.id!r} has negative origin ({self.x}, {self.y})")
        if self.x + self.width > 1.0 + BOUNDS_EPS or self.y + self.height > 1.0 + BOUNDS_EPS:
            raise ValueError(f"zone {self.id!r} extends past the frame border")
        if self.depth is not None and not (self.depth > 0 and math.isfinite(self.depth)):
            raise ValueError(f"zone {self.id!r} has invalid depth {self.depth}")
        if not isinstance(self.type, ZoneType):
            object.__setattr__(self, "type", ZoneType(self.type))
        if not self.label:
            object.__setattr__(self, "label", self.type.value)

    @classmethod
    def from_bounds(
        cls,
        zone_id: str,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        padding: float = 0.0,
        **kwargs,
    ) -> Optional["ObstacleZone"]:
        """Build a zone from normalized corner coordinates.

        The box is grown by *padding* on every side and then clipped to the
        unit square.  Returns ``None`` when nothing of the box remains inside
        the frame.
        """
        left = min(max(x1 - padding, 0.0), 1.0)
        top = min(max(y1 - padding, 0.0), 1.0)
        right = min(max(x2 + padding, 0.0), 1.0)
        bottom = min(max(y2 + padding, 0.0), 1.0)
        if right - left <= 0.0 or bottom - top <= 0.0:
            return None
        return cls(
            id=zone_id,
            x=left,
            y=top,
            width=right - left,
            height=bottom - top,
            **kwargs,
        )

    @property
    def center(self) -> tuple:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def contains(self, u: float, v: float, padding: float = 0.0) -> bool:
        """True if normalized point (u, v) lies inside the padded rectangle."""
        return (
            self.x - padding <= u <= self.x + self.width + padding
            and self.y - padding <= v <= self.y + self.height + padding
        )


# ─────────────────────────────────────────────────────────────────────────────
# DepthFrame
# ─────────────────────────────────────────────────────────────────────────────

DEPTH_FORMATS = ("float32", "uint16", "uint8")


@dataclass
class DepthFrame:
    """Raw per-pixel depth payload.

    Attributes
    ----------
    width, height : buffer dimensions in pixels.
    data          : 1-D linear buffer of ``width * height`` samples, row-major.
    format        : ``'float32'`` (metres), ``'uint16'`` (raw integer units,
                    multiply by ``raw_value_to_meters``) or ``'uint8'``
                    (normalized inverse depth, 255 = nearest).
    raw_value_to_meters : scale for ``'uint16'`` buffers (mm → m by default).
    """

    width: int
    height: int
    data: np.ndarray
    format: str = "float32"
    raw_value_to_meters: float = 0.001

    def __post_init__(self) -> None:
        if self.format not in DEPTH_FORMATS:
            raise ValueError(f"Unknown depth format '{self.format}'. Choose from {DEPTH_FORMATS}")
        self.data = np.asarray(self.data).reshape(-1)
        if self.data.size != self.width * self.height:
            raise ValueError(
                f"depth buffer has {self.data.size} samples, expected "
                f"{self.width}x{self.height}={self.width * self.height}"
            )

    @classmethod
    def from_array(cls, depth: np.ndarray, format: str = "float32", **kwargs) -> "DepthFrame":
        """Wrap an (H, W) array."""
        h, w = depth.shape[:2]
        return cls(width=w, height=h, data=np.ascontiguousarray(depth).reshape(-1),
                   format=format, **kwargs)

    def to_array(self) -> np.ndarray:
        """Return the (H, W) view of the buffer."""
        return self.data.reshape(self.height, self.width)

    def sample(self, u: int, v: int) -> float:
        """Depth at pixel (u, v): metres for float32/uint16, raw 0..255 for uint8."""
        value = float(self.data[v * self.width + u])
        if self.format == "uint16":
            return value * self.raw_value_to_meters
        return value

    def to_meters(self) -> np.ndarray:
        """Return an (H, W) float32 map in metres (float32 / uint16 only)."""
        if self.format == "uint8":
            raise ValueError("uint8 depth frames hold relative depth, not metres")
        arr = self.to_array().astype(np.float32)
        if self.format == "uint16":
            arr *= self.raw_value_to_meters
        return arr
