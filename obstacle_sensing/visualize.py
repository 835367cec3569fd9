"""
obstacle_sensing.visualize
--------------------------
Debug drawing for the sensing output.

Functions
---------
depth_viz          : colourised depth map (metric or normalized).
draw_obstacle_zones: zone boxes with type / label, depth and confidence.
make_debug_frame   : camera frame with zones, optionally beside the depth view.

All image functions accept and return BGR uint8 images (OpenCV convention).
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .types import DepthFrame, ObstacleZone, ZoneType


_FONT = cv2.FONT_HERSHEY_SIMPLEX

_ZONE_COLORS: Dict[ZoneType, Tuple[int, int, int]] = {
    ZoneType.HAND:   (  0, 200,  50),   # green
    ZoneType.PERSON: (255, 100,   0),   # blue-ish
    ZoneType.OBJECT: ( 20, 130, 245),   # orange
}


def _ensure_bgr(image: np.ndarray) -> np.ndarray:
    """Convert greyscale to 3-channel BGR if needed."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return image.copy()


def _label_bg(
    img: np.ndarray,
    x: int,
    y: int,
    text: str,
    font_scale: float = 0.5,
    fg: Tuple[int, int, int] = (255, 255, 255),
    bg: Tuple[int, int, int] = (30, 30, 30),
) -> None:
    """Draw text with a filled background rectangle, baseline at y."""
    (tw, th), bl = cv2.getTextSize(text, _FONT, font_scale, 1)
    pad = 3
    cv2.rectangle(img, (x - pad, y - th - pad), (x + tw + pad, y + bl), bg, -1)
    cv2.putText(img, text, (x, y), _FONT, font_scale, fg, 1, cv2.LINE_AA)


def depth_viz(
    depth: Union[DepthFrame, np.ndarray],
    colormap: int = cv2.COLORMAP_INFERNO,
    vmin: Optional[float] = None,
    vmax: Optional[float] = None,
) -> np.ndarray:
    """Convert a depth map to a colour image (near = bright).

    ``uint8`` DepthFrames are already normalized inverse depth and are
    colourised directly.  Metric maps are clipped to the 2nd–98th percentile
    of valid pixels unless vmin/vmax are given, then inverted so that near
    surfaces are bright in both cases.

    Returns
    -------
    (H, W, 3) uint8 BGR colour image.
    """
    if isinstance(depth, DepthFrame):
        if depth.format == "uint8":
            return cv2.applyColorMap(depth.to_array().astype(np.uint8), colormap)
        depth = depth.to_meters()

    d = np.asarray(depth, dtype=np.float32)
    valid = (d > 0) & np.isfinite(d)
    if valid.any():
        lo = float(vmin) if vmin is not None else float(np.percentile(d[valid], 2))
        hi = float(vmax) if vmax is not None else float(np.percentile(d[valid], 98))
    else:
        lo, hi = 0.0, 1.0
    if hi <= lo:
        hi = lo + 1.0
    d_norm = 1.0 - np.clip((d - lo) / (hi - lo), 0.0, 1.0)
    d_norm[~valid] = 0.0
    return cv2.applyColorMap((d_norm * 255).astype(np.uint8), colormap)


def draw_obstacle_zones(
    frame: np.ndarray,
    zones: Sequence[ObstacleZone],
    thickness: int = 2,
) -> np.ndarray:
    """Draw every zone onto a copy of *frame*.

    The caption reads ``#idx LABEL  d=1.23m  87%``; depth and confidence are
    left out when the zone has none.
    """
    out = _ensure_bgr(frame)
    h, w = out.shape[:2]
    for idx, zone in enumerate(zones):
        color = _ZONE_COLORS.get(zone.type, (200, 200, 200))
        x1, y1 = int(round(zone.x * w)), int(round(zone.y * h))
        x2 = int(round((zone.x + zone.width) * w))
        y2 = int(round((zone.y + zone.height) * h))
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness)

        parts = [f"#{idx + 1} {zone.label.upper()}"]
        if zone.depth is not None:
            parts.append(f"d={zone.depth:.2f}m")
        if zone.confidence is not None:
            parts.append(f"{zone.confidence * 100:.0f}%")
        _label_bg(out, x1 + 4, max(y1 - 6, 14), "  ".join(parts), bg=color)
    return out


def make_debug_frame(
    frame: np.ndarray,
    zones: Sequence[ObstacleZone],
    depth: Optional[Union[DepthFrame, np.ndarray]] = None,
    pad: int = 4,
) -> np.ndarray:
    """Zones drawn on *frame*, with the depth view alongside when given."""
    annotated = draw_obstacle_zones(frame, zones)
    _label_bg(annotated, 8, 20, f"{len(zones)} obstacle(s)")
    if depth is None:
        return annotated

    h, w = annotated.shape[:2]
    depth_img = cv2.resize(depth_viz(depth), (w, h), interpolation=cv2.INTER_NEAREST)
    spacer = np.full((h, pad, 3), 128, dtype=np.uint8)
    return np.concatenate([annotated, spacer, depth_img], axis=1)
