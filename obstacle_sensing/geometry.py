"""
obstacle_sensing.geometry
-------------------------
Stateless screen-space helpers used by the rendering layer to test the AR
creature against the current obstacle zones.

Coordinate conventions
----------------------
World / camera space follows the OpenGL convention used by the renderer:
    +X → right,  +Y → up,  −Z → forward (the camera looks down −Z).

Screen space is normalized to [0, 1] with the origin at the *top-left*
corner, matching :class:`~obstacle_sensing.types.ObstacleZone`, so the Y axis
is flipped when leaving normalized device coordinates.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

from .types import ObstacleZone


# Gain applied to the screen-space escape direction on each axis.
AVOIDANCE_GAIN = 6.0
# Width of the uniform jitter added on the depth axis.
AVOIDANCE_DEPTH_JITTER = 1.0


# ─────────────────────────────────────────────────────────────────────────────
# Camera
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class Camera:
    """Projection + view matrices of the rendering camera.

    Attributes
    ----------
    projection_matrix : (4, 4) clip-space projection.
    view_matrix       : (4, 4) world → camera transform (inverse of the
                        camera's world matrix).  Identity = camera at the
                        origin looking down −Z.
    """

    projection_matrix: np.ndarray
    view_matrix: np.ndarray = field(default_factory=lambda: np.eye(4))

    def __post_init__(self) -> None:
        self.projection_matrix = np.asarray(self.projection_matrix, dtype=np.float64)
        self.view_matrix = np.asarray(self.view_matrix, dtype=np.float64)
        if self.projection_matrix.shape != (4, 4) or self.view_matrix.shape != (4, 4):
            raise ValueError("projection_matrix and view_matrix must be 4x4")

    @classmethod
    def perspective(
        cls,
        fov_deg: float = 75.0,
        aspect: float = 1.0,
        near: float = 0.1,
        far: float = 1000.0,
        position: Sequence[float] = (0.0, 0.0, 0.0),
        rotation: Optional[np.ndarray] = None,
    ) -> "Camera":
        """Build a perspective camera.

        Parameters
        ----------
        fov_deg  : vertical field of view in degrees.
        aspect   : width / height.
        near, far: clip planes (> 0).
        position : camera position in world space.
        rotation : optional (3, 3) camera-to-world rotation.
        """
        f = 1.0 / math.tan(math.radians(fov_deg) / 2.0)
        proj = np.array(
            [[f / aspect, 0.0, 0.0, 0.0],
             [0.0, f, 0.0, 0.0],
             [0.0, 0.0, (far + near) / (near - far), 2.0 * far * near / (near - far)],
             [0.0, 0.0, -1.0, 0.0]],
            dtype=np.float64,
        )
        world = np.eye(4)
        if rotation is not None:
            world[:3, :3] = np.asarray(rotation, dtype=np.float64)
        world[:3, 3] = np.asarray(position, dtype=np.float64)
        return cls(projection_matrix=proj, view_matrix=np.linalg.inv(world))

    def project(self, position: Sequence[float]) -> np.ndarray:
        """Return normalized device coordinates (3,) of a world point.

        Points on the camera plane (w = 0) project to NaN.
        """
        p = np.append(np.asarray(position, dtype=np.float64), 1.0)
        clip = self.projection_matrix @ (self.view_matrix @ p)
        w = clip[3]
        if abs(w) < 1e-12:
            return np.full(3, np.nan)
        return clip[:3] / w


# ─────────────────────────────────────────────────────────────────────────────
# Screen-space queries
# ─────────────────────────────────────────────────────────────────────────────

def world_to_screen(position: Sequence[float], camera: Camera) -> Tuple[float, float]:
    """Project a 3-D world point to normalized screen space.

    NDC [-1, 1] is remapped to [0, 1]; Y is flipped so that 0 is the top of
    the frame.

    Returns
    -------
    (x, y) : floats; may fall outside [0, 1] for off-screen points.
    """
    ndc = camera.project(position)
    return float((ndc[0] + 1.0) / 2.0), float((-ndc[1] + 1.0) / 2.0)


def check_collision(
    position: Sequence[float],
    camera: Camera,
    zones: Sequence[ObstacleZone],
    padding: float = 0.05,
) -> Optional[ObstacleZone]:
    """Return the first zone (in list order) containing the projected point.

    Each zone's rectangle is grown by *padding* on all sides before the test.
    """
    if not zones:
        return None
    u, v = world_to_screen(position, camera)
    for zone in zones:
        if zone.contains(u, v, padding=padding):
            return zone
    return None


def calculate_avoidance_vector(
    position: Sequence[float],
    obstacle: ObstacleZone,
    camera: Camera,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Return a target position pushed away from *obstacle*'s screen center.

    The screen-space offset between the projected position and the obstacle
    center is scaled by :data:`AVOIDANCE_GAIN` and added to X/Y.  Z gets a
    uniform perturbation in ``[-0.5, 0.5)`` so repeated avoidance does not
    oscillate deterministically.

    Note that screen Y grows downward while world Y grows upward; the offset
    is applied as-is, which is an approximation the renderer tolerates.
    """
    rng = rng or np.random.default_rng()
    p = np.asarray(position, dtype=np.float64)
    cx, cy = obstacle.center
    sx, sy = world_to_screen(p, camera)
    escape_x = (sx - cx) * AVOIDANCE_GAIN
    escape_y = (sy - cy) * AVOIDANCE_GAIN
    jitter = (rng.random() - 0.5) * AVOIDANCE_DEPTH_JITTER
    return np.array([p[0] + escape_x, p[1] + escape_y, p[2] + jitter], dtype=np.float64)
