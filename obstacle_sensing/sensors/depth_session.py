"""
obstacle_sensing.sensors.depth_session
--------------------------------------
Obstacles from a platform depth session (AR runtime / stereo depth camera).

Session negotiation
-------------------
A session with baseline AR features *plus* ``depth-sensing`` is requested
first.  When the runtime rejects it, a basic session without depth is
requested instead; that session is valid but never produces zones.

Per frame
---------
The newest depth buffer is sampled at the centre pixel of every cell of a
regular grid.  Cells with ``near < d < far`` become provisional ``object``
zones, and provisional zones whose centres lie close together are merged.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from ..config import SensingConfig
from ..errors import InitializationFailed, SessionError
from ..sessions import (
    BASIC_FEATURES,
    RICH_FEATURES,
    DepthSession,
    DepthSessionProvider,
    create_session_provider,
)
from ..types import DepthFrame, ObstacleZone, SensingMode, ZoneType
from . import FrameResult, SensorBackend

_logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Grid reduction
# ─────────────────────────────────────────────────────────────────────────────

def reduce_depth_grid(
    depth: DepthFrame,
    grid_size: int = 10,
    near_m: float = 0.1,
    far_m: float = 2.0,
    confidence: float = 0.8,
) -> List[ObstacleZone]:
    """Sample one pixel per grid cell and return a zone per occupied cell.

    The sample for cell (gx, gy) is pixel
    ``(floor((gx + 0.5) * W / n), floor((gy + 0.5) * H / n))``.
    """
    if depth.format == "uint8":
        raise ValueError("grid reduction needs metric depth (float32 or uint16)")

    if depth.format == "float32":
        # compare in buffer precision so a stored 0.1 stays on the excluded bound
        near_m, far_m = float(np.float32(near_m)), float(np.float32(far_m))

    cell_w = depth.width / grid_size
    cell_h = depth.height / grid_size
    zones: List[ObstacleZone] = []
    for gy in range(grid_size):
        v = min(int(math.floor((gy + 0.5) * cell_h)), depth.height - 1)
        for gx in range(grid_size):
            u = min(int(math.floor((gx + 0.5) * cell_w)), depth.width - 1)
            d = depth.sample(u, v)
            if not (near_m < d < far_m):
                continue
            zone = ObstacleZone.from_bounds(
                f"depth-{gx}-{gy}",
                gx / grid_size, gy / grid_size,
                (gx + 1) / grid_size, (gy + 1) / grid_size,
                type=ZoneType.OBJECT,
                depth=d,
                confidence=confidence,
            )
            if zone is not None:
                zones.append(zone)
    return zones


def _merge_group(zone_id: str, group: Sequence[ObstacleZone]) -> ObstacleZone:
    depths = [z.depth for z in group if z.depth is not None]
    confidences = [z.confidence for z in group if z.confidence is not None]
    x1 = min(z.x for z in group)
    y1 = min(z.y for z in group)
    x2 = max(z.x + z.width for z in group)
    y2 = max(z.y + z.height for z in group)
    return ObstacleZone.from_bounds(
        zone_id, x1, y1, x2, y2,
        type=group[0].type,
        depth=sum(depths) / len(depths) if depths else None,
        label=group[0].label,
        confidence=sum(confidences) / len(confidences) if confidences else None,
    )


def merge_nearby_zones(zones: Sequence[ObstacleZone], threshold: float = 0.15) -> List[ObstacleZone]:
    """Merge zones whose centres are closer than *threshold*.

    Closeness is transitive (a chain of neighbouring cells becomes one zone).
    A merged group is replaced by its union box with the mean depth.  Passes
    repeat until no two centres are within *threshold*, so the result is a
    fixed point: merging it again returns it unchanged.  Unmerged zones keep
    their ids.
    """
    current = list(zones)
    while True:
        n = len(current)
        parent = list(range(n))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        merged_any = False
        for i in range(n):
            ci = current[i].center
            for j in range(i + 1, n):
                cj = current[j].center
                if math.hypot(ci[0] - cj[0], ci[1] - cj[1]) < threshold:
                    ri, rj = find(i), find(j)
                    if ri != rj:
                        parent[rj] = ri
                        merged_any = True
        if not merged_any:
            return current

        groups = {}
        for i in range(n):
            groups.setdefault(find(i), []).append(current[i])

        result: List[ObstacleZone] = []
        for group in groups.values():
            if len(group) == 1:
                result.append(group[0])
            else:
                result.append(_merge_group(f"merged-{len(result)}", group))
        current = result


# ─────────────────────────────────────────────────────────────────────────────
# Backend
# ─────────────────────────────────────────────────────────────────────────────

class DepthSessionSensor(SensorBackend):
    """
    Parameters
    ----------
    config : shared configuration.
    provider : session provider; defaults to the OAK-D provider.
    """

    mode = SensingMode.DEPTH_SESSION
    reads_video = False

    def __init__(
        self,
        config: Optional[SensingConfig] = None,
        provider: Optional[DepthSessionProvider] = None,
    ) -> None:
        super().__init__(config)
        self._provider = provider
        self._session: Optional[DepthSession] = None

    @property
    def depth_enabled(self) -> bool:
        return self._session is not None and self._session.depth_enabled

    def _load(self) -> None:
        if self._provider is None:
            self._provider = create_session_provider("oak")

        supported, reason = self._provider.is_supported()
        if not supported:
            raise InitializationFailed(f"depth session unavailable: {reason}", mode=self.mode.value)

        try:
            self._session = self._provider.request_session(RICH_FEATURES)
        except SessionError as rich_error:
            _logger.warning("Depth-sensing session rejected (%s); retrying without depth", rich_error)
            try:
                self._session = self._provider.request_session(BASIC_FEATURES)
            except SessionError as e:
                raise InitializationFailed(
                    f"depth session rejected: {e}", mode=self.mode.value
                ) from e

        if not self._session.depth_enabled:
            _logger.warning("Depth session running without depth-sensing; no zones will be produced")

    async def _process(self, frame) -> Optional[FrameResult]:
        if not self._session.depth_enabled:
            return [], None

        depth = await self._run_blocking(self._session.poll_depth)
        if depth is None:
            return None

        cfg = self.config
        zones = reduce_depth_grid(
            depth,
            grid_size=cfg.session_grid_size,
            near_m=cfg.session_near_m,
            far_m=cfg.session_far_m,
            confidence=cfg.session_confidence,
        )
        return merge_nearby_zones(zones, cfg.merge_distance), depth

    def _release(self) -> None:
        if self._session is not None:
            self._session.end()
            self._session = None
