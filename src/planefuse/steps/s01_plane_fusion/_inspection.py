"""Scene recorder: an inspection observer that keeps labelled renderables.

It mirrors what an interactive viewer would show at each inspection point
(the pair under comparison with its hull polygons, the merged result) but
only stores arrays; ``snapshot`` renders the current scene with matplotlib.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from planefuse.utils.visualization import plot_renderables

from ._events import GroupFormed, InspectionEvent, MergePerformed, PairCompared
from ._plane_object import PlanarObject

logger = logging.getLogger(__name__)


class SceneRecorder:
    """Inspection observer and visualization sink.

    Point clouds and polygons are keyed by string labels; adding with an
    existing label replaces it.
    """

    def __init__(self, keep_events: bool = True):
        self.clouds: dict[str, np.ndarray] = {}
        self.polygons: dict[str, np.ndarray] = {}
        self.keep_events = keep_events
        self.events: list[dict] = []

    # ── sink API ────────────────────────────────────────────────────

    def add_point_cloud(self, label: str, points: np.ndarray) -> None:
        self.clouds[label] = np.array(points, dtype=float).reshape(-1, 3)

    def add_polygon(self, label: str, vertices: np.ndarray) -> None:
        self.polygons[label] = np.array(vertices, dtype=float).reshape(-1, 3)

    def remove(self, prefix: str) -> None:
        """Remove every renderable whose label starts with ``prefix``."""
        for store in (self.clouds, self.polygons):
            for label in [k for k in store if k.startswith(prefix)]:
                del store[label]

    def clear(self) -> None:
        self.clouds.clear()
        self.polygons.clear()

    def snapshot(self, save_path: Path, title: str = "Inspection"):
        return plot_renderables(self.clouds, self.polygons, title=title, save_path=save_path)

    # ── observer API ────────────────────────────────────────────────

    def _show_object(self, prefix: str, obj: PlanarObject) -> None:
        self.add_point_cloud(f"plane_{prefix}", obj.points)
        for poly, ring in enumerate(obj.hull.polygons_3d):
            self.add_polygon(f"polygon_{prefix}_{poly}", ring)

    def __call__(self, event: InspectionEvent) -> None:
        if isinstance(event, PairCompared):
            self.remove("plane_")
            self.remove("polygon_")
            self._show_object("cur", event.first)
            self._show_object("comp", event.second)
            record = {
                "event": "pair_compared",
                "first": list(event.first_key),
                "second": list(event.second_key),
                "eq_diff": event.result.eq_diff,
                "normal_dot": event.result.normal_dot,
                "intersection_score": event.result.intersection_score,
                "matched": event.result.matched,
            }
        elif isinstance(event, GroupFormed):
            record = {
                "event": "group_formed",
                "group": event.group_index,
                "members": [list(k) for k in event.members],
            }
        elif isinstance(event, MergePerformed):
            self.clear()
            for o, obj in enumerate(event.sources):
                self.add_point_cloud(f"plane_o_{o}", obj.points)
            self.add_point_cloud("plane_merged", event.merged.points)
            record = {
                "event": "merge_performed",
                "members": [list(k) for k in event.members],
                "num_points": event.merged.num_points,
                "equation": event.merged.equation.tolist(),
            }
        else:
            logger.warning(f"Unknown inspection event {type(event).__name__}")
            return

        if self.keep_events:
            self.events.append(record)

    def counts(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for record in self.events:
            out[record["event"]] = out.get(record["event"], 0) + 1
        return out
