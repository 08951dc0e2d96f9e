"""Planar hull builder: concave outline of a point set lying on a plane."""

from __future__ import annotations

import logging

import numpy as np
import shapely
from shapely.geometry import MultiPoint, Polygon

from .geometry import from_plane_coords, plane_basis, to_plane_coords

logger = logging.getLogger(__name__)

# Concave hull on more points than this is slow, a fixed-seed sample is used
_MAX_HULL_POINTS = 10000


def compute_concave_hull(
    points_2d: np.ndarray,
    ratio: float = 0.3,
    min_area_ratio: float = 0.8,
) -> list[Polygon]:
    """Compute the concave hull (as simple polygons) of 2D points.

    Uses ``shapely.concave_hull``. Falls back to the convex hull when the
    concave result is not a polygon or is overly concave.

    Args:
        points_2d: (N, 2) array of 2D points.
        ratio: Concavity ratio passed to shapely (1.0 = convex hull).
        min_area_ratio: Min ratio of concave/convex area to accept
            (prevents over-concavity).

    Returns:
        List of polygons; empty when the points span no area.
    """
    if points_2d is None or len(points_2d) < 3:
        return []

    mp = MultiPoint(np.asarray(points_2d, dtype=float))
    convex = mp.convex_hull
    if convex.geom_type != "Polygon" or convex.is_empty or convex.area <= 0:
        return []

    hull = shapely.concave_hull(mp, ratio=ratio, allow_holes=False)
    if hull.geom_type == "Polygon":
        polygons = [hull]
    elif hull.geom_type == "MultiPolygon":
        polygons = list(hull.geoms)
    else:
        polygons = []

    polygons = [p for p in polygons if p.is_valid and not p.is_empty and p.area > 0]
    if not polygons or sum(p.area for p in polygons) < convex.area * min_area_ratio:
        return [convex]
    return polygons


class ConcaveHull:
    """Polygonal outline of a planar point set, kept both in 2D and 3D.

    The points are projected orthogonally onto the plane through their
    centroid with the given normal; the outline is computed in that plane's
    (u, v) frame and lifted back to 3D.
    """

    def __init__(
        self,
        points: np.ndarray,
        normal: np.ndarray,
        ratio: float = 0.3,
        min_area_ratio: float = 0.8,
    ):
        pts = np.asarray(points, dtype=float)[:, :3]
        n = np.asarray(normal, dtype=float)[:3]
        self.normal = n / np.linalg.norm(n)
        self.origin = pts.mean(axis=0) if len(pts) else np.zeros(3)
        self.u, self.v = plane_basis(self.normal)

        coords_2d = to_plane_coords(pts, self.origin, self.u, self.v)
        if len(coords_2d) > _MAX_HULL_POINTS:
            rng = np.random.default_rng(42)
            idx = rng.choice(len(coords_2d), _MAX_HULL_POINTS, replace=False)
            coords_2d = coords_2d[idx]

        self.polygons_2d: list[Polygon] = compute_concave_hull(coords_2d, ratio, min_area_ratio)
        # Closing vertex dropped, each polygon is a (K, 3) ring
        self.polygons_3d: list[np.ndarray] = [
            from_plane_coords(np.asarray(p.exterior.coords)[:-1], self.origin, self.u, self.v)
            for p in self.polygons_2d
        ]
        self.area = float(sum(p.area for p in self.polygons_2d))
        if not self.polygons_2d:
            logger.debug(f"Empty hull for {len(pts)} points")

    def vertices_3d(self) -> np.ndarray:
        """All polygon vertices stacked into one (M, 3) array."""
        if not self.polygons_3d:
            return np.zeros((0, 3))
        return np.concatenate(self.polygons_3d, axis=0)

    def __len__(self) -> int:
        return len(self.polygons_3d)


def build_hull(
    points: np.ndarray,
    normal: np.ndarray,
    ratio: float = 0.3,
    min_area_ratio: float = 0.8,
) -> ConcaveHull:
    """Default hull builder used by planar objects."""
    return ConcaveHull(points, normal, ratio=ratio, min_area_ratio=min_area_ratio)
