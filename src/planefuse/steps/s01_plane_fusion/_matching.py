"""Pairwise plane matching: equation similarity, observed face, hull overlap."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from shapely.geometry import MultiPoint

from planefuse.utils.geometry import normalize_and_unify, plane_basis, plane_eq_diff_log_map, to_plane_coords

from ._plane_object import PlanarObject
from ._transform import TransformLike, coerce_transform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchResult:
    eq_diff: float
    normal_dot: float
    intersection_score: float
    matched: bool


def convex_hull_intersection_score(
    vertices1: np.ndarray,
    normal1: np.ndarray,
    vertices2: np.ndarray,
    normal2: np.ndarray,
) -> float:
    """Bidirectional overlap ratio of two planar outlines.

    Both vertex sets are projected into one 2D frame whose normal bisects the
    two plane normals, so the score does not depend on argument order.
    Returns max(A_int / A_1, A_int / A_2), 0 for degenerate outlines.
    """
    bisector = np.asarray(normal1, dtype=float)[:3] + np.asarray(normal2, dtype=float)[:3]
    if np.linalg.norm(bisector) < 1e-9:
        return 0.0
    u, v = plane_basis(bisector)
    origin = np.zeros(3)

    hull1 = MultiPoint(to_plane_coords(vertices1, origin, u, v)).convex_hull if len(vertices1) else None
    hull2 = MultiPoint(to_plane_coords(vertices2, origin, u, v)).convex_hull if len(vertices2) else None
    if hull1 is None or hull2 is None:
        return 0.0
    if hull1.geom_type != "Polygon" or hull2.geom_type != "Polygon":
        return 0.0
    if hull1.area <= 0 or hull2.area <= 0:
        return 0.0

    inter_area = hull1.intersection(hull2).area
    return float(max(inter_area / hull1.area, inter_area / hull2.area))


class PlaneMatcher:
    """Decides whether two planar objects observe the same physical surface.

    Gates, cheapest first:
      1. equation difference (log map) strictly below ``eq_diff_threshold``
      2. oriented normals on the same side (dot > ``normal_dot_threshold``)
      3. convex hull overlap ratio strictly above ``intersection_threshold``
    """

    def __init__(
        self,
        eq_diff_threshold: float = 0.01,
        normal_dot_threshold: float = 0.0,
        intersection_threshold: float = 0.3,
    ):
        self.eq_diff_threshold = eq_diff_threshold
        self.normal_dot_threshold = normal_dot_threshold
        self.intersection_threshold = intersection_threshold

    def compare(
        self,
        first: PlanarObject,
        second: PlanarObject,
        transform: TransformLike | None = None,
    ) -> MatchResult:
        """Score ``first`` against ``second``.

        ``transform`` maps ``second`` into the frame of ``first``; it is
        applied to copies of the equation, normal and hull, never to the
        object itself. ``None`` means the objects are already co-registered.
        """
        eq2 = second.equation
        normal2 = second.normal
        vertices2 = second.hull.vertices_3d()
        if transform is not None:
            T = coerce_transform(transform)
            eq2 = normalize_and_unify(T.plane_matrix @ eq2)
            normal2 = T.apply_plane(normal2)
            vertices2 = T.apply_points(vertices2)

        eq_diff = plane_eq_diff_log_map(first.equation, eq2)
        normal_dot = float(first.normal[:3] @ normal2[:3])
        if eq_diff >= self.eq_diff_threshold or normal_dot <= self.normal_dot_threshold:
            return MatchResult(eq_diff, normal_dot, 0.0, False)

        score = convex_hull_intersection_score(
            first.hull.vertices_3d(), first.normal, vertices2, normal2,
        )
        matched = score > self.intersection_threshold
        logger.debug(
            f"Compared {first.id} / {second.id}: diff={eq_diff:.5f}, "
            f"dot={normal_dot:.3f}, overlap={score:.3f}, matched={matched}"
        )
        return MatchResult(eq_diff, normal_dot, score, matched)

    def __call__(
        self,
        first: PlanarObject,
        second: PlanarObject,
        transform: TransformLike | None = None,
    ) -> bool:
        return self.compare(first, second, transform).matched
