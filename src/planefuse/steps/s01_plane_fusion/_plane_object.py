"""Planar objects: PCA plane fit with orientation voting, plus constituent segments.

A ``PlanarObject`` is built from a point set and the list of small plane
segments that were grouped to form it. The plane normal is the eigenvector
of the smallest covariance eigenvalue; its sign is chosen by a majority
vote of the segment normals. Two representations of the plane are kept:

- ``equation``: unit normal, canonical sign (d > 0). Used to compare planes.
- ``normal``: unit normal, oriented towards the observed face. Used to tell
  apart the two faces of a thin slab and to build the hull.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence

import numpy as np

from planefuse.core.errors import PlaneGeometryError
from planefuse.utils.geometry import canonical_sign, normalize_and_unify
from planefuse.utils.hull import ConcaveHull, build_hull

from ._transform import DEFAULT_QUATERNION_TOLERANCE, RigidTransform, TransformLike, apply_transform

logger = logging.getLogger(__name__)

MIN_PLANE_POINTS = 3
# Middle eigenvalue below this fraction of the largest means collinear points
_COLLINEAR_RATIO = 1e-10

HullBuilder = Callable[[np.ndarray, np.ndarray], ConcaveHull]


class ObjectType(str, Enum):
    PLANE = "plane"


@dataclass
class PlaneSegment:
    """One small planar detection that contributes to a larger object."""

    id: int
    normal: np.ndarray
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    curvature: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.normal = np.asarray(self.normal, dtype=float).reshape(3)
        norm = np.linalg.norm(self.normal)
        if not np.isfinite(norm) or norm < 1e-12:
            raise PlaneGeometryError(f"Segment {self.id} has no usable normal: {self.normal.tolist()}")
        self.normal = self.normal / norm
        self.points = np.asarray(self.points, dtype=float).reshape(-1, 3)

    def transform(self, transform: RigidTransform) -> None:
        self.points = transform.apply_points(self.points)
        self.normal = transform.apply_direction(self.normal)

    def copy(self) -> PlaneSegment:
        return PlaneSegment(
            id=self.id,
            normal=self.normal.copy(),
            points=self.points.copy(),
            curvature=self.curvature,
            metadata=dict(self.metadata),
        )


@dataclass
class PlaneFit:
    """Result of fitting a plane to a point set."""

    equation: np.ndarray
    normal: np.ndarray
    principal_components: np.ndarray
    principal_lengths: np.ndarray
    shorter_extent: float
    curvature: float
    consistent_orientation: bool


def fit_plane(points: np.ndarray, segments: Sequence[PlaneSegment] = ()) -> PlaneFit:
    """Fit a plane by PCA and orient it by majority vote of segment normals.

    Raises:
        PlaneGeometryError: fewer than ``MIN_PLANE_POINTS`` points, non-finite
            coordinates, or coincident / collinear points.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(pts) < MIN_PLANE_POINTS:
        raise PlaneGeometryError(f"Need at least {MIN_PLANE_POINTS} points to fit a plane, got {len(pts)}")
    if not np.all(np.isfinite(pts)):
        raise PlaneGeometryError("Point set contains non-finite coordinates")

    mean = pts.mean(axis=0)
    centered = pts - mean
    cov = centered.T @ centered / len(pts)
    # eigh: ascending eigenvalues, orthonormal eigenvectors in columns
    evals, evecs = np.linalg.eigh(cov)
    evals = np.clip(evals, 0.0, None)

    if evals[2] <= 0.0:
        raise PlaneGeometryError(f"All {len(pts)} points coincide")
    if evals[1] <= _COLLINEAR_RATIO * evals[2]:
        raise PlaneGeometryError(f"Points are collinear (eigenvalues={evals.tolist()})")

    normal_dir = evecs[:, 0]
    raw_eq = np.append(normal_dir, -normal_dir @ mean)
    # Fix the eigen-solver sign ambiguity before voting
    raw_eq *= canonical_sign(raw_eq)

    agree = 0
    disagree = 0
    for seg in segments:
        if seg.normal @ raw_eq[:3] < 0:
            disagree += 1
        else:
            agree += 1

    consistent = not (agree and disagree)
    if not consistent:
        logger.warning(
            f"Segment normals disagree on plane orientation: {agree} agree, {disagree} disagree"
        )
        for seg in segments:
            logger.debug(f"  segment {seg.id} normal = {np.round(seg.normal, 4).tolist()}")

    oriented = -raw_eq if disagree > agree else raw_eq

    principal = np.array([evecs[:, 2], evecs[:, 1], oriented[:3]])
    lengths = evals[::-1].copy()

    return PlaneFit(
        equation=normalize_and_unify(oriented),
        normal=oriented,
        principal_components=principal,
        principal_lengths=lengths,
        # side of a uniformly sampled rectangle with variance lambda is sqrt(12 lambda)
        shorter_extent=float(np.sqrt(12.0 * evals[1])),
        curvature=float(evals[0] / evals.sum()),
        consistent_orientation=consistent,
    )


class PlanarObject:
    """Planar surface observed as a point set plus its constituent segments."""

    def __init__(
        self,
        obj_id: int,
        points: np.ndarray,
        segments: Sequence[PlaneSegment],
        colors: np.ndarray | None = None,
        obj_type: ObjectType = ObjectType.PLANE,
        hull_builder: HullBuilder | None = None,
    ):
        self.id = obj_id
        self.type = obj_type
        self.points = np.asarray(points, dtype=float).reshape(-1, 3)
        self.segments: list[PlaneSegment] = list(segments)
        if colors is not None:
            colors = np.asarray(colors, dtype=float).reshape(-1, 3)
            if len(colors) != len(self.points):
                raise PlaneGeometryError(
                    f"Object {obj_id}: {len(colors)} colors for {len(self.points)} points"
                )
        self.colors = colors
        self.hull_builder: HullBuilder = hull_builder or build_hull

        fit = fit_plane(self.points, self.segments)
        self.equation = fit.equation
        self.normal = fit.normal
        self.principal_components = fit.principal_components
        self.principal_lengths = fit.principal_lengths
        self.shorter_extent = fit.shorter_extent
        self.curvature = fit.curvature
        self.consistent_orientation = fit.consistent_orientation

        self.hull: ConcaveHull = self.hull_builder(self.points, self.normal[:3])

    @property
    def num_points(self) -> int:
        return len(self.points)

    def rebuild_hull(self) -> None:
        self.hull = self.hull_builder(self.points, self.normal[:3])

    def transform(
        self,
        transform: TransformLike,
        tolerance: float = DEFAULT_QUATERNION_TOLERANCE,
    ) -> None:
        """Apply a rigid transform in place (see ``apply_transform``)."""
        apply_transform(self, transform, tolerance=tolerance)

    def __repr__(self) -> str:
        return (
            f"PlanarObject(id={self.id}, points={self.num_points}, "
            f"segments={len(self.segments)}, equation={np.round(self.equation, 4).tolist()})"
        )
