"""Rigid transforms (translation + unit quaternion) and their action on planar objects.

Transform vectors follow the (tx, ty, tz, qx, qy, qz, qw) layout; the
identity is (0, 0, 0, 0, 0, 0, 1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence, Union

import numpy as np

from planefuse.core.contracts import RigidPose
from planefuse.core.errors import TransformError
from planefuse.utils.geometry import (
    make_transform_matrix,
    normalize_and_unify,
    normalize_plane,
    plane_transform_matrix,
    qvec2rotmat,
    split_transform_vector,
)

if TYPE_CHECKING:
    from ._plane_object import PlanarObject

logger = logging.getLogger(__name__)

DEFAULT_QUATERNION_TOLERANCE = 1e-6


@dataclass(frozen=True)
class RigidTransform:
    """Validated rigid transform. Build through ``from_vector`` / ``from_pose``."""

    translation: np.ndarray
    qvec: np.ndarray  # (w, x, y, z), unit length

    @classmethod
    def identity(cls) -> RigidTransform:
        return cls(translation=np.zeros(3), qvec=np.array([1.0, 0.0, 0.0, 0.0]))

    @classmethod
    def from_vector(
        cls,
        vector: Sequence[float] | np.ndarray,
        tolerance: float = DEFAULT_QUATERNION_TOLERANCE,
    ) -> RigidTransform:
        """Validate a 7-vector and build the transform.

        Raises:
            TransformError: wrong arity, non-finite values, or a quaternion
                whose norm differs from 1 by more than ``tolerance``. A
                quaternion within tolerance is renormalised.
        """
        vec = np.asarray(vector, dtype=float).reshape(-1)
        if vec.shape[0] != 7:
            raise TransformError(f"Rigid transform needs 7 values, got {vec.shape[0]}")
        if not np.all(np.isfinite(vec)):
            raise TransformError(f"Rigid transform has non-finite values: {vec.tolist()}")

        translation, qvec = split_transform_vector(vec)
        q_norm = np.linalg.norm(qvec)
        if abs(q_norm - 1.0) > tolerance:
            raise TransformError(
                f"Quaternion {vec[3:].tolist()} is not unit length (norm={q_norm:.6g})"
            )
        return cls(translation=translation, qvec=qvec / q_norm)

    @classmethod
    def from_pose(
        cls,
        pose: RigidPose,
        tolerance: float = DEFAULT_QUATERNION_TOLERANCE,
    ) -> RigidTransform:
        return cls.from_vector(pose.as_vector(), tolerance=tolerance)

    @property
    def rotation(self) -> np.ndarray:
        return qvec2rotmat(self.qvec)

    @property
    def matrix(self) -> np.ndarray:
        """4x4 homogeneous point transform."""
        return make_transform_matrix(self.qvec, self.translation)

    @property
    def plane_matrix(self) -> np.ndarray:
        """4x4 transform for plane coefficients (inverse-transpose of ``matrix``)."""
        return plane_transform_matrix(self.matrix)

    def as_vector(self) -> np.ndarray:
        w, x, y, z = self.qvec
        return np.concatenate([self.translation, [x, y, z, w]])

    def apply_points(self, points: np.ndarray) -> np.ndarray:
        """Rotate then translate (N, 3) points."""
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        return pts @ self.rotation.T + self.translation

    def apply_direction(self, direction: np.ndarray) -> np.ndarray:
        return self.rotation @ np.asarray(direction, dtype=float)

    def apply_plane(self, plane_eq: np.ndarray) -> np.ndarray:
        """Transform a plane equation; unit normal, orientation preserved."""
        return normalize_plane(self.plane_matrix @ np.asarray(plane_eq, dtype=float))


TransformLike = Union[RigidTransform, RigidPose, Sequence[float], np.ndarray]


def coerce_transform(
    transform: TransformLike,
    tolerance: float = DEFAULT_QUATERNION_TOLERANCE,
) -> RigidTransform:
    """Accept a ``RigidTransform``, a ``RigidPose`` or a raw 7-vector."""
    if isinstance(transform, RigidTransform):
        return transform
    if isinstance(transform, RigidPose):
        return RigidTransform.from_pose(transform, tolerance=tolerance)
    return RigidTransform.from_vector(transform, tolerance=tolerance)


def apply_transform(
    obj: PlanarObject,
    transform: TransformLike,
    tolerance: float = DEFAULT_QUATERNION_TOLERANCE,
) -> None:
    """Apply a rigid transform to a planar object in place.

    Points and segments move with the full transform, the equation and
    oriented normal with its inverse-transpose, principal directions with the
    rotation only. Shorter extent and curvature are invariant. The hull is
    rebuilt from scratch.

    Everything, the new hull included, is computed before the object is
    touched, so a failing transform or hull builder leaves it unchanged.
    """
    T = coerce_transform(transform, tolerance=tolerance)
    R = T.rotation
    plane_mat = T.plane_matrix

    points = T.apply_points(obj.points)
    moved_segments = [seg.copy() for seg in obj.segments]
    for seg in moved_segments:
        seg.transform(T)
    equation = normalize_and_unify(plane_mat @ obj.equation)
    normal = normalize_plane(plane_mat @ obj.normal)
    # rows are directions
    principal_components = obj.principal_components @ R.T
    hull = obj.hull_builder(points, normal[:3])

    obj.points = points
    for seg, moved in zip(obj.segments, moved_segments):
        seg.points = moved.points
        seg.normal = moved.normal
    obj.equation = equation
    obj.normal = normal
    obj.principal_components = principal_components
    obj.hull = hull
    logger.debug(f"Transformed object {obj.id}: equation={np.round(obj.equation, 4).tolist()}")
