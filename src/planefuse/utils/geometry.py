"""3D geometry utilities: rotations, plane equations, manifold maps, projections.

Quaternions are handled in (w, x, y, z) order inside this module. Rigid
transform vectors coming from the outside use (tx, ty, tz, qx, qy, qz, qw),
see ``split_transform_vector``.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

# Below this |d| a plane is treated as passing through the origin
_ZERO_DISTANCE_EPS = 1e-12
# Below this norm a rotation vector / quaternion vector part is treated as zero
_SMALL_ANGLE_EPS = 1e-12


def qvec2rotmat(qvec: list[float] | np.ndarray) -> np.ndarray:
    """Convert quaternion (w, x, y, z) to 3x3 rotation matrix."""
    w, x, y, z = qvec
    return np.array([
        [1 - 2*y*y - 2*z*z, 2*x*y - 2*w*z, 2*x*z + 2*w*y],
        [2*x*y + 2*w*z, 1 - 2*x*x - 2*z*z, 2*y*z - 2*w*x],
        [2*x*z - 2*w*y, 2*y*z + 2*w*x, 1 - 2*x*x - 2*y*y],
    ])


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product q1 * q2 of (w, x, y, z) quaternions."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ])


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    """Conjugate (inverse for unit quaternions) of a (w, x, y, z) quaternion."""
    return np.array([q[0], -q[1], -q[2], -q[3]])


def split_transform_vector(transform: list[float] | np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Split (tx, ty, tz, qx, qy, qz, qw) into translation and (w, x, y, z) quaternion."""
    vec = np.asarray(transform, dtype=float).reshape(-1)
    translation = vec[:3].copy()
    qx, qy, qz, qw = vec[3:7]
    return translation, np.array([qw, qx, qy, qz])


def make_transform_matrix(qvec: list[float] | np.ndarray, tvec: list[float] | np.ndarray) -> np.ndarray:
    """Build a 4x4 homogeneous matrix from a (w, x, y, z) quaternion + translation."""
    mat = np.eye(4)
    mat[:3, :3] = qvec2rotmat(qvec)
    mat[:3, 3] = tvec
    return mat


def plane_transform_matrix(transform_mat: np.ndarray) -> np.ndarray:
    """Inverse-transpose of a homogeneous point transform.

    Plane coefficients are covectors: if points map as p' = T p then planes
    map as pi' = T^-T pi so that pi'.p' = pi.p.
    """
    return np.linalg.inv(transform_mat).T


# ---------------------------------------------------------------------------
# Plane equations
# ---------------------------------------------------------------------------

def normalize_plane(plane_eq: np.ndarray) -> np.ndarray:
    """Scale a plane equation so that its normal part has unit length.

    Orientation (sign) is preserved.
    """
    eq = np.asarray(plane_eq, dtype=float).copy()
    norm = np.linalg.norm(eq[:3])
    if not np.isfinite(norm) or norm < 1e-15:
        raise ValueError(f"Plane equation {eq} has a degenerate normal")
    return eq / norm


def canonical_sign(plane_eq: np.ndarray) -> float:
    """Return +1 or -1 so that ``sign * plane_eq`` is in canonical form.

    Canonical form: d > 0, or for planes through the origin the first
    non-zero normal component positive.
    """
    eq = np.asarray(plane_eq, dtype=float)
    if abs(eq[3]) > _ZERO_DISTANCE_EPS:
        return 1.0 if eq[3] > 0 else -1.0
    for coeff in eq[:3]:
        if abs(coeff) > _ZERO_DISTANCE_EPS:
            return 1.0 if coeff > 0 else -1.0
    return 1.0


def normalize_and_unify(plane_eq: np.ndarray) -> np.ndarray:
    """Unit normal plus canonical sign, so equal planes compare equal."""
    eq = normalize_plane(plane_eq)
    return eq * canonical_sign(eq)


def plane_to_quaternion(plane_eq: np.ndarray) -> np.ndarray:
    """Map a plane equation (a, b, c, d) to a unit (w, x, y, z) quaternion.

    The 4 coefficients are read as (x, y, z, w) = (a, b, c, d), normalised
    to unit length and folded onto the w >= 0 hemisphere, which makes the
    mapping invariant to the sign of the equation.
    """
    a, b, c, d = np.asarray(plane_eq, dtype=float)
    q = np.array([d, a, b, c])
    q /= np.linalg.norm(q)
    if q[0] < 0:
        q = -q
    return q


def quaternion_to_plane(qvec: np.ndarray) -> np.ndarray:
    """Inverse of ``plane_to_quaternion``: unit-normal, canonical plane equation."""
    w, x, y, z = qvec
    return normalize_and_unify(np.array([x, y, z, w]))


def log_map(qvec: np.ndarray) -> np.ndarray:
    """Logarithmic map of a unit (w, x, y, z) quaternion to a rotation vector in R^3.

    q and -q map to the same vector (the w >= 0 representative is used), and
    the returned angle lies in [0, pi].
    """
    q = np.asarray(qvec, dtype=float)
    q = q / np.linalg.norm(q)
    if q[0] < 0:
        q = -q
    vec = q[1:]
    vec_norm = np.linalg.norm(vec)
    if vec_norm < _SMALL_ANGLE_EPS:
        return np.zeros(3)
    angle = 2.0 * np.arctan2(vec_norm, q[0])
    return vec / vec_norm * angle


def exp_map(rotvec: np.ndarray) -> np.ndarray:
    """Exponential map of a rotation vector to a unit (w, x, y, z) quaternion."""
    v = np.asarray(rotvec, dtype=float)
    angle = np.linalg.norm(v)
    if angle < _SMALL_ANGLE_EPS:
        return np.array([1.0, 0.0, 0.0, 0.0])
    half = 0.5 * angle
    return np.concatenate([[np.cos(half)], v / angle * np.sin(half)])


def plane_eq_diff_log_map(plane_eq1: np.ndarray, plane_eq2: np.ndarray) -> float:
    """Geodesic distance between two plane equations on the unit quaternion sphere.

    Computed as ||log(q1^-1 * q2)||. Equations that differ only by sign or
    overall scale score 0.
    """
    q1 = plane_to_quaternion(plane_eq1)
    q2 = plane_to_quaternion(plane_eq2)
    rel = quat_multiply(quat_conjugate(q1), q2)
    return float(np.linalg.norm(log_map(rel)))


def weighted_mean_plane(plane_eqs: list[np.ndarray], weights: list[float]) -> np.ndarray:
    """Weighted manifold mean of plane equations.

    Every equation is mapped to a quaternion and expressed in the tangent
    space (log map) at the heaviest equation; the weighted average of the
    tangent vectors is mapped back with the exp map.
    """
    if not plane_eqs:
        raise ValueError("Cannot average an empty list of plane equations")
    w = np.asarray(weights, dtype=float)
    if w.shape[0] != len(plane_eqs) or np.any(w < 0) or w.sum() <= 0:
        raise ValueError(f"Invalid weights {weights} for {len(plane_eqs)} planes")

    quats = [plane_to_quaternion(eq) for eq in plane_eqs]
    ref = quats[int(np.argmax(w))]
    ref_inv = quat_conjugate(ref)

    mean_tangent = np.zeros(3)
    for q, weight in zip(quats, w):
        mean_tangent += weight * log_map(quat_multiply(ref_inv, q))
    mean_tangent /= w.sum()

    mean_q = quat_multiply(ref, exp_map(mean_tangent))
    return quaternion_to_plane(mean_q)


# ---------------------------------------------------------------------------
# Projections and plane frames
# ---------------------------------------------------------------------------

def project_points_to_plane(points: np.ndarray, plane_eq: np.ndarray) -> np.ndarray:
    """Orthogonally project (N, 3) points onto the plane n.p + d = 0."""
    eq = normalize_plane(plane_eq)
    n = eq[:3]
    dist = points @ n + eq[3]
    return points - dist[:, None] * n[None, :]


def plane_basis(normal: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Two orthonormal in-plane axes (u, v) for a plane with the given normal."""
    n = np.asarray(normal, dtype=float)[:3]
    n = n / np.linalg.norm(n)
    ref = np.array([1.0, 0.0, 0.0])
    if abs(np.dot(n, ref)) > 0.9:
        ref = np.array([0.0, 1.0, 0.0])
    u = np.cross(n, ref)
    u /= np.linalg.norm(u)
    v = np.cross(n, u)
    return u, v


def to_plane_coords(points: np.ndarray, origin: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Express (N, 3) points as (N, 2) coordinates in the frame (origin, u, v)."""
    local = np.asarray(points, dtype=float) - origin
    return np.column_stack([local @ u, local @ v])


def from_plane_coords(coords_2d: np.ndarray, origin: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Map (N, 2) plane coordinates back to 3D."""
    coords_2d = np.asarray(coords_2d, dtype=float)
    return origin + coords_2d[:, 0:1] * u + coords_2d[:, 1:2] * v
