"""Shared pytest fixtures for planefuse tests."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest


def _square_points(
    center=(0.0, 0.0, 0.0),
    normal=(0.0, 0.0, 1.0),
    size: float = 10.0,
    n_side: int = 20,
    noise: float = 0.0,
    seed: int = 0,
) -> np.ndarray:
    """Regular n_side x n_side grid covering a size x size square on a plane."""
    from planefuse.utils.geometry import plane_basis

    n = np.asarray(normal, dtype=float)
    n /= np.linalg.norm(n)
    u, v = plane_basis(n)
    ticks = np.linspace(-size / 2, size / 2, n_side)
    su, sv = np.meshgrid(ticks, ticks)
    pts = np.asarray(center, dtype=float) + su.reshape(-1, 1) * u + sv.reshape(-1, 1) * v
    if noise > 0:
        rng = np.random.default_rng(seed)
        pts = pts + rng.normal(0.0, noise, (len(pts), 1)) * n
    return pts


def _random_plane_points(
    center=(0.0, 0.0, 0.0),
    normal=(0.0, 0.0, 1.0),
    size: float = 4.0,
    count: int = 300,
    noise: float = 0.0,
    seed: int = 0,
) -> np.ndarray:
    """Uniformly scattered points on a size x size patch of a plane."""
    from planefuse.utils.geometry import plane_basis

    rng = np.random.default_rng(seed)
    n = np.asarray(normal, dtype=float)
    n /= np.linalg.norm(n)
    u, v = plane_basis(n)
    coords = rng.uniform(-size / 2, size / 2, (count, 2))
    pts = np.asarray(center, dtype=float) + coords[:, 0:1] * u + coords[:, 1:2] * v
    if noise > 0:
        pts = pts + rng.normal(0.0, noise, (count, 1)) * n
    return pts


def _make_plane_object(obj_id: int, points: np.ndarray, segment_normals=((0.0, 0.0, 1.0),), colors=None):
    """PlanarObject whose points are split evenly over segments with the given normals."""
    from planefuse.steps.s01_plane_fusion._plane_object import PlanarObject, PlaneSegment

    chunks = np.array_split(points, len(segment_normals))
    segments = [
        PlaneSegment(id=obj_id * 100 + k, normal=np.asarray(n, dtype=float), points=chunk)
        for k, (n, chunk) in enumerate(zip(segment_normals, chunks))
    ]
    return PlanarObject(obj_id, points, segments, colors=colors)


@pytest.fixture
def square_points():
    """Factory for regular grids on a plane, see ``_square_points``."""
    return _square_points


@pytest.fixture
def random_plane_points():
    return _random_plane_points


@pytest.fixture
def make_plane_object():
    return _make_plane_object


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """Create a temporary data root with standard directory structure."""
    for subdir in ["raw", "interim/s01_plane_fusion", "processed"]:
        (tmp_path / subdir).mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture
def floor_square():
    """10 x 10 square at z = 2, 400 points, facing +z."""
    return _make_plane_object(1, _square_points(center=(0.0, 0.0, 2.0)))


@pytest.fixture
def shifted_floor_square():
    """Same plane as ``floor_square``, footprint shifted 3 units along x."""
    return _make_plane_object(2, _square_points(center=(3.0, 0.0, 2.0)))


def _records(obj_id: int, points: np.ndarray, normal) -> dict:
    return {
        "id": obj_id,
        "segments": [
            {"id": obj_id * 10, "normal": list(normal), "points": points.tolist(), "curvature": 0.0},
        ],
    }


@pytest.fixture
def sample_detections_json(data_root: Path) -> Path:
    """Two batches of detections; batch 1 is expressed in a frame shifted by -3 in x.

    After applying batch poses:
      - batch_0/0 and batch_1/0 are the same floor (z = 2), overlapping
      - batch_0/1 is a wall (x = 6) seen only once
      - batch_1/1 is degenerate (collinear) and must be dropped
    """
    floor_a = _square_points(center=(0.0, 0.0, 2.0))
    wall = _square_points(center=(6.0, 0.0, 5.0), normal=(1.0, 0.0, 0.0), size=4.0, n_side=10)
    floor_b_local = _square_points(center=(0.0, 1.0, 2.0))
    line = np.column_stack([np.linspace(0, 1, 10), np.zeros(10), np.zeros(10)])

    detections = {
        "batches": [
            {
                "name": "frame_000",
                "objects": [
                    _records(0, floor_a, (0.0, 0.0, 1.0)),
                    _records(1, wall, (-1.0, 0.0, 0.0)),
                ],
            },
            {
                "name": "frame_001",
                "pose": {"translation": [-3.0, 0.0, 0.0], "quaternion": [0.0, 0.0, 0.0, 1.0]},
                "objects": [
                    _records(0, floor_b_local + np.array([3.0, 0.0, 0.0]), (0.0, 0.0, 1.0)),
                    _records(1, line, (0.0, 0.0, 1.0)),
                ],
            },
        ]
    }
    path = data_root / "raw" / "detections.json"
    with open(path, "w") as f:
        json.dump(detections, f)
    return path
