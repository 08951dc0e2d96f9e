"""Tests for planefuse.utils.hull: concave hull builder."""

import numpy as np
import pytest

from planefuse.utils.hull import ConcaveHull, build_hull, compute_concave_hull


class TestComputeConcaveHull:
    def test_square_points(self):
        pts = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=float)
        polygons = compute_concave_hull(pts)
        assert len(polygons) == 1
        assert polygons[0].area == pytest.approx(1.0)

    def test_insufficient_points(self):
        assert compute_concave_hull(np.array([[0, 0], [1, 1]], dtype=float)) == []
        assert compute_concave_hull(None) == []

    def test_collinear_points(self):
        pts = np.array([[0, 0], [1, 0], [2, 0], [3, 0]], dtype=float)
        assert compute_concave_hull(pts) == []

    def test_dense_cluster_covers_most_of_convex_hull(self):
        rng = np.random.RandomState(42)
        pts = rng.uniform(0, 10, (200, 2))
        polygons = compute_concave_hull(pts, min_area_ratio=0.3)
        assert polygons
        assert sum(p.area for p in polygons) > 0.3 * 100 * 0.8


class TestConcaveHull:
    def test_tilted_square(self, square_points):
        normal = np.array([0.0, 1.0, 1.0]) / np.sqrt(2)
        pts = square_points(center=(1.0, 2.0, 3.0), normal=normal, size=4.0, n_side=15)
        hull = build_hull(pts, normal)
        assert hull.area == pytest.approx(16.0, rel=0.05)
        assert len(hull) >= 1
        # vertices stay on the plane
        offsets = (hull.vertices_3d() - np.array([1.0, 2.0, 3.0])) @ normal
        np.testing.assert_allclose(offsets, 0.0, atol=1e-9)

    def test_normal_sign_does_not_change_area(self, random_plane_points):
        pts = random_plane_points(size=3.0, count=200)
        up = ConcaveHull(pts, np.array([0.0, 0.0, 1.0]))
        down = ConcaveHull(pts, np.array([0.0, 0.0, -1.0]))
        assert up.area == pytest.approx(down.area, rel=1e-9)

    def test_degenerate_points_give_empty_hull(self):
        line = np.column_stack([np.linspace(0, 1, 10), np.zeros(10), np.zeros(10)])
        hull = ConcaveHull(line, np.array([0.0, 0.0, 1.0]))
        assert hull.area == 0.0
        assert hull.vertices_3d().shape == (0, 3)

    def test_overlapping_grids_cover_union(self, square_points):
        # two offset grids interleave where they overlap, as after a merge
        pts = np.vstack([
            square_points(center=(0.0, 0.0, 2.0)),
            square_points(center=(3.0, 0.0, 2.0)),
        ])
        hull = build_hull(pts, np.array([0.0, 0.0, 1.0]))
        assert hull.area == pytest.approx(130.0, rel=0.02)

    def test_uneven_density_outline_covers_most_of_convex_hull(self):
        rng = np.random.RandomState(0)
        coarse = rng.uniform(0, 10, (60, 2))
        dense = rng.uniform(0, 2, (400, 2))
        pts = np.vstack([coarse, dense])
        convex_area = compute_concave_hull(pts, ratio=1.0)[0].area
        polygons = compute_concave_hull(pts)
        assert sum(p.area for p in polygons) >= 0.8 * convex_area
