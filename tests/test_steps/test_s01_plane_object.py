"""Tests for S01 plane fitting: PlanarObject construction and orientation voting."""

import logging

import numpy as np
import pytest

from planefuse.core.errors import PlaneGeometryError
from planefuse.steps.s01_plane_fusion._plane_object import (
    ObjectType,
    PlanarObject,
    PlaneSegment,
    fit_plane,
)


class TestFitPlane:
    def test_unit_normal_for_random_planes(self, random_plane_points):
        rng = np.random.default_rng(7)
        for seed in range(10):
            normal = rng.normal(size=3)
            center = rng.uniform(-5, 5, 3)
            pts = random_plane_points(center=center, normal=normal, noise=0.01, seed=seed)
            fit = fit_plane(pts)
            assert np.linalg.norm(fit.equation[:3]) == pytest.approx(1.0, abs=1e-12)
            assert np.linalg.norm(fit.normal[:3]) == pytest.approx(1.0, abs=1e-12)

    def test_horizontal_plane(self, square_points):
        fit = fit_plane(square_points(center=(0.0, 0.0, 2.0)))
        np.testing.assert_allclose(fit.equation, [0.0, 0.0, -1.0, 2.0], atol=1e-12)
        assert fit.curvature == pytest.approx(0.0, abs=1e-12)

    def test_principal_components_orthonormal_and_ordered(self, random_plane_points):
        pts = random_plane_points(normal=(0.2, -0.3, 1.0), size=4.0, noise=0.02)
        pts = pts * np.array([2.0, 1.0, 1.0])  # stretch along x
        fit = fit_plane(pts)
        P = fit.principal_components
        np.testing.assert_allclose(P @ P.T, np.eye(3), atol=1e-10)
        assert fit.principal_lengths[0] >= fit.principal_lengths[1] >= fit.principal_lengths[2]

    def test_shorter_extent_of_rectangle(self):
        rng = np.random.default_rng(1)
        pts = np.column_stack([rng.uniform(0, 8, 20000), rng.uniform(0, 2, 20000), np.zeros(20000)])
        fit = fit_plane(pts)
        assert fit.shorter_extent == pytest.approx(2.0, rel=0.03)

    def test_curvature_grows_with_noise(self, random_plane_points):
        flat = fit_plane(random_plane_points(noise=0.001))
        rough = fit_plane(random_plane_points(noise=0.1))
        assert 0 <= flat.curvature < rough.curvature < 1 / 3

    def test_equation_independent_of_point_order(self, random_plane_points):
        pts = random_plane_points(normal=(1.0, 1.0, 0.2), noise=0.01)
        a = fit_plane(pts)
        b = fit_plane(pts[::-1])
        np.testing.assert_allclose(a.equation, b.equation, atol=1e-10)


class TestDegenerateGeometry:
    def test_too_few_points(self):
        with pytest.raises(PlaneGeometryError):
            fit_plane(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]]))

    def test_collinear_points(self):
        line = np.column_stack([np.linspace(0, 5, 50), np.linspace(0, 5, 50), np.zeros(50)])
        with pytest.raises(PlaneGeometryError):
            fit_plane(line)

    def test_coincident_points(self):
        with pytest.raises(PlaneGeometryError):
            fit_plane(np.ones((10, 3)))

    def test_non_finite_points(self, random_plane_points):
        pts = random_plane_points()
        pts[3, 1] = np.nan
        with pytest.raises(PlaneGeometryError):
            fit_plane(pts)

    def test_object_construction_fails(self):
        seg = PlaneSegment(id=0, normal=[0.0, 0.0, 1.0])
        with pytest.raises(PlaneGeometryError):
            PlanarObject(0, np.zeros((2, 3)), [seg])

    def test_color_count_mismatch(self, random_plane_points, make_plane_object):
        pts = random_plane_points(count=50)
        with pytest.raises(PlaneGeometryError):
            make_plane_object(0, pts, colors=np.zeros((10, 3)))


class TestOrientation:
    def test_segments_pointing_up(self, square_points, make_plane_object):
        obj = make_plane_object(0, square_points(center=(0, 0, 2.0)), segment_normals=[(0, 0, 1.0)])
        np.testing.assert_allclose(obj.normal, [0.0, 0.0, 1.0, -2.0], atol=1e-12)
        assert obj.consistent_orientation

    def test_segments_pointing_down(self, square_points, make_plane_object):
        obj = make_plane_object(0, square_points(center=(0, 0, 2.0)), segment_normals=[(0, 0, -1.0)])
        np.testing.assert_allclose(obj.normal, [0.0, 0.0, -1.0, 2.0], atol=1e-12)

    def test_equation_is_canonical_regardless_of_face(self, square_points, make_plane_object):
        pts = square_points(center=(0, 0, 2.0))
        up = make_plane_object(0, pts, segment_normals=[(0, 0, 1.0)])
        down = make_plane_object(1, pts, segment_normals=[(0, 0, -1.0)])
        np.testing.assert_allclose(up.equation, down.equation, atol=1e-12)
        assert up.equation[3] >= 0

    def test_majority_vote_with_warning(self, caplog, square_points, make_plane_object):
        pts = square_points(center=(0, 0, 2.0))
        with caplog.at_level(logging.WARNING):
            obj = make_plane_object(
                0, pts, segment_normals=[(0, 0, 1.0), (0, 0.1, 1.0), (0, 0, -1.0)],
            )
        assert obj.normal[2] > 0
        assert not obj.consistent_orientation
        assert any("disagree" in r.message for r in caplog.records)

    def test_tie_keeps_computed_sign(self, square_points, make_plane_object):
        pts = square_points(center=(0, 0, 2.0))
        obj = make_plane_object(0, pts, segment_normals=[(0, 0, 1.0), (0, 0, -1.0)])
        # canonical eigenvector sign for z = 2 is (0, 0, -1, 2)
        np.testing.assert_allclose(obj.normal, [0.0, 0.0, -1.0, 2.0], atol=1e-12)

    def test_no_segments_keeps_computed_sign(self, square_points):
        obj = PlanarObject(0, square_points(center=(0, 0, 2.0)), [])
        np.testing.assert_allclose(obj.normal, obj.equation, atol=1e-12)


class TestPlanarObject:
    def test_fields(self, floor_square):
        assert floor_square.type is ObjectType.PLANE
        assert floor_square.num_points == 400
        assert len(floor_square.segments) == 1
        assert floor_square.hull.area == pytest.approx(100.0, rel=0.05)

    def test_segment_normal_is_normalised(self):
        seg = PlaneSegment(id=3, normal=[0.0, 0.0, 5.0])
        np.testing.assert_allclose(seg.normal, [0.0, 0.0, 1.0])
        assert seg.points.shape == (0, 3)

    @pytest.mark.parametrize("normal", [[0.0, 0.0, 0.0], [0.0, np.nan, 1.0]])
    def test_segment_without_usable_normal_rejected(self, normal):
        with pytest.raises(PlaneGeometryError):
            PlaneSegment(id=3, normal=normal)

    def test_segment_copy_does_not_alias(self):
        seg = PlaneSegment(id=3, normal=[0.0, 0.0, 1.0], points=np.ones((4, 3)), metadata={"k": 1})
        dup = seg.copy()
        dup.points[0, 0] = 99.0
        dup.metadata["k"] = 2
        assert seg.points[0, 0] == 1.0
        assert seg.metadata["k"] == 1

    def test_custom_hull_builder(self, square_points, make_plane_object):
        calls = []

        def builder(points, normal):
            calls.append((len(points), tuple(np.round(normal, 6))))
            from planefuse.utils.hull import ConcaveHull
            return ConcaveHull(points, normal, ratio=1.0)

        obj = make_plane_object(0, square_points(center=(0, 0, 1.0)))
        obj = PlanarObject(0, obj.points, obj.segments, hull_builder=builder)
        assert calls == [(400, (0.0, 0.0, 1.0))]
        obj.rebuild_hull()
        assert len(calls) == 2
