"""Merge several detections of one physical plane into a new planar object."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from planefuse.utils.geometry import project_points_to_plane, weighted_mean_plane

from ._plane_object import HullBuilder, PlanarObject

logger = logging.getLogger(__name__)

MERGED_OBJECT_ID = 0


def merge_plane_objects(
    objects: Sequence[PlanarObject],
    hull_builder: HullBuilder | None = None,
) -> PlanarObject:
    """Fuse detections of the same plane.

    The plane equations are averaged on the quaternion manifold, weighted
    by point count. Every member's points are projected onto that mean plane
    and concatenated in member order, segments are concatenated without
    deduplication. The result is a brand-new object (id ``MERGED_OBJECT_ID``)
    whose normal, principal directions, curvature and hull are recomputed
    from the merged geometry.

    Raises:
        ValueError: ``objects`` is empty.
        PlaneGeometryError: the merged point set is degenerate.
    """
    if not objects:
        raise ValueError("Cannot merge an empty group of planar objects")
    builder = hull_builder or objects[0].hull_builder

    with_colors = all(o.colors is not None for o in objects)
    segments = [seg.copy() for o in objects for seg in o.segments]

    if len(objects) == 1:
        only = objects[0]
        return PlanarObject(
            MERGED_OBJECT_ID,
            only.points.copy(),
            segments,
            colors=only.colors.copy() if with_colors else None,
            obj_type=only.type,
            hull_builder=builder,
        )

    mean_eq = weighted_mean_plane(
        [o.equation for o in objects],
        [o.num_points for o in objects],
    )
    points = np.concatenate([project_points_to_plane(o.points, mean_eq) for o in objects], axis=0)
    colors = np.concatenate([o.colors for o in objects], axis=0) if with_colors else None

    logger.info(
        f"Merging {len(objects)} planes (ids={[o.id for o in objects]}, "
        f"{len(points)} points) onto {np.round(mean_eq, 4).tolist()}"
    )
    return PlanarObject(
        MERGED_OBJECT_ID,
        points,
        segments,
        colors=colors,
        obj_type=objects[0].type,
        hull_builder=builder,
    )
