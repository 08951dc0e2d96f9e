"""Step 01: Plane fusion, one planar object per physical surface.

Reads per-batch plane detections, builds planar objects (PCA fit, normal
orientation vote, hull), moves every batch into the global frame with its
pose, groups matching detections across all batches and merges each group
into a single plane.

A detection with degenerate geometry or a batch with a malformed pose is
logged and dropped; the rest of the input is still fused.
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import ClassVar

import numpy as np

from planefuse.core.errors import PlaneGeometryError, TransformError
from planefuse.core.step_base import BaseStep
from planefuse.utils.hull import build_hull
from planefuse.utils.io import load_json_model, save_json, save_json_models, write_point_cloud_ply
from planefuse.utils.visualization import plot_fused_planes

from ._grouping import FusionResult, fuse_plane_objects
from ._inspection import SceneRecorder
from ._matching import PlaneMatcher
from ._plane_object import HullBuilder, PlanarObject, PlaneSegment
from ._transform import RigidTransform
from .config import PlaneFusionConfig
from .contracts import (
    BatchRecord,
    DetectionSet,
    FusedPlane,
    ObjectRecord,
    PlaneFusionInput,
    PlaneFusionOutput,
    PlaneSource,
)

logger = logging.getLogger(__name__)


def _rows_to_array(rows: list[list[float]], what: str) -> np.ndarray:
    """(N, 3) array from JSON rows; any row without exactly 3 values is rejected."""
    if not rows:
        return np.zeros((0, 3))
    bad = [i for i, row in enumerate(rows) if len(row) != 3]
    if bad:
        raise PlaneGeometryError(
            f"{what}: {len(bad)} rows without 3 values (first at index {bad[0]}, got {len(rows[bad[0]])})"
        )
    return np.asarray(rows, dtype=float)


def _object_from_record(record: ObjectRecord, hull_builder: HullBuilder) -> PlanarObject:
    """Build a planar object from its JSON record.

    Raises:
        PlaneGeometryError: malformed point/color rows or degenerate geometry.
    """
    segments = [
        PlaneSegment(
            id=s.id,
            normal=np.asarray(s.normal, dtype=float),
            points=_rows_to_array(s.points, f"segment {s.id} points"),
            curvature=s.curvature,
            metadata=dict(s.metadata),
        )
        for s in record.segments
    ]
    if record.points is not None:
        points = _rows_to_array(record.points, "points")
    elif segments:
        points = np.concatenate([s.points for s in segments], axis=0)
    else:
        points = np.zeros((0, 3))
    colors = _rows_to_array(record.colors, "colors") if record.colors is not None else None
    return PlanarObject(record.id, points, segments, colors=colors, hull_builder=hull_builder)


def _build_batch(
    batch: BatchRecord,
    hull_builder: HullBuilder,
    config: PlaneFusionConfig,
) -> tuple[list[PlanarObject], int]:
    """Build (and pose) the objects of one batch. Returns (objects, num_failed)."""
    transform = None
    if config.apply_batch_poses and batch.pose is not None:
        try:
            transform = RigidTransform.from_pose(batch.pose, tolerance=config.quaternion_tolerance)
        except TransformError as e:
            logger.error(f"Batch '{batch.name}': invalid pose, dropping {len(batch.objects)} objects: {e}")
            return [], len(batch.objects)

    objects: list[PlanarObject] = []
    failed = 0
    for record in batch.objects:
        try:
            obj = _object_from_record(record, hull_builder)
        except PlaneGeometryError as e:
            logger.error(f"Batch '{batch.name}', object {record.id}: {e}; skipping")
            failed += 1
            continue
        if transform is not None:
            obj.transform(transform)
        objects.append(obj)
    return objects, failed


def _fused_plane_record(
    index: int,
    obj: PlanarObject,
    sources: list[PlaneSource],
) -> FusedPlane:
    return FusedPlane(
        index=index,
        id=obj.id,
        equation=obj.equation.tolist(),
        normal=obj.normal.tolist(),
        num_points=obj.num_points,
        num_segments=len(obj.segments),
        segment_ids=[s.id for s in obj.segments],
        sources=sources,
        principal_components=obj.principal_components.tolist(),
        principal_lengths=obj.principal_lengths.tolist(),
        shorter_extent=obj.shorter_extent,
        curvature=obj.curvature,
        hull_area=obj.hull.area,
        hull_3d=[ring.tolist() for ring in obj.hull.polygons_3d],
    )


class PlaneFusionStep(BaseStep[PlaneFusionInput, PlaneFusionOutput, PlaneFusionConfig]):
    name: ClassVar[str] = "plane_fusion"
    input_type: ClassVar = PlaneFusionInput
    output_type: ClassVar = PlaneFusionOutput
    config_type: ClassVar = PlaneFusionConfig

    def _detections_path(self, inputs: PlaneFusionInput) -> Path:
        if inputs.detections_file is not None:
            return inputs.detections_file
        return self.data_root / "raw" / "detections.json"

    def validate_inputs(self, inputs: PlaneFusionInput) -> bool:
        path = self._detections_path(inputs)
        if not path.exists():
            logger.error(f"Detections file not found: {path}")
            return False
        return True

    def fuse(
        self,
        detections: DetectionSet,
        recorder: SceneRecorder | None = None,
    ) -> tuple[FusionResult, list[list[PlaneSource]], int]:
        """Fuse an in-memory detection set.

        Returns the fusion result, the provenance of every fused plane and
        the number of detections dropped before grouping.
        """
        cfg = self.config
        hull_builder = functools.partial(
            build_hull, ratio=cfg.hull_concavity_ratio, min_area_ratio=cfg.hull_min_area_ratio,
        )

        batches: list[list[PlanarObject]] = []
        batch_names: list[str] = []
        num_failed = 0
        for ba, batch in enumerate(detections.batches):
            objects, failed = _build_batch(batch, hull_builder, cfg)
            batches.append(objects)
            batch_names.append(batch.name or f"batch_{ba}")
            num_failed += failed
            logger.info(f"Batch '{batch_names[-1]}': {len(objects)} planes ({failed} dropped)")

        matcher = PlaneMatcher(
            eq_diff_threshold=cfg.eq_diff_threshold,
            normal_dot_threshold=cfg.normal_dot_threshold,
            intersection_threshold=cfg.intersection_threshold,
        )
        result = fuse_plane_objects(batches, matcher, observer=recorder)

        provenance = [
            [PlaneSource(batch=batch_names[ba], object_id=batches[ba][pl].id) for ba, pl in keys]
            for keys in result.sources
        ]
        return result, provenance, num_failed

    def run(self, inputs: PlaneFusionInput) -> PlaneFusionOutput:
        output_dir = self.data_root / "interim" / "s01_plane_fusion"
        output_dir.mkdir(parents=True, exist_ok=True)

        detections = load_json_model(self._detections_path(inputs), DetectionSet)
        recorder = SceneRecorder() if self.config.record_inspection else None

        result, provenance, num_failed = self.fuse(detections, recorder)
        num_input = sum(len(keys) for keys in result.sources)

        records = [
            _fused_plane_record(i, obj, sources)
            for i, (obj, sources) in enumerate(zip(result.objects, provenance))
        ]
        fused_planes_file = save_json_models(output_dir / "fused_planes.json", records)

        ply_files: list[Path] = []
        if self.config.export_ply:
            for i, obj in enumerate(result.objects):
                ply_files.append(
                    write_point_cloud_ply(output_dir / f"fused_plane_{i:03d}.ply", obj.points, obj.colors)
                )

        plot_file = None
        if self.config.save_plot:
            plot_file = output_dir / "fused_planes.png"
            plot_fused_planes(
                [o.points for o in result.objects],
                [o.hull.polygons_3d for o in result.objects],
                save_path=plot_file,
            )

        inspection_file = None
        if recorder is not None:
            inspection_file = save_json(output_dir / "inspection_events.json", recorder.events)

        logger.info(
            f"Fused {num_input} planes into {len(records)} "
            f"({result.num_merged_groups} merged groups, {num_failed} dropped)"
        )

        return PlaneFusionOutput(
            fused_planes_file=fused_planes_file,
            num_input_objects=num_input,
            num_fused_planes=len(records),
            num_merged_groups=result.num_merged_groups,
            num_failed_objects=num_failed,
            num_failed_groups=len(result.failures),
            ply_files=ply_files,
            plot_file=plot_file,
            inspection_file=inspection_file,
        )
