"""I/O contracts for Step 01: Plane fusion."""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from planefuse.core.contracts import RigidPose


class SegmentRecord(BaseModel):
    id: int
    normal: list[float] = Field(..., min_length=3, max_length=3)
    points: list[list[float]] = Field(default_factory=list, description="Segment points [[x,y,z],...]")
    curvature: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class ObjectRecord(BaseModel):
    id: int
    points: Optional[list[list[float]]] = Field(
        None, description="Object points; defaults to the concatenated segment points",
    )
    colors: Optional[list[list[float]]] = Field(None, description="Per-point RGB, same length as points")
    segments: list[SegmentRecord] = Field(default_factory=list)


class BatchRecord(BaseModel):
    name: str = ""
    pose: Optional[RigidPose] = Field(None, description="Batch-to-global pose; None = already global")
    objects: list[ObjectRecord] = Field(default_factory=list)


class DetectionSet(BaseModel):
    """Content of detections.json."""

    batches: list[BatchRecord] = Field(default_factory=list)


class PlaneSource(BaseModel):
    batch: str
    object_id: int


class FusedPlane(BaseModel):
    index: int
    id: int
    equation: list[float] = Field(..., min_length=4, max_length=4)
    normal: list[float] = Field(..., min_length=4, max_length=4, description="Oriented (observed face) plane")
    num_points: int
    num_segments: int
    segment_ids: list[int] = Field(default_factory=list)
    sources: list[PlaneSource] = Field(default_factory=list)
    principal_components: list[list[float]] = Field(default_factory=list)
    principal_lengths: list[float] = Field(default_factory=list)
    shorter_extent: float = 0.0
    curvature: float = 0.0
    hull_area: float = 0.0
    hull_3d: list[list[list[float]]] = Field(default_factory=list, description="Polygons [[[x,y,z],...],...]")


class PlaneFusionInput(BaseModel):
    detections_file: Optional[Path] = Field(
        None, description="Path to detections.json (default: <data_root>/raw/detections.json)",
    )


class PlaneFusionOutput(BaseModel):
    fused_planes_file: Path = Field(..., description="Path to fused_planes.json")
    num_input_objects: int = Field(..., description="Detections that produced a valid plane")
    num_fused_planes: int = Field(..., description="Planes after fusion")
    num_merged_groups: int = Field(0)
    num_failed_objects: int = Field(0, description="Detections dropped for degenerate geometry or bad poses")
    num_failed_groups: int = Field(0)
    ply_files: list[Path] = Field(default_factory=list)
    plot_file: Optional[Path] = None
    inspection_file: Optional[Path] = None
