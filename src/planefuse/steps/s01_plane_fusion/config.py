"""Configuration for Step 01: Plane fusion."""

from pydantic import BaseModel, Field


class PlaneFusionConfig(BaseModel):
    # Matching gates
    eq_diff_threshold: float = Field(
        0.01, gt=0, description="Max plane equation difference (log map, strict) to consider planes equal",
    )
    normal_dot_threshold: float = Field(
        0.0, description="Min dot product of oriented normals (strict); 0 rejects opposite faces",
    )
    intersection_threshold: float = Field(
        0.3, ge=0, le=1, description="Min convex hull overlap ratio (strict) to merge",
    )

    # Hull builder
    hull_concavity_ratio: float = Field(
        0.3, ge=0, le=1, description="shapely concave_hull ratio (1.0 = convex hull)",
    )
    hull_min_area_ratio: float = Field(
        0.8, ge=0, le=1, description="Min concave/convex area ratio before falling back to convex hull",
    )

    # Transforms
    quaternion_tolerance: float = Field(
        1e-6, gt=0, description="Max deviation of |q| from 1 before a pose is rejected",
    )
    apply_batch_poses: bool = Field(True, description="Move each batch into the global frame using its pose")

    # Outputs
    export_ply: bool = Field(False, description="Write one PLY point cloud per fused plane (needs open3d)")
    save_plot: bool = Field(False, description="Save a matplotlib overview of fused planes")
    record_inspection: bool = Field(False, description="Write grouping/merging inspection events to JSON")
