"""Common Pydantic models shared across pipeline steps."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class StepMeta(BaseModel):
    """Metadata attached to every step output for reproducibility."""

    step_name: str
    elapsed_seconds: float = 0.0
    params: dict[str, Any] = Field(default_factory=dict)


class RigidPose(BaseModel):
    """Rigid pose: translation + unit quaternion in (x, y, z, w) order."""

    translation: list[float] = Field(..., min_length=3, max_length=3)
    quaternion: list[float] = Field(
        [0.0, 0.0, 0.0, 1.0], min_length=4, max_length=4,
        description="Rotation as (qx, qy, qz, qw)",
    )

    def as_vector(self) -> list[float]:
        """Flat 7-vector (tx, ty, tz, qx, qy, qz, qw)."""
        return [*self.translation, *self.quaternion]


class PipelineConfig(BaseModel):
    """Top-level pipeline configuration loaded from pipeline.yaml."""

    project_name: str = "planefuse_project"
    data_root: Path = Path("./data")
    steps: list[StepEntry] = Field(default_factory=list)


class StepEntry(BaseModel):
    """One entry in the pipeline step list."""

    name: str
    module: str
    config_file: str
    depends_on: list[str] = Field(default_factory=list)
    enabled: bool = True


# Fix forward reference
PipelineConfig.model_rebuild()
