"""I/O utilities: detection / fused plane JSON files, PLY point cloud export."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import numpy as np
from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ── JSON ─────────────────────────────────────────────────────────────

def load_json_model(path: Path, model: type[BaseModel]) -> BaseModel:
    """Read a JSON file and validate it against a Pydantic model."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    return model.model_validate(raw)


def save_json_models(path: Path, items: list[BaseModel]) -> Path:
    """Write a list of Pydantic models as a JSON array."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([item.model_dump(mode="json") for item in items], f, indent=2)
    return path


def save_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    return path


def load_json_list(path: Path, model: type[BaseModel]) -> list[BaseModel]:
    """Read a JSON array and validate every element."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    return [model.model_validate(item) for item in raw]


# ── PLY I/O ──────────────────────────────────────────────────────────

def write_point_cloud_ply(path: Path, points: np.ndarray, colors: np.ndarray | None = None) -> Path:
    """Write an (N, 3) point cloud, with optional RGB in [0, 255] or [0, 1], to PLY."""
    import open3d as o3d

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(np.asarray(points, dtype=float))
    if colors is not None:
        rgb = np.asarray(colors, dtype=float)
        if rgb.size and rgb.max() > 1.0:
            rgb = rgb / 255.0
        pcd.colors = o3d.utility.Vector3dVector(np.clip(rgb, 0.0, 1.0))
    path.parent.mkdir(parents=True, exist_ok=True)
    if not o3d.io.write_point_cloud(str(path), pcd):
        raise OSError(f"Failed to write point cloud to {path}")
    return path


def read_ply_points(path: Path) -> np.ndarray:
    """Read point positions from a PLY file."""
    import open3d as o3d

    pcd = o3d.io.read_point_cloud(str(path))
    return np.asarray(pcd.points)
