"""Visualization utilities for pipeline debugging."""

from __future__ import annotations

from pathlib import Path

import numpy as np


def plot_fused_planes(
    points: list[np.ndarray],
    hulls: list[list[np.ndarray]],
    title: str = "Fused Planes",
    max_points: int = 20000,
    save_path: Path | None = None,
):
    """Plot fused plane point sets and their hull polygons in 3D.

    Args:
        points: One (N, 3) array per plane.
        hulls: For each plane, its list of (K, 3) polygon rings.
    """
    import matplotlib.pyplot as plt

    fig = plt.figure(figsize=(12, 10))
    ax = fig.add_subplot(111, projection="3d")
    cmap = plt.get_cmap("tab20")
    rng = np.random.default_rng(42)
    per_plane = max(1, max_points // max(1, len(points)))

    for i, (pts, polygons) in enumerate(zip(points, hulls)):
        color = cmap(i % 20)
        if len(pts) > per_plane:
            pts = pts[rng.choice(len(pts), per_plane, replace=False)]
        if len(pts):
            ax.scatter(pts[:, 0], pts[:, 1], pts[:, 2], color=color, s=0.5, alpha=0.4)
        for ring in polygons:
            if len(ring) < 3:
                continue
            closed = np.vstack([ring, ring[0]])
            ax.plot(closed[:, 0], closed[:, 1], closed[:, 2], color=color, linewidth=1.5,
                    label=f"plane {i}")

    ax.set_title(title)
    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")
    if points:
        ax.legend(fontsize="small")

    if save_path:
        fig.savefig(str(save_path), dpi=150, bbox_inches="tight")
    else:
        plt.show()
    plt.close(fig)
    return fig


def plot_renderables(
    clouds: dict[str, np.ndarray],
    polygons: dict[str, np.ndarray],
    title: str = "Inspection",
    save_path: Path | None = None,
):
    """Plot labelled point clouds and polygon rings (one snapshot of a scene)."""
    import matplotlib.pyplot as plt

    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection="3d")

    for label, pts in clouds.items():
        if len(pts):
            ax.scatter(pts[:, 0], pts[:, 1], pts[:, 2], s=0.5, alpha=0.3, label=label)
    for ring in polygons.values():
        if len(ring) >= 3:
            closed = np.vstack([ring, ring[0]])
            ax.plot(closed[:, 0], closed[:, 1], closed[:, 2], color="red", linewidth=1.0)

    ax.set_title(title)
    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")

    if save_path:
        fig.savefig(str(save_path), dpi=150, bbox_inches="tight")
    else:
        plt.show()
    plt.close(fig)
    return fig
