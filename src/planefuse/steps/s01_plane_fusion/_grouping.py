"""Group matching planar detections across batches and merge each group.

Every object is compared with every other object (within and across
batches, each unordered pair once), so the cost is quadratic in the total
number of detections. That is fine for the tens to low hundreds of planes
of one reconstruction; the hull overlap test dominates the running time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np

from planefuse.core.errors import PlaneGeometryError

from ._events import GroupFormed, InspectionObserver, MergePerformed, ObjectKey, PairCompared, emit
from ._matching import PlaneMatcher
from ._merging import merge_plane_objects
from ._plane_object import PlanarObject

logger = logging.getLogger(__name__)

Merger = Callable[[Sequence[PlanarObject]], PlanarObject]


class DisjointSet:
    """Union-find over 0..n-1 with path halving and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        parent = self.parent
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(self, a: int, b: int) -> bool:
        """Join the sets of a and b. Returns False if already joined."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.rank[ra] < self.rank[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        if self.rank[ra] == self.rank[rb]:
            self.rank[ra] += 1
        return True

    def __len__(self) -> int:
        return len(self.parent)


def flat_index(batches: Sequence[Sequence[PlanarObject]]) -> tuple[np.ndarray, list[ObjectKey]]:
    """Prefix-sum offsets per batch and the inverse table flat id -> (batch, index)."""
    sizes = [len(b) for b in batches]
    offsets = np.concatenate([[0], np.cumsum(sizes)]).astype(int)
    keys = [(ba, pl) for ba, size in enumerate(sizes) for pl in range(size)]
    return offsets, keys


def group_plane_objects(
    batches: Sequence[Sequence[PlanarObject]],
    matcher: PlaneMatcher,
    observer: Optional[InspectionObserver] = None,
) -> list[list[ObjectKey]]:
    """Partition all detections into groups of the same physical plane.

    Groups are ordered by their first member; members are in batch order.
    """
    _, keys = flat_index(batches)
    n = len(keys)
    sets = DisjointSet(n)

    num_matches = 0
    for i in range(n):
        ba, pl = keys[i]
        cur = batches[ba][pl]
        for j in range(i + 1, n):
            cba, cpl = keys[j]
            comp = batches[cba][cpl]
            result = matcher.compare(cur, comp)
            emit(observer, PairCompared(keys[i], keys[j], cur, comp, result))
            if result.matched:
                num_matches += 1
                sets.union(i, j)

    groups: dict[int, list[ObjectKey]] = {}
    for flat_id, key in enumerate(keys):
        groups.setdefault(sets.find(flat_id), []).append(key)

    logger.info(
        f"Grouped {n} planes from {len(batches)} batches into {len(groups)} groups "
        f"({num_matches} matching pairs)"
    )
    return list(groups.values())


@dataclass(frozen=True)
class GroupFailure:
    members: tuple[ObjectKey, ...]
    reason: str


@dataclass
class FusionResult:
    """Fused objects with, for each, the (batch, index) keys it came from."""

    objects: list[PlanarObject] = field(default_factory=list)
    sources: list[list[ObjectKey]] = field(default_factory=list)
    groups: list[list[ObjectKey]] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)

    @property
    def num_merged_groups(self) -> int:
        return sum(1 for s in self.sources if len(s) > 1)


def fuse_plane_objects(
    batches: Sequence[Sequence[PlanarObject]],
    matcher: PlaneMatcher | None = None,
    merger: Merger = merge_plane_objects,
    observer: Optional[InspectionObserver] = None,
) -> FusionResult:
    """Group detections and merge every group with more than one member.

    Singleton groups pass through as the same object. A group whose merge
    fails with ``PlaneGeometryError`` is recorded as a failure and its
    members pass through unmerged.
    """
    matcher = matcher or PlaneMatcher()
    result = FusionResult()
    result.groups = group_plane_objects(batches, matcher, observer=observer)

    for group_index, members in enumerate(result.groups):
        objects = [batches[ba][pl] for ba, pl in members]
        emit(observer, GroupFormed(group_index, tuple(members), tuple(objects)))

        if len(objects) == 1:
            result.objects.append(objects[0])
            result.sources.append(list(members))
            continue

        try:
            merged = merger(objects)
        except PlaneGeometryError as e:
            logger.error(f"Merging group {group_index} {members} failed: {e}; keeping members unmerged")
            result.failures.append(GroupFailure(tuple(members), str(e)))
            for key, obj in zip(members, objects):
                result.objects.append(obj)
                result.sources.append([key])
            continue

        emit(observer, MergePerformed(tuple(members), tuple(objects), merged))
        result.objects.append(merged)
        result.sources.append(list(members))

    logger.info(
        f"Fusion: {len(result.groups)} groups -> {len(result.objects)} planes, "
        f"{result.num_merged_groups} merged, {len(result.failures)} failed"
    )
    return result
