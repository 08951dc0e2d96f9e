"""Inspection events emitted while grouping and merging.

Observers are plain callables taking one event. They are called
synchronously at fixed points and their return value is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union

from ._matching import MatchResult
from ._plane_object import PlanarObject

ObjectKey = tuple[int, int]  # (batch index, index within batch)


@dataclass(frozen=True)
class PairCompared:
    first_key: ObjectKey
    second_key: ObjectKey
    first: PlanarObject
    second: PlanarObject
    result: MatchResult


@dataclass(frozen=True)
class GroupFormed:
    group_index: int
    members: tuple[ObjectKey, ...]
    objects: tuple[PlanarObject, ...]


@dataclass(frozen=True)
class MergePerformed:
    members: tuple[ObjectKey, ...]
    sources: tuple[PlanarObject, ...]
    merged: PlanarObject


InspectionEvent = Union[PairCompared, GroupFormed, MergePerformed]
InspectionObserver = Callable[[InspectionEvent], None]


def emit(observer: Optional[InspectionObserver], event: InspectionEvent) -> None:
    if observer is not None:
        observer(event)
