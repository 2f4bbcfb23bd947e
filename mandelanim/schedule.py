"""Zoom schedule, precision requirements and the fixed camera path."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from mandelanim.numeric import DOUBLE_BITS, BigComplex

DEFAULT_GUARD_BITS = 24


@dataclass(frozen=True)
class ZoomSchedule:
    start_magnification: float
    end_magnification: float
    frame_count: int

    def __post_init__(self) -> None:
        if self.frame_count < 1:
            raise ValueError("frame_count must be >= 1")
        if not (self.start_magnification > 0 and self.end_magnification > 0):
            raise ValueError("zoom values must be positive")
        if not self.start_magnification > self.end_magnification:
            raise ValueError("zoom_start must be greater than zoom_end (zooming in)")

    def magnification(self, index: int) -> float:
        return schedule_for(index, self.frame_count, self.start_magnification, self.end_magnification)

    def progress(self, index: int) -> float:
        return 0.0 if self.frame_count == 1 else index / (self.frame_count - 1)


@dataclass(frozen=True)
class FrameSpec:
    index: int
    magnification: float
    center: BigComplex
    precision_bits: int

    @property
    def frame_id(self) -> str:
        return f"{self.index:06d}"


def schedule_for(index: int, frame_count: int, start_mag: float, end_mag: float) -> float:
    """Magnification of frame ``index``, interpolated linearly in log space.

    Zoom compounds per frame, so this keeps the apparent speed constant across
    the run. The first and last frames land exactly on the end points.
    """
    if frame_count < 1:
        raise ValueError("frame_count must be >= 1")
    if not 0 <= index < frame_count:
        raise ValueError(f"frame index {index} outside [0, {frame_count})")
    if frame_count == 1 or index == 0:
        return float(start_mag)
    if index == frame_count - 1:
        return float(end_mag)
    t = index / (frame_count - 1)
    return float(start_mag) * (float(end_mag) / float(start_mag)) ** t


def required_precision_bits(magnification: float, guard_bits: int = DEFAULT_GUARD_BITS) -> int:
    if magnification <= 0:
        raise ValueError("magnification must be positive")
    return max(DOUBLE_BITS, int(math.ceil(-math.log2(magnification))) + guard_bits)


@dataclass(frozen=True)
class CenterPath:
    """Waypoints of the camera path as decimal strings, first point is the zoom target."""

    waypoints: Tuple[Tuple[str, str], ...]

    def __post_init__(self) -> None:
        if not self.waypoints:
            raise ValueError("CenterPath needs at least one waypoint")

    def base(self, bits: int) -> BigComplex:
        re, im = self.waypoints[0]
        return BigComplex.parse(re, im, bits)

    def position(self, t: float, bits: int) -> BigComplex:
        points = self.waypoints
        if len(points) == 1:
            return self.base(bits)
        segments = len(points) - 1
        scaled = min(min(max(t, 0.0), 1.0) * segments, segments - 1e-9)
        seg = int(math.floor(scaled))
        a = BigComplex.parse(*points[seg], bits)
        b = BigComplex.parse(*points[seg + 1], bits)
        return a.toward(b, scaled - seg)


DEFAULT_PATH = CenterPath(waypoints=(
    ("-0.743643887037151", "0.13182590420533"),
    ("-0.743643135", "0.13182733"),
    ("-0.743642", "0.131829"),
    ("-0.74364085", "0.1318309"),
))


def center_for(path: CenterPath, t: float, magnification: float, start_magnification: float, bits: int) -> BigComplex:
    # Drift along the path is damped by the zoom ratio so deep frames converge on the base point.
    ratio = min(max(magnification / start_magnification, 0.0), 1.0) if start_magnification > 0 else 1.0
    return path.base(bits).toward(path.position(t, bits), ratio)


def frame_spec(
    schedule: ZoomSchedule,
    index: int,
    path: CenterPath = DEFAULT_PATH,
    guard_bits: int = DEFAULT_GUARD_BITS,
) -> FrameSpec:
    magnification = schedule.magnification(index)
    bits = required_precision_bits(magnification, guard_bits)
    center = center_for(path, schedule.progress(index), magnification, schedule.start_magnification, bits)
    return FrameSpec(index=index, magnification=magnification, center=center, precision_bits=bits)


def frame_indices(frame_count: int, shard_index: int = 0, shard_count: int = 1) -> range:
    """Frames owned by one member of a process group, assigned round-robin."""
    if shard_count < 1 or not 0 <= shard_index < shard_count:
        raise ValueError(f"invalid shard {shard_index}/{shard_count}")
    return range(shard_index, frame_count, shard_count)
