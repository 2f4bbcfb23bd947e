"""Reference orbit used as the perturbation basis for a whole frame."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from mandelanim.numeric import BigComplex

# Far beyond the pixel bailout so that pixels near an escaping reference keep
# a usable orbit for a few more iterations.
REFERENCE_ESCAPE_RADIUS = 1e10


@dataclass(frozen=True)
class ReferenceOrbit:
    center: BigComplex
    points: Tuple[BigComplex, ...]
    fast: Tuple[complex, ...]
    precision_bits: int
    max_iterations: int
    escaped: bool

    @property
    def max_iterations_computed(self) -> int:
        return len(self.points) - 1

    def __len__(self) -> int:
        return len(self.points)


def compute_orbit(center: BigComplex, max_iterations: int, precision_bits: Optional[int] = None) -> ReferenceOrbit:
    """Iterate ``Z_{n+1} = Z_n**2 + center`` from zero, keeping Z_0 .. Z_N.

    Stops after ``max_iterations`` steps or as soon as ``|Z_N|`` passes
    REFERENCE_ESCAPE_RADIUS. A short orbit is normal for an escaping centre;
    the evaluator recomputes pixels that run past its end.
    """
    if max_iterations < 1:
        raise ValueError("max_iterations must be >= 1")
    bits = precision_bits or center.bits
    c = center.with_precision(bits)
    limit = REFERENCE_ESCAPE_RADIUS * REFERENCE_ESCAPE_RADIUS

    z = BigComplex.zero(bits)
    points = [z]
    escaped = False
    for _ in range(max_iterations):
        z = z.square_add(c)
        points.append(z)
        if z.norm_sqr() > limit:
            escaped = True
            break

    return ReferenceOrbit(
        center=c,
        points=tuple(points),
        fast=tuple(p.to_complex() for p in points),
        precision_bits=bits,
        max_iterations=max_iterations,
        escaped=escaped,
    )
