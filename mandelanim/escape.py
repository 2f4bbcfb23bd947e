"""Per-pixel escape time by perturbation against a reference orbit.

Each pixel tracks only its offset from the reference, ``d_n = z_n - Z_n``::

    d_{n+1} = 2 * Z_n * d_n + d_n**2 + d_0

in plain doubles, while ``Z_n`` is read from the precomputed orbit. This stays
accurate as long as ``|Z_n + d_n|`` does not collapse far below ``|Z_n|``
(the pixel's true orbit passing much closer to zero than the reference does).
When it does, or when the pixel outlives a short reference orbit, the pixel is
recomputed from scratch in extended precision.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Tuple

import numpy as np

from mandelanim.numeric import BigComplex
from mandelanim.orbit import ReferenceOrbit

ESCAPE_RADIUS = 2.0
GLITCH_TOLERANCE = 1e-3

# Smooth values are clamped to >= 0, so a negative sentinel cannot collide.
BOUNDED = -1.0

_ESCAPE_RADIUS_SQR = ESCAPE_RADIUS * ESCAPE_RADIUS
_GLITCH_TOLERANCE_SQR = GLITCH_TOLERANCE * GLITCH_TOLERANCE
_LOG2 = math.log(2.0)


class PixelResult(NamedTuple):
    escape_value: float
    glitched: bool = False

    @property
    def escaped(self) -> bool:
        return self.escape_value != BOUNDED


def smooth_escape(n: int, z_abs: float) -> float:
    """Continuous iteration count ``n + 1 - log2(log|z|)`` for a point that escaped at step n."""
    mu = n + 1 - math.log(math.log(z_abs)) / _LOG2
    return mu if mu > 0.0 else 0.0


def is_glitch(z_ref: complex, z: complex) -> bool:
    """Pauldelbrot's criterion: the pixel orbit came much closer to zero than the reference."""
    mag = z.real * z.real + z.imag * z.imag
    ref = z_ref.real * z_ref.real + z_ref.imag * z_ref.imag
    return mag < _GLITCH_TOLERANCE_SQR * ref


def evaluate_direct(c: BigComplex, max_iterations: int) -> PixelResult:
    z = BigComplex.zero(c.bits)
    for n in range(1, max_iterations + 1):
        z = z.square_add(c)
        mag = z.norm_sqr()
        if mag > _ESCAPE_RADIUS_SQR:
            return PixelResult(smooth_escape(n, math.sqrt(float(mag))))
    return PixelResult(BOUNDED)


def evaluate(pixel_offset: complex, orbit: ReferenceOrbit, max_iterations: int) -> PixelResult:
    """Scalar perturbation for one pixel; :func:`evaluate_many` is the same loop over arrays."""
    fast = orbit.fast
    last = len(fast) - 1
    dc = complex(pixel_offset)
    dcr, dci = dc.real, dc.imag
    ar = ai = 0.0

    n = 0
    while n < max_iterations:
        if n >= last:
            break
        zr, zi = fast[n].real, fast[n].imag
        t_re = 2.0 * (zr * ar - zi * ai)
        t_im = 2.0 * (zr * ai + zi * ar)
        ar, ai = t_re + (ar * ar - ai * ai) + dcr, t_im + 2.0 * (ar * ai) + dci
        n += 1
        zr, zi = fast[n].real, fast[n].imag
        zre = zr + ar
        zim = zi + ai
        mag = zre * zre + zim * zim
        if mag > _ESCAPE_RADIUS_SQR:
            return PixelResult(smooth_escape(n, math.sqrt(mag)))
        if is_glitch(complex(zr, zi), complex(zre, zim)):
            break
    else:
        return PixelResult(BOUNDED)

    # Glitched or ran past the orbit: exact recomputation for this pixel only.
    result = evaluate_direct(orbit.center.offset(dc), max_iterations)
    return PixelResult(result.escape_value, glitched=True)


def _smooth_many(n: int, mag: np.ndarray) -> np.ndarray:
    mu = n + 1 - np.log(np.log(np.sqrt(mag))) / _LOG2
    return np.maximum(mu, 0.0)


def evaluate_many(offsets, orbit: ReferenceOrbit, max_iterations: int) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorised :func:`evaluate` over an array of pixel offsets.

    Returns ``(values, glitched)`` shaped like ``offsets``. Pixels leave the
    active set when they escape or glitch; glitched pixels are then
    recomputed one by one with :func:`evaluate_direct`.
    """
    offsets = np.asarray(offsets, dtype=np.complex128)
    shape = offsets.shape
    dc_re = np.ascontiguousarray(offsets.real, dtype=np.float64).ravel()
    dc_im = np.ascontiguousarray(offsets.imag, dtype=np.float64).ravel()
    count = dc_re.size

    values = np.full(count, BOUNDED, dtype=np.float64)
    glitched = np.zeros(count, dtype=bool)

    ref_re = np.array([z.real for z in orbit.fast], dtype=np.float64)
    ref_im = np.array([z.imag for z in orbit.fast], dtype=np.float64)
    last = len(ref_re) - 1

    active = np.arange(count)
    dcr = dc_re.copy()
    dci = dc_im.copy()
    ar = np.zeros(count, dtype=np.float64)
    ai = np.zeros(count, dtype=np.float64)

    for n in range(max_iterations):
        if active.size == 0:
            break
        if n >= last:
            glitched[active] = True
            break

        zr = ref_re[n]
        zi = ref_im[n]
        t_re = 2.0 * (zr * ar - zi * ai)
        t_im = 2.0 * (zr * ai + zi * ar)
        nr = t_re + (ar * ar - ai * ai) + dcr
        ni = t_im + 2.0 * (ar * ai) + dci
        ar, ai = nr, ni

        zr = ref_re[n + 1]
        zi = ref_im[n + 1]
        zre = zr + ar
        zim = zi + ai
        mag = zre * zre + zim * zim

        escaped = mag > _ESCAPE_RADIUS_SQR
        if escaped.any():
            values[active[escaped]] = _smooth_many(n + 1, mag[escaped])
        glitch = ~escaped & (mag < _GLITCH_TOLERANCE_SQR * (zr * zr + zi * zi))
        if glitch.any():
            glitched[active[glitch]] = True

        keep = ~(escaped | glitch)
        if not keep.all():
            active = active[keep]
            ar, ai = ar[keep], ai[keep]
            dcr, dci = dcr[keep], dci[keep]

    for k in np.flatnonzero(glitched):
        c = orbit.center.offset(complex(dc_re[k], dc_im[k]))
        values[k] = evaluate_direct(c, max_iterations).escape_value

    return values.reshape(shape), glitched.reshape(shape)
